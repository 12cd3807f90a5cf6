"""Re-engagement scheduler

Finds users who haven't logged in for 30, 60 or 90 days and queues a win-back email,
skipping opted-out users and anyone with a pending or recent re-engagement email.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from drip.models.email_job import EmailJob, EmailCampaign
from drip.models.user import User
from drip.schemas.email import InactiveUser, ReengagementMetadata
from drip.services.email_job_service import upsert_pending_job
from drip.services.preferences_service import campaign_enabled_clause, is_opted_out
from drip.services.schedulers.abandoned import _active_or_recent_job
from drip.utils.dates import utcnow, ensure_utc

logger = logging.getLogger(__name__)

CAMPAIGN = EmailCampaign.RE_ENGAGEMENT

# Inactivity thresholds in days, ascending
INACTIVITY_THRESHOLDS = (30, 60, 90)

COOLDOWN_DAYS = 30


def bucket_for_inactivity(inactive_days: int, default: int) -> int:
    """Largest threshold the user qualifies for (checked 90, 60, 30), else default"""
    for threshold in reversed(INACTIVITY_THRESHOLDS):
        if inactive_days >= threshold:
            return threshold
    return default


def find_inactive_users(
    db: Session,
    threshold: int = 30,
    limit: int = 100,
    now: Optional[datetime] = None
) -> List[InactiveUser]:
    """Users whose last login is at least threshold days ago, most inactive first.

    Users without last_login_at are never returned: inactivity can't be computed.
    """
    now = now or utcnow()
    cutoff = now - timedelta(days=threshold)
    recent_cutoff = now - timedelta(days=COOLDOWN_DAYS)

    users = db.query(User).filter(
        User.email_opt_out.is_(False),
        campaign_enabled_clause(CAMPAIGN),
        User.last_login_at.isnot(None),
        User.last_login_at <= cutoff,
        ~_active_or_recent_job(CAMPAIGN, User.id, recent_cutoff)
    ).order_by(User.last_login_at.asc()).limit(limit).all()

    results = []
    for user in users:
        last_login = ensure_utc(user.last_login_at)
        inactive_days = int((now - last_login) // timedelta(days=1))
        results.append(InactiveUser(
            user_id=user.id,
            email=user.email,
            name=user.name,
            last_login_at=last_login,
            inactive_days=inactive_days,
            threshold=bucket_for_inactivity(inactive_days, threshold)
        ))
    return results


def schedule_reengagement_email(
    user_id: str,
    threshold: int,
    inactive_days: int,
    db: Session,
    now: Optional[datetime] = None
) -> Optional[EmailJob]:
    """Queue a re-engagement email. Safe to call repeatedly; None if the user opted out."""
    now = now or utcnow()
    user = db.query(User).filter(User.id == user_id).first()
    if is_opted_out(user, CAMPAIGN):
        logger.info(f"Not scheduling re-engagement email for user {user_id}: missing or opted out")
        return None

    metadata = ReengagementMetadata(threshold=threshold, inactive_days=inactive_days).to_json()
    return upsert_pending_job(db, user_id, CAMPAIGN, scheduled_at=now, metadata=metadata)
