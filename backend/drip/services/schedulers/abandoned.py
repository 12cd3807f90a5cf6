"""Abandoned resume detector

Finds users who started a resume (DRAFT) but haven't touched it in 24-48 hours and
queues one reminder per user.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import and_, exists, or_
from sqlalchemy.orm import Session

from drip.models.email_job import EmailJob, EmailCampaign, EmailJobStatus
from drip.models.resume import Resume, ResumeStatus
from drip.models.user import User
from drip.schemas.email import AbandonedResume, AbandonedResumeMetadata
from drip.services.email_job_service import upsert_pending_job
from drip.services.preferences_service import campaign_enabled_clause, is_opted_out
from drip.utils.dates import utcnow, ensure_utc

logger = logging.getLogger(__name__)

CAMPAIGN = EmailCampaign.ABANDONED_RESUME

# Window boundaries (hours since last edit)
MIN_ABANDONED_HOURS = 24
MAX_ABANDONED_HOURS = 48

# No second reminder within this many days of a sent one
COOLDOWN_DAYS = 7


def _active_or_recent_job(campaign: EmailCampaign, user_id_column, recent_cutoff: datetime):
    """EXISTS clause: user has a PENDING/PROCESSING job or one SENT since recent_cutoff"""
    return exists().where(
        EmailJob.user_id == user_id_column,
        EmailJob.campaign == campaign.value,
        or_(
            EmailJob.status.in_([EmailJobStatus.PENDING.value, EmailJobStatus.PROCESSING.value]),
            and_(EmailJob.status == EmailJobStatus.SENT.value, EmailJob.sent_at >= recent_cutoff)
        )
    )


def find_abandoned_resumes(db: Session, now: Optional[datetime] = None) -> List[AbandonedResume]:
    """DRAFT resumes last updated 24-48h ago, at most one (the most recent) per user.

    Excludes opted-out users and users with a pending/processing reminder or one
    sent within the cooldown.
    """
    now = now or utcnow()
    window_start = now - timedelta(hours=MAX_ABANDONED_HOURS)
    window_end = now - timedelta(hours=MIN_ABANDONED_HOURS)
    recent_cutoff = now - timedelta(days=COOLDOWN_DAYS)

    rows = db.query(Resume, User).join(User, Resume.user_id == User.id).filter(
        Resume.status == ResumeStatus.DRAFT.value,
        Resume.updated_at >= window_start,
        Resume.updated_at <= window_end,
        User.email_opt_out.is_(False),
        campaign_enabled_clause(CAMPAIGN),
        ~_active_or_recent_job(CAMPAIGN, User.id, recent_cutoff)
    ).order_by(Resume.updated_at.desc()).all()

    seen = set()
    results = []
    for resume, user in rows:
        if resume.user_id in seen:
            continue
        seen.add(resume.user_id)
        results.append(AbandonedResume(
            user_id=user.id,
            user_email=user.email,
            user_name=user.name,
            resume_id=resume.id,
            resume_title=resume.title,
            last_updated=ensure_utc(resume.updated_at)
        ))
    return results


def schedule_abandoned_resume_email(
    user_id: str,
    resume_id: str,
    resume_title: str,
    db: Session,
    now: Optional[datetime] = None,
    last_edited: Optional[datetime] = None
) -> Optional[EmailJob]:
    """Queue an abandoned-resume reminder for the next processing cycle.

    Safe to call repeatedly for the same user. Returns None if the user opted out.
    """
    now = now or utcnow()
    user = db.query(User).filter(User.id == user_id).first()
    if is_opted_out(user, CAMPAIGN):
        logger.info(f"Not scheduling abandoned resume email for user {user_id}: missing or opted out")
        return None

    metadata = AbandonedResumeMetadata(
        resume_id=resume_id,
        resume_title=resume_title,
        last_edited=ensure_utc(last_edited).strftime("%Y-%m-%d") if last_edited else ""
    ).to_json()
    return upsert_pending_job(db, user_id, CAMPAIGN, scheduled_at=now, metadata=metadata)
