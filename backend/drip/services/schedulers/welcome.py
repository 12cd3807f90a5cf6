"""Welcome email series scheduler

The series has 4 steps (day 0, 2, 7, 14 after signup). Only one PENDING job per
campaign per user can exist, so the series is a chain:

1. schedule_welcome_series() creates the day 0 PENDING job
2. The processor sends it and marks it SENT
3. The processor calls schedule_next_welcome_step() to create day 2
4. Repeat until all 4 steps are sent
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from drip.models.email_job import EmailJob, EmailCampaign
from drip.models.user import User
from drip.schemas.email import WelcomeMetadata
from drip.services.email_job_service import upsert_pending_job, cancel_pending_jobs
from drip.services.preferences_service import is_opted_out
from drip.utils.dates import utcnow, ensure_utc

logger = logging.getLogger(__name__)

CAMPAIGN = EmailCampaign.WELCOME

WELCOME_STEPS = (
    {"step": 0, "key": "day0", "day_offset": 0},
    {"step": 1, "key": "day2", "day_offset": 2},
    {"step": 2, "key": "day7", "day_offset": 7},
    {"step": 3, "key": "day14", "day_offset": 14},
)


def _step_metadata(index: int) -> dict:
    step = WELCOME_STEPS[index]
    return WelcomeMetadata(
        step=step["step"],
        key=step["key"],
        day_offset=step["day_offset"],
        total_steps=len(WELCOME_STEPS)
    ).to_json()


def schedule_welcome_series(user_id: str, db: Session, now: Optional[datetime] = None) -> Optional[EmailJob]:
    """Schedule the day 0 welcome email for a new user.

    Returns None (not an error) if the user does not exist or opted out.
    Calling it twice yields the same single PENDING job.
    """
    now = now or utcnow()
    user = db.query(User).filter(User.id == user_id).first()
    if is_opted_out(user, CAMPAIGN):
        logger.info(f"Not scheduling welcome series for user {user_id}: missing or opted out")
        return None

    return upsert_pending_job(db, user_id, CAMPAIGN, scheduled_at=now, metadata=_step_metadata(0))


def schedule_next_welcome_step(
    user_id: str,
    completed_step: int,
    signup_date: datetime,
    db: Session,
    now: Optional[datetime] = None
) -> Optional[EmailJob]:
    """Schedule the step after completed_step, anchored on the signup date.

    Returns None when the series is complete or the user opted out mid-series.
    A due date already in the past (delayed processing) is clamped to now.
    """
    next_index = completed_step + 1
    if next_index >= len(WELCOME_STEPS):
        return None

    now = now or utcnow()
    user = db.query(User).filter(User.id == user_id).first()
    if is_opted_out(user, CAMPAIGN):
        logger.info(f"Stopping welcome series for user {user_id} at step {completed_step}: opted out")
        return None

    scheduled_at = ensure_utc(signup_date) + timedelta(days=WELCOME_STEPS[next_index]["day_offset"])
    if scheduled_at < now:
        scheduled_at = now

    return upsert_pending_job(db, user_id, CAMPAIGN, scheduled_at=scheduled_at, metadata=_step_metadata(next_index))


def cancel_welcome_series(user_id: str, db: Session) -> int:
    """Cancel any pending welcome email for a user (e.g. after opting out)"""
    count = cancel_pending_jobs(db, user_id, CAMPAIGN)
    if count:
        logger.info(f"Cancelled {count} pending welcome job(s) for user {user_id}")
    return count
