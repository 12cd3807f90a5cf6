"""Detector runs - find eligible users and enqueue campaign jobs

Called by the daily cron endpoints. Scheduling failures are isolated per user.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from drip.schemas.email import DetectSummary, ReengagementDetectSummary
from drip.services.admin_service import log_admin_action, SYSTEM_CRON_ACTOR
from drip.services.schedulers import (
    INACTIVITY_THRESHOLDS,
    find_abandoned_resumes,
    find_inactive_users,
    schedule_abandoned_resume_email,
    schedule_reengagement_email,
)
from drip.utils.dates import utcnow

logger = logging.getLogger(__name__)
cron_logger = logging.getLogger("cron")


def detect_abandoned_resumes(db: Session, now: Optional[datetime] = None) -> DetectSummary:
    now = now or utcnow()
    abandoned = find_abandoned_resumes(db, now=now)
    summary = DetectSummary(detected=len(abandoned))

    for item in abandoned:
        try:
            job = schedule_abandoned_resume_email(
                item.user_id, item.resume_id, item.resume_title, db,
                now=now, last_edited=item.last_updated
            )
            if job is not None:
                summary.scheduled += 1
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to schedule abandoned resume email for user {item.user_id}: {e}", exc_info=True)
            summary.failed += 1

    cron_logger.info(f"Abandoned resume detection: {summary.model_dump()}")
    log_admin_action(db, SYSTEM_CRON_ACTOR, "DETECT_ABANDONED_RESUMES", "email_jobs", summary.model_dump())
    return summary


def detect_inactive_users(db: Session, now: Optional[datetime] = None) -> ReengagementDetectSummary:
    """Run thresholds longest first so each user lands in the most appropriate tier.

    A user scheduled at 90 days already has a PENDING job, so the 60 and 30 day
    queries exclude them.
    """
    now = now or utcnow()
    summary = ReengagementDetectSummary()

    for threshold in sorted(INACTIVITY_THRESHOLDS, reverse=True):
        users = find_inactive_users(db, threshold=threshold, now=now)
        summary.by_threshold[threshold] = len(users)
        summary.detected += len(users)

        for user in users:
            try:
                job = schedule_reengagement_email(user.user_id, user.threshold, user.inactive_days, db, now=now)
                if job is not None:
                    summary.scheduled += 1
            except Exception as e:
                db.rollback()
                logger.error(f"Failed to schedule re-engagement for user {user.user_id}: {e}", exc_info=True)
                summary.failed += 1

    details = summary.model_dump(by_alias=True)
    cron_logger.info(f"Re-engagement detection: {details}")
    log_admin_action(db, SYSTEM_CRON_ACTOR, "DETECT_REENGAGEMENT", "email_jobs", details)
    return summary
