"""Admin service - audit trail and email campaign statistics"""
import logging
from typing import Dict, Optional, List
from datetime import datetime, timedelta
from sqlalchemy.orm import Session
from sqlalchemy import func

from drip.models.audit_log import AuditLog
from drip.models.email_job import EmailJob, EmailJobStatus
from drip.models.email_log import EmailLog, EmailDeliveryStatus
from drip.schemas.email import DailyCount, EmailStatsOverview, EmailStatsResponse
from drip.utils.dates import utcnow, ensure_utc

logger = logging.getLogger(__name__)

SYSTEM_CRON_ACTOR = "system:cron"
RECENT_LOGS_LIMIT = 50
DAILY_COUNTS_DAYS = 14


def log_admin_action(
    db: Session,
    actor: str,
    action: str,
    target: str,
    details: Optional[dict] = None
) -> Optional[AuditLog]:
    """Write an audit log entry.

    Never raises: a failed audit write must not fail the action being audited.
    """
    try:
        entry = AuditLog(actor=actor, action=action, target=target, details=details)
        db.add(entry)
        db.commit()
        return entry
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to write audit log {action} for {actor}: {e}", exc_info=True)
        return None


def _count_by(db: Session, column) -> Dict[str, int]:
    return {value: count for value, count in db.query(column, func.count()).group_by(column).all()}


def _daily_counts(db: Session, now: datetime) -> List[DailyCount]:
    """EmailLog rows per UTC day over the last DAILY_COUNTS_DAYS days, oldest first"""
    since = now - timedelta(days=DAILY_COUNTS_DAYS)
    rows = db.query(EmailLog.created_at).filter(EmailLog.created_at >= since).all()
    counts: Dict[str, int] = {}
    for (created_at,) in rows:
        day = ensure_utc(created_at).strftime("%Y-%m-%d")
        counts[day] = counts.get(day, 0) + 1
    return [DailyCount(date=day, count=counts[day]) for day in sorted(counts)]


def _log_to_dict(log: EmailLog) -> dict:
    sent_at = ensure_utc(log.sent_at)
    return {
        "id": log.id,
        "campaign": log.campaign,
        "recipientEmail": log.recipient_email,
        "subject": log.subject,
        "status": log.status,
        "error": log.error,
        "sentAt": sent_at.isoformat() if sent_at else None,
        "createdAt": ensure_utc(log.created_at).isoformat(),
    }


def get_email_stats(db: Session, now: Optional[datetime] = None) -> EmailStatsResponse:
    """Aggregate job and delivery statistics for the admin dashboard"""
    now = now or utcnow()
    status_counts = _count_by(db, EmailJob.status)
    campaign_counts = _count_by(db, EmailJob.campaign)
    delivery_counts = _count_by(db, EmailLog.status)

    def delivered(*statuses):
        return sum(delivery_counts.get(s.value, 0) for s in statuses)

    def jobs(*statuses):
        return sum(status_counts.get(s.value, 0) for s in statuses)

    overview = EmailStatsOverview(
        total_sent=delivered(EmailDeliveryStatus.SENT, EmailDeliveryStatus.DELIVERED, EmailDeliveryStatus.OPENED),
        total_pending=jobs(EmailJobStatus.PENDING, EmailJobStatus.PROCESSING) + delivered(EmailDeliveryStatus.QUEUED),
        total_failed=delivered(EmailDeliveryStatus.FAILED, EmailDeliveryStatus.BOUNCED) + jobs(EmailJobStatus.FAILED)
    )

    recent_logs = db.query(EmailLog).order_by(EmailLog.created_at.desc()).limit(RECENT_LOGS_LIMIT).all()

    return EmailStatsResponse(
        overview=overview,
        jobs_by_status=status_counts,
        campaign_counts=campaign_counts,
        delivery_counts=delivery_counts,
        recent_logs=[_log_to_dict(log) for log in recent_logs],
        daily_sent_counts=_daily_counts(db, now)
    )
