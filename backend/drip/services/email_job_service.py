"""EmailJob persistence - idempotent scheduling, claiming and state transitions

All scheduling goes through upsert_pending_job(), an atomic insert-if-absent against
the partial unique index on (user_id, campaign) WHERE status = 'PENDING'.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from drip.core.metrics import jobs_scheduled_counter, stale_jobs_recycled_counter
from drip.models.email_job import EmailJob, EmailCampaign, EmailJobStatus, PENDING_ONLY, new_job_id
from drip.utils.dates import utcnow

logger = logging.getLogger(__name__)

PENDING = EmailJobStatus.PENDING.value
PROCESSING = EmailJobStatus.PROCESSING.value


def get_pending_job(db: Session, user_id: str, campaign: EmailCampaign) -> Optional[EmailJob]:
    """Return the single PENDING job for (user, campaign), if any"""
    return db.query(EmailJob).filter(
        EmailJob.user_id == user_id,
        EmailJob.campaign == campaign.value,
        EmailJob.status == PENDING
    ).first()


def upsert_pending_job(
    db: Session,
    user_id: str,
    campaign: EmailCampaign,
    scheduled_at: datetime,
    metadata: dict,
) -> EmailJob:
    """Create a PENDING job unless one already exists for (user, campaign).

    The existing job is returned untouched when present (the update branch is a no-op).
    """
    now = utcnow()
    values = {
        "id": new_job_id(),
        "user_id": user_id,
        "campaign": campaign.value,
        "status": PENDING,
        "scheduled_at": scheduled_at,
        "job_metadata": metadata,
        "created_at": now,
        "updated_at": now,
    }

    dialect = db.get_bind().dialect.name
    if dialect in ("postgresql", "sqlite"):
        insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
        stmt = insert(EmailJob.__table__).values(**values).on_conflict_do_nothing(
            index_elements=["user_id", "campaign"],
            index_where=PENDING_ONLY
        )
        inserted = db.execute(stmt).rowcount == 1
    else:
        # Other backends: rely on the unique index and ignore the conflict
        try:
            db.add(EmailJob(**values))
            db.flush()
            inserted = True
        except IntegrityError:
            db.rollback()
            inserted = False
            logger.debug(f"Pending {campaign.value} job already exists for user {user_id}")
    db.commit()

    if inserted:
        jobs_scheduled_counter.labels(campaign=campaign.value).inc()
    job = get_pending_job(db, user_id, campaign)
    if job is None:
        # Claimed by a concurrent processor between insert and read
        raise RuntimeError(f"Pending {campaign.value} job for user {user_id} vanished after upsert")
    return job


def cancel_pending_jobs(db: Session, user_id: str, campaign: EmailCampaign, commit: bool = True) -> int:
    """Bulk transition PENDING jobs for (user, campaign) to CANCELLED. Returns the count."""
    count = db.query(EmailJob).filter(
        EmailJob.user_id == user_id,
        EmailJob.campaign == campaign.value,
        EmailJob.status == PENDING
    ).update(
        {EmailJob.status: EmailJobStatus.CANCELLED.value, EmailJob.updated_at: utcnow()},
        synchronize_session=False
    )
    if commit:
        db.commit()
    return count


def get_due_jobs(db: Session, now: datetime, limit: int) -> List[EmailJob]:
    """PENDING jobs with scheduled_at <= now, oldest due first, with their user loaded"""
    return db.query(EmailJob).options(joinedload(EmailJob.user)).filter(
        EmailJob.status == PENDING,
        EmailJob.scheduled_at <= now
    ).order_by(EmailJob.scheduled_at.asc()).limit(limit).all()


def claim_job(db: Session, job: EmailJob, now: datetime) -> bool:
    """Transition PENDING -> PROCESSING only if the row is still PENDING.

    Returns False when another worker got there first.
    """
    claimed = db.query(EmailJob).filter(
        EmailJob.id == job.id,
        EmailJob.status == PENDING
    ).update(
        {EmailJob.status: PROCESSING, EmailJob.claimed_at: now, EmailJob.updated_at: now},
        synchronize_session=False
    )
    db.commit()
    db.refresh(job)
    return claimed == 1


def _finish(db: Session, job: EmailJob, status: EmailJobStatus, **fields) -> bool:
    """Move a PROCESSING job to a terminal status; terminal states are never overwritten"""
    values = {EmailJob.status: status.value, EmailJob.updated_at: utcnow()}
    for name, value in fields.items():
        values[getattr(EmailJob, name)] = value
    updated = db.query(EmailJob).filter(
        EmailJob.id == job.id,
        EmailJob.status == PROCESSING
    ).update(values, synchronize_session=False)
    db.commit()
    db.refresh(job)
    return updated == 1


def mark_job_sent(db: Session, job: EmailJob, now: datetime) -> bool:
    return _finish(db, job, EmailJobStatus.SENT, sent_at=now, error=None)


def mark_job_failed(db: Session, job: EmailJob, error: str) -> bool:
    return _finish(db, job, EmailJobStatus.FAILED, error=error)


def mark_job_cancelled(db: Session, job: EmailJob, reason: Optional[str] = None) -> bool:
    return _finish(db, job, EmailJobStatus.CANCELLED, error=reason)


def recycle_stale_jobs(db: Session, now: datetime, timeout_minutes: int) -> dict:
    """Return PROCESSING jobs claimed more than timeout_minutes ago to PENDING.

    If a newer PENDING job already exists for the same (user, campaign), the stale one
    is CANCELLED as superseded instead.
    """
    cutoff = now - timedelta(minutes=timeout_minutes)
    stale = db.query(EmailJob).filter(
        EmailJob.status == PROCESSING,
        EmailJob.claimed_at <= cutoff
    ).order_by(EmailJob.claimed_at.asc()).all()

    result = {"requeued": 0, "superseded": 0}
    for job in stale:
        job_id, user_id, campaign = job.id, job.user_id, job.campaign
        requeued = False
        newer = db.query(EmailJob.id).filter(
            EmailJob.user_id == user_id,
            EmailJob.campaign == campaign,
            EmailJob.status == PENDING
        ).first()
        if newer is None:
            try:
                db.query(EmailJob).filter(
                    EmailJob.id == job_id,
                    EmailJob.status == PROCESSING
                ).update(
                    {EmailJob.status: PENDING, EmailJob.claimed_at: None, EmailJob.updated_at: now},
                    synchronize_session=False
                )
                db.commit()
                requeued = True
            except IntegrityError:
                # Lost a race with a scheduler inserting a fresh PENDING job
                db.rollback()

        if requeued:
            result["requeued"] += 1
            stale_jobs_recycled_counter.labels(result="requeued").inc()
            logger.warning(f"Requeued stale email job {job_id} ({campaign}) for user {user_id}")
            continue

        db.query(EmailJob).filter(
            EmailJob.id == job_id,
            EmailJob.status == PROCESSING
        ).update(
            {
                EmailJob.status: EmailJobStatus.CANCELLED.value,
                EmailJob.error: "Superseded by a newer pending job",
                EmailJob.updated_at: now,
            },
            synchronize_session=False
        )
        db.commit()
        result["superseded"] += 1
        stale_jobs_recycled_counter.labels(result="superseded").inc()
        logger.warning(f"Cancelled stale email job {job_id}: a newer pending job exists")
    return result
