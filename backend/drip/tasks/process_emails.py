"""Email job batch processor

The only component that sends campaign email. Invoked by the cron endpoint every
15 minutes; processes up to EMAIL_BATCH_SIZE due jobs sequentially:

PENDING -> PROCESSING (conditional claim) -> SENT | FAILED | CANCELLED

A failure in one job never aborts the batch.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from drip.core.config import settings
from drip.core.metrics import emails_processed_counter
from drip.core.otel import email_job_span
from drip.models.email_job import EmailJob, EmailCampaign, EmailJobStatus
from drip.schemas.email import ProcessSummary
from drip.services.admin_service import log_admin_action, SYSTEM_CRON_ACTOR
from drip.services.email_job_service import (
    claim_job,
    get_due_jobs,
    mark_job_cancelled,
    mark_job_failed,
    mark_job_sent,
    recycle_stale_jobs,
)
from drip.services.email_service import send_campaign_email
from drip.services.preferences_service import is_opted_out
from drip.services.schedulers.welcome import schedule_next_welcome_step
from drip.services.templates import render_email_for_job
from drip.utils.dates import utcnow

logger = logging.getLogger(__name__)
cron_logger = logging.getLogger("cron")

RENDER_FAILED_ERROR = "Failed to render email template"
SEND_FAILED_ERROR = "Send failed"
OPTED_OUT_REASON = "User opted out"

SENT = "sent"
FAILED = "failed"
SKIPPED = "skipped"


def _known_campaign(value: str) -> Optional[EmailCampaign]:
    try:
        return EmailCampaign(value)
    except ValueError:
        return None


def process_job(db: Session, job: EmailJob, now: datetime) -> str:
    """Claim, render, send and advance one job. Returns the outcome (sent/failed/skipped)."""
    if not claim_job(db, job, now):
        logger.info(f"Email job {job.id} already claimed by another run, skipping")
        return SKIPPED

    user = job.user
    campaign = _known_campaign(job.campaign)

    if is_opted_out(user, campaign):
        mark_job_cancelled(db, job, OPTED_OUT_REASON)
        return SKIPPED

    rendered = render_email_for_job(job.campaign, job.job_metadata, user)
    if rendered is None:
        mark_job_failed(db, job, RENDER_FAILED_ERROR)
        return FAILED

    result = send_campaign_email(
        db,
        user_id=user.id,
        to=user.email,
        subject=rendered.subject,
        html=rendered.html,
        campaign=campaign,
        email_job_id=job.id
    )

    if result.skipped:
        mark_job_cancelled(db, job, result.error)
        return SKIPPED

    if not result.success:
        mark_job_failed(db, job, result.error or SEND_FAILED_ERROR)
        return FAILED

    mark_job_sent(db, job, now)

    if campaign == EmailCampaign.WELCOME:
        step = int((job.job_metadata or {}).get("step", 0))
        schedule_next_welcome_step(user.id, step, user.created_at, db, now=now)

    return SENT


def _record_job_exception(db: Session, job: EmailJob, exc: Exception) -> str:
    """Best-effort FAILED write after an unexpected per-job exception"""
    try:
        db.rollback()
        if mark_job_failed(db, job, str(exc) or exc.__class__.__name__):
            return FAILED
        # Already terminal, e.g. sent before the welcome chain raised
        return SENT if job.status == EmailJobStatus.SENT.value else FAILED
    except Exception as update_error:
        # Left PROCESSING; the stale-job recycle picks it up on a later run
        logger.error(f"Could not mark email job {job.id} as failed: {update_error}", exc_info=True)
        db.rollback()
        return FAILED


def process_email_jobs(
    db: Session,
    now: Optional[datetime] = None,
    batch_size: Optional[int] = None
) -> ProcessSummary:
    """Process one batch of due email jobs and return the run summary"""
    now = now or utcnow()
    batch_size = batch_size or settings.EMAIL_BATCH_SIZE

    recycled = recycle_stale_jobs(db, now, settings.EMAIL_PROCESSING_TIMEOUT_MINUTES)

    jobs = get_due_jobs(db, now, batch_size)
    if not jobs:
        return ProcessSummary()

    summary = ProcessSummary(processed=len(jobs))
    for job in jobs:
        job_id, campaign = job.id, job.campaign
        with email_job_span(job_id, campaign):
            try:
                outcome = process_job(db, job, now)
            except Exception as e:
                logger.error(f"Error processing email job {job_id} ({campaign}): {e}", exc_info=True)
                outcome = _record_job_exception(db, job, e)

        setattr(summary, outcome, getattr(summary, outcome) + 1)
        emails_processed_counter.labels(outcome=outcome).inc()

    cron_logger.info(
        f"Processed {summary.processed} email jobs: {summary.sent} sent, "
        f"{summary.failed} failed, {summary.skipped} skipped"
    )
    log_admin_action(
        db, SYSTEM_CRON_ACTOR, "PROCESS_EMAILS", "email_jobs",
        {**summary.model_dump(), "recycled": recycled}
    )
    return summary
