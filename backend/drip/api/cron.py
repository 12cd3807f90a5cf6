"""Cron trigger endpoints (called by the external scheduler with the CRON_SECRET bearer)"""
import logging
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from drip.core.metrics import cron_runs_counter
from drip.core.security import verify_cron_auth
from drip.db.session import get_db
from drip.tasks.detect_campaigns import detect_abandoned_resumes, detect_inactive_users
from drip.tasks.process_emails import process_email_jobs
from drip.utils.dates import utcnow

router = APIRouter(prefix="/api/cron", tags=["cron"], dependencies=[Depends(verify_cron_auth)])
cron_logger = logging.getLogger("cron")


def _cron_failure() -> JSONResponse:
    return JSONResponse(status_code=500, content={"success": False, "error": "Cron job failed"})


def _cron_response(message: str, **result) -> dict:
    return {
        "success": True,
        "message": message,
        "timestamp": utcnow().isoformat(),
        **result
    }


@router.api_route("/process-emails", methods=["GET", "POST"])
def process_emails(db: Session = Depends(get_db)):
    """Process one batch of due email jobs (every 15 minutes)"""
    try:
        summary = process_email_jobs(db)
    except Exception as e:
        cron_runs_counter.labels(job="process-emails", status="error").inc()
        cron_logger.error(f"process-emails failed: {e}", exc_info=True)
        return _cron_failure()

    cron_runs_counter.labels(job="process-emails", status="success").inc()
    if summary.processed > 0:
        message = (
            f"Processed {summary.processed} email jobs: {summary.sent} sent, "
            f"{summary.failed} failed, {summary.skipped} skipped"
        )
    else:
        message = "No pending email jobs"
    return _cron_response(message, **summary.model_dump())


@router.api_route("/detect-abandoned", methods=["GET", "POST"])
def detect_abandoned(db: Session = Depends(get_db)):
    """Detect abandoned draft resumes and schedule reminders (daily)"""
    try:
        summary = detect_abandoned_resumes(db)
    except Exception as e:
        cron_runs_counter.labels(job="detect-abandoned", status="error").inc()
        cron_logger.error(f"detect-abandoned failed: {e}", exc_info=True)
        return _cron_failure()

    cron_runs_counter.labels(job="detect-abandoned", status="success").inc()
    if summary.detected > 0:
        message = f"Detected {summary.detected} abandoned resumes, scheduled {summary.scheduled} emails"
    else:
        message = "No abandoned resumes detected"
    return _cron_response(message, **summary.model_dump())


@router.api_route("/detect-reengagement", methods=["GET", "POST"])
def detect_reengagement(db: Session = Depends(get_db)):
    """Detect inactive users (90/60/30 days) and schedule re-engagement emails (daily)"""
    try:
        summary = detect_inactive_users(db)
    except Exception as e:
        cron_runs_counter.labels(job="detect-reengagement", status="error").inc()
        cron_logger.error(f"detect-reengagement failed: {e}", exc_info=True)
        return _cron_failure()

    cron_runs_counter.labels(job="detect-reengagement", status="success").inc()
    if summary.detected > 0:
        message = f"Detected {summary.detected} inactive users, scheduled {summary.scheduled} re-engagement emails"
    else:
        message = "No inactive users detected"
    return _cron_response(message, **summary.model_dump(by_alias=True))
