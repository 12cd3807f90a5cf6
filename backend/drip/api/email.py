"""Email campaign endpoints for the main application"""
import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from drip.core.security import verify_cron_auth
from drip.db.session import get_db
from drip.schemas.email import EmailJobResponse
from drip.services.schedulers import schedule_welcome_series, cancel_welcome_series

router = APIRouter(prefix="/api/email", tags=["email"], dependencies=[Depends(verify_cron_auth)])
logger = logging.getLogger(__name__)


@router.post("/users/{user_id}/welcome")
def enqueue_welcome_series(user_id: str, db: Session = Depends(get_db)):
    """Start the welcome series for a newly registered user (signup webhook)"""
    try:
        job = schedule_welcome_series(user_id, db)
    except Exception as e:
        logger.error(f"Failed to schedule welcome series for user {user_id}: {e}", exc_info=True)
        raise HTTPException(500, "Failed to schedule welcome series")

    if job is None:
        return {"scheduled": False}
    return {"scheduled": True, "job": EmailJobResponse.model_validate(job).model_dump(by_alias=True, mode="json")}


@router.delete("/users/{user_id}/welcome")
def cancel_welcome(user_id: str, db: Session = Depends(get_db)):
    """Cancel a user's pending welcome email (e.g. account deleted)"""
    cancelled = cancel_welcome_series(user_id, db)
    return {"cancelled": cancelled}
