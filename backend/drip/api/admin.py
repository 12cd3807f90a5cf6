"""Admin API routes"""
import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from drip.core.security import verify_admin_token
from drip.db.session import get_db
from drip.services.admin_service import get_email_stats

router = APIRouter(prefix="/api/admin", tags=["admin"])
logger = logging.getLogger(__name__)


@router.get("/email/stats")
def email_stats(actor: str = Depends(verify_admin_token), db: Session = Depends(get_db)):
    """Campaign email statistics for the admin dashboard"""
    try:
        return get_email_stats(db).model_dump(by_alias=True)
    except Exception as e:
        logger.error(f"Failed to fetch email stats for {actor}: {e}", exc_info=True)
        raise HTTPException(500, "Failed to fetch email stats")
