"""Unsubscribe endpoints (linked from every campaign email)"""
import logging
from html import escape
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session
from drip.core.config import settings
from drip.core.security import check_rate_limit, get_client_identifier
from drip.db.session import get_db
from drip.schemas.email import UnsubscribeRequest
from drip.services.unsubscribe_service import (
    InvalidUnsubscribeToken, UNSUBSCRIBE_SUCCESS_MESSAGE, unsubscribe
)

router = APIRouter(prefix="/api/unsubscribe", tags=["unsubscribe"])
security_logger = logging.getLogger("security")


def enforce_unsubscribe_rate_limit(request: Request) -> None:
    """Dependency: per-client rate limit for unsubscribe requests"""
    identifier = get_client_identifier(request, scope="unsubscribe")
    if not check_rate_limit(
        identifier,
        settings.UNSUBSCRIBE_RATE_LIMIT_REQUESTS,
        settings.UNSUBSCRIBE_RATE_LIMIT_WINDOW
    ):
        security_logger.warning(f"Rate limit exceeded - Identifier: {identifier}, Path: {request.url.path}")
        raise HTTPException(429, "Rate limit exceeded. Please try again later.")


def _unsubscribe_or_400(db: Session, token: Optional[str]) -> None:
    if not token:
        raise HTTPException(400, "Missing unsubscribe token")
    try:
        unsubscribe(db, token)
    except InvalidUnsubscribeToken as e:
        security_logger.warning("Invalid unsubscribe token presented")
        raise HTTPException(400, str(e))


@router.get("", response_class=HTMLResponse, dependencies=[Depends(enforce_unsubscribe_rate_limit)])
def unsubscribe_link(token: Optional[str] = Query(None), db: Session = Depends(get_db)):
    """Unsubscribe link clicked from an email"""
    _unsubscribe_or_400(db, token)
    return HTMLResponse(
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\"><title>Unsubscribed</title></head>"
        f"<body style=\"font-family: sans-serif; text-align: center; padding: 48px;\"><p>{escape(UNSUBSCRIBE_SUCCESS_MESSAGE)}</p>"
        f"<p><a href=\"{escape(settings.FRONTEND_URL)}\">Work.krd</a></p></body></html>"
    )


@router.post("", dependencies=[Depends(enforce_unsubscribe_rate_limit)])
async def unsubscribe_post(request: Request, token: Optional[str] = Query(None), db: Session = Depends(get_db)):
    """One-click unsubscribe (RFC 8058, token in the query string) or JSON body {"token": ...}"""
    if not token and request.headers.get("content-type", "").startswith("application/json"):
        try:
            token = UnsubscribeRequest.model_validate(await request.json()).token
        except ValueError:
            raise HTTPException(400, "Invalid request body")
    _unsubscribe_or_400(db, token)
    return {"success": True, "message": UNSUBSCRIBE_SUCCESS_MESSAGE}
