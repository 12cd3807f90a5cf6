"""Security dependencies: bearer secrets for cron/admin endpoints and rate limiting"""
import hmac
import logging
from typing import Optional
from fastapi import Header, HTTPException, Request
from drip.db.redis import check_rate_limit as redis_check_rate_limit
from drip.core.config import settings

security_logger = logging.getLogger("security")


def _bearer_matches(authorization: Optional[str], secret: str) -> bool:
    """Constant-time comparison of an Authorization header against 'Bearer <secret>'"""
    if not authorization:
        return False
    return hmac.compare_digest(authorization.encode("utf-8"), f"Bearer {secret}".encode("utf-8"))


def _client_ip(request: Request) -> str:
    client_ip = request.headers.get("X-Forwarded-For", "").split(",")[0].strip()
    if not client_ip:
        client_ip = request.client.host if request.client else "unknown"
    return client_ip


def verify_cron_auth(request: Request, authorization: Optional[str] = Header(None)) -> None:
    """Dependency: require the CRON_SECRET bearer token.

    An unset secret disables the endpoint (503) rather than leaving it open.
    """
    if not settings.CRON_SECRET:
        security_logger.error("CRON_SECRET is not set - cron endpoint disabled")
        raise HTTPException(503, "Cron endpoint not configured")

    if not _bearer_matches(authorization, settings.CRON_SECRET):
        security_logger.warning(
            f"Unauthorized cron request - IP: {_client_ip(request)}, Path: {request.url.path}"
        )
        raise HTTPException(401, "Unauthorized")


def verify_admin_token(request: Request, authorization: Optional[str] = Header(None)) -> str:
    """Dependency: require the ADMIN_API_TOKEN bearer token, return the actor name for auditing"""
    if not settings.ADMIN_API_TOKEN:
        security_logger.error("ADMIN_API_TOKEN is not set - admin endpoints disabled")
        raise HTTPException(503, "Admin endpoint not configured")

    if not _bearer_matches(authorization, settings.ADMIN_API_TOKEN):
        security_logger.warning(
            f"Unauthorized admin request - IP: {_client_ip(request)}, Path: {request.url.path}"
        )
        raise HTTPException(401, "Unauthorized")
    return "admin:api-token"


def get_client_identifier(request: Request, scope: Optional[str] = None) -> str:
    """Get a unique identifier for rate limiting"""
    identifier = f"ip:{_client_ip(request)}"
    return f"{scope}:{identifier}" if scope else identifier


def check_rate_limit(identifier: str, max_requests: int, window: int) -> bool:
    """Check if request is within rate limit

    Fails open when Redis is unreachable: an outage must not block unsubscribes.

    Returns:
        True if within limit, False if exceeded
    """
    try:
        return redis_check_rate_limit(identifier, max_requests, window)
    except Exception as e:
        security_logger.warning(f"Rate limit check failed for {identifier}, allowing request: {e}")
        return True
