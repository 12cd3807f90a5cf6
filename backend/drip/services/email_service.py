"""Email service - campaign delivery through Resend and signed unsubscribe links"""
import logging
import hmac
import hashlib
import base64
from typing import Optional, Tuple
from urllib.parse import quote
import resend
from sqlalchemy.orm import Session
from drip.core.config import settings
from drip.models.email_job import EmailCampaign
from drip.models.email_log import EmailLog, EmailDeliveryStatus
from drip.models.user import User
from drip.schemas.email import SendResult
from drip.services.preferences_service import is_opted_out
from drip.utils.dates import utcnow

logger = logging.getLogger(__name__)

# Resend test email addresses for safe testing
# See: https://resend.com/docs/dashboard/emails/send-test-emails
RESEND_TEST_DELIVERED = "delivered@resend.dev"


def validate_email_config() -> tuple[bool, str]:
    """
    Validate email service configuration.

    Returns:
        tuple: (is_valid, error_message)
    """
    if not settings.RESEND_API_KEY:
        return False, "RESEND_API_KEY is not set in environment variables"

    if not settings.EMAIL_FROM:
        return False, "EMAIL_FROM is not set in environment variables"

    if not settings.FRONTEND_URL:
        return False, "FRONTEND_URL is not set in environment variables"

    return True, ""


# --- Unsubscribe tokens ---

def _sign(payload: str) -> str:
    return hmac.new(
        settings.unsubscribe_secret.encode("utf-8"),
        f"unsubscribe:{payload}".encode("utf-8"),
        hashlib.sha256
    ).hexdigest()


def generate_unsubscribe_token(user_id: str, campaign: EmailCampaign) -> str:
    """Create an unsubscribe token: base64url(user_id:campaign).hex_signature

    Tokens never expire; an unsubscribe link must keep working.
    """
    payload = f"{user_id}:{campaign.value}"
    encoded = base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii").rstrip("=")
    return f"{encoded}.{_sign(payload)}"


def verify_unsubscribe_token(token: str) -> Optional[Tuple[str, EmailCampaign]]:
    """
    Verify an unsubscribe token.

    Returns:
        (user_id, campaign) if the signature matches, otherwise None
    """
    if not token or "." not in token:
        return None

    encoded, signature = token.rsplit(".", 1)
    try:
        padded = encoded + "=" * (-len(encoded) % 4)
        payload = base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
    except (ValueError, UnicodeError):
        return None

    if not hmac.compare_digest(_sign(payload), signature):
        return None

    user_id, sep, campaign_value = payload.rpartition(":")
    if not sep or not user_id:
        return None
    try:
        return user_id, EmailCampaign(campaign_value)
    except ValueError:
        return None


def build_unsubscribe_url(user_id: str, campaign: EmailCampaign) -> str:
    token = generate_unsubscribe_token(user_id, campaign)
    return f"{settings.FRONTEND_URL.rstrip('/')}/api/unsubscribe?token={quote(token)}"


# --- Delivery ---

def _send_email(to: str, subject: str, html: str, headers: dict) -> Tuple[Optional[str], Optional[str]]:
    """
    Internal helper function to send email via Resend API.

    Returns:
        (message_id, error) - exactly one of them is set
    """
    if not settings.RESEND_API_KEY:
        logger.warning("RESEND_API_KEY is not set; cannot send campaign email")
        return None, "RESEND_API_KEY is not configured"

    try:
        resend.api_key = settings.RESEND_API_KEY

        response = resend.Emails.send(
            {
                "from": settings.EMAIL_FROM,
                "to": [to],
                "subject": subject,
                "html": html,
                "headers": headers,
            }
        )

        # Resend returns dict with 'id' field on success
        email_id = None
        if isinstance(response, dict):
            email_id = response.get('id')
        elif hasattr(response, 'id'):
            email_id = response.id

        if email_id:
            logger.info(f"Email sent successfully to {to} (id: {email_id})")
            return email_id, None

        logger.error(f"Email send returned invalid response: {response} (type: {type(response)})")
        return None, "Invalid response from email provider"

    except Exception as exc:
        logger.error(f"Failed to send email to {to}: {exc}", exc_info=True)
        return None, str(exc) or "Send failed"


def _update_email_log(db: Session, email_log: EmailLog, status: EmailDeliveryStatus, **fields):
    """Record the send outcome; failures here are logged only since the send already happened"""
    try:
        email_log.status = status.value
        for name, value in fields.items():
            setattr(email_log, name, value)
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update email log {email_log.id}: {e}", exc_info=True)


def send_campaign_email(
    db: Session,
    user_id: str,
    to: str,
    subject: str,
    html: str,
    campaign: EmailCampaign,
    email_job_id: Optional[str] = None
) -> SendResult:
    """
    Send a campaign email.

    1. Re-check opt-out (a missing user counts as opted out)
    2. Create an EmailLog entry (QUEUED)
    3. Send via Resend with List-Unsubscribe headers
    4. Update the EmailLog with the result
    """
    user = db.query(User).filter(User.id == user_id).first()
    if is_opted_out(user, campaign):
        return SendResult(success=False, skipped=True, error="User opted out")

    email_log = EmailLog(
        email_job_id=email_job_id,
        user_id=user_id,
        campaign=campaign.value,
        recipient_email=to,
        subject=subject,
        status=EmailDeliveryStatus.QUEUED.value
    )
    db.add(email_log)
    db.commit()
    db.refresh(email_log)

    headers = {
        "List-Unsubscribe": f"<{build_unsubscribe_url(user_id, campaign)}>",
        "List-Unsubscribe-Post": "List-Unsubscribe=One-Click",
    }
    message_id, error = _send_email(to, subject, html, headers)

    if message_id:
        _update_email_log(
            db, email_log, EmailDeliveryStatus.SENT,
            provider_message_id=message_id,
            sent_at=utcnow()
        )
        return SendResult(success=True, message_id=message_id)

    _update_email_log(db, email_log, EmailDeliveryStatus.FAILED, error=error)
    return SendResult(success=False, error=error or "Send failed")
