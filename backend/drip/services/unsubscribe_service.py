"""Unsubscribe handling for signed email links"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from drip.core.metrics import unsubscribes_counter
from drip.models.email_job import EmailCampaign
from drip.models.user import User
from drip.services.email_job_service import cancel_pending_jobs
from drip.services.email_service import verify_unsubscribe_token

logger = logging.getLogger(__name__)

UNSUBSCRIBE_SUCCESS_MESSAGE = "You have been unsubscribed from these emails."


class InvalidUnsubscribeToken(ValueError):
    pass


def unsubscribe(db: Session, token: str) -> Optional[EmailCampaign]:
    """Disable a campaign for the token's user and cancel their pending jobs for it.

    Sets email_opt_out once every campaign is disabled. Unknown users are a silent
    no-op so the endpoint can't be used to probe for accounts.

    Raises:
        InvalidUnsubscribeToken: If the token signature doesn't verify
    """
    verified = verify_unsubscribe_token(token)
    if verified is None:
        raise InvalidUnsubscribeToken("Invalid or expired unsubscribe link")
    user_id, campaign = verified

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        logger.info(f"Unsubscribe for unknown user {user_id} ignored")
        return campaign

    # Reassign so SQLAlchemy sees the JSON column change
    prefs = dict(user.email_preferences or {})
    prefs[campaign.value] = False
    user.email_preferences = prefs
    if all(prefs.get(c.value) is False for c in EmailCampaign):
        user.email_opt_out = True

    cancelled = cancel_pending_jobs(db, user_id, campaign, commit=False)
    db.commit()

    unsubscribes_counter.labels(campaign=campaign.value).inc()
    logger.info(
        f"User {user_id} unsubscribed from {campaign.value} "
        f"(cancelled {cancelled} pending job(s), opt_out={user.email_opt_out})"
    )
    return campaign
