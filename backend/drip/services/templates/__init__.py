"""Campaign email renderer

render_email_for_job() turns a stored job (campaign + metadata) into a localized
subject and HTML body. It returns None when the job cannot be rendered (unknown
campaign, unknown variant or malformed metadata); the processor fails such jobs.
"""
import logging
from typing import Optional

from pydantic import ValidationError

from drip.models.email_job import EmailCampaign
from drip.models.user import User
from drip.schemas.email import (
    AbandonedResumeMetadata,
    ReengagementMetadata,
    RenderedEmail,
    WelcomeMetadata,
    parse_job_metadata,
)
from drip.services.email_service import build_unsubscribe_url
from drip.services.preferences_service import detect_locale
from drip.services.templates.abandoned import render_abandoned_email
from drip.services.templates.reengagement import render_reengagement_email, variant_for_threshold
from drip.services.templates.welcome import render_welcome_email

logger = logging.getLogger(__name__)


def render_email_for_job(campaign: str, metadata: Optional[dict], user: User) -> Optional[RenderedEmail]:
    try:
        parsed = parse_job_metadata(campaign, metadata)
    except ValidationError as e:
        logger.warning(f"Invalid {campaign} metadata for user {user.id}: {e}")
        return None
    if parsed is None:
        logger.warning(f"No template for campaign '{campaign}'")
        return None

    locale = detect_locale(user.email_preferences)
    unsubscribe_url = build_unsubscribe_url(user.id, EmailCampaign(campaign))
    name = user.name or ""

    try:
        if isinstance(parsed, WelcomeMetadata):
            return render_welcome_email(locale, parsed.key, name, unsubscribe_url)
        if isinstance(parsed, AbandonedResumeMetadata):
            return render_abandoned_email(
                locale,
                name,
                unsubscribe_url,
                resume_id=parsed.resume_id,
                resume_title=parsed.resume_title,
                completion_percent=parsed.completion_percent,
                last_edited=parsed.last_edited
            )
        if isinstance(parsed, ReengagementMetadata):
            return render_reengagement_email(locale, variant_for_threshold(parsed.threshold), name, unsubscribe_url)
    except KeyError as e:
        logger.warning(f"Unknown {campaign} template variant {e} for user {user.id}")
    return None
