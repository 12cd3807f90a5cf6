"""Email preference helpers - opt-out checks and locale detection"""
from typing import Optional

from drip.models.email_job import EmailCampaign
from drip.models.user import User

SUPPORTED_LOCALES = ("en", "ar", "ckb")
DEFAULT_LOCALE = "en"


def detect_locale(email_preferences: Optional[dict]) -> str:
    """Locale from user preferences; anything unrecognized falls back to English"""
    locale = (email_preferences or {}).get("locale")
    if locale in SUPPORTED_LOCALES:
        return locale
    return DEFAULT_LOCALE


def is_opted_out(user: Optional[User], campaign: Optional[EmailCampaign] = None) -> bool:
    """True when the user must not receive campaign email.

    A missing user counts as opted out. Besides the global flag, a campaign explicitly
    disabled in email_preferences (set by the unsubscribe link) is honoured.
    """
    if user is None or user.email_opt_out:
        return True
    if campaign is not None:
        prefs = user.email_preferences or {}
        if prefs.get(campaign.value) is False:
            return True
    return False


def campaign_enabled_clause(campaign: EmailCampaign):
    """SQL filter matching users who have not disabled campaign in email_preferences.

    A missing key or NULL preferences counts as enabled, like is_opted_out.
    """
    return User.email_preferences[campaign.value].as_boolean().isnot(False)
