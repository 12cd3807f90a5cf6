"""Campaign schedulers - decide who gets which email and when"""
from drip.services.schedulers.welcome import (
    WELCOME_STEPS,
    schedule_welcome_series,
    schedule_next_welcome_step,
    cancel_welcome_series,
)
from drip.services.schedulers.abandoned import find_abandoned_resumes, schedule_abandoned_resume_email
from drip.services.schedulers.reengagement import (
    INACTIVITY_THRESHOLDS,
    bucket_for_inactivity,
    find_inactive_users,
    schedule_reengagement_email,
)

__all__ = [
    "WELCOME_STEPS",
    "schedule_welcome_series",
    "schedule_next_welcome_step",
    "cancel_welcome_series",
    "find_abandoned_resumes",
    "schedule_abandoned_resume_email",
    "INACTIVITY_THRESHOLDS",
    "bucket_for_inactivity",
    "find_inactive_users",
    "schedule_reengagement_email",
]
