"""SQLAlchemy models package - imports all models so they register with Base.metadata"""
from drip.models.base import Base
from drip.models.user import User
from drip.models.resume import Resume, ResumeStatus
from drip.models.email_job import EmailJob, EmailCampaign, EmailJobStatus
from drip.models.email_log import EmailLog, EmailDeliveryStatus
from drip.models.audit_log import AuditLog

# Export all for convenience
__all__ = [
    "Base", "User", "Resume", "ResumeStatus",
    "EmailJob", "EmailCampaign", "EmailJobStatus",
    "EmailLog", "EmailDeliveryStatus", "AuditLog"
]
