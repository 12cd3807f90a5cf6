"""AuditLog model"""
from sqlalchemy import Column, Integer, String, JSON, DateTime
from datetime import datetime, timezone
from drip.models.base import Base


class AuditLog(Base):
    """Audit trail of admin and system (cron) actions"""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    actor = Column(String(255), nullable=False, index=True)  # admin id or "system:cron"
    action = Column(String(100), nullable=False, index=True)
    target = Column(String(255), nullable=False)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
