"""EmailLog model"""
import enum
import uuid
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from drip.models.base import Base


class EmailDeliveryStatus(str, enum.Enum):
    QUEUED = "QUEUED"
    SENT = "SENT"
    DELIVERED = "DELIVERED"
    OPENED = "OPENED"
    BOUNCED = "BOUNCED"
    FAILED = "FAILED"


class EmailLog(Base):
    """Delivery log - one row per send attempt through the email provider"""
    __tablename__ = "email_logs"

    id = Column(String(32), primary_key=True, default=lambda: uuid.uuid4().hex)
    email_job_id = Column(String(32), ForeignKey("email_jobs.id", ondelete="SET NULL"), nullable=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    campaign = Column(String(32), nullable=False)
    recipient_email = Column(String(255), nullable=False)
    subject = Column(String(500), nullable=False)
    status = Column(String(20), default=EmailDeliveryStatus.QUEUED.value, nullable=False)
    provider_message_id = Column(String(255), nullable=True, index=True)  # Resend email id
    error = Column(Text, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    email_job = relationship("EmailJob", back_populates="logs")

    __table_args__ = (
        Index('ix_email_logs_status_created_at', 'status', 'created_at'),
    )
