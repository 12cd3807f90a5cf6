"""EmailJob model"""
import enum
import uuid
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, JSON, Index, text
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from drip.models.base import Base


class EmailCampaign(str, enum.Enum):
    WELCOME = "WELCOME"
    ABANDONED_RESUME = "ABANDONED_RESUME"
    RE_ENGAGEMENT = "RE_ENGAGEMENT"


class EmailJobStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SENT = "SENT"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


# Predicate of the partial unique index; ON CONFLICT targets must repeat it verbatim
PENDING_ONLY = text("status = 'PENDING'")


def new_job_id() -> str:
    return uuid.uuid4().hex


class EmailJob(Base):
    """One scheduled send of a campaign email to a user"""
    __tablename__ = "email_jobs"

    id = Column(String(32), primary_key=True, default=new_job_id)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    campaign = Column(String(32), nullable=False)  # EmailCampaign value
    status = Column(String(20), default=EmailJobStatus.PENDING.value, nullable=False)  # EmailJobStatus value
    scheduled_at = Column(DateTime(timezone=True), nullable=False)
    claimed_at = Column(DateTime(timezone=True), nullable=True)  # Set on PENDING -> PROCESSING
    sent_at = Column(DateTime(timezone=True), nullable=True)
    error = Column(Text, nullable=True)
    job_metadata = Column(JSON, nullable=True)  # Campaign-specific payload, see drip.schemas.email
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc), nullable=False)

    user = relationship("User", back_populates="email_jobs")
    logs = relationship("EmailLog", back_populates="email_job")

    __table_args__ = (
        # At most one PENDING job per (user, campaign)
        Index(
            'uq_email_jobs_pending_campaign', 'user_id', 'campaign',
            unique=True,
            postgresql_where=PENDING_ONLY,
            sqlite_where=PENDING_ONLY,
        ),
        Index('ix_email_jobs_status_scheduled_at', 'status', 'scheduled_at'),
        Index('ix_email_jobs_user_campaign_status', 'user_id', 'campaign', 'status'),
    )

    def __repr__(self):
        return f"<EmailJob {self.id} {self.campaign} {self.status} user={self.user_id}>"
