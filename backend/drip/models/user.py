"""User model"""
from sqlalchemy import Column, String, DateTime, Boolean, JSON
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from drip.models.base import Base


class User(Base):
    """User accounts (owned by the main application; this service reads them)"""
    __tablename__ = "users"

    id = Column(String(64), primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)
    email_opt_out = Column(Boolean, default=False, nullable=False)  # Global kill switch for campaign email
    email_preferences = Column(JSON, nullable=True)  # {"locale": "en|ar|ckb", "<CAMPAIGN>": false, ...}
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    last_login_at = Column(DateTime(timezone=True), nullable=True, index=True)

    # Relationships
    resumes = relationship("Resume", back_populates="user", cascade="all, delete-orphan")
    email_jobs = relationship("EmailJob", back_populates="user", cascade="all, delete-orphan")
