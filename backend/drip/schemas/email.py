"""Pydantic schemas for campaign email jobs, rendering, delivery and cron responses"""
from datetime import datetime
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from drip.models.email_job import EmailCampaign


# --- Job metadata (tagged by EmailJob.campaign) ---

class _JobMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class WelcomeMetadata(_JobMetadata):
    step: int = 0
    key: str = "day0"
    day_offset: int = Field(0, alias="dayOffset")
    total_steps: int = Field(4, alias="totalSteps")


class AbandonedResumeMetadata(_JobMetadata):
    resume_id: str = Field("", alias="resumeId")
    resume_title: str = Field("Untitled", alias="resumeTitle")
    completion_percent: int = Field(0, alias="completionPercent")
    last_edited: str = Field("", alias="lastEdited")


class ReengagementMetadata(_JobMetadata):
    threshold: int = 30
    inactive_days: int = Field(0, alias="inactiveDays")


JobMetadata = Union[WelcomeMetadata, AbandonedResumeMetadata, ReengagementMetadata]

METADATA_MODELS = {
    EmailCampaign.WELCOME.value: WelcomeMetadata,
    EmailCampaign.ABANDONED_RESUME.value: AbandonedResumeMetadata,
    EmailCampaign.RE_ENGAGEMENT.value: ReengagementMetadata,
}


def parse_job_metadata(campaign: str, raw: Optional[dict]) -> Optional[JobMetadata]:
    """Parse a stored metadata payload for its campaign. Unknown campaigns give None.

    Raises pydantic.ValidationError on malformed payloads.
    """
    model = METADATA_MODELS.get(campaign)
    if model is None:
        return None
    # Falsy values fall back to defaults (an empty title renders as "Untitled")
    cleaned = {k: v for k, v in (raw or {}).items() if v not in (None, "")}
    return model.model_validate(cleaned)


# --- Rendering and delivery ---

class RenderedEmail(BaseModel):
    subject: str
    html: str


class SendResult(BaseModel):
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    skipped: bool = False


# --- Cron summaries ---

class ProcessSummary(BaseModel):
    processed: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0


class DetectSummary(BaseModel):
    detected: int = 0
    scheduled: int = 0
    failed: int = 0


class ReengagementDetectSummary(DetectSummary):
    by_threshold: Dict[int, int] = Field(default_factory=dict, serialization_alias="byThreshold")


class CronResponse(BaseModel):
    success: bool = True
    message: str
    timestamp: str


# --- Detector results ---

class AbandonedResume(BaseModel):
    user_id: str
    user_email: str
    user_name: Optional[str] = None
    resume_id: str
    resume_title: str
    last_updated: datetime


class InactiveUser(BaseModel):
    user_id: str
    email: str
    name: Optional[str] = None
    last_login_at: datetime
    inactive_days: int
    threshold: int


# --- API payloads ---

class EmailJobResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    campaign: str
    status: str
    scheduled_at: datetime
    sent_at: Optional[datetime] = None
    error: Optional[str] = None
    job_metadata: Optional[dict] = Field(None, serialization_alias="metadata")


class UnsubscribeRequest(BaseModel):
    token: str


class EmailStatsOverview(BaseModel):
    total_sent: int = Field(0, serialization_alias="totalSent")
    total_pending: int = Field(0, serialization_alias="totalPending")
    total_failed: int = Field(0, serialization_alias="totalFailed")


class DailyCount(BaseModel):
    date: str
    count: int


class EmailStatsResponse(BaseModel):
    overview: EmailStatsOverview
    jobs_by_status: Dict[str, int] = Field(serialization_alias="jobsByStatus")
    campaign_counts: Dict[str, int] = Field(serialization_alias="campaignCounts")
    delivery_counts: Dict[str, int] = Field(serialization_alias="deliveryCounts")
    recent_logs: List[dict] = Field(serialization_alias="recentLogs")
    daily_sent_counts: List[DailyCount] = Field(serialization_alias="dailySentCounts")
