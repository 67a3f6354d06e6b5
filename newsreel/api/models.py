from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr

from newsreel.jobs.models import MAX_TARGET_LENGTH, MAX_TOPIC_LENGTH, MIN_TARGET_LENGTH, JobArtifacts, JobRecord

JobStatusValue = Literal["queued", "running", "completed", "failed"]
LanguageValue = Literal["en", "es", "fr", "de", "it"]


class JobCreateRequest(BaseModel):
  """Request payload for creating a video job."""

  topic: StrictStr = Field(min_length=1, max_length=MAX_TOPIC_LENGTH, description="News topic to search for.", examples=["economy"])
  language: LanguageValue = Field(default="en", description="Article and narration language.")
  target_length: StrictInt = Field(default=90, ge=MIN_TARGET_LENGTH, le=MAX_TARGET_LENGTH, description="Target video length in seconds.")
  auto_publish: StrictBool = Field(default=False, description="Publish automatically once the video is rendered.")
  model_config = ConfigDict(extra="forbid")


class JobResponse(BaseModel):
  job_id: str
  topic: str
  language: str
  target_length: int
  auto_publish: bool
  status: JobStatusValue
  progress: int
  error: str | None = None
  created_at: datetime
  updated_at: datetime
  model_config = ConfigDict(from_attributes=True)


class QualityFlagsResponse(BaseModel):
  length_appropriate: bool
  has_key_info: bool
  no_repetition: bool
  model_config = ConfigDict(from_attributes=True)


class ArticleResponse(BaseModel):
  source: str
  url: str
  title: str
  content: str
  content_hash: str
  media_url: str | None = None
  published_at: datetime | None = None
  model_config = ConfigDict(from_attributes=True)


class SummaryResponse(BaseModel):
  text: str
  word_count: int
  language: str
  quality_flags: QualityFlagsResponse
  model_config = ConfigDict(from_attributes=True)


class AudioResponse(BaseModel):
  url: str
  duration: int
  sample_rate: int
  format: str
  size: int | None = None
  model_config = ConfigDict(from_attributes=True)


class VideoResponse(BaseModel):
  video_url: str
  subtitle_url: str | None = None
  thumbnail_url: str | None = None
  width: int
  height: int
  duration: int
  size: int | None = None
  model_config = ConfigDict(from_attributes=True)


class PublicationResponse(BaseModel):
  publication_id: str
  platform: str
  platform_video_id: str
  status: str
  published_at: datetime | None = None
  created_at: datetime
  model_config = ConfigDict(from_attributes=True)


class JobDetailResponse(JobResponse):
  """A job plus every artifact derived from it so far."""

  article: ArticleResponse | None = None
  summary: SummaryResponse | None = None
  audio: AudioResponse | None = None
  video: VideoResponse | None = None
  publications: list[PublicationResponse] = Field(default_factory=list)

  @classmethod
  def from_records(cls, job: JobRecord, artifacts: JobArtifacts) -> JobDetailResponse:
    base = JobResponse.model_validate(job).model_dump()
    return cls(
      **base,
      article=ArticleResponse.model_validate(artifacts.article) if artifacts.article else None,
      summary=SummaryResponse.model_validate(artifacts.summary) if artifacts.summary else None,
      audio=AudioResponse.model_validate(artifacts.audio) if artifacts.audio else None,
      video=VideoResponse.model_validate(artifacts.video) if artifacts.video else None,
      publications=[PublicationResponse.model_validate(item) for item in artifacts.publications],
    )


class JobListResponse(BaseModel):
  items: list[JobResponse]
  total: int
  page: int
  limit: int
  total_pages: int


class JobCancelResponse(BaseModel):
  job_id: str
  cancel_requested: bool


class MetricsResponse(BaseModel):
  jobs_today: int
  success_rate: float
  published_today: int
  active_jobs: int
  total_jobs: int
  model_config = ConfigDict(from_attributes=True)


class ServiceStatusResponse(BaseModel):
  status: Literal["operational", "degraded", "down"]
  message: str | None = None


class AutomationStatusResponse(BaseModel):
  enabled: bool
  running: bool
  paused: bool
  topics: list[str]


class SystemStatusResponse(BaseModel):
  services: dict[str, ServiceStatusResponse]
  automation: AutomationStatusResponse
  jobs_in_flight: int


class SyncResponse(BaseModel):
  jobs_created: int
  created: dict[str, list[str]]
  skipped: dict[str, str]
  errors: dict[str, str]


class HealthResponse(BaseModel):
  status: str
  version: str
