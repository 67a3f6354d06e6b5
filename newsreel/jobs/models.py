"""Domain models for video generation jobs and their derived artifacts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

from newsreel.config import SUPPORTED_LANGUAGES
from newsreel.core.errors import JobValidationError

JobStatus = Literal["queued", "running", "completed", "failed"]
PublicationStatus = Literal["uploaded", "processing", "published", "failed"]

JOB_STATUSES: tuple[JobStatus, ...] = ("queued", "running", "completed", "failed")
TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed"})

# Statuses a job may be in immediately before moving to the key status.
ALLOWED_PREVIOUS_STATUSES: dict[str, frozenset[str]] = {
  "queued": frozenset(),
  "running": frozenset({"queued", "running"}),
  "completed": frozenset({"running"}),
  "failed": frozenset({"queued", "running"}),
}

MIN_TARGET_LENGTH = 30
MAX_TARGET_LENGTH = 300
MAX_TOPIC_LENGTH = 100


def can_transition(current: str, new: str) -> bool:
  """Return whether a job in `current` status may be written with `new` status."""
  return current in ALLOWED_PREVIOUS_STATUSES.get(new, frozenset())


@dataclass
class JobRecord:
  """Represents one request to turn a topic into a published video."""

  job_id: str
  topic: str
  language: str
  target_length: int
  auto_publish: bool
  status: JobStatus
  progress: int
  created_at: datetime
  updated_at: datetime
  error: str | None = None
  source_hash: str | None = None

  @property
  def is_terminal(self) -> bool:
    return self.status in TERMINAL_STATUSES


@dataclass(frozen=True)
class QualityFlags:
  """Fixed set of summary quality checks."""

  length_appropriate: bool = False
  has_key_info: bool = False
  no_repetition: bool = True

  def as_dict(self) -> dict[str, bool]:
    return {"length_appropriate": self.length_appropriate, "has_key_info": self.has_key_info, "no_repetition": self.no_repetition}


@dataclass(frozen=True)
class ArticleRecord:
  """Source article persisted by the fetch stage."""

  article_id: str
  job_id: str
  source: str
  url: str
  title: str
  content: str
  content_hash: str
  media_url: str | None
  published_at: datetime | None
  created_at: datetime


@dataclass(frozen=True)
class SummaryRecord:
  """Narration script persisted by the summarize stage."""

  summary_id: str
  job_id: str
  text: str
  word_count: int
  language: str
  quality_flags: QualityFlags
  created_at: datetime


@dataclass(frozen=True)
class AudioAssetRecord:
  """Narration audio persisted by the speech stage."""

  audio_id: str
  job_id: str
  url: str
  duration: int
  sample_rate: int
  format: str
  size: int | None
  created_at: datetime


@dataclass(frozen=True)
class VideoAssetRecord:
  """Rendered video persisted by the render stage."""

  video_id: str
  job_id: str
  video_url: str
  subtitle_url: str | None
  thumbnail_url: str | None
  width: int
  height: int
  duration: int
  size: int | None
  created_at: datetime


@dataclass(frozen=True)
class PublicationRecord:
  """One publish attempt for a job on one platform."""

  publication_id: str
  job_id: str
  platform: str
  platform_video_id: str
  status: PublicationStatus
  published_at: datetime | None
  created_at: datetime


@dataclass(frozen=True)
class JobFilter:
  """Optional typed constraints for job listing queries."""

  status: JobStatus | None = None
  topic: str | None = None
  language: str | None = None
  created_from: datetime | None = None
  created_to: datetime | None = None


@dataclass(frozen=True)
class JobPage:
  """One page of jobs plus pagination metadata."""

  items: list[JobRecord]
  total: int
  page: int
  limit: int

  @property
  def total_pages(self) -> int:
    if self.limit <= 0:
      return 0
    return (self.total + self.limit - 1) // self.limit


@dataclass(frozen=True)
class JobMetrics:
  """Aggregate counters shown on the dashboard and logged by health checks."""

  jobs_today: int
  success_rate: float
  published_today: int
  active_jobs: int
  total_jobs: int


@dataclass(frozen=True)
class JobArtifacts:
  """All derived artifacts currently stored for a job."""

  article: ArticleRecord | None = None
  summary: SummaryRecord | None = None
  audio: AudioAssetRecord | None = None
  video: VideoAssetRecord | None = None
  publications: list[PublicationRecord] = field(default_factory=list)


@dataclass(frozen=True)
class JobSpec:
  """Validated input for creating a job."""

  topic: str
  language: str = "en"
  target_length: int = 90
  auto_publish: bool = False
  source_hash: str | None = None

  def __post_init__(self) -> None:
    topic = self.topic.strip() if isinstance(self.topic, str) else ""
    if not topic:
      raise JobValidationError("Topic is required.")
    if len(topic) > MAX_TOPIC_LENGTH:
      raise JobValidationError(f"Topic must be at most {MAX_TOPIC_LENGTH} characters.")
    if self.language not in SUPPORTED_LANGUAGES:
      raise JobValidationError(f"Unsupported language: {self.language}")
    if isinstance(self.target_length, bool) or not isinstance(self.target_length, int):
      raise JobValidationError("Target length must be an integer number of seconds.")
    if self.target_length < MIN_TARGET_LENGTH or self.target_length > MAX_TARGET_LENGTH:
      raise JobValidationError(f"Target length must be between {MIN_TARGET_LENGTH} and {MAX_TARGET_LENGTH} seconds.")
    object.__setattr__(self, "topic", topic)

  def to_record(self, *, job_id: str, now: datetime) -> JobRecord:
    """Build the initial queued record for this spec."""
    return JobRecord(
      job_id=job_id,
      topic=self.topic,
      language=self.language,
      target_length=self.target_length,
      auto_publish=self.auto_publish,
      status="queued",
      progress=0,
      created_at=now,
      updated_at=now,
      source_hash=self.source_hash,
    )
