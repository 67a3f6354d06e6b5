"""Contracts for the network collaborators the pipeline depends on."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Protocol

import msgspec

from newsreel.jobs.models import JobRecord, QualityFlags, VideoAssetRecord

ServiceState = Literal["operational", "degraded", "down"]


class ServiceStatus(msgspec.Struct, frozen=True, kw_only=True):
  status: ServiceState
  message: str | None = None


class FetchedArticle(msgspec.Struct, frozen=True, kw_only=True):
  """Candidate article returned by an article source."""

  title: str
  body: str
  url: str
  source: str = "gnews"
  media_url: str | None = None
  published_at: datetime | None = None


class SummaryResult(msgspec.Struct, frozen=True, kw_only=True):
  text: str
  word_count: int
  quality_flags: QualityFlags


class SpeechResult(msgspec.Struct, frozen=True, kw_only=True):
  url: str
  duration: float
  sample_rate: int
  format: str = "wav"
  size: int | None = None


class RenderRequest(msgspec.Struct, frozen=True, kw_only=True):
  summary_text: str
  audio_url: str
  duration: float
  title: str
  images: list[str] = msgspec.field(default_factory=list)


class RenderResult(msgspec.Struct, frozen=True, kw_only=True):
  video_url: str
  thumbnail_url: str | None = None
  subtitle_url: str | None = None
  width: int = 1920
  height: int = 1080
  duration: float = 0
  size: int | None = None


class PublishResult(msgspec.Struct, frozen=True, kw_only=True):
  platform_video_id: str
  status: str
  platform: str = "youtube"
  published_at: datetime | None = None


class ArticleSource(Protocol):
  async def fetch_articles(self, topic: str, language: str = "en", max_results: int = 10) -> list[FetchedArticle]:
    """Return candidate articles for a topic, best first."""

  async def check_status(self) -> ServiceStatus: ...


class Summarizer(Protocol):
  async def generate_summary(self, title: str, body: str, target_seconds: int) -> SummaryResult:
    """Return a narration script sized for `target_seconds` of speech."""

  async def check_status(self) -> ServiceStatus: ...


class SpeechSynthesizer(Protocol):
  async def generate_tts(self, text: str, language: str = "en") -> SpeechResult:
    """Return the hosted narration audio for `text`."""

  async def check_status(self) -> ServiceStatus: ...


class VideoRenderer(Protocol):
  async def render(self, request: RenderRequest) -> RenderResult:
    """Return the hosted rendered video for a narration."""

  async def check_status(self) -> ServiceStatus: ...


class Publisher(Protocol):
  async def publish_video(self, job: JobRecord, video: VideoAssetRecord, *, title: str, description: str, tags: list[str]) -> PublishResult:
    """Upload a rendered video and return the platform's identifiers."""

  async def check_status(self) -> ServiceStatus: ...
