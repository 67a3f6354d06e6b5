"""Storage contract for jobs and their derived artifacts."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Protocol

from newsreel.jobs.models import ArticleRecord, AudioAssetRecord, JobArtifacts, JobFilter, JobMetrics, JobPage, JobRecord, JobStatus, PublicationRecord, SummaryRecord, VideoAssetRecord


class JobStore(Protocol):
  """Repository contract consumed by the executor, scheduler and sweeps.

  Status writes are field-scoped and guarded by the job state machine: a write
  whose transition is not allowed from the stored status is refused and
  reported by returning `None`. Progress never decreases while a job runs.
  """

  async def create_job(self, record: JobRecord) -> JobRecord:
    """Persist an initial job record."""

  async def get_job(self, job_id: str) -> JobRecord | None:
    """Fetch a job by identifier."""

  async def list_jobs(self, job_filter: JobFilter | None = None, *, page: int = 1, limit: int = 10) -> JobPage:
    """Return one page of jobs, newest first."""

  async def update_job_status(self, job_id: str, status: JobStatus, *, error: str | None = None, progress: int | None = None) -> JobRecord | None:
    """Apply a guarded status/progress/error update and return the stored record."""

  async def get_jobs_by_topic(self, topic: str, lookback_days: int = 1) -> list[JobRecord]:
    """Return jobs for a topic created within the lookback window."""

  async def get_stuck_jobs(self, stale_minutes: int) -> list[JobRecord]:
    """Return running jobs whose last update is older than the threshold."""

  async def fail_stale_job(self, job_id: str, *, expected_updated_at: datetime, error: str) -> bool:
    """Fail a running job only if it was not updated since `expected_updated_at`."""

  async def delete_job(self, job_id: str) -> bool:
    """Delete a job and its artifacts; return whether it existed."""

  async def delete_jobs_older_than(self, cutoff: datetime) -> int:
    """Delete jobs created at or before `cutoff`; return the number removed."""

  async def get_existing_article_hashes(self, hashes: Iterable[str]) -> set[str]:
    """Return the subset of hashes already claimed by an article or a job."""

  async def create_article(self, article: ArticleRecord) -> ArticleRecord:
    """Persist the fetched article for a job."""

  async def create_summary(self, summary: SummaryRecord) -> SummaryRecord:
    """Persist the narration summary for a job."""

  async def create_audio_asset(self, audio: AudioAssetRecord) -> AudioAssetRecord:
    """Persist the narration audio for a job."""

  async def create_video_asset(self, video: VideoAssetRecord) -> VideoAssetRecord:
    """Persist the rendered video for a job."""

  async def create_publication(self, publication: PublicationRecord) -> PublicationRecord:
    """Persist one publish attempt."""

  async def get_artifacts(self, job_id: str) -> JobArtifacts:
    """Return every derived artifact stored for a job."""

  async def get_article(self, job_id: str) -> ArticleRecord | None:
    """Return the fetched article for a job, if any."""

  async def get_summary(self, job_id: str) -> SummaryRecord | None:
    """Return the narration summary for a job, if any."""

  async def get_audio_asset(self, job_id: str) -> AudioAssetRecord | None:
    """Return the narration audio for a job, if any."""

  async def get_video_asset(self, job_id: str) -> VideoAssetRecord | None:
    """Return the rendered video for a job, if any."""

  async def list_publications(self, job_id: str) -> list[PublicationRecord]:
    """Return publish attempts for a job, oldest first."""

  async def get_metrics(self) -> JobMetrics:
    """Return aggregate dashboard counters."""
