"""Process-local job store used for development and tests."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime, timedelta

from newsreel.jobs.models import ArticleRecord, AudioAssetRecord, JobArtifacts, JobFilter, JobMetrics, JobPage, JobRecord, JobStatus, PublicationRecord, SummaryRecord, VideoAssetRecord, can_transition
from newsreel.storage.job_store import JobStore
from newsreel.utils.clock import Clock, start_of_day, utc_now


class InMemoryJobStore(JobStore):
  """Keep jobs and artifacts in dictionaries keyed by job id.

  Every method completes without yielding to the event loop between its read
  and its write, so guarded updates are atomic with respect to other tasks.
  """

  def __init__(self, *, clock: Clock = utc_now) -> None:
    self._clock = clock
    self._lock = asyncio.Lock()
    self._jobs: dict[str, JobRecord] = {}
    self._articles: dict[str, ArticleRecord] = {}
    self._summaries: dict[str, SummaryRecord] = {}
    self._audio: dict[str, AudioAssetRecord] = {}
    self._videos: dict[str, VideoAssetRecord] = {}
    self._publications: dict[str, list[PublicationRecord]] = {}

  async def create_job(self, record: JobRecord) -> JobRecord:
    async with self._lock:
      if record.job_id in self._jobs:
        raise ValueError(f"Duplicate job id: {record.job_id}")
      self._jobs[record.job_id] = replace(record)
      return replace(record)

  async def get_job(self, job_id: str) -> JobRecord | None:
    record = self._jobs.get(job_id)
    return replace(record) if record is not None else None

  async def list_jobs(self, job_filter: JobFilter | None = None, *, page: int = 1, limit: int = 10) -> JobPage:
    job_filter = job_filter or JobFilter()
    matches = [record for record in self._jobs.values() if _matches(record, job_filter)]
    matches.sort(key=lambda record: record.created_at, reverse=True)
    offset = max(page - 1, 0) * limit
    items = [replace(record) for record in matches[offset : offset + limit]]
    return JobPage(items=items, total=len(matches), page=page, limit=limit)

  async def update_job_status(self, job_id: str, status: JobStatus, *, error: str | None = None, progress: int | None = None) -> JobRecord | None:
    async with self._lock:
      current = self._jobs.get(job_id)
      if current is None or not can_transition(current.status, status):
        return None

      next_progress = current.progress
      if status == "completed":
        next_progress = 100
      elif progress is not None and status == "running":
        next_progress = max(current.progress, min(int(progress), 99))

      updated = replace(current, status=status, progress=next_progress, error=error if status == "failed" else None, updated_at=self._clock())
      self._jobs[job_id] = updated
      return replace(updated)

  async def get_jobs_by_topic(self, topic: str, lookback_days: int = 1) -> list[JobRecord]:
    cutoff = self._clock() - timedelta(days=lookback_days)
    matches = [replace(record) for record in self._jobs.values() if record.topic == topic and record.created_at >= cutoff]
    matches.sort(key=lambda record: record.created_at, reverse=True)
    return matches

  async def get_stuck_jobs(self, stale_minutes: int) -> list[JobRecord]:
    cutoff = self._clock() - timedelta(minutes=stale_minutes)
    return [replace(record) for record in self._jobs.values() if record.status == "running" and record.updated_at < cutoff]

  async def fail_stale_job(self, job_id: str, *, expected_updated_at: datetime, error: str) -> bool:
    async with self._lock:
      current = self._jobs.get(job_id)
      if current is None or current.status != "running" or current.updated_at != expected_updated_at:
        return False
      self._jobs[job_id] = replace(current, status="failed", error=error, updated_at=self._clock())
      return True

  async def delete_job(self, job_id: str) -> bool:
    async with self._lock:
      return self._delete_locked(job_id)

  async def delete_jobs_older_than(self, cutoff: datetime) -> int:
    async with self._lock:
      doomed = [job_id for job_id, record in self._jobs.items() if record.created_at <= cutoff]
      for job_id in doomed:
        self._delete_locked(job_id)
      return len(doomed)

  async def get_existing_article_hashes(self, hashes: Iterable[str]) -> set[str]:
    wanted = set(hashes)
    if not wanted:
      return set()
    seen = {article.content_hash for article in self._articles.values()}
    seen.update(record.source_hash for record in self._jobs.values() if record.source_hash)
    return wanted & seen

  async def create_article(self, article: ArticleRecord) -> ArticleRecord:
    async with self._lock:
      self._require_job(article.job_id)
      if article.job_id in self._articles:
        raise ValueError(f"Article already stored for job {article.job_id}")
      self._articles[article.job_id] = article
      return article

  async def create_summary(self, summary: SummaryRecord) -> SummaryRecord:
    async with self._lock:
      self._require_job(summary.job_id)
      if summary.job_id in self._summaries:
        raise ValueError(f"Summary already stored for job {summary.job_id}")
      self._summaries[summary.job_id] = summary
      return summary

  async def create_audio_asset(self, audio: AudioAssetRecord) -> AudioAssetRecord:
    async with self._lock:
      self._require_job(audio.job_id)
      if audio.job_id in self._audio:
        raise ValueError(f"Audio already stored for job {audio.job_id}")
      self._audio[audio.job_id] = audio
      return audio

  async def create_video_asset(self, video: VideoAssetRecord) -> VideoAssetRecord:
    async with self._lock:
      self._require_job(video.job_id)
      if video.job_id in self._videos:
        raise ValueError(f"Video already stored for job {video.job_id}")
      self._videos[video.job_id] = video
      return video

  async def create_publication(self, publication: PublicationRecord) -> PublicationRecord:
    async with self._lock:
      self._require_job(publication.job_id)
      self._publications.setdefault(publication.job_id, []).append(publication)
      return publication

  async def get_artifacts(self, job_id: str) -> JobArtifacts:
    return JobArtifacts(
      article=self._articles.get(job_id),
      summary=self._summaries.get(job_id),
      audio=self._audio.get(job_id),
      video=self._videos.get(job_id),
      publications=list(self._publications.get(job_id, [])),
    )

  async def get_article(self, job_id: str) -> ArticleRecord | None:
    return self._articles.get(job_id)

  async def get_summary(self, job_id: str) -> SummaryRecord | None:
    return self._summaries.get(job_id)

  async def get_audio_asset(self, job_id: str) -> AudioAssetRecord | None:
    return self._audio.get(job_id)

  async def get_video_asset(self, job_id: str) -> VideoAssetRecord | None:
    return self._videos.get(job_id)

  async def list_publications(self, job_id: str) -> list[PublicationRecord]:
    return list(self._publications.get(job_id, []))

  async def get_metrics(self) -> JobMetrics:
    now = self._clock()
    today = start_of_day(now)
    window_start = now - timedelta(days=30)
    jobs = list(self._jobs.values())
    recent = [record for record in jobs if record.created_at >= window_start]
    completed = [record for record in recent if record.status == "completed"]
    success_rate = round(len(completed) / len(recent) * 100, 1) if recent else 0.0
    published_today = sum(1 for publications in self._publications.values() for publication in publications if publication.created_at >= today and publication.status != "failed")
    return JobMetrics(
      jobs_today=sum(1 for record in jobs if record.created_at >= today),
      success_rate=success_rate,
      published_today=published_today,
      active_jobs=sum(1 for record in jobs if record.status == "running"),
      total_jobs=len(jobs),
    )

  def _require_job(self, job_id: str) -> None:
    if job_id not in self._jobs:
      raise KeyError(f"Unknown job: {job_id}")

  def _delete_locked(self, job_id: str) -> bool:
    existed = self._jobs.pop(job_id, None) is not None
    # Cascade to every artifact table.
    self._articles.pop(job_id, None)
    self._summaries.pop(job_id, None)
    self._audio.pop(job_id, None)
    self._videos.pop(job_id, None)
    self._publications.pop(job_id, None)
    return existed


def _matches(record: JobRecord, job_filter: JobFilter) -> bool:
  if job_filter.status is not None and record.status != job_filter.status:
    return False
  if job_filter.topic and job_filter.topic.lower() not in record.topic.lower():
    return False
  if job_filter.language is not None and record.language != job_filter.language:
    return False
  if job_filter.created_from is not None and record.created_at < job_filter.created_from:
    return False
  if job_filter.created_to is not None and record.created_at > job_filter.created_to:
    return False
  return True
