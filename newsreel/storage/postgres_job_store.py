"""Postgres-backed job store using SQLAlchemy."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from newsreel.core.database import get_session_factory
from newsreel.jobs.models import (
  ALLOWED_PREVIOUS_STATUSES,
  ArticleRecord,
  AudioAssetRecord,
  JobArtifacts,
  JobFilter,
  JobMetrics,
  JobPage,
  JobRecord,
  JobStatus,
  PublicationRecord,
  QualityFlags,
  SummaryRecord,
  VideoAssetRecord,
)
from newsreel.schema.jobs import Article, AudioAsset, Job, Publication, Summary, VideoAsset
from newsreel.storage.job_store import JobStore
from newsreel.utils.clock import Clock, start_of_day, utc_now


class PostgresJobStore(JobStore):
  """Persist jobs and artifacts to Postgres; guarded writes run as single conditional statements."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None, *, clock: Clock = utc_now) -> None:
    self._session_factory = session_factory or get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")
    self._clock = clock

  async def create_job(self, record: JobRecord) -> JobRecord:
    async with self._session_factory() as session:
      row = Job(
        job_id=record.job_id,
        topic=record.topic,
        language=record.language,
        target_length=record.target_length,
        auto_publish=record.auto_publish,
        status=record.status,
        progress=record.progress,
        error=record.error,
        source_hash=record.source_hash,
        created_at=record.created_at,
        updated_at=record.updated_at,
      )
      session.add(row)
      await session.commit()
      return self._job_to_record(row)

  async def get_job(self, job_id: str) -> JobRecord | None:
    async with self._session_factory() as session:
      row = await session.get(Job, job_id)
      if row is None:
        return None
      return self._job_to_record(row)

  async def list_jobs(self, job_filter: JobFilter | None = None, *, page: int = 1, limit: int = 10) -> JobPage:
    job_filter = job_filter or JobFilter()
    filters = self._job_filters(job_filter)
    offset = max(page - 1, 0) * limit
    async with self._session_factory() as session:
      stmt = select(Job).order_by(Job.created_at.desc()).limit(limit).offset(offset)
      count_stmt = select(func.count()).select_from(Job)
      if filters:
        stmt = stmt.where(and_(*filters))
        count_stmt = count_stmt.where(and_(*filters))
      total = await session.scalar(count_stmt)
      rows = (await session.execute(stmt)).scalars().all()
      return JobPage(items=[self._job_to_record(row) for row in rows], total=int(total or 0), page=page, limit=limit)

  async def update_job_status(self, job_id: str, status: JobStatus, *, error: str | None = None, progress: int | None = None) -> JobRecord | None:
    allowed = ALLOWED_PREVIOUS_STATUSES.get(status, frozenset())
    if not allowed:
      return None

    values: dict[str, Any] = {"status": status, "error": error if status == "failed" else None, "updated_at": self._clock()}
    if status == "completed":
      values["progress"] = 100
    elif progress is not None and status == "running":
      values["progress"] = func.greatest(Job.progress, min(int(progress), 99))

    async with self._session_factory() as session:
      stmt = update(Job).where(Job.job_id == job_id, Job.status.in_(sorted(allowed))).values(**values).returning(Job).execution_options(synchronize_session=False)
      row = (await session.execute(stmt)).scalar_one_or_none()
      await session.commit()
      if row is None:
        return None
      return self._job_to_record(row)

  async def get_jobs_by_topic(self, topic: str, lookback_days: int = 1) -> list[JobRecord]:
    cutoff = self._clock() - timedelta(days=lookback_days)
    async with self._session_factory() as session:
      stmt = select(Job).where(Job.topic == topic, Job.created_at >= cutoff).order_by(Job.created_at.desc())
      rows = (await session.execute(stmt)).scalars().all()
      return [self._job_to_record(row) for row in rows]

  async def get_stuck_jobs(self, stale_minutes: int) -> list[JobRecord]:
    cutoff = self._clock() - timedelta(minutes=stale_minutes)
    async with self._session_factory() as session:
      stmt = select(Job).where(Job.status == "running", Job.updated_at < cutoff).order_by(Job.updated_at.asc())
      rows = (await session.execute(stmt)).scalars().all()
      return [self._job_to_record(row) for row in rows]

  async def fail_stale_job(self, job_id: str, *, expected_updated_at: datetime, error: str) -> bool:
    """Fail a running job with a compare-and-swap on `updated_at`.

    How/Why:
      - The WHERE clause repeats the status and timestamp the reaper observed, so the write is refused if the job moved on.
      - RETURNING tells the caller whether the job was actually reaped.
    """
    async with self._session_factory() as session:
      stmt = (
        update(Job)
        .where(Job.job_id == job_id, Job.status == "running", Job.updated_at == expected_updated_at)
        .values(status="failed", error=error, updated_at=self._clock())
        .returning(Job.job_id)
        .execution_options(synchronize_session=False)
      )
      claimed = (await session.execute(stmt)).scalar_one_or_none()
      await session.commit()
      return claimed is not None

  async def delete_job(self, job_id: str) -> bool:
    async with self._session_factory() as session:
      stmt = delete(Job).where(Job.job_id == job_id).returning(Job.job_id)
      removed = (await session.execute(stmt)).scalar_one_or_none()
      await session.commit()
      return removed is not None

  async def delete_jobs_older_than(self, cutoff: datetime) -> int:
    async with self._session_factory() as session:
      stmt = delete(Job).where(Job.created_at <= cutoff).returning(Job.job_id)
      removed = (await session.execute(stmt)).scalars().all()
      await session.commit()
      return len(removed)

  async def get_existing_article_hashes(self, hashes: Iterable[str]) -> set[str]:
    wanted = sorted(set(hashes))
    if not wanted:
      return set()
    async with self._session_factory() as session:
      article_hashes = (await session.execute(select(Article.content_hash).where(Article.content_hash.in_(wanted)))).scalars().all()
      job_hashes = (await session.execute(select(Job.source_hash).where(Job.source_hash.in_(wanted)))).scalars().all()
      return {str(value) for value in [*article_hashes, *job_hashes] if value}

  async def create_article(self, article: ArticleRecord) -> ArticleRecord:
    await self._add(
      Article(
        article_id=article.article_id,
        job_id=article.job_id,
        source=article.source,
        url=article.url,
        title=article.title,
        content=article.content,
        content_hash=article.content_hash,
        media_url=article.media_url,
        published_at=article.published_at,
        created_at=article.created_at,
      )
    )
    return article

  async def create_summary(self, summary: SummaryRecord) -> SummaryRecord:
    await self._add(
      Summary(
        summary_id=summary.summary_id,
        job_id=summary.job_id,
        text=summary.text,
        word_count=summary.word_count,
        language=summary.language,
        quality_flags=summary.quality_flags.as_dict(),
        created_at=summary.created_at,
      )
    )
    return summary

  async def create_audio_asset(self, audio: AudioAssetRecord) -> AudioAssetRecord:
    await self._add(
      AudioAsset(
        audio_id=audio.audio_id,
        job_id=audio.job_id,
        url=audio.url,
        duration=audio.duration,
        sample_rate=audio.sample_rate,
        format=audio.format,
        size=audio.size,
        created_at=audio.created_at,
      )
    )
    return audio

  async def create_video_asset(self, video: VideoAssetRecord) -> VideoAssetRecord:
    await self._add(
      VideoAsset(
        video_id=video.video_id,
        job_id=video.job_id,
        video_url=video.video_url,
        subtitle_url=video.subtitle_url,
        thumbnail_url=video.thumbnail_url,
        width=video.width,
        height=video.height,
        duration=video.duration,
        size=video.size,
        created_at=video.created_at,
      )
    )
    return video

  async def create_publication(self, publication: PublicationRecord) -> PublicationRecord:
    await self._add(
      Publication(
        publication_id=publication.publication_id,
        job_id=publication.job_id,
        platform=publication.platform,
        platform_video_id=publication.platform_video_id,
        status=publication.status,
        published_at=publication.published_at,
        created_at=publication.created_at,
      )
    )
    return publication

  async def get_artifacts(self, job_id: str) -> JobArtifacts:
    return JobArtifacts(
      article=await self.get_article(job_id),
      summary=await self.get_summary(job_id),
      audio=await self.get_audio_asset(job_id),
      video=await self.get_video_asset(job_id),
      publications=await self.list_publications(job_id),
    )

  async def get_article(self, job_id: str) -> ArticleRecord | None:
    async with self._session_factory() as session:
      row = (await session.execute(select(Article).where(Article.job_id == job_id))).scalar_one_or_none()
      return self._article_to_record(row) if row is not None else None

  async def get_summary(self, job_id: str) -> SummaryRecord | None:
    async with self._session_factory() as session:
      row = (await session.execute(select(Summary).where(Summary.job_id == job_id))).scalar_one_or_none()
      return self._summary_to_record(row) if row is not None else None

  async def get_audio_asset(self, job_id: str) -> AudioAssetRecord | None:
    async with self._session_factory() as session:
      row = (await session.execute(select(AudioAsset).where(AudioAsset.job_id == job_id))).scalar_one_or_none()
      return self._audio_to_record(row) if row is not None else None

  async def get_video_asset(self, job_id: str) -> VideoAssetRecord | None:
    async with self._session_factory() as session:
      row = (await session.execute(select(VideoAsset).where(VideoAsset.job_id == job_id))).scalar_one_or_none()
      return self._video_to_record(row) if row is not None else None

  async def list_publications(self, job_id: str) -> list[PublicationRecord]:
    async with self._session_factory() as session:
      rows = (await session.execute(select(Publication).where(Publication.job_id == job_id).order_by(Publication.created_at.asc()))).scalars().all()
      return [self._publication_to_record(row) for row in rows]

  async def get_metrics(self) -> JobMetrics:
    now = self._clock()
    today = start_of_day(now)
    window_start = now - timedelta(days=30)
    async with self._session_factory() as session:
      jobs_today = await session.scalar(select(func.count()).select_from(Job).where(Job.created_at >= today))
      recent_total = await session.scalar(select(func.count()).select_from(Job).where(Job.created_at >= window_start))
      recent_completed = await session.scalar(select(func.count()).select_from(Job).where(Job.created_at >= window_start, Job.status == "completed"))
      published_today = await session.scalar(select(func.count()).select_from(Publication).where(Publication.created_at >= today, Publication.status != "failed"))
      active_jobs = await session.scalar(select(func.count()).select_from(Job).where(Job.status == "running"))
      total_jobs = await session.scalar(select(func.count()).select_from(Job))

    recent_total = int(recent_total or 0)
    success_rate = round(int(recent_completed or 0) / recent_total * 100, 1) if recent_total else 0.0
    return JobMetrics(
      jobs_today=int(jobs_today or 0),
      success_rate=success_rate,
      published_today=int(published_today or 0),
      active_jobs=int(active_jobs or 0),
      total_jobs=int(total_jobs or 0),
    )

  async def _add(self, row: Any) -> None:
    async with self._session_factory() as session:
      session.add(row)
      await session.commit()

  def _job_filters(self, job_filter: JobFilter) -> list[Any]:
    filters: list[Any] = []
    if job_filter.status:
      filters.append(Job.status == job_filter.status)
    if job_filter.topic:
      filters.append(Job.topic.ilike(f"%{job_filter.topic}%"))
    if job_filter.language:
      filters.append(Job.language == job_filter.language)
    if job_filter.created_from is not None:
      filters.append(Job.created_at >= job_filter.created_from)
    if job_filter.created_to is not None:
      filters.append(Job.created_at <= job_filter.created_to)
    return filters

  def _job_to_record(self, row: Job) -> JobRecord:
    return JobRecord(
      job_id=row.job_id,
      topic=row.topic,
      language=row.language,
      target_length=int(row.target_length),
      auto_publish=bool(row.auto_publish),
      status=row.status,  # type: ignore[arg-type]
      progress=int(row.progress),
      created_at=row.created_at,
      updated_at=row.updated_at,
      error=row.error,
      source_hash=row.source_hash,
    )

  def _article_to_record(self, row: Article) -> ArticleRecord:
    return ArticleRecord(
      article_id=row.article_id,
      job_id=row.job_id,
      source=row.source,
      url=row.url,
      title=row.title,
      content=row.content,
      content_hash=row.content_hash,
      media_url=row.media_url,
      published_at=row.published_at,
      created_at=row.created_at,
    )

  def _summary_to_record(self, row: Summary) -> SummaryRecord:
    flags = row.quality_flags or {}
    return SummaryRecord(
      summary_id=row.summary_id,
      job_id=row.job_id,
      text=row.text,
      word_count=int(row.word_count),
      language=row.language,
      quality_flags=QualityFlags(
        length_appropriate=bool(flags.get("length_appropriate", False)),
        has_key_info=bool(flags.get("has_key_info", False)),
        no_repetition=bool(flags.get("no_repetition", True)),
      ),
      created_at=row.created_at,
    )

  def _audio_to_record(self, row: AudioAsset) -> AudioAssetRecord:
    return AudioAssetRecord(
      audio_id=row.audio_id,
      job_id=row.job_id,
      url=row.url,
      duration=int(row.duration),
      sample_rate=int(row.sample_rate),
      format=row.format,
      size=row.size,
      created_at=row.created_at,
    )

  def _video_to_record(self, row: VideoAsset) -> VideoAssetRecord:
    return VideoAssetRecord(
      video_id=row.video_id,
      job_id=row.job_id,
      video_url=row.video_url,
      subtitle_url=row.subtitle_url,
      thumbnail_url=row.thumbnail_url,
      width=int(row.width),
      height=int(row.height),
      duration=int(row.duration),
      size=row.size,
      created_at=row.created_at,
    )

  def _publication_to_record(self, row: Publication) -> PublicationRecord:
    return PublicationRecord(
      publication_id=row.publication_id,
      job_id=row.job_id,
      platform=row.platform,
      platform_video_id=row.platform_video_id,
      status=row.status,  # type: ignore[arg-type]
      published_at=row.published_at,
      created_at=row.created_at,
    )
