"""Timer-driven automation: news sync, health checks and retention."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from newsreel.collaborators.interface import ArticleSource, FetchedArticle
from newsreel.config import Settings
from newsreel.jobs.executor import JobExecutor
from newsreel.jobs.models import JobSpec
from newsreel.services.maintenance import RetentionSweeper, StuckJobReaper
from newsreel.storage.job_store import JobStore
from newsreel.utils.clock import Clock, utc_now
from newsreel.utils.hashing import content_hash
from newsreel.utils.ids import generate_job_id

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class IntervalTrigger:
  """Fires on wall-clock multiples of `minutes` past the hour (cron `*/N`)."""

  minutes: int

  def next_fire(self, now: datetime) -> datetime:
    base = now.replace(minute=0, second=0, microsecond=0)
    elapsed = int((now - base).total_seconds() // 60)
    step = (elapsed // self.minutes + 1) * self.minutes
    if step >= 60:
      return base + timedelta(hours=1)
    return base + timedelta(minutes=step)


@dataclass(frozen=True)
class DailyTrigger:
  """Fires at the top of each listed UTC hour."""

  hours: tuple[int, ...]

  def next_fire(self, now: datetime) -> datetime:
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    for day in (0, 1):
      for hour in sorted(self.hours):
        candidate = midnight + timedelta(days=day, hours=hour)
        if candidate > now:
          return candidate
    raise ValueError("DailyTrigger needs at least one hour.")


@dataclass
class SyncReport:
  """Outcome of one news-sync pass, keyed by topic."""

  created: dict[str, list[str]] = field(default_factory=dict)
  skipped: dict[str, str] = field(default_factory=dict)
  errors: dict[str, str] = field(default_factory=dict)

  @property
  def jobs_created(self) -> int:
    return sum(len(job_ids) for job_ids in self.created.values())


class AutomationScheduler:
  """Creates jobs from fresh articles on a timer and runs the maintenance sweeps.

  The pause flag is consulted only when a timer fires; it gates the news sync
  and the health check but never the retention sweep.
  """

  def __init__(
    self,
    *,
    store: JobStore,
    article_source: ArticleSource,
    executor: JobExecutor | None,
    reaper: StuckJobReaper,
    retention: RetentionSweeper,
    topics: Sequence[str],
    sync_trigger: DailyTrigger,
    health_trigger: IntervalTrigger,
    retention_trigger: DailyTrigger,
    topic_quota: int = 3,
    quota_lookback_days: int = 1,
    candidate_limit: int = 5,
    jobs_per_topic: int = 2,
    creation_delay_seconds: float = 1.0,
    target_length_choices: Sequence[int] = (60, 90, 120),
    language: str = "en",
    clock: Clock = utc_now,
    sleep: Sleep = asyncio.sleep,
    rng: random.Random | None = None,
  ) -> None:
    self._store = store
    self._article_source = article_source
    self._executor = executor
    self._reaper = reaper
    self._retention = retention
    self._topics = tuple(topics)
    self._sync_trigger = sync_trigger
    self._health_trigger = health_trigger
    self._retention_trigger = retention_trigger
    self._topic_quota = topic_quota
    self._quota_lookback_days = quota_lookback_days
    self._candidate_limit = candidate_limit
    self._jobs_per_topic = jobs_per_topic
    self._creation_delay_seconds = creation_delay_seconds
    self._target_length_choices = tuple(target_length_choices)
    self._language = language
    self._clock = clock
    self._sleep = sleep
    self._rng = rng or random.Random()
    self._paused = False
    self._timers: dict[str, asyncio.Task[None]] = {}
    self._sync_lock = asyncio.Lock()
    self._logger = logging.getLogger(__name__)

  @property
  def paused(self) -> bool:
    return self._paused

  @property
  def running(self) -> bool:
    return any(not task.done() for task in self._timers.values())

  @property
  def topics(self) -> tuple[str, ...]:
    return self._topics

  def start(self) -> None:
    """Register the sync, health-check and retention timers."""
    if self.running:
      return
    self._logger.info("Starting automation scheduler for %d topics", len(self._topics))
    self._timers = {
      "news_sync": asyncio.create_task(self._timer_loop("news_sync", self._sync_trigger, self._on_sync_tick), name="newsreel-news-sync"),
      "health_check": asyncio.create_task(self._timer_loop("health_check", self._health_trigger, self._on_health_tick), name="newsreel-health-check"),
      "retention": asyncio.create_task(self._timer_loop("retention", self._retention_trigger, self.run_retention), name="newsreel-retention"),
    }

  async def stop(self) -> None:
    """Cancel all timers and wait for them to unwind."""
    timers = list(self._timers.items())
    self._timers = {}
    for _, task in timers:
      task.cancel()
    for name, task in timers:
      try:
        await task
      except asyncio.CancelledError:
        self._logger.info("Stopped timer %s", name)

  def pause_automation(self) -> None:
    self._paused = True
    self._logger.info("Automation paused")

  def resume_automation(self) -> None:
    self._paused = False
    self._logger.info("Automation resumed")

  async def trigger_news_sync(self) -> SyncReport:
    """Run a news sync now, regardless of the pause flag."""
    self._logger.info("Manual news sync triggered")
    return await self.run_news_sync()

  async def run_news_sync(self) -> SyncReport:
    """Create jobs for fresh articles across all topics; topics fail independently."""
    async with self._sync_lock:
      report = SyncReport()
      # Hashes claimed by any topic in this pass.
      claimed: set[str] = set()
      results = await asyncio.gather(*(self._sync_topic(topic, claimed, report) for topic in self._topics), return_exceptions=True)
      for topic, result in zip(self._topics, results, strict=True):
        if isinstance(result, asyncio.CancelledError):
          raise result
        if isinstance(result, BaseException):
          self._logger.error("News sync failed for topic %r: %s", topic, result, exc_info=result)
          report.errors[topic] = str(result) or type(result).__name__
      self._logger.info("News sync created %d job(s); skipped %d topic(s); %d topic error(s)", report.jobs_created, len(report.skipped), len(report.errors))
      return report

  async def run_health_check(self) -> int:
    """Reap stuck jobs and log the dashboard counters."""
    reaped = await self._reaper.sweep()
    metrics = await self._store.get_metrics()
    self._logger.info("Health check - reaped: %d, active jobs: %d, success rate: %s%%", reaped, metrics.active_jobs, metrics.success_rate)
    return reaped

  async def run_retention(self) -> int:
    return await self._retention.sweep()

  async def _on_sync_tick(self) -> None:
    if self._paused:
      self._logger.info("News sync skipped; automation is paused")
      return
    await self.run_news_sync()

  async def _on_health_tick(self) -> None:
    if self._paused:
      return
    await self.run_health_check()

  async def _timer_loop(self, name: str, trigger: IntervalTrigger | DailyTrigger, callback: Callable[[], Awaitable[object]]) -> None:
    while True:
      now = self._clock()
      fire_at = trigger.next_fire(now)
      await self._sleep(max((fire_at - now).total_seconds(), 0.0))
      try:
        await callback()
      except Exception:  # noqa: BLE001
        self._logger.error("Scheduled task %s failed", name, exc_info=True)

  async def _sync_topic(self, topic: str, claimed: set[str], report: SyncReport) -> None:
    """Create jobs for one topic's fresh articles.

    How/Why:
      - Recent jobs count against the topic quota, and the per-sync cap is trimmed to what the quota still allows, so one pass never pushes a topic past it.
      - Candidates are deduplicated against the store, against hashes other topics claimed in this pass, and against repeats in the same fetch.
      - Each job carries the article's hash as `source_hash`, which both reserves the article and tells the fetch stage which one to narrate.
    """
    # Quota check first; it avoids spending an article-source call on a full topic.
    recent = await self._store.get_jobs_by_topic(topic, self._quota_lookback_days)
    remaining = self._topic_quota - len(recent)
    if remaining <= 0:
      self._logger.info("Skipping %r - already has %d recent jobs", topic, len(recent))
      report.skipped[topic] = "quota reached"
      return

    candidates = await self._article_source.fetch_articles(topic, self._language, self._candidate_limit)
    if not candidates:
      self._logger.info("No articles found for topic %r", topic)
      report.skipped[topic] = "no articles"
      return

    fresh = await self._fresh_candidates(candidates, claimed)
    selected = fresh[: min(self._jobs_per_topic, remaining)]
    if not selected:
      self._logger.info("No new articles for topic %r", topic)
      report.skipped[topic] = "no new articles"
      return

    # Claim before the first await so concurrent topics see the reservation.
    claimed.update(source_hash for source_hash, _ in selected)
    created = report.created.setdefault(topic, [])
    for index, (source_hash, article) in enumerate(selected):
      if index > 0 and self._creation_delay_seconds > 0:
        await self._sleep(self._creation_delay_seconds)
      spec = JobSpec(topic=topic, language=self._language, target_length=self._rng.choice(self._target_length_choices), auto_publish=True, source_hash=source_hash)
      record = await self._store.create_job(spec.to_record(job_id=generate_job_id(), now=self._clock()))
      created.append(record.job_id)
      self._logger.info("Created job %s for topic %r from %s", record.job_id, topic, article.url)
      if self._executor is not None:
        self._executor.submit(record.job_id)

  async def _fresh_candidates(self, candidates: list[FetchedArticle], claimed: set[str]) -> list[tuple[str, FetchedArticle]]:
    unique: dict[str, FetchedArticle] = {}
    for candidate in candidates:
      unique.setdefault(content_hash(candidate.body), candidate)
    existing = await self._store.get_existing_article_hashes(unique.keys())
    return [(source_hash, candidate) for source_hash, candidate in unique.items() if source_hash not in existing and source_hash not in claimed]


def build_scheduler(settings: Settings, *, store: JobStore, article_source: ArticleSource, executor: JobExecutor | None, clock: Clock = utc_now) -> AutomationScheduler:
  """Wire the scheduler and its sweeps from settings."""
  return AutomationScheduler(
    store=store,
    article_source=article_source,
    executor=executor,
    reaper=StuckJobReaper(store=store, stale_minutes=settings.stale_job_minutes),
    retention=RetentionSweeper(store=store, retention_days=settings.retention_days, clock=clock),
    topics=settings.automation_topics,
    sync_trigger=DailyTrigger(hours=settings.sync_hours_utc),
    health_trigger=IntervalTrigger(minutes=settings.health_check_interval_minutes),
    retention_trigger=DailyTrigger(hours=(settings.retention_hour_utc,)),
    topic_quota=settings.topic_quota,
    quota_lookback_days=settings.quota_lookback_days,
    candidate_limit=settings.sync_candidate_limit,
    jobs_per_topic=settings.sync_jobs_per_topic,
    creation_delay_seconds=settings.sync_creation_delay_seconds,
    target_length_choices=settings.target_length_choices,
    clock=clock,
  )
