import asyncio
import random
from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest

from newsreel.core.errors import UpstreamCollaboratorError
from newsreel.jobs.scheduler import AutomationScheduler, DailyTrigger, IntervalTrigger
from newsreel.services.maintenance import RetentionSweeper, StuckJobReaper
from newsreel.utils.hashing import content_hash
from tests.fakes import FakeArticleSource, FakeClock, make_article, seed_job


class RecordingSleep:
  def __init__(self) -> None:
    self.calls: list[float] = []

  async def __call__(self, seconds: float) -> None:
    self.calls.append(seconds)


class TickingSleep:
  """Return immediately for the first `ticks` sleeps, then park until cancelled."""

  def __init__(self, ticks: int) -> None:
    self.ticks = ticks
    self.calls = 0
    self.parked = asyncio.Event()

  async def __call__(self, seconds: float) -> None:
    self.calls += 1
    if self.calls <= self.ticks:
      return
    self.parked.set()
    await asyncio.Event().wait()


class FireOnceSleep:
  """Let each timer task fire once, then park it until it is cancelled."""

  def __init__(self) -> None:
    self.fired: set[asyncio.Task] = set()

  async def __call__(self, seconds: float) -> None:
    task = asyncio.current_task()
    if task not in self.fired:
      self.fired.add(task)
      return
    await asyncio.Event().wait()


def _scheduler(store, clock: FakeClock, source: FakeArticleSource, *, topics=("economy",), executor=None, sleep=None, **kwargs) -> AutomationScheduler:
  options = {"topic_quota": 3, "jobs_per_topic": 2, "candidate_limit": 5, "creation_delay_seconds": 0.0}
  options.update(kwargs)
  return AutomationScheduler(
    store=store,
    article_source=source,
    executor=executor,
    reaper=StuckJobReaper(store=store, stale_minutes=30),
    retention=RetentionSweeper(store=store, retention_days=30, clock=clock),
    topics=topics,
    sync_trigger=DailyTrigger(hours=(8, 14, 20)),
    health_trigger=IntervalTrigger(minutes=15),
    retention_trigger=DailyTrigger(hours=(0,)),
    clock=clock,
    sleep=sleep or RecordingSleep(),
    rng=random.Random(7),
    **options,
  )


def test_interval_trigger_fires_on_minute_boundaries() -> None:
  trigger = IntervalTrigger(minutes=15)
  at = datetime(2025, 3, 10, 10, 7, 30, tzinfo=UTC)
  assert trigger.next_fire(at) == datetime(2025, 3, 10, 10, 15, tzinfo=UTC)
  assert trigger.next_fire(datetime(2025, 3, 10, 10, 15, tzinfo=UTC)) == datetime(2025, 3, 10, 10, 30, tzinfo=UTC)
  assert trigger.next_fire(datetime(2025, 3, 10, 10, 50, tzinfo=UTC)) == datetime(2025, 3, 10, 11, 0, tzinfo=UTC)


def test_daily_trigger_rolls_over_to_the_next_day() -> None:
  trigger = DailyTrigger(hours=(20, 8, 14))
  assert trigger.next_fire(datetime(2025, 3, 10, 9, 0, tzinfo=UTC)) == datetime(2025, 3, 10, 14, 0, tzinfo=UTC)
  assert trigger.next_fire(datetime(2025, 3, 10, 8, 0, tzinfo=UTC)) == datetime(2025, 3, 10, 14, 0, tzinfo=UTC)
  assert trigger.next_fire(datetime(2025, 3, 10, 21, 0, tzinfo=UTC)) == datetime(2025, 3, 11, 8, 0, tzinfo=UTC)


@pytest.mark.anyio
async def test_sync_creates_auto_publish_jobs_for_fresh_articles(store, clock) -> None:
  source = FakeArticleSource(articles=[make_article(1), make_article(2), make_article(3)])
  executor = MagicMock()
  scheduler = _scheduler(store, clock, source, executor=executor)

  report = await scheduler.run_news_sync()

  assert report.jobs_created == 2
  assert source.calls == [("economy", "en", 5)]
  jobs = [await store.get_job(job_id) for job_id in report.created["economy"]]
  assert {job.source_hash for job in jobs} == {content_hash(make_article(1).body), content_hash(make_article(2).body)}
  assert all(job.auto_publish and job.status == "queued" for job in jobs)
  assert all(job.target_length in (60, 90, 120) for job in jobs)
  assert executor.submit.call_count == 2


@pytest.mark.anyio
async def test_sync_skips_topic_at_quota(store, clock) -> None:
  source = FakeArticleSource()
  scheduler = _scheduler(store, clock, source)
  for index in range(3):
    await seed_job(store, clock, job_id=f"job-{index}")

  report = await scheduler.run_news_sync()

  assert report.skipped == {"economy": "quota reached"}
  assert source.calls == []


@pytest.mark.anyio
async def test_sync_respects_remaining_quota(store, clock) -> None:
  source = FakeArticleSource(articles=[make_article(1), make_article(2), make_article(3)])
  scheduler = _scheduler(store, clock, source)
  await seed_job(store, clock, job_id="existing")
  await seed_job(store, clock, job_id="existing-2")

  report = await scheduler.run_news_sync()

  assert report.jobs_created == 1


@pytest.mark.anyio
async def test_repeated_syncs_never_reuse_an_article(store, clock) -> None:
  source = FakeArticleSource(articles=[make_article(1), make_article(2), make_article(3)])
  scheduler = _scheduler(store, clock, source, topic_quota=10)

  first = await scheduler.run_news_sync()
  second = await scheduler.run_news_sync()
  third = await scheduler.run_news_sync()

  assert first.jobs_created == 2
  assert second.jobs_created == 1
  assert third.jobs_created == 0
  assert third.skipped == {"economy": "no new articles"}
  page = await store.list_jobs(page=1, limit=10)
  assert len({job.source_hash for job in page.items}) == 3


@pytest.mark.anyio
async def test_topics_in_one_pass_do_not_claim_the_same_article(store, clock) -> None:
  shared = [make_article(1), make_article(2), make_article(3)]
  source = FakeArticleSource(articles=shared)
  scheduler = _scheduler(store, clock, source, topics=("economy", "markets"))

  report = await scheduler.run_news_sync()

  assert report.jobs_created == 3
  page = await store.list_jobs(page=1, limit=10)
  assert len({job.source_hash for job in page.items}) == 3


@pytest.mark.anyio
async def test_duplicate_candidates_in_one_response_yield_one_job(store, clock) -> None:
  source = FakeArticleSource(articles=[make_article(1), make_article(1)])
  scheduler = _scheduler(store, clock, source)

  report = await scheduler.run_news_sync()

  assert report.jobs_created == 1


@pytest.mark.anyio
async def test_topic_failure_does_not_stop_other_topics(store, clock) -> None:
  source = FakeArticleSource(errors={"economy": UpstreamCollaboratorError("article_source", "HTTP 500")})
  scheduler = _scheduler(store, clock, source, topics=("economy", "science"))

  report = await scheduler.run_news_sync()

  assert report.errors == {"economy": "article_source failed: HTTP 500"}
  assert len(report.created["science"]) == 1


@pytest.mark.anyio
async def test_sync_reports_topics_without_articles(store, clock) -> None:
  scheduler = _scheduler(store, clock, FakeArticleSource(articles=[]))

  report = await scheduler.run_news_sync()

  assert report.skipped == {"economy": "no articles"}


@pytest.mark.anyio
async def test_sync_waits_between_job_creations(store, clock) -> None:
  sleep = RecordingSleep()
  source = FakeArticleSource(articles=[make_article(1), make_article(2)])
  scheduler = _scheduler(store, clock, source, sleep=sleep, creation_delay_seconds=1.0)

  await scheduler.run_news_sync()

  assert sleep.calls == [1.0]


@pytest.mark.anyio
async def test_manual_sync_runs_while_paused(store, clock) -> None:
  scheduler = _scheduler(store, clock, FakeArticleSource())
  scheduler.pause_automation()

  report = await scheduler.trigger_news_sync()

  assert scheduler.paused is True
  assert report.jobs_created == 1


@pytest.mark.anyio
async def test_paused_timers_skip_sync_and_health_but_run_retention(store, clock) -> None:
  source = FakeArticleSource()
  scheduler = _scheduler(store, clock, source, sleep=FireOnceSleep())
  await seed_job(store, clock, job_id="ancient")
  await store.update_job_status("ancient", "running", progress=10)
  clock.advance(days=31)
  scheduler.pause_automation()

  scheduler.start()
  for _ in range(10):
    await asyncio.sleep(0)
  assert scheduler.running is True
  await scheduler.stop()

  assert scheduler.running is False
  assert source.calls == []
  assert await store.get_job("ancient") is None


@pytest.mark.anyio
async def test_timers_run_sync_and_health_check_when_active(store, clock) -> None:
  source = FakeArticleSource()
  scheduler = _scheduler(store, clock, source, sleep=FireOnceSleep())
  await seed_job(store, clock, job_id="stuck", topic="science")
  await store.update_job_status("stuck", "running", progress=10)
  clock.advance(minutes=45)

  scheduler.start()
  for _ in range(10):
    await asyncio.sleep(0)
  await scheduler.stop()

  assert source.calls == [("economy", "en", 5)]
  stuck = await store.get_job("stuck")
  assert stuck.status == "failed"
  assert stuck.error == "Job timed out"


@pytest.mark.anyio
async def test_resume_clears_pause(store, clock) -> None:
  scheduler = _scheduler(store, clock, FakeArticleSource())
  scheduler.pause_automation()
  scheduler.resume_automation()
  assert scheduler.paused is False
  assert scheduler.topics == ("economy",)


@pytest.mark.anyio
async def test_failed_timer_callback_does_not_stop_later_runs(store, clock) -> None:
  sleep = TickingSleep(ticks=3)
  scheduler = _scheduler(store, clock, FakeArticleSource(), sleep=sleep)
  calls: list[int] = []

  async def flaky() -> None:
    calls.append(len(calls))
    if len(calls) == 1:
      raise RuntimeError("sweep exploded")

  task = asyncio.create_task(scheduler._timer_loop("retention", DailyTrigger(hours=(0,)), flaky))
  await sleep.parked.wait()
  task.cancel()
  with pytest.raises(asyncio.CancelledError):
    await task

  assert calls == [0, 1, 2]


@pytest.mark.anyio
async def test_health_check_timer_keeps_running_after_a_store_error(store, clock, monkeypatch) -> None:
  sleep = TickingSleep(ticks=2)
  scheduler = _scheduler(store, clock, FakeArticleSource(), sleep=sleep)
  real_metrics = store.get_metrics
  attempts: list[str] = []

  async def failing_once():
    attempts.append("metrics")
    if len(attempts) == 1:
      raise ConnectionError("database unavailable")
    return await real_metrics()

  monkeypatch.setattr(store, "get_metrics", failing_once)

  task = asyncio.create_task(scheduler._timer_loop("health_check", IntervalTrigger(minutes=15), scheduler._on_health_tick))
  await sleep.parked.wait()
  task.cancel()
  with pytest.raises(asyncio.CancelledError):
    await task

  assert attempts == ["metrics", "metrics"]
