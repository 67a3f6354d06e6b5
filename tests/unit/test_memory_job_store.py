from datetime import timedelta

import pytest

from newsreel.jobs.models import ArticleRecord, JobFilter, PublicationRecord, QualityFlags, SummaryRecord
from newsreel.storage.memory_job_store import InMemoryJobStore
from newsreel.utils.hashing import content_hash
from tests.fakes import FakeClock, seed_job


def _article(job_id: str, clock: FakeClock, body: str = "Stocks climbed across every major index.") -> ArticleRecord:
  return ArticleRecord(
    article_id=f"article-{job_id}",
    job_id=job_id,
    source="Wire Service",
    url="https://news.test/a",
    title="Markets rally",
    content=body,
    content_hash=content_hash(body),
    media_url=None,
    published_at=None,
    created_at=clock(),
  )


def _publication(job_id: str, clock: FakeClock, status: str = "published") -> PublicationRecord:
  return PublicationRecord(publication_id=f"pub-{job_id}-{status}", job_id=job_id, platform="youtube", platform_video_id="yt-1" if status != "failed" else "", status=status, published_at=None, created_at=clock())


@pytest.mark.anyio
async def test_update_refuses_transitions_outside_the_state_machine(clock: FakeClock) -> None:
  store = InMemoryJobStore(clock=clock)
  await seed_job(store, clock)

  assert await store.update_job_status("job-1", "completed") is None
  assert (await store.get_job("job-1")).status == "queued"

  assert (await store.update_job_status("job-1", "running", progress=10)).status == "running"
  assert (await store.update_job_status("job-1", "completed")).progress == 100
  assert await store.update_job_status("job-1", "running", progress=50) is None
  assert await store.update_job_status("job-1", "failed", error="late") is None

  final = await store.get_job("job-1")
  assert final.status == "completed"
  assert final.error is None


@pytest.mark.anyio
async def test_update_on_unknown_job_returns_none(clock: FakeClock) -> None:
  store = InMemoryJobStore(clock=clock)
  assert await store.update_job_status("missing", "running", progress=10) is None


@pytest.mark.anyio
async def test_running_progress_never_decreases_and_stays_below_100(clock: FakeClock) -> None:
  store = InMemoryJobStore(clock=clock)
  await seed_job(store, clock)

  await store.update_job_status("job-1", "running", progress=50)
  assert (await store.update_job_status("job-1", "running", progress=25)).progress == 50
  assert (await store.update_job_status("job-1", "running", progress=100)).progress == 99


@pytest.mark.anyio
async def test_failed_update_keeps_error_and_bumps_updated_at(clock: FakeClock) -> None:
  store = InMemoryJobStore(clock=clock)
  created = await seed_job(store, clock)
  clock.advance(minutes=5)

  failed = await store.update_job_status("job-1", "failed", error="boom", progress=40)
  assert failed.error == "boom"
  assert failed.progress == 0
  assert failed.updated_at == created.updated_at + timedelta(minutes=5)


@pytest.mark.anyio
async def test_list_jobs_filters_sorts_and_paginates(clock: FakeClock) -> None:
  store = InMemoryJobStore(clock=clock)
  for index in range(5):
    await seed_job(store, clock, job_id=f"job-{index}", topic="Global Economy" if index % 2 == 0 else "science")
    clock.advance(minutes=1)
  await store.update_job_status("job-4", "running", progress=10)

  page = await store.list_jobs(page=1, limit=2)
  assert [item.job_id for item in page.items] == ["job-4", "job-3"]
  assert page.total == 5
  assert page.total_pages == 3

  last = await store.list_jobs(page=3, limit=2)
  assert [item.job_id for item in last.items] == ["job-0"]

  economy = await store.list_jobs(JobFilter(topic="economy"), page=1, limit=10)
  assert {item.job_id for item in economy.items} == {"job-0", "job-2", "job-4"}

  running = await store.list_jobs(JobFilter(status="running"), page=1, limit=10)
  assert [item.job_id for item in running.items] == ["job-4"]

  window = await store.list_jobs(JobFilter(created_from=clock() - timedelta(minutes=3), created_to=clock() - timedelta(minutes=2)), page=1, limit=10)
  assert [item.job_id for item in window.items] == ["job-3", "job-2"]


@pytest.mark.anyio
async def test_delete_job_cascades_to_artifacts(clock: FakeClock) -> None:
  store = InMemoryJobStore(clock=clock)
  await seed_job(store, clock)
  await store.create_article(_article("job-1", clock))
  await store.create_publication(_publication("job-1", clock))

  assert await store.delete_job("job-1") is True
  assert await store.get_job("job-1") is None
  artifacts = await store.get_artifacts("job-1")
  assert artifacts.article is None
  assert artifacts.publications == []
  assert await store.delete_job("job-1") is False


@pytest.mark.anyio
async def test_delete_jobs_older_than_includes_exact_cutoff(clock: FakeClock) -> None:
  store = InMemoryJobStore(clock=clock)
  await seed_job(store, clock, job_id="old")
  cutoff = clock()
  clock.advance(seconds=1)
  await seed_job(store, clock, job_id="new")

  assert await store.delete_jobs_older_than(cutoff) == 1
  assert await store.get_job("old") is None
  assert await store.get_job("new") is not None


@pytest.mark.anyio
async def test_existing_hashes_cover_articles_and_job_source_hashes(clock: FakeClock) -> None:
  store = InMemoryJobStore(clock=clock)
  await seed_job(store, clock, job_id="job-a")
  await store.create_article(_article("job-a", clock, body="first body"))
  await seed_job(store, clock, job_id="job-b", source_hash=content_hash("second body"))

  wanted = [content_hash("first body"), content_hash("second body"), content_hash("third body")]
  assert await store.get_existing_article_hashes(wanted) == {content_hash("first body"), content_hash("second body")}
  assert await store.get_existing_article_hashes([]) == set()


@pytest.mark.anyio
async def test_artifact_writes_require_a_job_and_are_single_per_job(clock: FakeClock) -> None:
  store = InMemoryJobStore(clock=clock)
  with pytest.raises(KeyError):
    await store.create_article(_article("missing", clock))

  await seed_job(store, clock)
  summary = SummaryRecord(summary_id="s-1", job_id="job-1", text="Short.", word_count=1, language="en", quality_flags=QualityFlags(), created_at=clock())
  await store.create_summary(summary)
  with pytest.raises(ValueError):
    await store.create_summary(summary)
  assert await store.get_summary("job-1") == summary


@pytest.mark.anyio
async def test_jobs_by_topic_respects_lookback(clock: FakeClock) -> None:
  store = InMemoryJobStore(clock=clock)
  await seed_job(store, clock, job_id="stale")
  clock.advance(days=2)
  await seed_job(store, clock, job_id="fresh")
  await seed_job(store, clock, job_id="other", topic="science")

  recent = await store.get_jobs_by_topic("economy", 1)
  assert [job.job_id for job in recent] == ["fresh"]


@pytest.mark.anyio
async def test_metrics_summarize_today_and_the_last_30_days(clock: FakeClock) -> None:
  store = InMemoryJobStore(clock=clock)
  clock.advance(days=-2)
  await seed_job(store, clock, job_id="yesterday")
  clock.advance(days=2)
  for job_id in ("done", "busy", "broken"):
    await seed_job(store, clock, job_id=job_id)
  await store.update_job_status("done", "running", progress=10)
  await store.update_job_status("done", "completed")
  await store.update_job_status("busy", "running", progress=10)
  await store.update_job_status("broken", "failed", error="boom")
  await store.create_publication(_publication("done", clock))
  await store.create_publication(_publication("broken", clock, status="failed"))

  metrics = await store.get_metrics()
  assert metrics.jobs_today == 3
  assert metrics.total_jobs == 4
  assert metrics.active_jobs == 1
  assert metrics.success_rate == 25.0
  assert metrics.published_today == 1


@pytest.mark.anyio
async def test_metrics_on_empty_store(clock: FakeClock) -> None:
  metrics = await InMemoryJobStore(clock=clock).get_metrics()
  assert metrics.success_rate == 0.0
  assert metrics.total_jobs == 0
