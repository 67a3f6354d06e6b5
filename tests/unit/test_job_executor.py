import asyncio
from unittest.mock import AsyncMock

import pytest

from newsreel.core.errors import JobValidationError, NotFoundError, UpstreamCollaboratorError
from newsreel.utils.hashing import content_hash
from tests.fakes import FakeArticleSource, FakePublisher, FakeRenderer, FakeSummarizer, make_article, make_collaborators, make_timeouts, seed_job


@pytest.mark.anyio
async def test_run_completes_job_through_every_stage(store, clock, executor_factory) -> None:
  renderer = FakeRenderer()
  executor = executor_factory(make_collaborators(renderer=renderer))
  await seed_job(store, clock)

  await executor.run("job-1")

  assert [(status, progress) for _, status, progress in store.history] == [("running", 10), ("running", 25), ("running", 50), ("running", 75), ("completed", 100)]
  job = await store.get_job("job-1")
  assert job.status == "completed"
  assert job.error is None

  artifacts = await store.get_artifacts("job-1")
  assert artifacts.article.url == "https://news.test/articles/1"
  assert artifacts.article.content_hash == content_hash(make_article(1).body)
  assert artifacts.summary.quality_flags.has_key_info is True
  assert artifacts.audio.duration == 32
  assert artifacts.video.video_url == "https://cdn.test/video/final.mp4"
  assert artifacts.video.width == 1920
  assert artifacts.publications == []
  assert renderer.requests[0].images == ["https://news.test/images/1.jpg"]
  assert renderer.requests[0].audio_url == "https://cdn.test/audio/narration.wav"


@pytest.mark.anyio
async def test_run_fails_when_no_articles_are_found(store, clock, executor_factory) -> None:
  executor = executor_factory(make_collaborators(article_source=FakeArticleSource(articles=[])))
  await seed_job(store, clock)

  await executor.run("job-1")

  job = await store.get_job("job-1")
  assert job.status == "failed"
  assert job.progress == 10
  assert job.error == "No articles found"
  artifacts = await store.get_artifacts("job-1")
  assert artifacts.article is None
  assert artifacts.summary is None


@pytest.mark.anyio
async def test_render_failure_names_collaborator_and_keeps_earlier_artifacts(store, clock, executor_factory) -> None:
  executor = executor_factory(make_collaborators(renderer=FakeRenderer(error=RuntimeError("render farm offline"))))
  await seed_job(store, clock)

  await executor.run("job-1")

  job = await store.get_job("job-1")
  assert job.status == "failed"
  assert job.progress == 75
  assert job.error == "video_renderer failed: render farm offline"
  artifacts = await store.get_artifacts("job-1")
  assert artifacts.summary is not None
  assert artifacts.audio is not None
  assert artifacts.video is None


@pytest.mark.anyio
async def test_slow_stage_fails_with_timeout(store, clock, executor_factory) -> None:
  executor = executor_factory(make_collaborators(summarizer=FakeSummarizer(delay=1.0)), timeouts=make_timeouts(summarize=0.01))
  await seed_job(store, clock)

  await executor.run("job-1")

  job = await store.get_job("job-1")
  assert job.status == "failed"
  assert job.progress == 25
  assert job.error == "summarize stage timed out after 0.01s"


@pytest.mark.anyio
async def test_fetch_prefers_the_article_the_job_was_created_for(store, clock, executor_factory) -> None:
  source = FakeArticleSource(articles=[make_article(1), make_article(2)])
  executor = executor_factory(make_collaborators(article_source=source))
  await seed_job(store, clock, source_hash=content_hash(make_article(2).body))

  await executor.run("job-1")

  article = await store.get_article("job-1")
  assert article.url == "https://news.test/articles/2"
  assert source.calls == [("economy", "en", 10)]


@pytest.mark.anyio
async def test_run_skips_jobs_that_are_not_queued(store, clock, executor_factory) -> None:
  executor = executor_factory()
  await seed_job(store, clock)
  await store.update_job_status("job-1", "failed", error="earlier")
  store.history.clear()

  await executor.run("job-1")

  assert store.history == []
  assert (await store.get_job("job-1")).error == "earlier"


@pytest.mark.anyio
async def test_cancel_running_job_stops_at_next_stage_boundary(store, clock, executor_factory) -> None:
  summarizer = FakeSummarizer(gate=asyncio.Event())
  executor = executor_factory(make_collaborators(summarizer=summarizer))
  await seed_job(store, clock)

  task = executor.submit("job-1")
  await summarizer.started.wait()
  assert await executor.request_cancel("job-1") is True
  summarizer.gate.set()
  await task

  job = await store.get_job("job-1")
  assert job.status == "failed"
  assert job.error == "Job canceled"
  assert job.progress == 50
  artifacts = await store.get_artifacts("job-1")
  assert artifacts.summary is not None
  assert artifacts.audio is None


@pytest.mark.anyio
async def test_cancel_queued_job_outside_the_pool_fails_it_immediately(store, clock, executor_factory) -> None:
  executor = executor_factory()
  await seed_job(store, clock)

  assert await executor.request_cancel("job-1") is True

  job = await store.get_job("job-1")
  assert job.status == "failed"
  assert job.error == "Job canceled"


@pytest.mark.anyio
async def test_cancel_terminal_or_missing_job(store, clock, executor_factory) -> None:
  executor = executor_factory()
  await seed_job(store, clock)
  await executor.run("job-1")

  assert await executor.request_cancel("job-1") is False
  assert (await store.get_job("job-1")).status == "completed"
  with pytest.raises(NotFoundError):
    await executor.request_cancel("missing")


@pytest.mark.anyio
async def test_pool_limits_concurrent_runs(store, clock, executor_factory) -> None:
  summarizer = FakeSummarizer(gate=asyncio.Event())
  executor = executor_factory(make_collaborators(summarizer=summarizer), max_concurrent_jobs=1)
  await seed_job(store, clock, job_id="job-1")
  await seed_job(store, clock, job_id="job-2")

  first = executor.submit("job-1")
  executor.submit("job-2")
  assert executor.submit("job-1") is first
  await summarizer.started.wait()
  await asyncio.sleep(0.01)

  assert len(summarizer.calls) == 1
  assert (await store.get_job("job-2")).status == "queued"

  summarizer.gate.set()
  await executor.drain()
  assert (await store.get_job("job-1")).status == "completed"
  assert (await store.get_job("job-2")).status == "completed"
  assert executor.in_flight == 0


@pytest.mark.anyio
async def test_shutdown_cancels_runs_past_the_grace_period(store, clock, executor_factory) -> None:
  summarizer = FakeSummarizer(gate=asyncio.Event())
  executor = executor_factory(make_collaborators(summarizer=summarizer))
  await seed_job(store, clock)

  executor.submit("job-1")
  await summarizer.started.wait()
  await executor.shutdown(grace_seconds=0.01)

  job = await store.get_job("job-1")
  assert job.status == "failed"
  assert job.error == "Job canceled"
  with pytest.raises(RuntimeError):
    executor.submit("job-1")


@pytest.mark.anyio
async def test_auto_publish_records_publication(store, clock, executor_factory) -> None:
  publisher = FakePublisher()
  executor = executor_factory(make_collaborators(publisher=publisher))
  await seed_job(store, clock, auto_publish=True)

  await executor.run("job-1")

  publications = await store.list_publications("job-1")
  assert len(publications) == 1
  assert publications[0].status == "published"
  assert publications[0].platform_video_id == "yt-123"
  assert publisher.uploads[0][1] == "Markets rally after surprise rate cut 1 - Breaking News"


@pytest.mark.anyio
async def test_auto_publish_failure_leaves_job_completed(store, clock, executor_factory) -> None:
  executor = executor_factory(make_collaborators(publisher=FakePublisher(error=UpstreamCollaboratorError("publisher", "quota exceeded"))))
  await seed_job(store, clock, auto_publish=True)

  await executor.run("job-1")

  job = await store.get_job("job-1")
  assert job.status == "completed"
  assert job.progress == 100
  publications = await store.list_publications("job-1")
  assert [(item.status, item.platform_video_id) for item in publications] == [("failed", "")]


@pytest.mark.anyio
async def test_manual_publish_requires_completed_job_with_video(store, clock, executor_factory) -> None:
  executor = executor_factory()
  await seed_job(store, clock, job_id="queued")
  await seed_job(store, clock, job_id="no-video")
  await store.update_job_status("no-video", "running", progress=10)
  await store.update_job_status("no-video", "completed")

  with pytest.raises(NotFoundError):
    await executor.publish_job("missing")
  with pytest.raises(JobValidationError, match="Job must be completed before publishing"):
    await executor.publish_job("queued")
  with pytest.raises(JobValidationError, match="No video found for job"):
    await executor.publish_job("no-video")


@pytest.mark.anyio
async def test_manual_publish_of_completed_job(store, clock, executor_factory) -> None:
  executor = executor_factory()
  await seed_job(store, clock)
  await executor.run("job-1")

  publication = await executor.publish_job("job-1")

  assert publication.status == "published"
  assert await store.list_publications("job-1") == [publication]


@pytest.mark.anyio
async def test_unexpected_store_error_fails_job_instead_of_escaping(store, clock, executor_factory, monkeypatch) -> None:
  executor = executor_factory()
  await seed_job(store, clock)
  monkeypatch.setattr(store, "create_summary", AsyncMock(side_effect=KeyError("summaries")))

  await executor.run("job-1")

  job = await store.get_job("job-1")
  assert job.status == "failed"
  assert job.progress == 25
  assert job.error
  assert (await store.get_artifacts("job-1")).summary is None


@pytest.mark.anyio
async def test_cancel_running_job_without_a_live_run_fails_it(store, clock, executor_factory) -> None:
  executor = executor_factory()
  await seed_job(store, clock)
  await store.update_job_status("job-1", "running", progress=25)

  assert await executor.request_cancel("job-1") is True

  job = await store.get_job("job-1")
  assert job.status == "failed"
  assert job.error == "Job canceled"
  assert executor._cancel_requested == set()


@pytest.mark.anyio
async def test_fetch_skips_articles_used_by_other_jobs(store, clock, executor_factory) -> None:
  executor = executor_factory(make_collaborators(article_source=FakeArticleSource(articles=[make_article(1), make_article(2)])))
  await seed_job(store, clock, job_id="old")
  await executor.run("old")
  await seed_job(store, clock, job_id="new")

  await executor.run("new")

  assert (await store.get_article("old")).url == "https://news.test/articles/1"
  assert (await store.get_article("new")).url == "https://news.test/articles/2"


@pytest.mark.anyio
async def test_job_from_vanished_article_never_reuses_a_published_one(store, clock, executor_factory) -> None:
  executor = executor_factory(make_collaborators(article_source=FakeArticleSource(articles=[make_article(1)])))
  await seed_job(store, clock, job_id="old")
  await executor.run("old")
  await seed_job(store, clock, job_id="new", auto_publish=True, source_hash=content_hash(make_article(2).body))

  await executor.run("new")

  job = await store.get_job("new")
  assert job.status == "failed"
  assert job.error == "No articles found"
  assert await store.get_article("new") is None


@pytest.mark.anyio
async def test_manual_job_falls_back_to_first_article_when_all_are_used(store, clock, executor_factory) -> None:
  executor = executor_factory()
  await seed_job(store, clock, job_id="old")
  await executor.run("old")
  await seed_job(store, clock, job_id="again")

  await executor.run("again")

  assert (await store.get_job("again")).status == "completed"
  assert (await store.get_article("again")).url == "https://news.test/articles/1"
