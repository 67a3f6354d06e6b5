import asyncio

import pytest

from newsreel.core.errors import StageTimeoutError
from newsreel.jobs.models import VideoAssetRecord
from newsreel.jobs.publishing import MAX_TAGS, build_description, build_tags, build_title, publish_video
from tests.fakes import FakePublisher, seed_job


class SlowPublisher(FakePublisher):
  async def publish_video(self, job, video, *, title, description, tags):  # type: ignore[no-untyped-def]
    await asyncio.sleep(1.0)
    return await super().publish_video(job, video, title=title, description=description, tags=tags)


def test_build_title_strips_symbols_and_truncates() -> None:
  assert build_title("Markets rally: stocks up 5%!") == "Markets rally stocks up 5 - Breaking News"
  long_title = build_title("word " * 30)
  assert long_title.endswith("... - Breaking News")
  assert len(long_title) == 70 + len("... - Breaking News")


def test_build_description_includes_source_when_known() -> None:
  description = build_description("Markets rallied.", "https://news.test/a")
  assert description.startswith("Markets rallied.\n")
  assert "Source: https://news.test/a" in description
  assert "Source:" not in build_description("Markets rallied.")


def test_build_tags_adds_topic_words_and_language() -> None:
  tags = build_tags("Global economy and AI", "es")
  assert tags[:2] == ["breaking news", "news"]
  assert "global" in tags and "economy" in tags
  assert "and" not in tags
  assert tags[-1] == "es news"
  assert len(build_tags(" ".join(f"topicword{index}" for index in range(20)), "en")) == MAX_TAGS


@pytest.mark.anyio
async def test_publish_timeout_records_failed_publication(store, clock) -> None:
  job = await seed_job(store, clock)
  video = VideoAssetRecord(video_id="v-1", job_id=job.job_id, video_url="https://cdn.test/v.mp4", subtitle_url=None, thumbnail_url=None, width=1920, height=1080, duration=30, size=None, created_at=clock())

  with pytest.raises(StageTimeoutError):
    await publish_video(store=store, publisher=SlowPublisher(), job=job, video=video, article=None, summary=None, timeout_seconds=0.01, clock=clock)

  publications = await store.list_publications(job.job_id)
  assert [(item.status, item.platform) for item in publications] == [("failed", "youtube")]
