"""Publish step shared by auto-publish and the manual publish endpoint."""

from __future__ import annotations

import asyncio
import logging
import re

from newsreel.collaborators.interface import Publisher
from newsreel.core.errors import StageTimeoutError
from newsreel.jobs.models import ArticleRecord, JobRecord, PublicationRecord, SummaryRecord, VideoAssetRecord
from newsreel.storage.job_store import JobStore
from newsreel.utils.clock import Clock, utc_now
from newsreel.utils.ids import generate_record_id

logger = logging.getLogger(__name__)

MAX_TITLE_CHARS = 90
MAX_TAGS = 15
BASE_TAGS = ("breaking news", "news", "current events", "automated news", "ai generated")

_TITLE_STRIP_RE = re.compile(r"[^\w\s-]")


def build_title(source_title: str) -> str:
  clean = _TITLE_STRIP_RE.sub("", source_title).strip()
  if len(clean) <= MAX_TITLE_CHARS:
    return f"{clean} - Breaking News"
  return f"{clean[: MAX_TITLE_CHARS - 20]}... - Breaking News"


def build_description(summary_text: str, source_url: str | None = None) -> str:
  lines = [summary_text, "", "Subscribe for more breaking news updates!", "Like and share if you found this informative!", ""]
  if source_url:
    lines.extend([f"Source: {source_url}", ""])
  lines.append("This content was automatically generated using AI technology.")
  lines.append("#breakingnews #news #ai #automated")
  return "\n".join(lines)


def build_tags(topic: str, language: str) -> list[str]:
  topic_tags = [word for word in topic.lower().split() if len(word) > 3]
  language_tag = "english news" if language == "en" else f"{language} news"
  return [*BASE_TAGS, *topic_tags, language_tag][:MAX_TAGS]


async def publish_video(
  *,
  store: JobStore,
  publisher: Publisher,
  job: JobRecord,
  video: VideoAssetRecord,
  article: ArticleRecord | None,
  summary: SummaryRecord | None,
  timeout_seconds: float,
  clock: Clock = utc_now,
) -> PublicationRecord:
  """Upload a rendered video and record the attempt.

  A failed upload is still recorded, as a `failed` publication with an empty
  platform id, and the original error is re-raised to the caller.
  """
  title = build_title(article.title if article is not None else job.topic)
  description = build_description(summary.text if summary is not None else "", article.url if article is not None else None)
  tags = build_tags(job.topic, job.language)

  try:
    try:
      result = await asyncio.wait_for(publisher.publish_video(job, video, title=title, description=description, tags=tags), timeout=timeout_seconds)
    except TimeoutError as exc:
      raise StageTimeoutError("publish", timeout_seconds) from exc
  except Exception:
    failed = PublicationRecord(
      publication_id=generate_record_id(),
      job_id=job.job_id,
      platform=getattr(publisher, "platform", "youtube"),
      platform_video_id="",
      status="failed",
      published_at=None,
      created_at=clock(),
    )
    await store.create_publication(failed)
    raise

  publication = PublicationRecord(
    publication_id=generate_record_id(),
    job_id=job.job_id,
    platform=result.platform,
    platform_video_id=result.platform_video_id,
    status=result.status,  # type: ignore[arg-type]
    published_at=result.published_at,
    created_at=clock(),
  )
  await store.create_publication(publication)
  logger.info("Published job %s to %s as %s", job.job_id, publication.platform, publication.platform_video_id)
  return publication
