"""Ordered stage descriptors for the topic-to-video pipeline."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from newsreel.collaborators.factory import Collaborators
from newsreel.collaborators.interface import FetchedArticle, RenderRequest, RenderResult, SpeechResult, SummaryResult
from newsreel.config import StageTimeouts
from newsreel.core.errors import NoArticlesFoundError
from newsreel.jobs.models import ArticleRecord, AudioAssetRecord, JobRecord, SummaryRecord, VideoAssetRecord
from newsreel.storage.job_store import JobStore
from newsreel.utils.clock import Clock
from newsreel.utils.hashing import content_hash
from newsreel.utils.ids import generate_record_id

FETCH_MAX_RESULTS = 10


@dataclass
class StageContext:
  """Per-run state threaded through the stages; each stage fills in its artifact."""

  job: JobRecord
  store: JobStore
  collaborators: Collaborators
  clock: Clock
  article: ArticleRecord | None = None
  summary: SummaryRecord | None = None
  audio: AudioAssetRecord | None = None
  video: VideoAssetRecord | None = None


@dataclass(frozen=True)
class Stage:
  """One pipeline step: a collaborator call plus the write that records its result."""

  name: str
  collaborator: str
  progress: int
  execute: Callable[[StageContext], Awaitable[Any]]
  persist: Callable[[StageContext, Any], Awaitable[None]]

  def timeout(self, timeouts: StageTimeouts) -> float:
    return float(getattr(timeouts, self.name))


def select_article(candidates: list[FetchedArticle], source_hash: str | None, seen_hashes: set[str] | frozenset[str] = frozenset()) -> FetchedArticle | None:
  """Pick the article a job should narrate from a fresh fetch.

  How/Why:
    - A job created from a specific article (`source_hash`) takes that article when the fetch still returns it.
    - Otherwise the first candidate no other job has used wins, so a re-fetch never re-narrates a published story.
    - Jobs created from an article get None when every candidate is already used; manual jobs fall back to the first candidate.
  """
  hashed = [(content_hash(candidate.body), candidate) for candidate in candidates]
  if source_hash:
    for candidate_hash, candidate in hashed:
      if candidate_hash == source_hash:
        return candidate
  for candidate_hash, candidate in hashed:
    if candidate_hash not in seen_hashes:
      return candidate
  if source_hash:
    return None
  return candidates[0] if candidates else None


async def _fetch(ctx: StageContext) -> FetchedArticle:
  candidates = await ctx.collaborators.article_source.fetch_articles(ctx.job.topic, ctx.job.language, FETCH_MAX_RESULTS)
  if not candidates:
    raise NoArticlesFoundError(ctx.job.topic)
  seen = await ctx.store.get_existing_article_hashes(content_hash(candidate.body) for candidate in candidates)
  selected = select_article(candidates, ctx.job.source_hash, seen)
  if selected is None:
    raise NoArticlesFoundError(ctx.job.topic)
  return selected


async def _persist_article(ctx: StageContext, fetched: FetchedArticle) -> None:
  ctx.article = await ctx.store.create_article(
    ArticleRecord(
      article_id=generate_record_id(),
      job_id=ctx.job.job_id,
      source=fetched.source,
      url=fetched.url,
      title=fetched.title,
      content=fetched.body,
      content_hash=content_hash(fetched.body),
      media_url=fetched.media_url,
      published_at=fetched.published_at,
      created_at=ctx.clock(),
    )
  )


async def _summarize(ctx: StageContext) -> SummaryResult:
  assert ctx.article is not None
  return await ctx.collaborators.summarizer.generate_summary(ctx.article.title, ctx.article.content, ctx.job.target_length)


async def _persist_summary(ctx: StageContext, result: SummaryResult) -> None:
  ctx.summary = await ctx.store.create_summary(
    SummaryRecord(
      summary_id=generate_record_id(),
      job_id=ctx.job.job_id,
      text=result.text,
      word_count=result.word_count,
      language=ctx.job.language,
      quality_flags=result.quality_flags,
      created_at=ctx.clock(),
    )
  )


async def _synthesize(ctx: StageContext) -> SpeechResult:
  assert ctx.summary is not None
  return await ctx.collaborators.speech.generate_tts(ctx.summary.text, ctx.job.language)


async def _persist_audio(ctx: StageContext, result: SpeechResult) -> None:
  ctx.audio = await ctx.store.create_audio_asset(
    AudioAssetRecord(
      audio_id=generate_record_id(),
      job_id=ctx.job.job_id,
      url=result.url,
      duration=round(result.duration),
      sample_rate=result.sample_rate,
      format=result.format,
      size=result.size,
      created_at=ctx.clock(),
    )
  )


async def _render(ctx: StageContext) -> RenderResult:
  assert ctx.article is not None and ctx.summary is not None and ctx.audio is not None
  request = RenderRequest(
    summary_text=ctx.summary.text,
    audio_url=ctx.audio.url,
    duration=ctx.audio.duration,
    title=ctx.article.title,
    images=[ctx.article.media_url] if ctx.article.media_url else [],
  )
  return await ctx.collaborators.renderer.render(request)


async def _persist_video(ctx: StageContext, result: RenderResult) -> None:
  ctx.video = await ctx.store.create_video_asset(
    VideoAssetRecord(
      video_id=generate_record_id(),
      job_id=ctx.job.job_id,
      video_url=result.video_url,
      subtitle_url=result.subtitle_url,
      thumbnail_url=result.thumbnail_url,
      width=result.width,
      height=result.height,
      duration=round(result.duration),
      size=result.size,
      created_at=ctx.clock(),
    )
  )


PIPELINE_STAGES: tuple[Stage, ...] = (
  Stage(name="fetch", collaborator="article_source", progress=25, execute=_fetch, persist=_persist_article),
  Stage(name="summarize", collaborator="summarizer", progress=50, execute=_summarize, persist=_persist_summary),
  Stage(name="synthesize", collaborator="speech_synthesizer", progress=75, execute=_synthesize, persist=_persist_audio),
  Stage(name="render", collaborator="video_renderer", progress=100, execute=_render, persist=_persist_video),
)
