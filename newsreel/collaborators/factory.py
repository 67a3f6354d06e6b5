from __future__ import annotations

from dataclasses import dataclass

import httpx

from newsreel.collaborators.gnews import GNewsArticleSource
from newsreel.collaborators.interface import ArticleSource, Publisher, ServiceStatus, SpeechSynthesizer, Summarizer, VideoRenderer
from newsreel.collaborators.publisher import YouTubePublisher
from newsreel.collaborators.speech import HttpSpeechSynthesizer
from newsreel.collaborators.summarizer import HuggingFaceSummarizer
from newsreel.collaborators.video import HttpVideoRenderer
from newsreel.config import Settings


@dataclass
class Collaborators:
  """The five pipeline collaborators plus the client they share."""

  article_source: ArticleSource
  summarizer: Summarizer
  speech: SpeechSynthesizer
  renderer: VideoRenderer
  publisher: Publisher
  client: httpx.AsyncClient | None = None

  async def check_status(self) -> dict[str, ServiceStatus]:
    return {
      "article_source": await self.article_source.check_status(),
      "summarizer": await self.summarizer.check_status(),
      "speech": await self.speech.check_status(),
      "renderer": await self.renderer.check_status(),
      "publisher": await self.publisher.check_status(),
    }

  async def aclose(self) -> None:
    if self.client is not None:
      await self.client.aclose()


def build_collaborators(settings: Settings, *, client: httpx.AsyncClient | None = None) -> Collaborators:
  """Wire the HTTP adapters from settings around one AsyncClient."""
  http_client = client or httpx.AsyncClient(timeout=settings.http_timeout_seconds)
  timeouts = settings.stage_timeouts
  return Collaborators(
    article_source=GNewsArticleSource(http_client, api_key=settings.gnews_api_key, base_url=settings.gnews_base_url, request_timeout=timeouts.fetch),
    summarizer=HuggingFaceSummarizer(http_client, url=settings.summarizer_url, api_key=settings.huggingface_api_key, request_timeout=timeouts.summarize),
    speech=HttpSpeechSynthesizer(http_client, base_url=settings.tts_url, request_timeout=timeouts.synthesize),
    renderer=HttpVideoRenderer(http_client, base_url=settings.video_service_url, logo_url=settings.brand_logo_url, request_timeout=timeouts.render),
    publisher=YouTubePublisher(http_client, base_url=settings.publisher_url, access_token=settings.publisher_access_token, privacy_status=settings.publish_privacy_status, request_timeout=timeouts.publish),
    client=http_client,
  )
