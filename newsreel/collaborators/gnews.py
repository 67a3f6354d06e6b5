"""GNews search client."""

from __future__ import annotations

import logging
import time
from datetime import datetime

import httpx
import msgspec

from newsreel.collaborators.http import HttpCollaborator
from newsreel.collaborators.interface import FetchedArticle, ServiceStatus
from newsreel.core.errors import UpstreamCollaboratorError

logger = logging.getLogger(__name__)

# Descriptions shorter than this are teasers, not narratable bodies.
MIN_DESCRIPTION_CHARS = 50
DEFAULT_CACHE_MAX_ENTRIES = 256


class _GNewsSource(msgspec.Struct):
  name: str = ""
  url: str | None = None


class _GNewsArticle(msgspec.Struct, rename="camel"):
  title: str = ""
  description: str | None = None
  content: str | None = None
  url: str = ""
  image: str | None = None
  published_at: datetime | None = None
  source: _GNewsSource | None = None


class _GNewsResponse(msgspec.Struct, rename="camel"):
  total_articles: int = 0
  articles: list[_GNewsArticle] = msgspec.field(default_factory=list)


class GNewsArticleSource(HttpCollaborator):
  """Fetch candidate articles from the GNews search API with a short result cache."""

  name = "article_source"

  def __init__(self, client: httpx.AsyncClient, *, api_key: str | None, base_url: str = "https://gnews.io/api/v4", cache_ttl_seconds: float = 300.0, cache_max_entries: int = DEFAULT_CACHE_MAX_ENTRIES, request_timeout: float | None = None) -> None:
    super().__init__(client, request_timeout=request_timeout)
    self._api_key = api_key
    self._base_url = base_url.rstrip("/")
    self._cache_ttl_seconds = cache_ttl_seconds
    self._cache_max_entries = max(cache_max_entries, 1)
    self._cache: dict[tuple[str, str, int], tuple[float, list[FetchedArticle]]] = {}
    if not api_key:
      logger.warning("GNEWS_API_KEY is not set; article fetches will fail.")

  async def fetch_articles(self, topic: str, language: str = "en", max_results: int = 10) -> list[FetchedArticle]:
    cache_key = (topic, language, max_results)
    cached = self._cache.get(cache_key)
    if cached is not None and time.monotonic() - cached[0] < self._cache_ttl_seconds:
      return list(cached[1])

    if not self._api_key:
      raise UpstreamCollaboratorError(self.name, "GNews API key not configured")

    params = {"q": topic, "lang": language, "max": str(max_results), "token": self._api_key}
    payload = await self._request("GET", f"{self._base_url}/search", _GNewsResponse, params=params)
    articles = [self._to_article(item) for item in payload.articles if item.description and len(item.description) > MIN_DESCRIPTION_CHARS]
    logger.debug("GNews returned %d/%d usable articles for %r", len(articles), len(payload.articles), topic)

    self._remember(cache_key, articles)
    return list(articles)

  async def check_status(self) -> ServiceStatus:
    if not self._api_key:
      return ServiceStatus(status="down", message="API key not configured")
    return await self._probe(f"{self._base_url}/top-headlines", params={"lang": "en", "max": "1", "token": self._api_key})

  def _remember(self, cache_key: tuple[str, str, int], articles: list[FetchedArticle]) -> None:
    """Cache a result, evicting expired entries and then the oldest ones past the size cap."""
    now = time.monotonic()
    for key in [key for key, (stored_at, _) in self._cache.items() if now - stored_at >= self._cache_ttl_seconds]:
      del self._cache[key]
    self._cache.pop(cache_key, None)
    # Dicts keep insertion order, so the first key is the oldest write.
    while len(self._cache) >= self._cache_max_entries:
      del self._cache[next(iter(self._cache))]
    self._cache[cache_key] = (now, articles)

  def _to_article(self, item: _GNewsArticle) -> FetchedArticle:
    return FetchedArticle(
      title=item.title,
      body=item.description or "",
      url=item.url,
      source=item.source.name if item.source and item.source.name else "gnews",
      media_url=item.image,
      published_at=item.published_at,
    )
