"""Hosted BART summarizer client and narration-length heuristics."""

from __future__ import annotations

import re

import httpx
import msgspec

from newsreel.collaborators.http import HttpCollaborator
from newsreel.collaborators.interface import ServiceStatus, SummaryResult
from newsreel.core.errors import UpstreamCollaboratorError
from newsreel.jobs.models import QualityFlags

WORDS_PER_MINUTE = 150
# Narration leaves room for pauses.
PACING_FACTOR = 0.8

_PREFIX_RE = re.compile(r"^(Summary:|Article:|News:)\s*", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")
_TRAILING_PUNCT_RE = re.compile(r"[.!?]\s*$")
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")


class _Generation(msgspec.Struct):
  summary_text: str | None = None
  generated_text: str | None = None


def target_word_count(target_seconds: int) -> int:
  """Return the narration word budget for a target duration."""
  return round(target_seconds / 60 * WORDS_PER_MINUTE * PACING_FACTOR)


def clean_summary_text(text: str) -> str:
  cleaned = _WHITESPACE_RE.sub(" ", _PREFIX_RE.sub("", text)).strip()
  return _TRAILING_PUNCT_RE.sub("", cleaned) + "."


def has_excessive_repetition(text: str) -> bool:
  sentences = [sentence.strip() for sentence in _SENTENCE_SPLIT_RE.split(text) if sentence.strip()]
  unique = {sentence.lower() for sentence in sentences}
  return len(unique) < len(sentences) * 0.8


def assess_quality(text: str, word_count: int, *, title: str, target_words: int) -> QualityFlags:
  title_words = title.split()
  key_word = title_words[0].lower() if title_words else ""
  return QualityFlags(
    length_appropriate=target_words * 0.7 <= word_count <= target_words * 1.3,
    has_key_info=bool(key_word) and key_word in text.lower(),
    no_repetition=not has_excessive_repetition(text),
  )


class HuggingFaceSummarizer(HttpCollaborator):
  """Call a Hugging Face inference endpoint running an abstractive summarizer."""

  name = "summarizer"

  def __init__(self, client: httpx.AsyncClient, *, url: str, api_key: str | None, request_timeout: float | None = None) -> None:
    super().__init__(client, request_timeout=request_timeout)
    self._url = url.rstrip("/")
    self._api_key = api_key

  async def generate_summary(self, title: str, body: str, target_seconds: int) -> SummaryResult:
    target_words = target_word_count(target_seconds)
    payload = {
      "inputs": f"Summarize this news article in approximately {target_words} words:\n\nTitle: {title}\n\nContent: {body}",
      "parameters": {"max_length": min(target_words + 20, 512), "min_length": max(target_words - 20, 50), "do_sample": False, "early_stopping": True},
    }
    generations = await self._request("POST", self._url, list[_Generation] | _Generation, json=payload, headers=self._headers())
    if isinstance(generations, _Generation):
      generations = [generations]

    raw_text = next((item.summary_text or item.generated_text for item in generations if item.summary_text or item.generated_text), None)
    if not raw_text:
      raise UpstreamCollaboratorError(self.name, "Invalid response format from summarizer")

    text = clean_summary_text(raw_text)
    word_count = len(text.split())
    return SummaryResult(text=text, word_count=word_count, quality_flags=assess_quality(text, word_count, title=title, target_words=target_words))

  async def check_status(self) -> ServiceStatus:
    return await self._probe(f"{self._url}/health", headers=self._headers())

  def _headers(self) -> dict[str, str]:
    if not self._api_key:
      return {}
    return {"authorization": f"Bearer {self._api_key}"}
