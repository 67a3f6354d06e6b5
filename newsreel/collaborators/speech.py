"""Text-to-speech service client."""

from __future__ import annotations

import re

import httpx
import msgspec

from newsreel.collaborators.http import HttpCollaborator
from newsreel.collaborators.interface import ServiceStatus, SpeechResult

DEFAULT_SAMPLE_RATE = 22050

_SPOKEN_FORMS = (
  (re.compile(r"\bUS\b"), "United States"),
  (re.compile(r"\bUK\b"), "United Kingdom"),
  (re.compile(r"\bAI\b"), "A I"),
  (re.compile(r"\bAPI\b"), "A P I"),
  (re.compile(r"\bCEO\b"), "C E O"),
  (re.compile(r"\bIPO\b"), "I P O"),
  (re.compile(r"\.\s+"), ". ... "),
  (re.compile(r"\$(\d+)\s*[bB]illion"), r"\1 billion dollars"),
  (re.compile(r"\$(\d+)\s*[mM]illion"), r"\1 million dollars"),
  (re.compile(r"(\d+)%"), r"\1 percent"),
)


class _TtsResponse(msgspec.Struct):
  audio_url: str
  duration: float
  sample_rate: int = DEFAULT_SAMPLE_RATE
  format: str | None = None
  size: int | None = None


def normalize_for_speech(text: str) -> str:
  """Expand abbreviations and symbols the voice would otherwise mispronounce."""
  for pattern, replacement in _SPOKEN_FORMS:
    text = pattern.sub(replacement, text)
  return text


class HttpSpeechSynthesizer(HttpCollaborator):
  name = "speech_synthesizer"

  def __init__(self, client: httpx.AsyncClient, *, base_url: str, voice_id: str = "default", request_timeout: float | None = None) -> None:
    super().__init__(client, request_timeout=request_timeout)
    self._base_url = base_url.rstrip("/")
    self._voice_id = voice_id

  async def generate_tts(self, text: str, language: str = "en") -> SpeechResult:
    payload = {"text": normalize_for_speech(text), "voice_id": self._voice_id, "language": language, "speed": 1.0, "sample_rate": DEFAULT_SAMPLE_RATE}
    result = await self._request("POST", f"{self._base_url}/tts", _TtsResponse, json=payload)
    return SpeechResult(url=result.audio_url, duration=result.duration, sample_rate=result.sample_rate, format=result.format or "wav", size=result.size)

  async def check_status(self) -> ServiceStatus:
    return await self._probe(f"{self._base_url}/health")
