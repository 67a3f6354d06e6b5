"""Video rendering service client."""

from __future__ import annotations

import httpx
import msgspec

from newsreel.collaborators.http import HttpCollaborator
from newsreel.collaborators.interface import RenderRequest, RenderResult, ServiceStatus

OUTPUT_FORMAT = {"width": 1920, "height": 1080, "fps": 30, "codec": "h264", "bitrate": "5M"}


class _RenderResponse(msgspec.Struct):
  video_url: str
  duration: float
  subtitle_url: str | None = None
  thumbnail_url: str | None = None
  width: int | None = None
  height: int | None = None
  size: int | None = None


class HttpVideoRenderer(HttpCollaborator):
  name = "video_renderer"

  def __init__(self, client: httpx.AsyncClient, *, base_url: str, logo_url: str | None = None, theme: str = "news", request_timeout: float | None = None) -> None:
    super().__init__(client, request_timeout=request_timeout)
    self._base_url = base_url.rstrip("/")
    self._logo_url = logo_url
    self._theme = theme

  async def render(self, request: RenderRequest) -> RenderResult:
    payload = {
      "summary": request.summary_text,
      "audio_url": request.audio_url,
      "duration": request.duration,
      "images": list(request.images),
      "title": request.title,
      "theme": self._theme,
      "output_format": OUTPUT_FORMAT,
      "branding": {"logo_url": self._logo_url, "color_primary": "#3b82f6", "color_secondary": "#1e40af", "font_family": "Inter"},
    }
    result = await self._request("POST", f"{self._base_url}/render", _RenderResponse, json=payload)
    return RenderResult(
      video_url=result.video_url,
      thumbnail_url=result.thumbnail_url,
      subtitle_url=result.subtitle_url,
      width=result.width or OUTPUT_FORMAT["width"],
      height=result.height or OUTPUT_FORMAT["height"],
      duration=result.duration,
      size=result.size,
    )

  async def check_status(self) -> ServiceStatus:
    return await self._probe(f"{self._base_url}/health")
