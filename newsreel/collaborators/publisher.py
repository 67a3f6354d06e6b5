"""Video platform upload client (YouTube Data API shaped)."""

from __future__ import annotations

from datetime import datetime

import httpx
import msgspec

from newsreel.collaborators.http import HttpCollaborator
from newsreel.collaborators.interface import PublishResult, ServiceStatus
from newsreel.core.errors import UpstreamCollaboratorError
from newsreel.jobs.models import JobRecord, VideoAssetRecord

NEWS_AND_POLITICS_CATEGORY = "25"

_UPLOAD_STATUS_MAP = {"uploaded": "uploaded", "processed": "published", "published": "published", "failed": "failed", "rejected": "failed", "deleted": "failed"}


class _UploadStatus(msgspec.Struct, rename="camel"):
  upload_status: str = "uploaded"
  publish_at: datetime | None = None


class _UploadResponse(msgspec.Struct):
  id: str
  status: _UploadStatus = msgspec.field(default_factory=_UploadStatus)


class YouTubePublisher(HttpCollaborator):
  """Upload rendered videos with a pre-issued bearer token."""

  name = "publisher"
  platform = "youtube"

  def __init__(self, client: httpx.AsyncClient, *, base_url: str, access_token: str | None, privacy_status: str = "public", request_timeout: float | None = None) -> None:
    super().__init__(client, request_timeout=request_timeout)
    self._base_url = base_url.rstrip("/")
    self._access_token = access_token
    self._privacy_status = privacy_status

  async def publish_video(self, job: JobRecord, video: VideoAssetRecord, *, title: str, description: str, tags: list[str]) -> PublishResult:
    if not self._access_token:
      raise UpstreamCollaboratorError(self.name, "Publisher access token not configured")

    body = {
      "snippet": {"title": title, "description": description, "tags": tags, "categoryId": NEWS_AND_POLITICS_CATEGORY, "defaultLanguage": job.language, "defaultAudioLanguage": job.language},
      "status": {"privacyStatus": self._privacy_status, "embeddable": True, "license": "youtube"},
      "source": {"videoUrl": video.video_url, "thumbnailUrl": video.thumbnail_url},
    }
    result = await self._request("POST", f"{self._base_url}/videos", _UploadResponse, params={"part": "snippet,status"}, json=body, headers=self._headers())
    status = _UPLOAD_STATUS_MAP.get(result.status.upload_status.lower(), "processing")
    return PublishResult(platform_video_id=result.id, status=status, platform=self.platform, published_at=result.status.publish_at)

  async def check_status(self) -> ServiceStatus:
    if not self._access_token:
      return ServiceStatus(status="down", message="Credentials not configured")
    try:
      response = await self._client.get(f"{self._base_url}/channels", params={"part": "id", "mine": "true"}, headers=self._headers(), timeout=5.0)
    except httpx.RequestError as exc:
      return ServiceStatus(status="down", message=str(exc) or type(exc).__name__)
    if response.status_code == 401:
      return ServiceStatus(status="degraded", message="Authentication required")
    if response.status_code == 403:
      return ServiceStatus(status="degraded", message="Quota exceeded")
    if response.is_success:
      return ServiceStatus(status="operational")
    return ServiceStatus(status="degraded", message=f"HTTP {response.status_code}")

  def _headers(self) -> dict[str, str]:
    return {"authorization": f"Bearer {self._access_token}"}
