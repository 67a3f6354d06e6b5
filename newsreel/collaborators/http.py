"""Shared httpx plumbing for collaborator adapters."""

from __future__ import annotations

import logging
from typing import Any, TypeVar

import httpx
import msgspec

from newsreel.collaborators.interface import ServiceStatus
from newsreel.core.errors import UpstreamCollaboratorError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class HttpCollaborator:
  """Base class wrapping a shared AsyncClient and mapping failures to domain errors."""

  name = "collaborator"

  def __init__(self, client: httpx.AsyncClient, *, request_timeout: float | None = None) -> None:
    self._client = client
    self._request_timeout = request_timeout

  async def _request(self, method: str, url: str, response_type: type[T], **kwargs: Any) -> T:
    """Send a request and decode the JSON body into `response_type`."""
    if self._request_timeout is not None:
      kwargs.setdefault("timeout", self._request_timeout)
    try:
      response = await self._client.request(method, url, **kwargs)
      response.raise_for_status()
    except httpx.HTTPStatusError as exc:
      logger.error("%s returned %s for %s: %s", self.name, exc.response.status_code, url, exc.response.text[:500])
      raise UpstreamCollaboratorError(self.name, f"HTTP {exc.response.status_code}") from exc
    except httpx.RequestError as exc:
      logger.error("%s request to %s failed: %s", self.name, url, exc)
      raise UpstreamCollaboratorError(self.name, str(exc) or type(exc).__name__) from exc

    try:
      return msgspec.json.decode(response.content, type=response_type)
    except (msgspec.DecodeError, msgspec.ValidationError) as exc:
      raise UpstreamCollaboratorError(self.name, f"Invalid response payload: {exc}") from exc

  async def _probe(self, url: str, **kwargs: Any) -> ServiceStatus:
    """Map a GET probe onto operational/degraded/down."""
    try:
      response = await self._client.get(url, timeout=5.0, **kwargs)
    except httpx.RequestError as exc:
      return ServiceStatus(status="down", message=str(exc) or type(exc).__name__)
    if response.is_success:
      return ServiceStatus(status="operational")
    return ServiceStatus(status="degraded", message=f"HTTP {response.status_code}")
