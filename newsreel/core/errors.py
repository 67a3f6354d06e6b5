"""Domain exceptions raised by the job engine and its collaborators."""

from __future__ import annotations


class NewsreelError(Exception):
  """Base class for expected, user-visible failures."""


class NotFoundError(NewsreelError):
  """Raised when a referenced job or artifact does not exist."""

  def __init__(self, kind: str, identifier: str) -> None:
    super().__init__(f"{kind} not found: {identifier}")
    self.kind = kind
    self.identifier = identifier


class JobValidationError(NewsreelError):
  """Raised when job-creation input or a job precondition is invalid."""


class UpstreamCollaboratorError(NewsreelError):
  """Raised when a network collaborator call fails."""

  def __init__(self, collaborator: str, message: str) -> None:
    super().__init__(f"{collaborator} failed: {message}")
    self.collaborator = collaborator
    self.message = message


class NoArticlesFoundError(UpstreamCollaboratorError):
  """Raised when the article source returns no usable candidates."""

  def __init__(self, topic: str | None = None) -> None:
    super().__init__("article_source", "No articles found")
    self.topic = topic

  def __str__(self) -> str:
    return "No articles found"


class StageTimeoutError(NewsreelError, TimeoutError):
  """Raised when a pipeline stage exceeds its deadline."""

  def __init__(self, stage: str, timeout_seconds: float) -> None:
    super().__init__(f"{stage} stage timed out after {timeout_seconds:g}s")
    self.stage = stage
    self.timeout_seconds = timeout_seconds


class JobCanceledError(NewsreelError):
  """Raised between stages when cancellation was requested for a job."""

  def __init__(self) -> None:
    super().__init__("Job canceled")
