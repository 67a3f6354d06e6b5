"""Shared FastAPI dependencies resolving the runtime objects built at startup."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from newsreel.collaborators.factory import Collaborators
from newsreel.jobs.executor import JobExecutor
from newsreel.jobs.scheduler import AutomationScheduler
from newsreel.storage.job_store import JobStore


def _state_attr(request: Request, name: str) -> object:
  value = getattr(request.app.state, name, None)
  if value is None:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=f"{name} is not initialized")
  return value


def get_store(request: Request) -> JobStore:
  return _state_attr(request, "store")  # type: ignore[return-value]


def get_executor(request: Request) -> JobExecutor:
  return _state_attr(request, "executor")  # type: ignore[return-value]


def get_scheduler(request: Request) -> AutomationScheduler:
  return _state_attr(request, "scheduler")  # type: ignore[return-value]


def get_collaborators(request: Request) -> Collaborators:
  return _state_attr(request, "collaborators")  # type: ignore[return-value]
