"""Test fixtures for the Newsreel job engine."""

from __future__ import annotations

import pytest

from newsreel.collaborators.factory import Collaborators
from newsreel.config import StageTimeouts
from newsreel.jobs.executor import JobExecutor
from tests.fakes import FakeClock, RecordingJobStore, make_collaborators, make_timeouts


@pytest.fixture
def anyio_backend() -> str:
  return "asyncio"


@pytest.fixture
def clock() -> FakeClock:
  return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> RecordingJobStore:
  return RecordingJobStore(clock=clock)


@pytest.fixture
def executor_factory(store: RecordingJobStore, clock: FakeClock):
  def _build(collaborators: Collaborators | None = None, *, timeouts: StageTimeouts | None = None, max_concurrent_jobs: int = 2) -> JobExecutor:
    return JobExecutor(store=store, collaborators=collaborators or make_collaborators(), stage_timeouts=timeouts or make_timeouts(), max_concurrent_jobs=max_concurrent_jobs, clock=clock)

  return _build
