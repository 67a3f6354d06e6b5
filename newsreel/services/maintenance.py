"""Maintenance sweeps run on the scheduler's timers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from newsreel.storage.job_store import JobStore
from newsreel.utils.clock import Clock, utc_now

logger = logging.getLogger(__name__)

STALE_JOB_ERROR = "Job timed out"


@dataclass(frozen=True)
class StuckJobReaper:
  """Fail running jobs whose last update is older than the staleness threshold.

  How/Why:
    - A job is stale only when `updated_at` is strictly older than the threshold; every stage write refreshes it.
    - Each job is failed with a compare-and-swap on `updated_at`, so a job that reports progress between the query and the write is left alone.
    - Runs on the health-check timer and is skipped while automation is paused.
  """

  store: JobStore
  stale_minutes: int = 30

  async def sweep(self) -> int:
    stuck = await self.store.get_stuck_jobs(self.stale_minutes)
    reaped = 0
    for job in stuck:
      # Pass the observed timestamp so a concurrent progress write wins.
      if await self.store.fail_stale_job(job.job_id, expected_updated_at=job.updated_at, error=STALE_JOB_ERROR):
        logger.warning("Reaped stuck job %s (last update %s)", job.job_id, job.updated_at.isoformat())
        reaped += 1
      else:
        logger.info("Stuck job %s changed before it could be reaped", job.job_id)
    return reaped


@dataclass(frozen=True)
class RetentionSweeper:
  """Delete jobs, with their artifacts, once they pass the retention window.

  How/Why:
    - The cutoff is measured on `created_at`, so long-running or recently published jobs age out on the same schedule.
    - Artifact rows go with their job through the store's cascading delete.
    - Runs daily regardless of the automation pause flag.
  """

  store: JobStore
  retention_days: int = 30
  clock: Clock = utc_now

  async def sweep(self) -> int:
    cutoff = self.clock() - timedelta(days=self.retention_days)
    deleted = await self.store.delete_jobs_older_than(cutoff)
    logger.info("Retention sweep removed %d job(s) created on or before %s", deleted, cutoff.isoformat())
    return deleted
