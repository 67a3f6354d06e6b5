"""Job operations backing the HTTP routes."""

from __future__ import annotations

import logging

from newsreel.core.errors import NotFoundError
from newsreel.jobs.executor import JobExecutor
from newsreel.jobs.models import JobArtifacts, JobFilter, JobPage, JobRecord, JobSpec, PublicationRecord
from newsreel.storage.job_store import JobStore
from newsreel.utils.clock import Clock, utc_now
from newsreel.utils.ids import generate_job_id

logger = logging.getLogger(__name__)


async def create_job(store: JobStore, executor: JobExecutor, spec: JobSpec, *, clock: Clock = utc_now) -> JobRecord:
  """Persist a queued job and hand it to the worker pool."""
  record = await store.create_job(spec.to_record(job_id=generate_job_id(), now=clock()))
  executor.submit(record.job_id)
  logger.info("Created job %s for topic %r", record.job_id, record.topic)
  return record


async def get_job(store: JobStore, job_id: str) -> tuple[JobRecord, JobArtifacts]:
  record = await store.get_job(job_id)
  if record is None:
    raise NotFoundError("Job", job_id)
  return record, await store.get_artifacts(job_id)


async def list_jobs(store: JobStore, job_filter: JobFilter, *, page: int, limit: int) -> JobPage:
  return await store.list_jobs(job_filter, page=page, limit=limit)


async def delete_job(store: JobStore, job_id: str) -> None:
  if not await store.delete_job(job_id):
    raise NotFoundError("Job", job_id)
  logger.info("Deleted job %s", job_id)


async def publish_job(executor: JobExecutor, job_id: str) -> PublicationRecord:
  return await executor.publish_job(job_id)


async def cancel_job(executor: JobExecutor, job_id: str) -> bool:
  return await executor.request_cancel(job_id)
