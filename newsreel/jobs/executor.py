"""Drive a job through the fetch, summarize, synthesize, render and publish stages."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from newsreel.collaborators.factory import Collaborators
from newsreel.config import StageTimeouts
from newsreel.core.errors import JobCanceledError, JobValidationError, NewsreelError, NotFoundError, StageTimeoutError, UpstreamCollaboratorError
from newsreel.jobs.models import PublicationRecord
from newsreel.jobs.publishing import publish_video
from newsreel.jobs.stages import PIPELINE_STAGES, Stage, StageContext
from newsreel.storage.job_store import JobStore
from newsreel.utils.clock import Clock, utc_now

STARTED_PROGRESS = 10


class JobExecutor:
  """Runs queued jobs inside a bounded pool of asyncio tasks.

  All outcomes are written to the job store; `run` never raises for pipeline
  failures. Cancellation is cooperative and checked between stages.
  """

  def __init__(
    self,
    *,
    store: JobStore,
    collaborators: Collaborators,
    stage_timeouts: StageTimeouts,
    max_concurrent_jobs: int = 4,
    clock: Clock = utc_now,
    stages: Sequence[Stage] = PIPELINE_STAGES,
  ) -> None:
    self._store = store
    self._collaborators = collaborators
    self._stage_timeouts = stage_timeouts
    self._clock = clock
    self._stages = tuple(stages)
    self._semaphore = asyncio.Semaphore(max_concurrent_jobs)
    self._tasks: dict[str, asyncio.Task[None]] = {}
    self._cancel_requested: set[str] = set()
    self._closed = False
    self._logger = logging.getLogger(__name__)

  @property
  def in_flight(self) -> int:
    return sum(1 for task in self._tasks.values() if not task.done())

  def submit(self, job_id: str) -> asyncio.Task[None]:
    """Schedule `run(job_id)` in the worker pool and return its task."""
    if self._closed:
      raise RuntimeError("Job executor is shut down.")
    existing = self._tasks.get(job_id)
    if existing is not None and not existing.done():
      return existing

    task = asyncio.create_task(self._run_bounded(job_id), name=f"newsreel-job-{job_id}")
    self._tasks[job_id] = task

    def _forget(done: asyncio.Task[None]) -> None:
      if self._tasks.get(job_id) is done:
        del self._tasks[job_id]

    task.add_done_callback(_forget)
    return task

  async def drain(self) -> None:
    """Wait for every submitted run to finish."""
    while self._tasks:
      await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

  async def shutdown(self, *, grace_seconds: float = 10.0) -> None:
    """Stop accepting work, wait briefly for in-flight runs, then cancel the rest."""
    self._closed = True
    pending = [task for task in self._tasks.values() if not task.done()]
    if not pending:
      return
    _, still_running = await asyncio.wait(pending, timeout=grace_seconds)
    for task in still_running:
      task.cancel()
    if still_running:
      self._logger.warning("Canceled %d in-flight job(s) on shutdown", len(still_running))
      await asyncio.gather(*still_running, return_exceptions=True)

  async def request_cancel(self, job_id: str) -> bool:
    """Ask a job to stop at its next stage boundary.

    How/Why:
      - A job with a live task in this pool is flagged; `_run_pipeline` checks the flag before each stage.
      - A queued or running job with no live task here (never submitted, or orphaned by a restart) has no run to observe a flag, so it is failed immediately.
      - Returns False when the job is already terminal; raises NotFoundError when it does not exist.
    """
    job = await self._store.get_job(job_id)
    if job is None:
      raise NotFoundError("Job", job_id)
    if job.is_terminal:
      return False

    task = self._tasks.get(job_id)
    if task is None or task.done():
      updated = await self._store.update_job_status(job_id, "failed", error=str(JobCanceledError()))
      if updated is not None:
        self._logger.info("Canceled job %s with no active run", job_id)
      return updated is not None

    self._cancel_requested.add(job_id)
    self._logger.info("Cancellation requested for job %s", job_id)
    return True

  async def publish_job(self, job_id: str) -> PublicationRecord:
    """Publish the rendered video of a completed job on demand."""
    job = await self._store.get_job(job_id)
    if job is None:
      raise NotFoundError("Job", job_id)
    if job.status != "completed":
      raise JobValidationError("Job must be completed before publishing")
    video = await self._store.get_video_asset(job_id)
    if video is None:
      raise JobValidationError("No video found for job")

    return await publish_video(
      store=self._store,
      publisher=self._collaborators.publisher,
      job=job,
      video=video,
      article=await self._store.get_article(job_id),
      summary=await self._store.get_summary(job_id),
      timeout_seconds=self._stage_timeouts.publish,
      clock=self._clock,
    )

  async def run(self, job_id: str) -> None:
    """Execute the pipeline for one queued job, recording every outcome in the store."""
    try:
      await self._run_pipeline(job_id)
    except asyncio.CancelledError:
      await self._record_failure(job_id, str(JobCanceledError()))
      raise
    except Exception as exc:  # noqa: BLE001
      self._logger.error("Unexpected failure while running job %s", job_id, exc_info=True)
      await self._record_failure(job_id, str(exc) or type(exc).__name__)
    finally:
      self._cancel_requested.discard(job_id)

  async def _run_bounded(self, job_id: str) -> None:
    async with self._semaphore:
      await self.run(job_id)

  async def _run_pipeline(self, job_id: str) -> None:
    """Claim a queued job and walk it through every stage.

    How/Why:
      - The queued -> running write is guarded by the store, so a job claimed or finalized elsewhere is left alone.
      - Each stage result is persisted before progress moves, so a failure keeps every earlier artifact.
      - A refused progress write means another actor (cancel, reaper) already finalized the job; the run stops without overwriting it.
    """
    job = await self._store.get_job(job_id)
    if job is None:
      self._logger.warning("Job %s disappeared before execution", job_id)
      return
    if job.status != "queued":
      self._logger.info("Skipping job %s in status %s", job_id, job.status)
      return
    if job_id in self._cancel_requested:
      await self._record_failure(job_id, str(JobCanceledError()))
      return

    started = await self._store.update_job_status(job_id, "running", progress=STARTED_PROGRESS)
    if started is None:
      self._logger.info("Job %s was claimed or finalized elsewhere", job_id)
      return
    self._logger.info("Running job %s for topic %r", job_id, started.topic)

    ctx = StageContext(job=started, store=self._store, collaborators=self._collaborators, clock=self._clock)
    for stage in self._stages:
      try:
        if job_id in self._cancel_requested:
          raise JobCanceledError()
        result = await self._execute_stage(stage, ctx)
        await stage.persist(ctx, result)
      except NewsreelError as exc:
        self._logger.warning("Job %s failed at %s: %s", job_id, stage.name, exc)
        await self._record_failure(job_id, str(exc))
        return

      status = "completed" if stage.progress >= 100 else "running"
      updated = await self._store.update_job_status(job_id, status, progress=stage.progress)
      if updated is None:
        self._logger.warning("Job %s was finalized elsewhere during %s; stopping", job_id, stage.name)
        return
      ctx.job = updated

    self._logger.info("Job %s completed", job_id)
    if ctx.job.auto_publish and ctx.video is not None:
      await self._auto_publish(ctx)

  async def _execute_stage(self, stage: Stage, ctx: StageContext) -> object:
    """Run a stage's collaborator call under its deadline, normalizing failures."""
    timeout_seconds = stage.timeout(self._stage_timeouts)
    try:
      return await asyncio.wait_for(stage.execute(ctx), timeout=timeout_seconds)
    except NewsreelError:
      raise
    except TimeoutError as exc:
      raise StageTimeoutError(stage.name, timeout_seconds) from exc
    except Exception as exc:
      raise UpstreamCollaboratorError(stage.collaborator, str(exc) or type(exc).__name__) from exc

  async def _auto_publish(self, ctx: StageContext) -> None:
    assert ctx.video is not None
    try:
      await publish_video(
        store=self._store,
        publisher=self._collaborators.publisher,
        job=ctx.job,
        video=ctx.video,
        article=ctx.article,
        summary=ctx.summary,
        timeout_seconds=self._stage_timeouts.publish,
        clock=self._clock,
      )
    except Exception:  # noqa: BLE001
      # The job stays completed; the failed attempt is recorded as a publication.
      self._logger.error("Auto-publish failed for job %s", ctx.job.job_id, exc_info=True)

  async def _record_failure(self, job_id: str, message: str) -> None:
    try:
      await self._store.update_job_status(job_id, "failed", error=message)
    except Exception:  # noqa: BLE001
      self._logger.error("Could not record failure for job %s", job_id, exc_info=True)
