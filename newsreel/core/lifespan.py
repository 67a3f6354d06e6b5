import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI

from newsreel.collaborators.factory import build_collaborators
from newsreel.config import get_settings
from newsreel.core.database import dispose_engine
from newsreel.core.logging import initialize_logging
from newsreel.jobs.executor import JobExecutor
from newsreel.jobs.scheduler import build_scheduler
from newsreel.storage.factory import get_job_store


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Build the store, collaborators, executor and scheduler; tear them down on exit."""
  settings = get_settings()
  logger = logging.getLogger("newsreel.core.lifespan")

  initialize_logging(settings)
  logger.info("Starting Newsreel environment=%s database=%s", settings.environment, _redact_dsn(settings.pg_dsn))

  store = get_job_store(settings)
  collaborators = build_collaborators(settings)
  executor = JobExecutor(store=store, collaborators=collaborators, stage_timeouts=settings.stage_timeouts, max_concurrent_jobs=settings.max_concurrent_jobs)
  scheduler = build_scheduler(settings, store=store, article_source=collaborators.article_source, executor=executor)

  app.state.store = store
  app.state.collaborators = collaborators
  app.state.executor = executor
  app.state.scheduler = scheduler

  if settings.automation_enabled:
    scheduler.start()
  else:
    logger.info("Automation disabled; timers not started.")

  try:
    yield
  finally:
    await scheduler.stop()
    await executor.shutdown()
    await collaborators.aclose()
    await dispose_engine()
    logger.info("Shutdown complete.")


def _redact_dsn(raw: str | None) -> str:
  """Redact credentials from a DSN while keeping host/db visible."""
  if not raw:
    return "<unset>"

  parsed = urlparse(raw)
  if not parsed.scheme:
    return "<invalid>"

  user = parsed.username or ""
  host = parsed.hostname or ""
  port = f":{parsed.port}" if parsed.port else ""
  netloc = f"{user}@{host}{port}" if user else f"{host}{port}"
  database = parsed.path.lstrip("/")
  path = f"/{database}" if database else ""
  return f"{parsed.scheme}://{netloc}{path}"
