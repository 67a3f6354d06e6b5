import logging

from newsreel.config import Settings
from newsreel.storage.job_store import JobStore
from newsreel.storage.memory_job_store import InMemoryJobStore
from newsreel.storage.postgres_job_store import PostgresJobStore

logger = logging.getLogger(__name__)


def get_job_store(settings: Settings) -> JobStore:
  """Return the active job store."""

  # Postgres is the durable store; the in-memory store is for local runs without a database.
  if settings.pg_dsn:
    return PostgresJobStore()

  if settings.environment == "production":
    raise ValueError("NEWSREEL_PG_DSN must be set when NEWSREEL_ENV=production.")

  logger.warning("NEWSREEL_PG_DSN is not set; using the in-memory job store.")
  return InMemoryJobStore()
