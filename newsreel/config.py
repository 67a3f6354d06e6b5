"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from newsreel.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

DEFAULT_TOPICS = ("technology", "artificial intelligence", "climate change", "economy", "health", "science", "global politics")
SUPPORTED_LANGUAGES = ("en", "es", "fr", "de", "it")


@dataclass(frozen=True)
class StageTimeouts:
  """Per-stage deadlines, in seconds, applied to collaborator calls."""

  fetch: float
  summarize: float
  synthesize: float
  render: float
  publish: float


@dataclass(frozen=True)
class Settings:
  """Typed settings for the Newsreel service."""

  environment: str
  debug: bool
  allowed_origins: tuple[str, ...]
  log_max_bytes: int
  log_backup_count: int
  pg_dsn: str | None
  pg_connect_timeout: int
  gnews_api_key: str | None
  gnews_base_url: str
  summarizer_url: str
  huggingface_api_key: str | None
  tts_url: str
  video_service_url: str
  brand_logo_url: str | None
  publisher_url: str
  publisher_access_token: str | None
  publish_privacy_status: str
  http_timeout_seconds: float
  stage_timeouts: StageTimeouts
  max_concurrent_jobs: int
  automation_enabled: bool
  automation_topics: tuple[str, ...]
  sync_hours_utc: tuple[int, ...]
  health_check_interval_minutes: int
  retention_hour_utc: int
  topic_quota: int
  quota_lookback_days: int
  sync_candidate_limit: int
  sync_jobs_per_topic: int
  sync_creation_delay_seconds: float
  target_length_choices: tuple[int, ...]
  stale_job_minutes: int
  retention_days: int


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _parse_bool(raw: str | None, *, default: bool = False) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None or raw.strip() == "":
    return default

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value


def _parse_positive_int(name: str, default: str, *, allow_zero: bool = False) -> int:
  value = int(os.getenv(name, default))
  if value < 0 or (value == 0 and not allow_zero):
    qualifier = "zero or a positive integer" if allow_zero else "a positive integer"
    raise ValueError(f"{name} must be {qualifier}.")
  return value


def _parse_positive_float(name: str, default: str) -> float:
  value = float(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive number.")
  return value


def _parse_csv(raw: str | None, default: tuple[str, ...]) -> tuple[str, ...]:
  if not raw:
    return default
  items = tuple(item.strip() for item in raw.split(",") if item.strip())
  return items or default


def _parse_int_list(name: str, default: str, *, low: int, high: int) -> tuple[int, ...]:
  raw = os.getenv(name, default)
  values: list[int] = []
  for item in raw.split(","):
    if not item.strip():
      continue
    value = int(item)
    if value < low or value > high:
      raise ValueError(f"{name} entries must be between {low} and {high}.")
    values.append(value)

  if not values:
    raise ValueError(f"{name} must include at least one value.")

  return tuple(sorted(set(values)))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("NEWSREEL_ENV", "development").lower()
  debug = _parse_bool(os.getenv("NEWSREEL_DEBUG"))

  log_max_bytes = _parse_positive_int("NEWSREEL_LOG_MAX_BYTES", "5242880")  # 5MB default
  log_backup_count = _parse_positive_int("NEWSREEL_LOG_BACKUP_COUNT", "10", allow_zero=True)

  pg_connect_timeout = _parse_positive_int("NEWSREEL_PG_CONNECT_TIMEOUT", "5")

  stage_timeouts = StageTimeouts(
    fetch=_parse_positive_float("NEWSREEL_FETCH_TIMEOUT_SECONDS", "30"),
    summarize=_parse_positive_float("NEWSREEL_SUMMARIZE_TIMEOUT_SECONDS", "120"),
    synthesize=_parse_positive_float("NEWSREEL_SYNTHESIZE_TIMEOUT_SECONDS", "120"),
    render=_parse_positive_float("NEWSREEL_RENDER_TIMEOUT_SECONDS", "600"),
    publish=_parse_positive_float("NEWSREEL_PUBLISH_TIMEOUT_SECONDS", "300"),
  )

  # Scheduler knobs mirror the defaults the automation settings page exposes.
  topic_quota = _parse_positive_int("NEWSREEL_TOPIC_QUOTA", "3")
  if topic_quota > 10:
    raise ValueError("NEWSREEL_TOPIC_QUOTA must be between 1 and 10.")

  target_length_choices = _parse_int_list("NEWSREEL_TARGET_LENGTH_CHOICES", "60,90,120", low=30, high=300)

  sync_creation_delay_seconds = float(os.getenv("NEWSREEL_SYNC_CREATION_DELAY_SECONDS", "1"))
  if sync_creation_delay_seconds < 0:
    raise ValueError("NEWSREEL_SYNC_CREATION_DELAY_SECONDS must be zero or positive.")

  publish_privacy_status = (os.getenv("NEWSREEL_PUBLISH_PRIVACY_STATUS") or "public").strip().lower()
  if publish_privacy_status not in {"public", "unlisted", "private"}:
    raise ValueError("NEWSREEL_PUBLISH_PRIVACY_STATUS must be public, unlisted or private.")

  return Settings(
    environment=environment,
    debug=debug,
    allowed_origins=_parse_csv(os.getenv("NEWSREEL_ALLOWED_ORIGINS"), ("http://localhost:5000",)),
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    pg_dsn=_optional_str(os.getenv("NEWSREEL_PG_DSN")) or _optional_str(os.getenv("DATABASE_URL")),
    pg_connect_timeout=pg_connect_timeout,
    gnews_api_key=_optional_str(os.getenv("GNEWS_API_KEY")),
    gnews_base_url=(os.getenv("NEWSREEL_GNEWS_BASE_URL") or "https://gnews.io/api/v4").strip(),
    summarizer_url=(os.getenv("SUMMARIZER_URL") or "https://api-inference.huggingface.co/models/facebook/bart-large-cnn").strip(),
    huggingface_api_key=_optional_str(os.getenv("HUGGINGFACE_API_KEY")),
    tts_url=(os.getenv("TTS_URL") or "http://localhost:8001").strip(),
    video_service_url=(os.getenv("VIDEO_SERVICE_URL") or "http://localhost:8002").strip(),
    brand_logo_url=_optional_str(os.getenv("BRAND_LOGO_URL")),
    publisher_url=(os.getenv("PUBLISHER_URL") or "http://localhost:8003").strip(),
    publisher_access_token=_optional_str(os.getenv("PUBLISHER_ACCESS_TOKEN")),
    publish_privacy_status=publish_privacy_status,
    http_timeout_seconds=_parse_positive_float("NEWSREEL_HTTP_TIMEOUT_SECONDS", "30"),
    stage_timeouts=stage_timeouts,
    max_concurrent_jobs=_parse_positive_int("NEWSREEL_MAX_CONCURRENT_JOBS", "4"),
    automation_enabled=_parse_bool(os.getenv("NEWSREEL_AUTOMATION_ENABLED"), default=True),
    automation_topics=_parse_csv(os.getenv("NEWSREEL_AUTOMATION_TOPICS"), DEFAULT_TOPICS),
    sync_hours_utc=_parse_int_list("NEWSREEL_SYNC_HOURS_UTC", "8,14,20", low=0, high=23),
    health_check_interval_minutes=_parse_positive_int("NEWSREEL_HEALTH_CHECK_INTERVAL_MINUTES", "15"),
    retention_hour_utc=_parse_int_list("NEWSREEL_RETENTION_HOUR_UTC", "0", low=0, high=23)[0],
    topic_quota=topic_quota,
    quota_lookback_days=_parse_positive_int("NEWSREEL_QUOTA_LOOKBACK_DAYS", "1"),
    sync_candidate_limit=_parse_positive_int("NEWSREEL_SYNC_CANDIDATE_LIMIT", "5"),
    sync_jobs_per_topic=_parse_positive_int("NEWSREEL_SYNC_JOBS_PER_TOPIC", "2"),
    sync_creation_delay_seconds=sync_creation_delay_seconds,
    target_length_choices=target_length_choices,
    stale_job_minutes=_parse_positive_int("NEWSREEL_STALE_JOB_MINUTES", "30"),
    retention_days=_parse_positive_int("NEWSREEL_RETENTION_DAYS", "30"),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring the rest of the runtime configuration."""
  debug = _parse_bool(os.getenv("NEWSREEL_DEBUG"))
  pg_connect_timeout = _parse_positive_int("NEWSREEL_PG_CONNECT_TIMEOUT", "5")
  pg_dsn = _optional_str(os.getenv("NEWSREEL_PG_DSN")) or _optional_str(os.getenv("DATABASE_URL"))
  return DatabaseSettings(debug=debug, pg_dsn=pg_dsn, pg_connect_timeout=pg_connect_timeout)
