"""Time helpers; all persisted timestamps are timezone-aware UTC."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utc_now() -> datetime:
  """Return the current UTC time."""
  return datetime.now(UTC)


def start_of_day(moment: datetime) -> datetime:
  """Return midnight of the UTC day containing `moment`."""
  return moment.astimezone(UTC).replace(hour=0, minute=0, second=0, microsecond=0)
