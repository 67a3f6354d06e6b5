"""Identifier utilities."""

from __future__ import annotations

import uuid


def generate_job_id() -> str:
  """Return a new job identifier."""
  return str(uuid.uuid4())


def generate_record_id() -> str:
  """Return a new identifier for derived artifact rows."""
  return str(uuid.uuid4())
