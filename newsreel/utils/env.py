"""Read NEWSREEL_* settings from a local .env file before config is built."""

from __future__ import annotations

import os
from pathlib import Path

_QUOTES = ('"', "'")


def default_env_path() -> Path:
  """The .env next to pyproject.toml."""
  return Path(__file__).resolve().parents[2] / ".env"


def parse_env_line(raw_line: str) -> tuple[str, str] | None:
  """Split one `.env` line into a key/value pair, or None for blanks and comments.

  Accepts an optional `export ` prefix. Quoted values keep their contents verbatim;
  unquoted values drop a trailing ` # comment`.
  """
  line = raw_line.strip()
  if not line or line.startswith("#"):
    return None
  line = line.removeprefix("export ").lstrip()
  key, sep, value = line.partition("=")
  key = key.strip()
  if not sep or not key:
    return None

  value = value.strip()
  if len(value) >= 2 and value[0] in _QUOTES and value[-1] == value[0]:
    return key, value[1:-1]
  comment_at = value.find(" #")
  if comment_at != -1:
    value = value[:comment_at].rstrip()
  return key, value


def load_env_file(path: Path, *, override: bool = False) -> dict[str, str]:
  """Export the pairs found in `path`; returns the ones actually applied."""
  if not path.is_file():
    return {}

  applied: dict[str, str] = {}
  for raw_line in path.read_text(encoding="utf-8").splitlines():
    pair = parse_env_line(raw_line)
    if pair is None:
      continue
    key, value = pair
    # Real environment wins unless the caller asks otherwise.
    if key in os.environ and not override:
      continue
    os.environ[key] = value
    applied[key] = value
  return applied
