"""Content fingerprints used for article deduplication."""

from __future__ import annotations

import hashlib


def content_hash(text: str) -> str:
  """Return the SHA-256 hex digest of an article body.

  The same text always maps to the same 64-character digest, which is what both
  the store-wide dedup query and the per-sync filter compare against.
  """
  return hashlib.sha256(text.encode("utf-8")).hexdigest()
