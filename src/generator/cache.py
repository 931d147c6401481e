"""
Content-addressed cache of rewritten bullets.
"""

import hashlib
import json
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from loguru import logger

from matcher.text import normalize_whitespace
from shared.models import TokenUsage


def _digest(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def make_cache_key(bullet_text: str, job_description: str, target_language: str) -> str:
    """
    Deterministic key for a rewrite request.

    Stable across processes: SHA-256 over a sorted-keys JSON document of the
    normalized bullet text, the job description digest and the language code.
    """
    payload = {
        "bullet": normalize_whitespace(bullet_text),
        "job": _digest(normalize_whitespace(job_description)),
        "language": (target_language or "").strip().lower(),
    }
    serialized = json.dumps(payload, sort_keys=True, ensure_ascii=False)
    return _digest(serialized)


@dataclass
class RewriteCacheEntry:
    """Cached rewrite with provenance."""

    text: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    usage: TokenUsage = field(default_factory=TokenUsage)


class RewriteCache:
    """
    In-memory rewrite cache, safe for concurrent get/put.

    Owned by the caller and injected into the orchestrator. Eviction policy
    belongs to the owner (see evict/clear).
    """

    def __init__(self):
        self._entries: dict[str, RewriteCacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> tuple[str, bool]:
        with self._lock:
            entry = self._entries.get(key)
        if entry is None:
            return "", False
        return entry.text, True

    def entry(self, key: str) -> Optional[RewriteCacheEntry]:
        with self._lock:
            return self._entries.get(key)

    def put(self, key: str, text: str, usage: Optional[TokenUsage] = None) -> None:
        """Store a successful rewrite. Last writer wins."""
        entry = RewriteCacheEntry(text=text, usage=usage or TokenUsage())
        with self._lock:
            self._entries[key] = entry
        logger.debug(f"Cached rewrite {key[:12]}")

    def evict(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries
