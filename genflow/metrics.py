# genflow/metrics.py
from __future__ import annotations

import threading
from typing import Dict


class Metrics:
    """Thread-safe in-process counters, one store per context."""

    def __init__(self):
        self._lock = threading.Lock()
        self._counts: Dict[str, int] = {}

    def inc(self, key: str, n: int = 1) -> None:
        """Generic counter (e.g., 'image.ref.used', 'alt_text.fallback')."""
        if not key:
            return
        with self._lock:
            self._counts[key] = self._counts.get(key, 0) + int(n)

    def inc_ok(self, provider: str, kind: str = "image") -> None:
        self.inc(f"{kind}.ok.{(provider or '').strip().lower()}")

    def inc_fail(self, provider: str, kind: str = "image") -> None:
        self.inc(f"{kind}.fail.{(provider or '').strip().lower()}")

    def snapshot(self) -> Dict[str, int]:
        """Return a copy of all counters."""
        with self._lock:
            return dict(self._counts)
