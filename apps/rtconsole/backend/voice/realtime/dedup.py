"""Append-only ledger of tool-call identities that already produced a breadcrumb."""

from __future__ import annotations

import threading


class DedupLedger:
    def __init__(self) -> None:
        self._seen: set[str] = set()
        self._lock = threading.Lock()

    def record_if_new(self, call_id: str) -> bool:
        """True exactly once per identity, False on every later call."""
        with self._lock:
            if call_id in self._seen:
                return False
            self._seen.add(call_id)
            return True

    def __contains__(self, call_id: object) -> bool:
        return call_id in self._seen

    def __len__(self) -> int:
        return len(self._seen)


__all__ = ["DedupLedger"]
