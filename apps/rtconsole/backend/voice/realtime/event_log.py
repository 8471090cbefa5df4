"""
Event Log
=========

Bounded in-memory record of client and server events for the session's
event pane. Oldest entries fall off once ``max_entries`` is reached.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventDirection(str, Enum):
    CLIENT = "client"
    SERVER = "server"


@dataclass
class LoggedEvent:
    direction: EventDirection
    event_name: str
    payload: dict[str, Any] = field(default_factory=dict)
    logged_at: float = field(default_factory=time.time)


class EventLog:
    def __init__(self, max_entries: int = 500) -> None:
        self._entries: deque[LoggedEvent] = deque(maxlen=max_entries)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> list[LoggedEvent]:
        with self._lock:
            return list(self._entries)

    def _append(self, entry: LoggedEvent) -> LoggedEvent:
        with self._lock:
            self._entries.append(entry)
        return entry

    def log_client_event(self, event: dict[str, Any], suffix: str = "") -> LoggedEvent:
        name = f"{event.get('type', 'unknown')}{suffix and ' ' + suffix}"
        return self._append(LoggedEvent(EventDirection.CLIENT, name, dict(event)))

    def log_server_event(self, event: Any, suffix: str = "") -> LoggedEvent:
        payload = dict(event) if isinstance(event, dict) else {"value": event}
        name = f"{payload.get('type', 'unknown')}{suffix and ' ' + suffix}"
        return self._append(LoggedEvent(EventDirection.SERVER, name, payload))

    def log_history_item(self, item: dict[str, Any]) -> LoggedEvent:
        """Function calls are logged by tool name, messages by role."""
        if item.get("type") == "function_call":
            name = f"function.{item.get('name', 'unknown')}"
            payload = {"arguments": item.get("arguments"), "output": item.get("output")}
        else:
            name = f"{item.get('type', 'item')}.{item.get('role', 'unknown')}"
            payload = dict(item)
        return self._append(LoggedEvent(EventDirection.SERVER, name, payload))


__all__ = ["EventDirection", "EventLog", "LoggedEvent"]
