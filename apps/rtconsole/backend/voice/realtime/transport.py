"""
Realtime Transport Contract
===========================

The console never talks to the network itself. A transport is an opaque
event source built per connection by an injected factory; this module only
describes what the session controller expects from it.

Handlers registered with ``on`` are called synchronously in delivery order:

* ``transport_event``: raw server protocol records
* ``history_added``: one conversation item snapshot
* ``history_updated``: the full list of history snapshots
* ``connection_change``: "connecting" | "connected" | "disconnected"
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Protocol, runtime_checkable

from apps.rtconsole.backend.registries.agentstore.base import RealtimeAgent

TRANSPORT_EVENT = "transport_event"
HISTORY_ADDED = "history_added"
HISTORY_UPDATED = "history_updated"
CONNECTION_CHANGE = "connection_change"

EventHandler = Callable[[Any], None]


@runtime_checkable
class RealtimeTransport(Protocol):
    async def connect(self) -> None: ...

    async def disconnect(self) -> None: ...

    def send_event(self, event: dict[str, Any]) -> None: ...

    def send_user_text(self, text: str) -> None: ...

    def interrupt(self) -> None: ...

    def mute(self, muted: bool) -> None: ...

    def on(self, channel: str, handler: EventHandler) -> None: ...


# Builds a transport for one connection: (ephemeral key, agents with root first).
TransportFactory = Callable[[str, Sequence[RealtimeAgent]], RealtimeTransport]

# Mints an ephemeral session key; returns None when none could be obtained.
KeyProvider = Callable[[], Awaitable[str | None]]


__all__ = [
    "CONNECTION_CHANGE",
    "EventHandler",
    "HISTORY_ADDED",
    "HISTORY_UPDATED",
    "KeyProvider",
    "RealtimeTransport",
    "TRANSPORT_EVENT",
    "TransportFactory",
]
