"""
Transcript Store
================

Ordered collection of transcript items keyed by identity.

Items are created once, mutated in place and never deleted (at most hidden).
Every mutation notifies registered listeners with the affected item so a
rendering layer can redraw.

Usage:
    store = TranscriptStore()
    store.add_message("item_1", Role.ASSISTANT, "", status=ItemStatus.IN_PROGRESS)
    store.update_message("item_1", "Hel", append=True)
    store.rendered()  # → [TranscriptItem(...)]
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from utils.ml_logging import get_logger

logger = get_logger("realtime.transcript")


class ItemType(str, Enum):
    MESSAGE = "MESSAGE"
    BREADCRUMB = "BREADCRUMB"


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ItemStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"


@dataclass
class TranscriptItem:
    """
    One visible unit of conversation.

    Attributes:
        item_id: Stable identity within the session
        type: Message or breadcrumb
        role: Speaker, meaningful for messages only
        text: Accumulated content (title for breadcrumbs)
        status: IN_PROGRESS until finalized
        created_at_ms: Insertion time, assigned once
        timestamp: Wall-clock label for display
        hidden: Suppressed from rendering
        expanded: Breadcrumb detail toggle
        aux_data: Opaque payload (tool arguments/output, agent summary)
    """

    item_id: str
    type: ItemType
    role: Role | None = None
    text: str = ""
    status: ItemStatus = ItemStatus.IN_PROGRESS
    created_at_ms: int = 0
    timestamp: str = ""
    hidden: bool = False
    expanded: bool = False
    aux_data: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "type": self.type.value,
            "role": self.role.value if self.role else None,
            "text": self.text,
            "status": self.status.value,
            "created_at_ms": self.created_at_ms,
            "timestamp": self.timestamp,
            "hidden": self.hidden,
            "expanded": self.expanded,
            "aux_data": self.aux_data,
        }


TranscriptListener = Callable[[TranscriptItem], None]


def _wall_clock_ms() -> int:
    return time.time_ns() // 1_000_000


def _format_timestamp(ms: int) -> str:
    dt = datetime.fromtimestamp(ms / 1000)
    return dt.strftime("%H:%M:%S.") + f"{ms % 1000:03d}"


class TranscriptStore:
    """
    Identity-keyed transcript with insertion timestamps that never decrease.

    Mutators on unknown identities are no-ops returning ``None``; creation
    on a known identity returns the existing item untouched.
    """

    def __init__(self, clock: Callable[[], int] | None = None) -> None:
        self._items: dict[str, TranscriptItem] = {}
        self._clock = clock or _wall_clock_ms
        self._last_created_ms = 0
        self._listeners: list[TranscriptListener] = []
        self._lock = threading.RLock()

    # ─────────────────────────────────────────────────────────────────────────
    # Inspection
    # ─────────────────────────────────────────────────────────────────────────

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __len__(self) -> int:
        return len(self._items)

    def get(self, item_id: str) -> TranscriptItem | None:
        return self._items.get(item_id)

    def items(self) -> list[TranscriptItem]:
        """All items in insertion order, hidden ones included."""
        with self._lock:
            return list(self._items.values())

    def rendered(self) -> list[TranscriptItem]:
        """Visible items ordered by creation time; ties keep insertion order."""
        with self._lock:
            visible = [i for i in self._items.values() if not i.hidden]
        return sorted(visible, key=lambda i: i.created_at_ms)

    # ─────────────────────────────────────────────────────────────────────────
    # Listeners
    # ─────────────────────────────────────────────────────────────────────────

    def subscribe(self, listener: TranscriptListener) -> Callable[[], None]:
        """Register a mutation listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, item: TranscriptItem) -> None:
        for listener in list(self._listeners):
            try:
                listener(item)
            except Exception:
                logger.exception("Transcript listener failed for item %s", item.item_id)

    # ─────────────────────────────────────────────────────────────────────────
    # Creation
    # ─────────────────────────────────────────────────────────────────────────

    def _next_created_ms(self) -> int:
        now = max(self._clock(), self._last_created_ms)
        self._last_created_ms = now
        return now

    def _insert(self, item: TranscriptItem) -> TranscriptItem:
        existing = self._items.get(item.item_id)
        if existing is not None:
            return existing
        item.created_at_ms = self._next_created_ms()
        item.timestamp = _format_timestamp(item.created_at_ms)
        self._items[item.item_id] = item
        self._notify(item)
        return item

    def add_message(
        self,
        item_id: str,
        role: Role,
        text: str,
        *,
        status: ItemStatus = ItemStatus.IN_PROGRESS,
        hidden: bool = False,
    ) -> TranscriptItem:
        with self._lock:
            return self._insert(
                TranscriptItem(
                    item_id=item_id,
                    type=ItemType.MESSAGE,
                    role=role,
                    text=text,
                    status=status,
                    hidden=hidden,
                )
            )

    def add_breadcrumb(
        self,
        item_id: str,
        title: str,
        aux_data: dict[str, Any] | None = None,
    ) -> TranscriptItem:
        """Breadcrumbs are final on creation."""
        with self._lock:
            return self._insert(
                TranscriptItem(
                    item_id=item_id,
                    type=ItemType.BREADCRUMB,
                    text=title,
                    status=ItemStatus.DONE,
                    aux_data=aux_data,
                )
            )

    # ─────────────────────────────────────────────────────────────────────────
    # Mutation
    # ─────────────────────────────────────────────────────────────────────────

    def update_message(self, item_id: str, text: str, *, append: bool = False) -> TranscriptItem | None:
        with self._lock:
            item = self._items.get(item_id)
            if item is None:
                return None
            item.text = item.text + text if append else text
            self._notify(item)
            return item

    def update_status(self, item_id: str, status: ItemStatus) -> TranscriptItem | None:
        with self._lock:
            item = self._items.get(item_id)
            if item is None or item.status == status:
                return item
            if item.status == ItemStatus.DONE:
                logger.debug("Ignoring reverse status transition for %s", item_id)
                return item
            item.status = status
            self._notify(item)
            return item

    def update_data(self, item_id: str, aux_data: dict[str, Any]) -> TranscriptItem | None:
        """Merge keys into the item's aux payload."""
        with self._lock:
            item = self._items.get(item_id)
            if item is None:
                return None
            item.aux_data = {**(item.aux_data or {}), **aux_data}
            self._notify(item)
            return item

    def set_hidden(self, item_id: str, hidden: bool = True) -> TranscriptItem | None:
        with self._lock:
            item = self._items.get(item_id)
            if item is None or item.hidden == hidden:
                return item
            item.hidden = hidden
            self._notify(item)
            return item

    def toggle_expand(self, item_id: str) -> TranscriptItem | None:
        with self._lock:
            item = self._items.get(item_id)
            if item is None:
                return None
            item.expanded = not item.expanded
            self._notify(item)
            return item


__all__ = [
    "ItemStatus",
    "ItemType",
    "Role",
    "TranscriptItem",
    "TranscriptListener",
    "TranscriptStore",
]
