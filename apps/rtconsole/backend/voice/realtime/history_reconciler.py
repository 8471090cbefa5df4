"""
History Reconciler
==================

Applies authoritative message snapshots from the session history.

A snapshot's derived display text replaces whatever deltas accumulated for
the same identity. Snapshots whose derived text is empty are ignored so an
in-progress item is never blanked.
"""

from __future__ import annotations

from apps.rtconsole.backend.voice.realtime.events import MessageSnapshot
from apps.rtconsole.backend.voice.realtime.transcript import (
    ItemStatus,
    Role,
    TranscriptStore,
)
from utils.ml_logging import get_logger

logger = get_logger("realtime.history_reconciler")

_TEXT_FRAGMENTS = frozenset({"text", "input_text"})
_AUDIO_FRAGMENTS = frozenset({"input_audio", "audio"})


def derive_display_text(snapshot: MessageSnapshot) -> str:
    """Join the readable part of every content fragment with single spaces."""
    parts: list[str] = []
    for fragment in snapshot.content:
        if fragment.type in _TEXT_FRAGMENTS:
            parts.append(fragment.text or "")
        elif fragment.type in _AUDIO_FRAGMENTS:
            parts.append(fragment.transcript or "")
        else:
            parts.append("")
    return " ".join(parts).strip()


def _status_for(snapshot_status: str | None) -> ItemStatus:
    return ItemStatus.DONE if snapshot_status == "completed" else ItemStatus.IN_PROGRESS


class HistoryReconciler:
    def __init__(self, store: TranscriptStore) -> None:
        self.store = store

    def apply_message(self, snapshot: MessageSnapshot) -> None:
        text = derive_display_text(snapshot)
        if not text:
            logger.debug("Ignoring empty snapshot for item %s", snapshot.item_id)
            return

        if snapshot.item_id not in self.store:
            self.store.add_message(
                snapshot.item_id,
                Role(snapshot.role),
                text,
                status=_status_for(snapshot.status),
            )
            return

        self.store.update_message(snapshot.item_id, text)
        if snapshot.status is not None:
            self.store.update_status(snapshot.item_id, _status_for(snapshot.status))


__all__ = ["HistoryReconciler", "derive_display_text"]
