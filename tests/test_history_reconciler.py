"""
Tests for HistoryReconciler
===========================
"""

from __future__ import annotations

import pytest

from apps.rtconsole.backend.voice.realtime.events import ContentFragment, MessageSnapshot
from apps.rtconsole.backend.voice.realtime.history_reconciler import (
    HistoryReconciler,
    derive_display_text,
)
from apps.rtconsole.backend.voice.realtime.transcript import (
    ItemStatus,
    Role,
    TranscriptStore,
)


def _snapshot(item_id="m1", content=None, role="assistant", status=None) -> MessageSnapshot:
    return MessageSnapshot.model_validate(
        {
            "itemId": item_id,
            "type": "message",
            "role": role,
            "content": content or [],
            **({"status": status} if status is not None else {}),
        }
    )


@pytest.fixture
def store():
    return TranscriptStore()


@pytest.fixture
def reconciler(store):
    return HistoryReconciler(store)


class TestDeriveDisplayText:
    def test_mixed_fragments(self):
        snapshot = _snapshot(
            content=[
                {"type": "input_text", "text": "Hello"},
                {"type": "audio", "transcript": "there"},
                {"type": "input_audio", "transcript": None},
                {"type": "image", "text": "ignored"},
                {"type": "text", "text": "friend"},
            ]
        )
        # Empty fragments still contribute a separator; outer whitespace is trimmed.
        assert derive_display_text(snapshot) == "Hello there   friend"

    def test_only_empty_fragments(self):
        snapshot = _snapshot(content=[{"type": "audio"}, {"type": "input_text", "text": ""}])
        assert derive_display_text(snapshot) == ""

    def test_fragment_model(self):
        assert ContentFragment(type="text", text="x").transcript is None


class TestApplyMessage:
    def test_creates_missing_item(self, reconciler, store):
        reconciler.apply_message(
            _snapshot(content=[{"type": "input_text", "text": "hi"}], role="user", status="completed")
        )
        item = store.get("m1")
        assert item.role == Role.USER
        assert item.text == "hi"
        assert item.status == ItemStatus.DONE

    def test_non_completed_status_is_in_progress(self, reconciler, store):
        reconciler.apply_message(
            _snapshot(content=[{"type": "text", "text": "partial"}], status="in_progress")
        )
        assert store.get("m1").status == ItemStatus.IN_PROGRESS

    def test_missing_role_defaults_to_assistant(self, reconciler, store):
        snapshot = MessageSnapshot.model_validate(
            {"itemId": "m9", "type": "message", "content": [{"type": "text", "text": "x"}]}
        )
        reconciler.apply_message(snapshot)
        assert store.get("m9").role == Role.ASSISTANT

    def test_snapshot_overwrites_accumulated_deltas(self, reconciler, store):
        store.add_message("m1", Role.ASSISTANT, "Hel lo the")
        reconciler.apply_message(
            _snapshot(content=[{"type": "audio", "transcript": "Hello there"}], status="completed")
        )
        item = store.get("m1")
        assert item.text == "Hello there"
        assert item.status == ItemStatus.DONE

    def test_empty_snapshot_does_not_blank_item(self, reconciler, store):
        store.add_message("m1", Role.ASSISTANT, "Hel")
        reconciler.apply_message(_snapshot(content=[{"type": "audio", "transcript": ""}]))
        item = store.get("m1")
        assert item.text == "Hel"
        assert item.status == ItemStatus.IN_PROGRESS

    def test_empty_snapshot_creates_nothing(self, reconciler, store):
        reconciler.apply_message(_snapshot(item_id="ghost"))
        assert "ghost" not in store

    def test_snapshot_without_status_keeps_existing_status(self, reconciler, store):
        store.add_message("m1", Role.ASSISTANT, "old", status=ItemStatus.DONE)
        reconciler.apply_message(_snapshot(content=[{"type": "text", "text": "new"}]))
        item = store.get("m1")
        assert item.text == "new"
        assert item.status == ItemStatus.DONE
