"""
Event Classifier
================

Maps one raw realtime record to exactly one typed intent.

Classification is a pure function of the record's ``type`` and the presence
of its required fields. Malformed records never raise; they become
``Unclassified`` with a reason so the engine can drop them with a debug log.

Usage:
    intent = classify_event({"type": "response.text.delta", "item_id": "a", "delta": "Hi"})
    # → StreamTextDelta(item_id="a", delta="Hi")
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from pydantic import TypeAdapter, ValidationError

from apps.rtconsole.backend.voice.realtime.events import (
    SNAPSHOT_KINDS,
    ConnectionChangePayload,
    ConnectionStateChanged,
    HistoryItemAdded,
    HistoryItemsUpdated,
    HistorySnapshot,
    Intent,
    ResponseDone,
    ResponseDonePayload,
    ServerEventType,
    SpeechStartedPayload,
    StreamDeltaPayload,
    StreamTextDelta,
    StreamTranscriptDelta,
    TranscriptionCompletedPayload,
    TranscriptionDeltaPayload,
    Unclassified,
    UserSpeechStarted,
    UserTranscriptionCompleted,
    UserTranscriptionDelta,
)
from utils.ml_logging import get_logger

logger = get_logger("realtime.classifier")

_snapshot_adapter: TypeAdapter = TypeAdapter(HistorySnapshot)


def _first_error(exc: ValidationError) -> str:
    err = exc.errors()[0]
    loc = ".".join(str(p) for p in err.get("loc", ())) or "<root>"
    return f"{loc}: {err.get('msg', 'invalid')}"


# ═══════════════════════════════════════════════════════════════════════════════
# PER-TYPE BUILDERS
# ═══════════════════════════════════════════════════════════════════════════════


def _text_delta(raw: Mapping[str, Any]) -> Intent:
    p = StreamDeltaPayload.model_validate(raw)
    return StreamTextDelta(item_id=p.item_id, delta=p.delta)


def _transcript_delta(raw: Mapping[str, Any]) -> Intent:
    p = StreamDeltaPayload.model_validate(raw)
    return StreamTranscriptDelta(item_id=p.item_id, delta=p.delta)


def _speech_started(raw: Mapping[str, Any]) -> Intent:
    p = SpeechStartedPayload.model_validate(raw)
    return UserSpeechStarted(item_id=p.item_id)


def _transcription_delta(raw: Mapping[str, Any]) -> Intent:
    p = TranscriptionDeltaPayload.model_validate(raw)
    return UserTranscriptionDelta(item_id=p.item_id, delta=p.delta)


def _transcription_completed(raw: Mapping[str, Any]) -> Intent:
    p = TranscriptionCompletedPayload.model_validate(raw)
    return UserTranscriptionCompleted(item_id=p.item_id, transcript=p.transcript)


def _response_done(raw: Mapping[str, Any]) -> Intent:
    p = ResponseDonePayload.model_validate(raw)
    response_id = p.response_id
    if response_id is None and p.response:
        response_id = p.response.get("id")
    return ResponseDone(response_id=response_id)


def _history_added(raw: Mapping[str, Any]) -> Intent:
    item = raw.get("item")
    if not isinstance(item, Mapping):
        return Unclassified(event_type=ServerEventType.HISTORY_ADDED.value, reason="missing item")
    return HistoryItemAdded(item=_snapshot_adapter.validate_python(dict(item)))


def _history_updated(raw: Mapping[str, Any]) -> Intent:
    history = raw.get("history")
    if not isinstance(history, (list, tuple)):
        return Unclassified(
            event_type=ServerEventType.HISTORY_UPDATED.value, reason="missing history list"
        )
    snapshots = []
    for entry in history:
        if not isinstance(entry, Mapping) or entry.get("type") not in SNAPSHOT_KINDS:
            continue
        try:
            snapshots.append(_snapshot_adapter.validate_python(dict(entry)))
        except ValidationError as exc:
            logger.debug("Skipping malformed history entry: %s", _first_error(exc))
    return HistoryItemsUpdated(items=tuple(snapshots))


def _connection_change(raw: Mapping[str, Any]) -> Intent:
    p = ConnectionChangePayload.model_validate(raw)
    return ConnectionStateChanged(status=p.status)


_BUILDERS: dict[str, Callable[[Mapping[str, Any]], Intent]] = {
    ServerEventType.RESPONSE_TEXT_DELTA.value: _text_delta,
    ServerEventType.RESPONSE_AUDIO_TRANSCRIPT_DELTA.value: _transcript_delta,
    ServerEventType.INPUT_AUDIO_BUFFER_SPEECH_STARTED.value: _speech_started,
    ServerEventType.INPUT_AUDIO_TRANSCRIPTION_DELTA.value: _transcription_delta,
    ServerEventType.CONVERSATION_ITEM_INPUT_AUDIO_TRANSCRIPTION_DELTA.value: _transcription_delta,
    ServerEventType.CONVERSATION_ITEM_INPUT_AUDIO_TRANSCRIPTION_COMPLETED.value: _transcription_completed,
    ServerEventType.RESPONSE_DONE.value: _response_done,
    ServerEventType.HISTORY_ADDED.value: _history_added,
    ServerEventType.HISTORY_UPDATED.value: _history_updated,
    ServerEventType.CONNECTION_CHANGE.value: _connection_change,
}


# ═══════════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ═══════════════════════════════════════════════════════════════════════════════


def classify_event(raw: Any) -> Intent:
    """
    Classify a raw realtime record.

    Args:
        raw: Record delivered by the transport (mapping with a ``type`` key)

    Returns:
        The matching intent, or ``Unclassified`` carrying a reason.
    """
    if not isinstance(raw, Mapping):
        return Unclassified(reason="event is not a mapping")

    event_type = raw.get("type")
    if not isinstance(event_type, str):
        return Unclassified(reason="missing type")

    builder = _BUILDERS.get(event_type)
    if builder is None:
        return Unclassified(event_type=event_type)

    try:
        return builder(raw)
    except ValidationError as exc:
        return Unclassified(event_type=event_type, reason=_first_error(exc))


__all__ = ["classify_event"]
