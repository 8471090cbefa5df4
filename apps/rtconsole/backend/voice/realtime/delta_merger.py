"""
Delta Merger
============

Applies streaming intents to the transcript store.

Assistant text and transcript deltas share one append path keyed only by
item identity, so transports that emit both for the same item compose
correctly. User turns get an immediate placeholder on speech start which
the final transcription replaces wholesale.
"""

from __future__ import annotations

from apps.rtconsole.backend.config.settings import TRANSCRIBING_PLACEHOLDER
from apps.rtconsole.backend.voice.realtime.events import (
    StreamTextDelta,
    StreamTranscriptDelta,
    UserSpeechStarted,
    UserTranscriptionCompleted,
    UserTranscriptionDelta,
)
from apps.rtconsole.backend.voice.realtime.transcript import (
    ItemStatus,
    Role,
    TranscriptStore,
)
from utils.ml_logging import get_logger

logger = get_logger("realtime.delta_merger")


class DeltaMerger:
    """Stateless apart from the store it writes to and the placeholder text."""

    def __init__(self, store: TranscriptStore, placeholder: str = TRANSCRIBING_PLACEHOLDER) -> None:
        self.store = store
        self.placeholder = placeholder

    def apply_stream_delta(self, intent: StreamTextDelta | StreamTranscriptDelta) -> None:
        item = self.store.get(intent.item_id)
        if item is None:
            self.store.add_message(intent.item_id, Role.ASSISTANT, "", status=ItemStatus.IN_PROGRESS)
        elif item.status == ItemStatus.DONE:
            # Late delta for a finalized item; the authoritative text already landed.
            logger.debug("Dropping late delta for finalized item %s", intent.item_id)
            return
        self.store.update_message(intent.item_id, intent.delta, append=True)
        self.store.update_status(intent.item_id, ItemStatus.IN_PROGRESS)

    def apply_speech_started(self, intent: UserSpeechStarted) -> None:
        if intent.item_id in self.store:
            return
        self.store.add_message(
            intent.item_id, Role.USER, self.placeholder, status=ItemStatus.IN_PROGRESS
        )

    def apply_transcription_delta(self, intent: UserTranscriptionDelta) -> None:
        item = self.store.get(intent.item_id)
        if item is None:
            item = self.store.add_message(
                intent.item_id, Role.USER, self.placeholder, status=ItemStatus.IN_PROGRESS
            )
        if item.status == ItemStatus.DONE:
            return
        if item.text == self.placeholder:
            self.store.update_message(intent.item_id, intent.delta)
        else:
            self.store.update_message(intent.item_id, intent.delta, append=True)

    def apply_transcription_completed(self, intent: UserTranscriptionCompleted) -> None:
        text = intent.transcript.strip()
        if intent.item_id not in self.store:
            self.store.add_message(intent.item_id, Role.USER, text, status=ItemStatus.DONE)
            return
        self.store.update_message(intent.item_id, text)
        self.store.update_status(intent.item_id, ItemStatus.DONE)


__all__ = ["DeltaMerger"]
