"""
Conversation Engine
===================

Single entry point that applies one raw realtime event to the session state:

    raw event → classify_event → DeltaMerger / HistoryReconciler / HandoffRouter

The whole apply runs under one re-entrant lock, so events are merged strictly
in delivery order even if a host calls in from several threads. Merge errors
are contained here; the caller only sees an ``ApplyResult`` whose effects
tell it what to do next (connection changes, agent switches, finished
responses).

Usage:
    engine = ConversationEngine(roster, active_agent="base")
    result = engine.apply({"type": "response.text.delta", "item_id": "a", "delta": "Hi"})
    engine.store.rendered()
"""

from __future__ import annotations

import threading
from typing import Any

from apps.rtconsole.backend.config.settings import TRANSCRIBING_PLACEHOLDER
from apps.rtconsole.backend.registries.agentstore.base import AgentRoster
from apps.rtconsole.backend.voice.realtime.classifier import classify_event
from apps.rtconsole.backend.voice.realtime.dedup import DedupLedger
from apps.rtconsole.backend.voice.realtime.delta_merger import DeltaMerger
from apps.rtconsole.backend.voice.realtime.events import (
    ApplyResult,
    ConnectionStateChanged,
    ConnectionStatusChanged,
    FunctionCallSnapshot,
    HistoryItemAdded,
    HistoryItemsUpdated,
    Intent,
    MessageSnapshot,
    ResponseCompleted,
    ResponseDone,
    StreamTextDelta,
    StreamTranscriptDelta,
    Unclassified,
    UserSpeechStarted,
    UserTranscriptionCompleted,
    UserTranscriptionDelta,
)
from apps.rtconsole.backend.voice.realtime.handoff_router import (
    ActiveAgentPointer,
    HandoffRouter,
)
from apps.rtconsole.backend.voice.realtime.history_reconciler import HistoryReconciler
from apps.rtconsole.backend.voice.realtime.transcript import TranscriptStore
from utils.ml_logging import get_logger

logger = get_logger("realtime.engine")


class ConversationEngine:
    """Owns the transcript store, dedup ledger and Active Agent Pointer of one session."""

    def __init__(
        self,
        roster: AgentRoster,
        *,
        active_agent: str | None = None,
        store: TranscriptStore | None = None,
        placeholder: str = TRANSCRIBING_PLACEHOLDER,
    ) -> None:
        if active_agent is None and roster.default_agent is not None:
            active_agent = roster.default_agent.name
        self.roster = roster
        self.store = store or TranscriptStore()
        self.ledger = DedupLedger()
        self.pointer = ActiveAgentPointer(active_agent)
        self.merger = DeltaMerger(self.store, placeholder)
        self.reconciler = HistoryReconciler(self.store)
        self.router = HandoffRouter(self.store, self.ledger, roster, self.pointer)
        self._lock = threading.RLock()

    @property
    def active_agent(self) -> str | None:
        return self.pointer.name

    def select_agent(self, agent_name: str) -> str | None:
        """Explicit user selection; returns the previous agent name."""
        with self._lock:
            return self.pointer.set(agent_name)

    def apply(self, raw: Any) -> ApplyResult:
        """
        Classify and merge one raw event.

        Never raises: malformed or unknown events and merge failures yield an
        ``Unclassified`` intent and leave the effects list empty.
        """
        intent = classify_event(raw)
        if isinstance(intent, Unclassified):
            logger.debug("Dropping event type=%s: %s", intent.event_type, intent.reason)
            return ApplyResult(intent=intent)

        with self._lock:
            result = ApplyResult(intent=intent)
            try:
                self._dispatch(intent, result)
            except Exception as exc:
                logger.exception("Failed to merge %s event", intent.kind)
                return ApplyResult(
                    intent=Unclassified(
                        event_type=raw.get("type"),
                        reason=f"merge failed: {exc}",
                    )
                )
            return result

    # ─────────────────────────────────────────────────────────────────────────
    # Dispatch
    # ─────────────────────────────────────────────────────────────────────────

    def _dispatch(self, intent: Intent, result: ApplyResult) -> None:
        if isinstance(intent, (StreamTextDelta, StreamTranscriptDelta)):
            self.merger.apply_stream_delta(intent)
        elif isinstance(intent, UserSpeechStarted):
            self.merger.apply_speech_started(intent)
        elif isinstance(intent, UserTranscriptionDelta):
            self.merger.apply_transcription_delta(intent)
        elif isinstance(intent, UserTranscriptionCompleted):
            self.merger.apply_transcription_completed(intent)
        elif isinstance(intent, HistoryItemAdded):
            self._apply_snapshot(intent.item, result)
        elif isinstance(intent, HistoryItemsUpdated):
            for snapshot in intent.items:
                self._apply_snapshot(snapshot, result)
        elif isinstance(intent, ConnectionStateChanged):
            result.effects.append(ConnectionStatusChanged(status=intent.status))
        elif isinstance(intent, ResponseDone):
            result.effects.append(ResponseCompleted(response_id=intent.response_id))

    def _apply_snapshot(self, snapshot: MessageSnapshot | FunctionCallSnapshot, result: ApplyResult) -> None:
        if isinstance(snapshot, MessageSnapshot):
            self.reconciler.apply_message(snapshot)
            return
        switched = self.router.apply_function_call(snapshot)
        if switched is not None:
            result.effects.append(switched)


__all__ = ["ConversationEngine"]
