"""
Realtime Reconciliation
=======================

Event classification, transcript merge and session lifecycle for realtime
voice/text sessions.
"""

from .classifier import classify_event
from .dedup import DedupLedger
from .delta_merger import DeltaMerger
from .detection import PeriodicTask, PersonDetectionMonitor, PersonInfo
from .engine import ConversationEngine
from .event_log import EventDirection, EventLog, LoggedEvent
from .events import (
    AgentSwitched,
    ApplyResult,
    ConnectionStatus,
    ConnectionStatusChanged,
    ResponseCompleted,
    ServerEventType,
    Unclassified,
)
from .handoff_router import ActiveAgentPointer, HandoffRouter, handoff_target
from .history_reconciler import HistoryReconciler, derive_display_text
from .session import (
    RealtimeSessionController,
    RealtimeSessionError,
    SessionConnectError,
    SessionStatus,
)
from .transcript import ItemStatus, ItemType, Role, TranscriptItem, TranscriptStore
from .transport import RealtimeTransport

__all__ = [
    "ActiveAgentPointer",
    "AgentSwitched",
    "ApplyResult",
    "ConnectionStatus",
    "ConnectionStatusChanged",
    "ConversationEngine",
    "DedupLedger",
    "DeltaMerger",
    "EventDirection",
    "EventLog",
    "HandoffRouter",
    "HistoryReconciler",
    "ItemStatus",
    "ItemType",
    "LoggedEvent",
    "PeriodicTask",
    "PersonDetectionMonitor",
    "PersonInfo",
    "RealtimeSessionController",
    "RealtimeSessionError",
    "RealtimeTransport",
    "ResponseCompleted",
    "Role",
    "ServerEventType",
    "SessionConnectError",
    "SessionStatus",
    "TranscriptItem",
    "TranscriptStore",
    "Unclassified",
    "classify_event",
    "derive_display_text",
    "handoff_target",
]
