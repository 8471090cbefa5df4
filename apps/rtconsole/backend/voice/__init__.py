"""
Voice Channels - Realtime Session Layer
=======================================

Sits between a realtime transport (bidirectional voice/text session) and
whatever renders the conversation.

Architecture:
    Realtime transport (events, history, connection state)
           │
           ▼
    RealtimeSessionController ── client events ──▶ transport
           │
           ▼
    ConversationEngine
      ├── classify_event      # raw record → typed intent
      ├── DeltaMerger         # streaming deltas, user placeholders
      ├── HistoryReconciler   # authoritative snapshots
      └── HandoffRouter       # tool breadcrumbs, Active Agent Pointer
           │
           ▼
    TranscriptStore.rendered()

Structure:
    voice/
    └── realtime/
        ├── events.py       # wire models, intents, effects
        ├── engine.py       # ConversationEngine
        ├── session.py      # RealtimeSessionController
        └── detection.py    # PeriodicTask, PersonDetectionMonitor
"""

from .realtime import (
    ConversationEngine,
    RealtimeSessionController,
    SessionStatus,
    TranscriptStore,
)

__all__ = [
    "ConversationEngine",
    "RealtimeSessionController",
    "SessionStatus",
    "TranscriptStore",
]
