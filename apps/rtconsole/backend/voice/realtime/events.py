"""
Realtime Event Schemas
======================

Two layers:

* **Wire models** (pydantic): the loosely-typed records delivered by the
  transport, validated once at the classifier boundary. Field aliases cover
  the spellings seen in the wild (``item_id`` / ``itemId``, ``delta`` / ``text``).
* **Intents** (frozen dataclasses): the closed set of semantic events the
  merge components consume. Nothing downstream of the classifier reads raw
  dicts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

# ═══════════════════════════════════════════════════════════════════════════════
# WIRE EVENT TYPES
# ═══════════════════════════════════════════════════════════════════════════════


class ServerEventType(str, Enum):
    """``type`` strings understood by the classifier."""

    RESPONSE_TEXT_DELTA = "response.text.delta"
    RESPONSE_AUDIO_TRANSCRIPT_DELTA = "response.audio_transcript.delta"
    INPUT_AUDIO_BUFFER_SPEECH_STARTED = "input_audio_buffer.speech_started"
    INPUT_AUDIO_TRANSCRIPTION_DELTA = "conversation.input_audio_transcription.delta"
    CONVERSATION_ITEM_INPUT_AUDIO_TRANSCRIPTION_DELTA = (
        "conversation.item.input_audio_transcription.delta"
    )
    CONVERSATION_ITEM_INPUT_AUDIO_TRANSCRIPTION_COMPLETED = (
        "conversation.item.input_audio_transcription.completed"
    )
    RESPONSE_DONE = "response.done"
    # Session-level channels, wrapped into tagged records by the session controller
    HISTORY_ADDED = "history_added"
    HISTORY_UPDATED = "history_updated"
    CONNECTION_CHANGE = "connection_change"


class ConnectionStatus(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


# ═══════════════════════════════════════════════════════════════════════════════
# WIRE MODELS
# ═══════════════════════════════════════════════════════════════════════════════

_ITEM_ID = AliasChoices("item_id", "itemId")


class _WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class StreamDeltaPayload(_WireModel):
    item_id: str = Field(..., min_length=1, validation_alias=_ITEM_ID)
    delta: str = Field(..., min_length=1, validation_alias=AliasChoices("delta", "text"))
    response_id: str | None = Field(
        default=None, validation_alias=AliasChoices("response_id", "responseId")
    )


class SpeechStartedPayload(_WireModel):
    item_id: str = Field(..., min_length=1, validation_alias=_ITEM_ID)


class TranscriptionDeltaPayload(_WireModel):
    item_id: str = Field(..., min_length=1, validation_alias=_ITEM_ID)
    delta: str = Field(..., validation_alias=AliasChoices("delta", "text"))


class TranscriptionCompletedPayload(_WireModel):
    item_id: str = Field(..., min_length=1, validation_alias=_ITEM_ID)
    transcript: str


class ResponseDonePayload(_WireModel):
    response_id: str | None = Field(
        default=None, validation_alias=AliasChoices("response_id", "responseId")
    )
    response: dict[str, Any] | None = None


class ConnectionChangePayload(_WireModel):
    status: ConnectionStatus


class ContentFragment(_WireModel):
    """One content part of a message snapshot."""

    type: str
    text: str | None = None
    transcript: str | None = None


class MessageSnapshot(_WireModel):
    item_id: str = Field(..., min_length=1, validation_alias=AliasChoices("itemId", "item_id", "id"))
    type: Literal["message"]
    role: Literal["user", "assistant", "system"] = "assistant"
    content: list[ContentFragment] = Field(default_factory=list)
    status: str | None = None


class FunctionCallSnapshot(_WireModel):
    item_id: str = Field(..., min_length=1, validation_alias=AliasChoices("itemId", "item_id", "id"))
    type: Literal["function_call"]
    name: str = ""
    arguments: Any = None
    output: Any = None
    status: str | None = None


HistorySnapshot = Annotated[
    Union[MessageSnapshot, FunctionCallSnapshot], Field(discriminator="type")
]

SNAPSHOT_KINDS = frozenset({"message", "function_call"})


# ═══════════════════════════════════════════════════════════════════════════════
# INTENTS
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class StreamTextDelta:
    item_id: str
    delta: str
    kind: Literal["stream_text_delta"] = "stream_text_delta"


@dataclass(frozen=True)
class StreamTranscriptDelta:
    item_id: str
    delta: str
    kind: Literal["stream_transcript_delta"] = "stream_transcript_delta"


@dataclass(frozen=True)
class UserSpeechStarted:
    item_id: str
    kind: Literal["user_speech_started"] = "user_speech_started"


@dataclass(frozen=True)
class UserTranscriptionDelta:
    item_id: str
    delta: str
    kind: Literal["user_transcription_delta"] = "user_transcription_delta"


@dataclass(frozen=True)
class UserTranscriptionCompleted:
    item_id: str
    transcript: str
    kind: Literal["user_transcription_completed"] = "user_transcription_completed"


@dataclass(frozen=True)
class ResponseDone:
    response_id: str | None = None
    kind: Literal["response_done"] = "response_done"


@dataclass(frozen=True)
class HistoryItemAdded:
    item: MessageSnapshot | FunctionCallSnapshot
    kind: Literal["history_item_added"] = "history_item_added"


@dataclass(frozen=True)
class HistoryItemsUpdated:
    items: tuple[MessageSnapshot | FunctionCallSnapshot, ...] = ()
    kind: Literal["history_items_updated"] = "history_items_updated"


@dataclass(frozen=True)
class ConnectionStateChanged:
    status: ConnectionStatus
    kind: Literal["connection_state_changed"] = "connection_state_changed"


@dataclass(frozen=True)
class Unclassified:
    event_type: str | None = None
    reason: str = "unknown event type"
    kind: Literal["unclassified"] = "unclassified"


Intent = Union[
    StreamTextDelta,
    StreamTranscriptDelta,
    UserSpeechStarted,
    UserTranscriptionDelta,
    UserTranscriptionCompleted,
    ResponseDone,
    HistoryItemAdded,
    HistoryItemsUpdated,
    ConnectionStateChanged,
    Unclassified,
]


# ═══════════════════════════════════════════════════════════════════════════════
# EFFECTS
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ConnectionStatusChanged:
    """The transport reported a new connection state."""

    status: ConnectionStatus


@dataclass(frozen=True)
class AgentSwitched:
    """The Active Agent Pointer moved because a handoff tool call was observed."""

    previous_agent: str | None
    agent_name: str
    tool_name: str
    call_id: str


@dataclass(frozen=True)
class ResponseCompleted:
    response_id: str | None


Effect = Union[ConnectionStatusChanged, AgentSwitched, ResponseCompleted]


@dataclass
class ApplyResult:
    """Outcome of applying one raw event: its intent plus side effects for the caller."""

    intent: Intent
    effects: list[Effect] = field(default_factory=list)

    @property
    def dropped(self) -> bool:
        return isinstance(self.intent, Unclassified)


__all__ = [
    "AgentSwitched",
    "ApplyResult",
    "ConnectionChangePayload",
    "ConnectionStateChanged",
    "ConnectionStatus",
    "ConnectionStatusChanged",
    "ContentFragment",
    "Effect",
    "FunctionCallSnapshot",
    "HistoryItemAdded",
    "HistoryItemsUpdated",
    "HistorySnapshot",
    "Intent",
    "MessageSnapshot",
    "ResponseCompleted",
    "ResponseDone",
    "ResponseDonePayload",
    "SNAPSHOT_KINDS",
    "ServerEventType",
    "SpeechStartedPayload",
    "StreamDeltaPayload",
    "StreamTextDelta",
    "StreamTranscriptDelta",
    "TranscriptionCompletedPayload",
    "TranscriptionDeltaPayload",
    "Unclassified",
    "UserSpeechStarted",
    "UserTranscriptionCompleted",
    "UserTranscriptionDelta",
]
