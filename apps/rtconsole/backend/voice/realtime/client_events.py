"""
Client Event Builders
=====================

Outbound records the console sends to the realtime transport. The transport
forwards them verbatim, so each builder returns a plain JSON-ready dict.
"""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Any


class ClientEventType(str, Enum):
    SESSION_UPDATE = "session.update"
    CONVERSATION_ITEM_CREATE = "conversation.item.create"
    RESPONSE_CREATE = "response.create"
    INPUT_AUDIO_BUFFER_CLEAR = "input_audio_buffer.clear"
    INPUT_AUDIO_BUFFER_COMMIT = "input_audio_buffer.commit"


def session_update(turn_detection: dict[str, Any] | None) -> dict[str, Any]:
    """``turn_detection=None`` disables server VAD (push-to-talk)."""
    return {
        "type": ClientEventType.SESSION_UPDATE.value,
        "session": {"turn_detection": turn_detection},
    }


def user_message_item(text: str, item_id: str | None = None) -> dict[str, Any]:
    return {
        "type": ClientEventType.CONVERSATION_ITEM_CREATE.value,
        "item": {
            "id": item_id or uuid.uuid4().hex,
            "type": "message",
            "role": "user",
            "content": [{"type": "input_text", "text": text}],
        },
    }


def response_create() -> dict[str, Any]:
    return {"type": ClientEventType.RESPONSE_CREATE.value}


def input_audio_buffer_clear() -> dict[str, Any]:
    return {"type": ClientEventType.INPUT_AUDIO_BUFFER_CLEAR.value}


def input_audio_buffer_commit() -> dict[str, Any]:
    return {"type": ClientEventType.INPUT_AUDIO_BUFFER_COMMIT.value}


__all__ = [
    "ClientEventType",
    "input_audio_buffer_clear",
    "input_audio_buffer_commit",
    "response_create",
    "session_update",
    "user_message_item",
]
