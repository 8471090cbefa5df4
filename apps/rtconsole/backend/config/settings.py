"""
Realtime Session Settings
=========================

Environment-loaded configuration for the realtime session console.
Values are read from the process environment and an optional ``.env`` file
at the project root (case-insensitive, unknown keys ignored).
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_PROJECT_ROOT = Path(__file__).resolve().parents[4]
_ENV_FILE = _PROJECT_ROOT / ".env"
_AGENTSTORE_DIR = Path(__file__).resolve().parents[1] / "registries" / "agentstore"

DEFAULT_AGENT_SET = "customer_service_retail"
TRANSCRIBING_PLACEHOLDER = "Transcribing…"


class RealtimeSessionSettings(BaseSettings):
    """Application settings with environment variable loading."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Agent roster
    agent_set: str = Field(
        default=DEFAULT_AGENT_SET, description="Agent set loaded at session start"
    )
    agents_dir: str = Field(
        default=str(_AGENTSTORE_DIR),
        description="Directory containing agent set folders (registries/agentstore)",
    )

    # Transcript
    transcribing_placeholder: str = Field(
        default=TRANSCRIBING_PLACEHOLDER,
        description="Text shown for a user turn whose transcription is still pending",
    )
    event_log_max_entries: int = Field(
        default=500, ge=1, description="Max client/server events kept in the event log"
    )

    # Turn detection
    push_to_talk: bool = Field(
        default=False, description="Start sessions in push-to-talk mode (server VAD off)"
    )
    turn_detection_type: str = Field(default="server_vad", description="Server turn detector")
    vad_threshold: float = Field(default=0.9, ge=0.0, le=1.0, description="VAD activation threshold")
    vad_prefix_padding_ms: int = Field(default=300, ge=0, description="Audio kept before speech")
    vad_silence_duration_ms: int = Field(
        default=500, ge=0, description="Silence that ends a user turn"
    )
    vad_create_response: bool = Field(
        default=True, description="Let the server start a response when the turn ends"
    )

    # Session behaviour
    greet_on_connect: bool = Field(
        default=True, description="Send a simulated user greeting once connected"
    )
    greeting_text: str = Field(default="hi", description="Text of the simulated greeting")
    person_detection_interval_s: float = Field(
        default=2.0, gt=0, description="Polling interval of the person detection monitor"
    )

    @property
    def agents_path(self) -> Path:
        """Get absolute path to the agent store directory."""
        base = Path(self.agents_dir).expanduser()
        return base.resolve() if base.is_absolute() else (_AGENTSTORE_DIR / base).resolve()

    def turn_detection(self, push_to_talk: bool) -> dict | None:
        """Turn detection block for ``session.update``; ``None`` disables server VAD."""
        if push_to_talk:
            return None
        return {
            "type": self.turn_detection_type,
            "threshold": self.vad_threshold,
            "prefix_padding_ms": self.vad_prefix_padding_ms,
            "silence_duration_ms": self.vad_silence_duration_ms,
            "create_response": self.vad_create_response,
        }


@lru_cache(maxsize=1)
def get_settings() -> RealtimeSessionSettings:
    """Get or create settings instance (singleton pattern)."""
    return RealtimeSessionSettings()


def reload_settings() -> RealtimeSessionSettings:
    """Force reload of settings (useful for testing)."""
    get_settings.cache_clear()
    return get_settings()


__all__ = [
    "DEFAULT_AGENT_SET",
    "TRANSCRIBING_PLACEHOLDER",
    "RealtimeSessionSettings",
    "get_settings",
    "reload_settings",
]
