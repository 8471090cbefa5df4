"""
Configuration Package
=====================

Centralized configuration for the realtime session console.

Usage:
    from apps.rtconsole.backend.config import get_settings

    settings = get_settings()
    settings.turn_detection(push_to_talk=False)
"""

from .settings import (
    DEFAULT_AGENT_SET,
    TRANSCRIBING_PLACEHOLDER,
    RealtimeSessionSettings,
    get_settings,
    reload_settings,
)

__all__ = [
    "DEFAULT_AGENT_SET",
    "TRANSCRIBING_PLACEHOLDER",
    "RealtimeSessionSettings",
    "get_settings",
    "reload_settings",
]
