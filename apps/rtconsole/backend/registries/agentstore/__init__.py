"""
Agent Store
===========

Agent roster model and YAML-backed agent sets.
"""

from .base import AgentRoster, RealtimeAgent
from .loader import (
    AGENTS_DIR,
    AgentSetNotFoundError,
    discover_agent_sets,
    load_agent_set,
)

__all__ = [
    "AGENTS_DIR",
    "AgentRoster",
    "AgentSetNotFoundError",
    "RealtimeAgent",
    "discover_agent_sets",
    "load_agent_set",
]
