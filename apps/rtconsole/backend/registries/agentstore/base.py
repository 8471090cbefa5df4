"""
Realtime Agent Roster
=====================

Agent definitions for realtime sessions and the fixed roster a session is
started with.

An agent's prompt, voice and tools are handed to the transport untouched;
the console only needs names (for the Active Agent Pointer and handoff
routing) and descriptions (for agent breadcrumbs).

Usage:
    roster = AgentRoster([base_agent, translation_agent])
    roster.find_casefold("TRANSLATION")   # → translation_agent
    roster.ordered_for("translation")     # translation first, used as root
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class RealtimeAgent:
    """
    A single agent persona.

    Attributes:
        name: Roster-unique agent name; handoff tools are named ``transfer_to_<name>``
        voice: Voice preset name forwarded to the transport
        instructions: System prompt (opaque to the console)
        handoff_description: Short description shown to other agents and in breadcrumbs
        handoffs: Names of agents this one may transfer to
        tool_names: Tools exposed to the model
    """

    name: str
    voice: str = "sage"
    instructions: str = ""
    handoff_description: str = ""
    handoffs: tuple[str, ...] = ()
    tool_names: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RealtimeAgent:
        """Create a RealtimeAgent from a dict (YAML parsing)."""
        name = data.get("name")
        if not name:
            raise ValueError("Agent definition requires a 'name'")
        return cls(
            name=str(name),
            voice=data.get("voice", cls.voice),
            instructions=(data.get("instructions") or "").strip(),
            handoff_description=(data.get("handoff_description") or "").strip(),
            handoffs=tuple(data.get("handoffs") or ()),
            tool_names=tuple(data.get("tools") or ()),
        )

    def summary(self) -> dict[str, Any]:
        """Lightweight summary for breadcrumbs and logs."""
        return {
            "name": self.name,
            "voice": self.voice,
            "handoff_description": self.handoff_description,
            "handoffs": list(self.handoffs),
            "tools": list(self.tool_names),
        }


class AgentRoster:
    """Ordered, immutable set of agents available for one session."""

    def __init__(self, agents: Iterable[RealtimeAgent], key: str = "") -> None:
        self._agents = tuple(agents)
        self.key = key
        names = [a.name for a in self._agents]
        duplicates = {n for n in names if names.count(n) > 1}
        if duplicates:
            raise ValueError(f"Duplicate agent names in roster: {sorted(duplicates)}")

    def __repr__(self) -> str:
        return f"AgentRoster(key={self.key!r}, agents={self.names!r})"

    @property
    def agents(self) -> tuple[RealtimeAgent, ...]:
        return self._agents

    def __iter__(self) -> Iterator[RealtimeAgent]:
        return iter(self.agents)

    def __len__(self) -> int:
        return len(self.agents)

    def __contains__(self, name: object) -> bool:
        return self.find(name) is not None if isinstance(name, str) else False

    @property
    def names(self) -> list[str]:
        return [a.name for a in self.agents]

    @property
    def default_agent(self) -> RealtimeAgent | None:
        """First agent of the roster; the root when nothing else is selected."""
        return self.agents[0] if self.agents else None

    def find(self, name: str) -> RealtimeAgent | None:
        """Exact-name lookup."""
        for agent in self.agents:
            if agent.name == name:
                return agent
        return None

    def find_casefold(self, key: str) -> RealtimeAgent | None:
        """Case-insensitive lookup used when mirroring handoff tool calls."""
        folded = key.casefold()
        for agent in self.agents:
            if agent.name.casefold() == folded:
                return agent
        return None

    def ordered_for(self, root_name: str) -> list[RealtimeAgent]:
        """Roster with ``root_name`` moved to the front (the transport treats it as root)."""
        agents = list(self.agents)
        for idx, agent in enumerate(agents):
            if agent.name == root_name:
                if idx > 0:
                    agents.insert(0, agents.pop(idx))
                break
        return agents


__all__ = ["AgentRoster", "RealtimeAgent"]
