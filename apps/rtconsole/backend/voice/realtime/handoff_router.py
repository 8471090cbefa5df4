"""
Handoff Router
==============

Turns observed tool-call snapshots into breadcrumbs and mirrors agent
handoffs onto the Active Agent Pointer.

The transport performs the actual handoff; the router only follows it so the
console knows which agent is answering. Each call identity is processed once
(gated by the dedup ledger) regardless of how often the history redelivers it.

Usage:
    router = HandoffRouter(store, DedupLedger(), roster, ActiveAgentPointer("base"))
    switched = router.apply_function_call(snapshot)
    if switched:
        print(switched.agent_name)
"""

from __future__ import annotations

import re
import threading
import uuid
from typing import Any

from apps.rtconsole.backend.registries.agentstore.base import AgentRoster
from apps.rtconsole.backend.voice.realtime.dedup import DedupLedger
from apps.rtconsole.backend.voice.realtime.events import AgentSwitched, FunctionCallSnapshot
from apps.rtconsole.backend.voice.realtime.transcript import TranscriptStore
from utils.ml_logging import get_logger

logger = get_logger("realtime.handoff_router")

HANDOFF_TOOL_PATTERN = re.compile(r"^transfer_to_(.+)$")
TOOL_CALL_TITLE = "Tool call: {name}"


class ActiveAgentPointer:
    """Name of the agent currently answering. Guarded for cross-thread reads."""

    def __init__(self, agent_name: str | None = None) -> None:
        self._name = agent_name
        self._lock = threading.Lock()

    @property
    def name(self) -> str | None:
        return self._name

    def set(self, agent_name: str) -> str | None:
        """Move the pointer; returns the previous agent name."""
        with self._lock:
            previous, self._name = self._name, agent_name
            return previous

    def __repr__(self) -> str:
        return f"ActiveAgentPointer({self._name!r})"


def handoff_target(tool_name: str) -> str | None:
    """Agent key encoded in a handoff tool name, or None for ordinary tools."""
    match = HANDOFF_TOOL_PATTERN.match(tool_name or "")
    return match.group(1) if match else None


class HandoffRouter:
    def __init__(
        self,
        store: TranscriptStore,
        ledger: DedupLedger,
        roster: AgentRoster,
        pointer: ActiveAgentPointer,
    ) -> None:
        self.store = store
        self.ledger = ledger
        self.roster = roster
        self.pointer = pointer
        self._breadcrumbs: dict[str, str] = {}

    def breadcrumb_id_for(self, call_id: str) -> str | None:
        return self._breadcrumbs.get(call_id)

    def apply_function_call(self, snapshot: FunctionCallSnapshot) -> AgentSwitched | None:
        """
        Process one function-call snapshot.

        Returns:
            AgentSwitched when this call moved the Active Agent Pointer, else None.
        """
        if not self.ledger.record_if_new(snapshot.item_id):
            self._refresh_output(snapshot)
            return None

        aux: dict[str, Any] = {"arguments": snapshot.arguments}
        if snapshot.output is not None:
            aux["output"] = snapshot.output
        breadcrumb_id = f"tool-{uuid.uuid4().hex}"
        self._breadcrumbs[snapshot.item_id] = breadcrumb_id
        self.store.add_breadcrumb(breadcrumb_id, TOOL_CALL_TITLE.format(name=snapshot.name), aux)

        return self._route(snapshot)

    def _refresh_output(self, snapshot: FunctionCallSnapshot) -> None:
        breadcrumb_id = self._breadcrumbs.get(snapshot.item_id)
        if breadcrumb_id is None or snapshot.output is None:
            return
        item = self.store.get(breadcrumb_id)
        if item is not None and (item.aux_data or {}).get("output") != snapshot.output:
            self.store.update_data(breadcrumb_id, {"output": snapshot.output})

    def _route(self, snapshot: FunctionCallSnapshot) -> AgentSwitched | None:
        key = handoff_target(snapshot.name)
        if key is None:
            return None

        agent = self.roster.find_casefold(key)
        if agent is None:
            logger.debug("Handoff tool %s names no roster agent; ignoring", snapshot.name)
            return None
        if agent.name == self.pointer.name:
            return None

        previous = self.pointer.set(agent.name)
        logger.info("Active agent switched: %s → %s (via %s)", previous, agent.name, snapshot.name)
        return AgentSwitched(
            previous_agent=previous,
            agent_name=agent.name,
            tool_name=snapshot.name,
            call_id=snapshot.item_id,
        )


__all__ = [
    "ActiveAgentPointer",
    "HANDOFF_TOOL_PATTERN",
    "HandoffRouter",
    "TOOL_CALL_TITLE",
    "handoff_target",
]
