"""
Realtime Session Controller
===========================

Drives one realtime voice/text session: owns the connection lifecycle, feeds
every transport callback through the ``ConversationEngine`` and turns the
resulting effects into outbound client events.

Lifecycle:
    DISCONNECTED ──connect()──▶ CONNECTING ──"connected"──▶ CONNECTED
         ▲                                                     │
         └──────────── disconnect() / "disconnected" ◀─────────┘

Only ``connect`` / ``disconnect`` / ``select_agent`` are awaited. Every send
is synchronous and fire-and-forget: failures are logged, never raised.

Usage:
    controller = RealtimeSessionController(
        roster,
        transport_factory=build_transport,
        key_provider=fetch_ephemeral_key,
    )
    await controller.connect()
    controller.send_user_text("where is my order?")
    controller.store.rendered()
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from enum import Enum
from typing import Any

from opentelemetry import trace

from apps.rtconsole.backend.config.settings import RealtimeSessionSettings, get_settings
from apps.rtconsole.backend.registries.agentstore.base import AgentRoster
from apps.rtconsole.backend.registries.agentstore.loader import load_agent_set
from apps.rtconsole.backend.voice.realtime import client_events
from apps.rtconsole.backend.voice.realtime.detection import PersonDetectionMonitor
from apps.rtconsole.backend.voice.realtime.engine import ConversationEngine
from apps.rtconsole.backend.voice.realtime.event_log import EventLog
from apps.rtconsole.backend.voice.realtime.events import (
    AgentSwitched,
    ConnectionStatus,
    ConnectionStatusChanged,
    Effect,
    ResponseCompleted,
    ServerEventType,
)
from apps.rtconsole.backend.voice.realtime.transcript import ItemStatus, Role, TranscriptStore
from apps.rtconsole.backend.voice.realtime.transport import (
    CONNECTION_CHANGE,
    HISTORY_ADDED,
    HISTORY_UPDATED,
    TRANSPORT_EVENT,
    KeyProvider,
    RealtimeTransport,
    TransportFactory,
)
from utils.ml_logging import get_logger
from utils.session_context import (
    session_context,
    session_context_sync,
    update_session_correlation,
)

logger = get_logger("realtime.session")
tracer = trace.get_tracer(__name__)

TRANSPORT_TYPE = "REALTIME"
AGENT_BREADCRUMB_TITLE = "Agent: {name}"


# ═══════════════════════════════════════════════════════════════════════════════
# STATUS & ERRORS
# ═══════════════════════════════════════════════════════════════════════════════


class SessionStatus(str, Enum):
    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"


_STATUS_FOR_CONNECTION = {
    ConnectionStatus.CONNECTING: SessionStatus.CONNECTING,
    ConnectionStatus.CONNECTED: SessionStatus.CONNECTED,
    ConnectionStatus.DISCONNECTED: SessionStatus.DISCONNECTED,
}


class RealtimeSessionError(Exception):
    """Base class for realtime session errors."""


class SessionConnectError(RealtimeSessionError):
    """Connecting failed; the session is back in DISCONNECTED."""


# ═══════════════════════════════════════════════════════════════════════════════
# CONTROLLER
# ═══════════════════════════════════════════════════════════════════════════════


class RealtimeSessionController:
    """
    Connection lifecycle plus event routing for one console session.

    The transcript, dedup ledger and Active Agent Pointer live in the engine
    and survive reconnects; only the transport is rebuilt per connection.
    """

    def __init__(
        self,
        roster: AgentRoster,
        *,
        transport_factory: TransportFactory,
        key_provider: KeyProvider,
        settings: RealtimeSessionSettings | None = None,
        active_agent: str | None = None,
        session_id: str | None = None,
        person_monitor: PersonDetectionMonitor | None = None,
        on_status_change: Callable[[SessionStatus], None] | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.roster = roster
        self.session_id = session_id or f"rt_{uuid.uuid4().hex[:12]}"
        self.engine = ConversationEngine(
            roster,
            active_agent=active_agent,
            placeholder=self.settings.transcribing_placeholder,
        )
        self.event_log = EventLog(self.settings.event_log_max_entries)
        self.person_monitor = person_monitor

        self._transport_factory = transport_factory
        self._key_provider = key_provider
        self._on_status_change = on_status_change
        self._transport: RealtimeTransport | None = None
        self._status = SessionStatus.DISCONNECTED
        self._push_to_talk = self.settings.push_to_talk
        self._ptt_user_speaking = False
        self._muted = False

    @classmethod
    def from_settings(
        cls,
        *,
        transport_factory: TransportFactory,
        key_provider: KeyProvider,
        settings: RealtimeSessionSettings | None = None,
        **kwargs: Any,
    ) -> RealtimeSessionController:
        """Build a controller for the agent set named in settings."""
        settings = settings or get_settings()
        roster = load_agent_set(settings.agent_set, settings.agents_path)
        return cls(
            roster,
            transport_factory=transport_factory,
            key_provider=key_provider,
            settings=settings,
            **kwargs,
        )

    # ─────────────────────────────────────────────────────────────────────────
    # State
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def is_connected(self) -> bool:
        return self._status == SessionStatus.CONNECTED and self._transport is not None

    @property
    def store(self) -> TranscriptStore:
        return self.engine.store

    @property
    def active_agent(self) -> str | None:
        return self.engine.active_agent

    @property
    def push_to_talk(self) -> bool:
        return self._push_to_talk

    @property
    def muted(self) -> bool:
        return self._muted

    @property
    def ptt_user_speaking(self) -> bool:
        return self._ptt_user_speaking

    def _set_status(self, status: SessionStatus) -> SessionStatus:
        previous, self._status = self._status, status
        if previous != status:
            logger.info("[%s] Session status %s → %s", self.session_id[-8:], previous.value, status.value)
            if self._on_status_change:
                try:
                    self._on_status_change(status)
                except Exception:
                    logger.exception("Status listener failed")
        return previous

    # ─────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    async def connect(self) -> None:
        """
        Open a new transport with the active agent as root.

        Raises:
            SessionConnectError: no ephemeral key, or the transport failed to connect
        """
        if self._status != SessionStatus.DISCONNECTED:
            logger.debug("connect() ignored while %s", self._status.value)
            return

        self._set_status(SessionStatus.CONNECTING)
        async with session_context(
            self.session_id,
            TRANSPORT_TYPE,
            self.active_agent,
            span_name="realtime_session.connect",
        ):
            try:
                self.event_log.log_client_event({"type": "session"}, "fetch_session_token_request")
                key = await self._key_provider()
                if not key:
                    self.event_log.log_client_event({"type": "error"}, "no_ephemeral_key")
                    raise SessionConnectError("No ephemeral key provided by the server")

                agents = self.roster.ordered_for(self.active_agent or "")
                transport = self._transport_factory(key, agents)
                self._transport = transport
                self._bind(transport)
                await transport.connect()
            except Exception as exc:
                failed, self._transport = self._transport, None
                if failed is not None:
                    try:
                        await failed.disconnect()
                    except Exception as e:
                        logger.warning("Failed transport disconnect failed: %s", e)
                self._set_status(SessionStatus.DISCONNECTED)
                logger.error("[%s] Error connecting realtime session: %s", self.session_id[-8:], exc)
                if isinstance(exc, SessionConnectError):
                    raise
                raise SessionConnectError(f"Failed to connect realtime session: {exc}") from exc

    async def disconnect(self) -> None:
        """Drop the transport, stop owned background work and return to DISCONNECTED."""
        transport, self._transport = self._transport, None
        async with session_context(
            self.session_id,
            TRANSPORT_TYPE,
            self.active_agent,
            span_name="realtime_session.disconnect",
        ):
            if transport is not None:
                try:
                    await transport.disconnect()
                except Exception as e:
                    logger.warning("Transport disconnect failed: %s", e)
            if self.person_monitor is not None:
                await self.person_monitor.stop()
            self._ptt_user_speaking = False
            self._set_status(SessionStatus.DISCONNECTED)
            self.event_log.log_client_event({"type": "session"}, "disconnected")

    async def select_agent(self, agent_name: str, *, reconnect: bool = True) -> None:
        """
        Make ``agent_name`` the active agent and root of the next connection.

        Raises:
            ValueError: the agent is not part of the roster
        """
        if self.roster.find(agent_name) is None:
            raise ValueError(f"Unknown agent '{agent_name}'. Available: {self.roster.names}")

        await self.disconnect()
        previous = self.engine.select_agent(agent_name)
        logger.info("Agent selected: %s → %s", previous, agent_name)
        if reconnect:
            await self.connect()

    # ─────────────────────────────────────────────────────────────────────────
    # Inbound events
    # ─────────────────────────────────────────────────────────────────────────

    def _bind(self, transport: RealtimeTransport) -> None:
        transport.on(TRANSPORT_EVENT, lambda ev: self._on_server_event(transport, ev))
        transport.on(HISTORY_ADDED, lambda item: self._on_history_added(transport, item))
        transport.on(HISTORY_UPDATED, lambda items: self._on_history_updated(transport, items))
        transport.on(CONNECTION_CHANGE, lambda status: self._on_connection_change(transport, status))

    def _is_current(self, transport: RealtimeTransport) -> bool:
        if transport is self._transport:
            return True
        logger.debug("Ignoring event from a stale transport")
        return False

    def _on_server_event(self, transport: RealtimeTransport, event: Any) -> None:
        if not self._is_current(transport):
            return
        self.event_log.log_server_event(event)
        self._apply(event)

    def _on_history_added(self, transport: RealtimeTransport, item: Any) -> None:
        if not self._is_current(transport):
            return
        if isinstance(item, dict):
            self.event_log.log_history_item(item)
        self._apply({"type": ServerEventType.HISTORY_ADDED.value, "item": item})

    def _on_history_updated(self, transport: RealtimeTransport, items: Any) -> None:
        if not self._is_current(transport):
            return
        history = list(items) if isinstance(items, (list, tuple)) else items
        self._apply({"type": ServerEventType.HISTORY_UPDATED.value, "history": history})

    def _on_connection_change(self, transport: RealtimeTransport, status: Any) -> None:
        if not self._is_current(transport):
            return
        self._apply({"type": ServerEventType.CONNECTION_CHANGE.value, "status": status})

    def _apply(self, record: dict[str, Any]) -> None:
        with session_context_sync(
            self.session_id, TRANSPORT_TYPE, self.active_agent, with_span=False
        ):
            result = self.engine.apply(record)
            for effect in result.effects:
                self._handle_effect(effect)

    def _handle_effect(self, effect: Effect) -> None:
        if isinstance(effect, ConnectionStatusChanged):
            new_status = _STATUS_FOR_CONNECTION[effect.status]
            if new_status != SessionStatus.DISCONNECTED and self._status != SessionStatus.CONNECTING:
                logger.debug("Ignoring %s report while %s", new_status.value, self._status.value)
                return
            previous = self._set_status(new_status)
            if new_status == SessionStatus.CONNECTED and previous != SessionStatus.CONNECTED:
                self._on_connected()
            elif new_status == SessionStatus.DISCONNECTED:
                self._on_remote_disconnect()
        elif isinstance(effect, AgentSwitched):
            update_session_correlation(agent_name=effect.agent_name)
            with tracer.start_as_current_span(
                "realtime_session.agent_switch",
                attributes={
                    "session.id": self.session_id,
                    "agent.previous": effect.previous_agent or "",
                    "agent.name": effect.agent_name,
                    "tool.name": effect.tool_name,
                },
            ):
                if self.is_connected:
                    self._announce_agent()
                    self.update_session()
        elif isinstance(effect, ResponseCompleted):
            logger.debug("Response completed: %s", effect.response_id)

    def _on_connected(self) -> None:
        self._announce_agent()
        self.update_session()
        self._sync_mute()
        if self.settings.greet_on_connect:
            self.send_simulated_user_message(self.settings.greeting_text)

    def _on_remote_disconnect(self) -> None:
        # Later reports from the dropped transport are stale.
        self._transport = None
        self._ptt_user_speaking = False
        if self.person_monitor is not None and self.person_monitor.cancel():
            logger.info("[%s] Person detection stopped after transport disconnect", self.session_id[-8:])
        self.event_log.log_client_event({"type": "session"}, "disconnected by transport")

    def _announce_agent(self) -> None:
        name = self.active_agent
        if not name:
            return
        agent = self.roster.find(name)
        self.store.add_breadcrumb(
            f"agent-{uuid.uuid4().hex}",
            AGENT_BREADCRUMB_TITLE.format(name=name),
            agent.summary() if agent else None,
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Outbound
    # ─────────────────────────────────────────────────────────────────────────

    def send_event(self, event: dict[str, Any], suffix: str = "") -> bool:
        """Forward a client event; False when there is no connected transport or the send failed."""
        transport = self._transport
        if transport is None or self._status != SessionStatus.CONNECTED:
            logger.warning("Realtime transport not available; dropping %s", event.get("type"))
            return False
        try:
            transport.send_event(event)
        except Exception as e:
            logger.error("Failed to send %s: %s", event.get("type"), e)
            return False
        self.event_log.log_client_event(event, suffix)
        return True

    def update_session(self) -> bool:
        """Push turn detection for the current push-to-talk mode."""
        turn_detection = self.settings.turn_detection(self._push_to_talk)
        return self.send_event(client_events.session_update(turn_detection), "update session")

    def send_user_text(self, text: str) -> bool:
        text = (text or "").strip()
        if not text:
            return False
        transport = self._transport
        if transport is None or not self.is_connected:
            logger.warning("Realtime transport not available; dropping user text")
            return False
        self.interrupt()
        try:
            transport.send_user_text(text)
        except Exception as e:
            logger.error("Failed to send user text: %s", e)
            return False
        return True

    def send_simulated_user_message(self, text: str) -> bool:
        """Inject a user turn that is hidden from the transcript and trigger a response."""
        if not self.is_connected:
            logger.warning("Realtime transport not available; dropping simulated message")
            return False
        item_id = uuid.uuid4().hex[:32]
        self.store.add_message(item_id, Role.USER, text, status=ItemStatus.IN_PROGRESS, hidden=True)
        sent = self.send_event(
            client_events.user_message_item(text, item_id), "(simulated user text message)"
        )
        return sent and self.send_event(
            client_events.response_create(), "(trigger response after simulated user text message)"
        )

    def interrupt(self) -> None:
        transport = self._transport
        if transport is None or not self.is_connected:
            return
        try:
            transport.interrupt()
        except Exception as e:
            logger.error("Failed to interrupt: %s", e)

    def mute(self, muted: bool) -> None:
        """Remembered while disconnected and re-applied on connect."""
        self._muted = muted
        if self.is_connected:
            self._sync_mute()

    def _sync_mute(self) -> None:
        transport = self._transport
        if transport is None or not self.is_connected:
            return
        try:
            transport.mute(self._muted)
        except Exception as e:
            logger.warning("Failed to apply mute=%s: %s", self._muted, e)

    def set_push_to_talk(self, enabled: bool) -> None:
        self._push_to_talk = enabled
        if self.is_connected:
            self.update_session()

    def talk_button_down(self) -> bool:
        if not self.is_connected:
            return False
        self.interrupt()
        self._ptt_user_speaking = True
        return self.send_event(client_events.input_audio_buffer_clear(), "clear PTT buffer")

    def talk_button_up(self) -> bool:
        if not self.is_connected or not self._ptt_user_speaking:
            return False
        self._ptt_user_speaking = False
        committed = self.send_event(client_events.input_audio_buffer_commit(), "commit PTT")
        return committed and self.send_event(client_events.response_create(), "trigger response PTT")

    # ─────────────────────────────────────────────────────────────────────────
    # Person detection
    # ─────────────────────────────────────────────────────────────────────────

    def start_person_detection(self) -> bool:
        if self.person_monitor is None:
            logger.warning("No person detection monitor configured")
            return False
        return self.person_monitor.start()

    async def stop_person_detection(self) -> None:
        if self.person_monitor is not None:
            await self.person_monitor.stop()


__all__ = [
    "AGENT_BREADCRUMB_TITLE",
    "RealtimeSessionController",
    "RealtimeSessionError",
    "SessionConnectError",
    "SessionStatus",
    "TRANSPORT_TYPE",
]
