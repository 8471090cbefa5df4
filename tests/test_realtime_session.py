"""
Tests for RealtimeSessionController
===================================

Lifecycle, outbound client events and event routing against an in-memory
transport.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from apps.rtconsole.backend.voice.realtime.detection import PersonDetectionMonitor
from apps.rtconsole.backend.voice.realtime.session import (
    RealtimeSessionController,
    SessionConnectError,
    SessionStatus,
)
from apps.rtconsole.backend.voice.realtime.transcript import ItemType


# ═══════════════════════════════════════════════════════════════════════════════
# FIXTURES
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def key_provider():
    return AsyncMock(return_value="ek_test")


@pytest.fixture
def controller(roster, transport_factory, key_provider, session_settings):
    return RealtimeSessionController(
        roster,
        transport_factory=transport_factory,
        key_provider=key_provider,
        settings=session_settings,
        session_id="sess_unit_test",
    )


def _breadcrumb_titles(controller) -> list[str]:
    return [i.text for i in controller.store.items() if i.type == ItemType.BREADCRUMB]


# ═══════════════════════════════════════════════════════════════════════════════
# CONNECT / DISCONNECT
# ═══════════════════════════════════════════════════════════════════════════════


class TestConnect:
    @pytest.mark.asyncio
    async def test_connect_reaches_connected_and_greets(self, controller, transport_factory):
        await controller.connect()

        transport = transport_factory.last
        assert controller.status == SessionStatus.CONNECTED
        assert transport.key == "ek_test"
        assert transport.sent_types() == [
            "session.update",
            "conversation.item.create",
            "response.create",
        ]
        assert transport.sent[0]["session"]["turn_detection"] == {
            "type": "server_vad",
            "threshold": 0.9,
            "prefix_padding_ms": 300,
            "silence_duration_ms": 500,
            "create_response": True,
        }
        assert transport.mute_calls == [False]
        assert _breadcrumb_titles(controller) == ["Agent: base"]

    @pytest.mark.asyncio
    async def test_greeting_is_hidden_user_message(self, controller, transport_factory):
        await controller.connect()
        greeting = transport_factory.last.sent[1]["item"]
        item = controller.store.get(greeting["id"])
        assert item.text == "hi"
        assert item.hidden is True
        assert item not in controller.store.rendered()

    @pytest.mark.asyncio
    async def test_connect_orders_active_agent_first(self, roster, transport_factory, key_provider, session_settings):
        controller = RealtimeSessionController(
            roster,
            transport_factory=transport_factory,
            key_provider=key_provider,
            settings=session_settings,
            active_agent="translation",
        )
        await controller.connect()
        assert [a.name for a in transport_factory.last.agents] == ["translation", "base"]

    @pytest.mark.asyncio
    async def test_connect_is_noop_unless_disconnected(self, controller, transport_factory):
        await controller.connect()
        await controller.connect()
        assert len(transport_factory.built) == 1

    @pytest.mark.asyncio
    async def test_missing_key_raises_and_disconnects(self, controller, key_provider, transport_factory):
        key_provider.return_value = None
        with pytest.raises(SessionConnectError):
            await controller.connect()
        assert controller.status == SessionStatus.DISCONNECTED
        assert transport_factory.built == []

    @pytest.mark.asyncio
    async def test_transport_failure_raises_and_disconnects(self, controller, transport_factory):
        def fail(transport):
            transport.fail_on_connect = OSError("network unreachable")

        transport_factory.configure = fail
        with pytest.raises(SessionConnectError) as exc_info:
            await controller.connect()
        assert isinstance(exc_info.value.__cause__, OSError)
        assert controller.status == SessionStatus.DISCONNECTED
        assert transport_factory.last.disconnected is True
        assert controller.send_event({"type": "response.create"}) is False

    @pytest.mark.asyncio
    async def test_status_listener(self, roster, transport_factory, key_provider, session_settings):
        seen = []
        controller = RealtimeSessionController(
            roster,
            transport_factory=transport_factory,
            key_provider=key_provider,
            settings=session_settings,
            on_status_change=seen.append,
        )
        await controller.connect()
        await controller.disconnect()
        assert seen == [SessionStatus.CONNECTING, SessionStatus.CONNECTED, SessionStatus.DISCONNECTED]


class TestDisconnect:
    @pytest.mark.asyncio
    async def test_disconnect_drops_transport(self, controller, transport_factory):
        await controller.connect()
        transport = transport_factory.last
        await controller.disconnect()

        assert transport.disconnected is True
        assert controller.status == SessionStatus.DISCONNECTED
        assert controller.send_event({"type": "response.create"}) is False

    @pytest.mark.asyncio
    async def test_events_from_stale_transport_are_ignored(self, controller, transport_factory):
        await controller.connect()
        stale = transport_factory.last
        await controller.disconnect()

        stale.emit("transport_event", {"type": "response.text.delta", "item_id": "late", "delta": "x"})
        stale.emit("connection_change", "connected")
        assert "late" not in controller.store
        assert controller.status == SessionStatus.DISCONNECTED

    @pytest.mark.asyncio
    async def test_transcript_survives_reconnect(self, controller, transport_factory):
        await controller.connect()
        transport_factory.last.emit(
            "transport_event", {"type": "response.text.delta", "item_id": "m1", "delta": "Hi"}
        )
        await controller.disconnect()
        await controller.connect()
        assert controller.store.get("m1").text == "Hi"
        assert len(transport_factory.built) == 2

    @pytest.mark.asyncio
    async def test_disconnect_stops_person_monitor(self, roster, transport_factory, key_provider, session_settings):
        monitor = MagicMock(spec=PersonDetectionMonitor)
        monitor.stop = AsyncMock()
        controller = RealtimeSessionController(
            roster,
            transport_factory=transport_factory,
            key_provider=key_provider,
            settings=session_settings,
            person_monitor=monitor,
        )
        await controller.connect()
        await controller.disconnect()
        monitor.stop.assert_awaited_once()


# ═══════════════════════════════════════════════════════════════════════════════
# OUTBOUND
# ═══════════════════════════════════════════════════════════════════════════════


class TestOutbound:
    @pytest.mark.asyncio
    async def test_send_user_text_interrupts_first(self, controller, transport_factory):
        await controller.connect()
        transport = transport_factory.last
        assert controller.send_user_text("  where is my order?  ") is True
        assert transport.interrupts == 1
        assert transport.user_texts == ["where is my order?"]

    @pytest.mark.asyncio
    async def test_blank_user_text_is_ignored(self, controller, transport_factory):
        await controller.connect()
        assert controller.send_user_text("   ") is False
        assert transport_factory.last.interrupts == 0

    def test_sends_are_noops_when_disconnected(self, controller):
        assert controller.send_event({"type": "response.create"}) is False
        assert controller.send_user_text("hello") is False
        assert controller.talk_button_down() is False
        controller.interrupt()

    @pytest.mark.asyncio
    async def test_send_failure_is_logged_not_raised(self, controller, transport_factory):
        await controller.connect()
        transport_factory.last.fail_on_send = RuntimeError("socket closed")
        assert controller.send_event({"type": "response.create"}) is False

    @pytest.mark.asyncio
    async def test_mute_remembered_while_disconnected(self, controller, transport_factory):
        controller.mute(True)
        await controller.connect()
        assert transport_factory.last.mute_calls == [True]
        controller.mute(False)
        assert transport_factory.last.mute_calls == [True, False]

    @pytest.mark.asyncio
    async def test_push_to_talk_disables_server_vad(self, controller, transport_factory):
        await controller.connect()
        transport = transport_factory.last
        transport.sent.clear()

        controller.set_push_to_talk(True)
        assert transport.sent == [{"type": "session.update", "session": {"turn_detection": None}}]

    @pytest.mark.asyncio
    async def test_talk_button_cycle(self, controller, transport_factory):
        await controller.connect()
        transport = transport_factory.last
        transport.sent.clear()

        assert controller.talk_button_up() is False
        assert controller.talk_button_down() is True
        assert controller.ptt_user_speaking is True
        assert controller.talk_button_up() is True
        assert controller.ptt_user_speaking is False
        assert transport.sent_types() == [
            "input_audio_buffer.clear",
            "input_audio_buffer.commit",
            "response.create",
        ]
        assert transport.interrupts == 1

    @pytest.mark.asyncio
    async def test_client_events_are_logged(self, controller):
        await controller.connect()
        names = [e.event_name for e in controller.event_log.entries]
        assert "session.update update session" in names


# ═══════════════════════════════════════════════════════════════════════════════
# INBOUND ROUTING
# ═══════════════════════════════════════════════════════════════════════════════


class TestInbound:
    @pytest.mark.asyncio
    async def test_handoff_announces_agent_and_updates_session(self, controller, transport_factory):
        await controller.connect()
        transport = transport_factory.last
        transport.sent.clear()

        call = {"itemId": "c1", "type": "function_call", "name": "transfer_to_translation"}
        transport.emit("history_added", call)
        transport.emit("history_updated", [call])

        assert controller.active_agent == "translation"
        assert _breadcrumb_titles(controller) == [
            "Agent: base",
            "Tool call: transfer_to_translation",
            "Agent: translation",
        ]
        assert transport.sent_types() == ["session.update"]

    @pytest.mark.asyncio
    async def test_transport_disconnect_report(self, controller, transport_factory):
        await controller.connect()
        controller.talk_button_down()
        transport_factory.last.emit("connection_change", "disconnected")
        assert controller.status == SessionStatus.DISCONNECTED
        assert controller.ptt_user_speaking is False

    @pytest.mark.asyncio
    async def test_operations_are_noops_after_transport_disconnect(self, controller, transport_factory):
        await controller.connect()
        transport = transport_factory.last
        transport.emit("connection_change", "disconnected")

        controller.interrupt()
        controller.mute(True)
        assert transport.interrupts == 0
        assert transport.mute_calls == [False]
        assert controller.is_connected is False
        assert controller.muted is True

    @pytest.mark.asyncio
    async def test_connected_report_after_transport_disconnect_is_ignored(self, controller, transport_factory):
        await controller.connect()
        transport = transport_factory.last
        transport.emit("connection_change", "disconnected")
        transport.sent.clear()
        crumbs = _breadcrumb_titles(controller)

        transport.emit("connection_change", "connected")
        assert controller.status == SessionStatus.DISCONNECTED
        assert transport.sent == []
        assert _breadcrumb_titles(controller) == crumbs

    @pytest.mark.asyncio
    async def test_connected_report_requires_connecting(self, controller, transport_factory):
        await controller.connect()
        transport = transport_factory.last
        transport.sent.clear()

        transport.emit("connection_change", "connected")
        transport.emit("connection_change", "connecting")
        assert controller.status == SessionStatus.CONNECTED
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_transport_disconnect_cancels_person_monitor(
        self, roster, transport_factory, key_provider, session_settings
    ):
        monitor = PersonDetectionMonitor(AsyncMock(return_value=None), AsyncMock(), MagicMock(), interval_s=0.01)
        controller = RealtimeSessionController(
            roster,
            transport_factory=transport_factory,
            key_provider=key_provider,
            settings=session_settings,
            person_monitor=monitor,
        )
        await controller.connect()
        assert controller.start_person_detection() is True

        transport_factory.last.emit("connection_change", "disconnected")
        assert monitor.running is False
        await controller.connect()
        assert controller.status == SessionStatus.CONNECTED

    @pytest.mark.asyncio
    async def test_server_events_are_logged(self, controller, transport_factory):
        await controller.connect()
        transport_factory.last.emit("transport_event", {"type": "response.audio.rate_limit"})
        assert controller.event_log.entries[-1].event_name == "response.audio.rate_limit"


# ═══════════════════════════════════════════════════════════════════════════════
# AGENT SELECTION
# ═══════════════════════════════════════════════════════════════════════════════


class TestSelectAgent:
    @pytest.mark.asyncio
    async def test_select_agent_reconnects_with_new_root(self, controller, transport_factory):
        await controller.connect()
        await controller.select_agent("translation")

        assert controller.active_agent == "translation"
        assert len(transport_factory.built) == 2
        assert transport_factory.built[0].disconnected is True
        assert transport_factory.last.agents[0].name == "translation"
        assert _breadcrumb_titles(controller)[-1] == "Agent: translation"

    @pytest.mark.asyncio
    async def test_select_unknown_agent(self, controller):
        with pytest.raises(ValueError):
            await controller.select_agent("billing")

    @pytest.mark.asyncio
    async def test_select_without_reconnect(self, controller, transport_factory):
        await controller.select_agent("translation", reconnect=False)
        assert controller.status == SessionStatus.DISCONNECTED
        assert transport_factory.built == []


class TestPersonDetectionHooks:
    def test_start_without_monitor(self, controller):
        assert controller.start_person_detection() is False

    @pytest.mark.asyncio
    async def test_start_and_stop_with_monitor(self, roster, transport_factory, key_provider, session_settings):
        monitor = MagicMock(spec=PersonDetectionMonitor)
        monitor.start.return_value = True
        monitor.stop = AsyncMock()
        controller = RealtimeSessionController(
            roster,
            transport_factory=transport_factory,
            key_provider=key_provider,
            settings=session_settings,
            person_monitor=monitor,
        )
        assert controller.start_person_detection() is True
        await controller.stop_person_detection()
        monitor.stop.assert_awaited_once()


class TestFromSettings:
    def test_loads_roster_from_agent_store(self, transport_factory, key_provider):
        from apps.rtconsole.backend.config.settings import RealtimeSessionSettings
        from apps.rtconsole.backend.registries.agentstore.loader import AGENTS_DIR

        settings = RealtimeSessionSettings(_env_file=None, agents_dir=str(AGENTS_DIR), agent_set="person_detection")
        controller = RealtimeSessionController.from_settings(
            transport_factory=transport_factory, key_provider=key_provider, settings=settings
        )
        assert controller.active_agent == "personDetection"
        assert controller.roster.key == "person_detection"
