import os
import sys
from pathlib import Path
from typing import Any

# Disable telemetry for tests
os.environ["DISABLE_CLOUD_TELEMETRY"] = "true"

# Add project root so `apps` and `utils` resolve without installation
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pytest  # noqa: E402

from apps.rtconsole.backend.config.settings import RealtimeSessionSettings  # noqa: E402
from apps.rtconsole.backend.registries.agentstore.base import (  # noqa: E402
    AgentRoster,
    RealtimeAgent,
)


class FakeRealtimeTransport:
    """
    In-memory transport recording everything the controller sends.

    ``emit(channel, payload)`` plays the role of the network delivering an event.
    Set ``connect_status`` to None to leave connection reporting to the test.
    """

    def __init__(self, key: str, agents: list[RealtimeAgent]) -> None:
        self.key = key
        self.agents = list(agents)
        self.handlers: dict[str, list] = {}
        self.sent: list[dict[str, Any]] = []
        self.user_texts: list[str] = []
        self.interrupts = 0
        self.mute_calls: list[bool] = []
        self.connected = False
        self.disconnected = False
        self.connect_status: str | None = "connected"
        self.fail_on_connect: Exception | None = None
        self.fail_on_send: Exception | None = None

    def on(self, channel: str, handler) -> None:
        self.handlers.setdefault(channel, []).append(handler)

    def emit(self, channel: str, payload: Any) -> None:
        for handler in self.handlers.get(channel, []):
            handler(payload)

    async def connect(self) -> None:
        if self.fail_on_connect is not None:
            raise self.fail_on_connect
        self.connected = True
        if self.connect_status:
            self.emit("connection_change", "connecting")
            self.emit("connection_change", self.connect_status)

    async def disconnect(self) -> None:
        self.disconnected = True
        self.emit("connection_change", "disconnected")

    def send_event(self, event: dict[str, Any]) -> None:
        if self.fail_on_send is not None:
            raise self.fail_on_send
        self.sent.append(event)

    def send_user_text(self, text: str) -> None:
        self.user_texts.append(text)

    def interrupt(self) -> None:
        self.interrupts += 1

    def mute(self, muted: bool) -> None:
        self.mute_calls.append(muted)

    def sent_types(self) -> list[str]:
        return [e["type"] for e in self.sent]


class FakeTransportFactory:
    """Transport factory that remembers every transport it built."""

    def __init__(self) -> None:
        self.built: list[FakeRealtimeTransport] = []
        self.configure = None

    def __call__(self, key: str, agents) -> FakeRealtimeTransport:
        transport = FakeRealtimeTransport(key, agents)
        if self.configure is not None:
            self.configure(transport)
        self.built.append(transport)
        return transport

    @property
    def last(self) -> FakeRealtimeTransport:
        return self.built[-1]


@pytest.fixture
def base_agent() -> RealtimeAgent:
    return RealtimeAgent(
        name="base",
        voice="ash",
        handoff_description="Retail customer service",
        handoffs=("translation",),
    )


@pytest.fixture
def translation_agent() -> RealtimeAgent:
    return RealtimeAgent(
        name="translation",
        handoff_description="Translates between languages",
        handoffs=("base",),
    )


@pytest.fixture
def roster(base_agent, translation_agent) -> AgentRoster:
    return AgentRoster([base_agent, translation_agent], key="customer_service_retail")


@pytest.fixture
def session_settings(tmp_path) -> RealtimeSessionSettings:
    """Settings independent of the developer's environment and .env file."""
    return RealtimeSessionSettings(_env_file=None, agents_dir=str(tmp_path))


@pytest.fixture
def transport_factory() -> FakeTransportFactory:
    return FakeTransportFactory()
