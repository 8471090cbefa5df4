"""
Realtime Session Correlation
============================

Carries the identity of the realtime session being driven (session id,
transport kind, answering agent) in a contextvar, so every span and log
record emitted while handling that session is tagged without threading the
values through call signatures.

Usage:
    # Lifecycle operation, opens a span:
    async with session_context("rt_123", "REALTIME", "base", span_name="realtime_session.connect"):
        await transport.connect()

    # Per-event hot path, log tagging only:
    with session_context_sync("rt_123", "REALTIME", "base", with_span=False):
        engine.apply(event)

    # Handoff observed mid-event:
    update_session_correlation(agent_name="translation")
"""

from __future__ import annotations

import contextvars
from contextlib import asynccontextmanager, contextmanager, nullcontext
from dataclasses import dataclass, field, replace
from typing import Any

from opentelemetry import trace

_SCALAR = (str, int, float, bool)


@dataclass(frozen=True)
class SessionCorrelation:
    """Correlation attributes of one realtime session."""

    session_id: str | None = None
    transport_type: str | None = None
    agent_name: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def short_id(self) -> str:
        return self.session_id[-8:] if self.session_id else "unknown"

    def _scalar_extra(self) -> dict[str, Any]:
        return {k: v for k, v in self.extra.items() if isinstance(v, _SCALAR)}

    def to_span_attributes(self) -> dict[str, Any]:
        """OpenTelemetry attributes; unset fields are omitted."""
        attrs = {
            "session.id": self.session_id,
            "transport.type": self.transport_type,
            "agent.name": self.agent_name,
        }
        attrs = {k: v for k, v in attrs.items() if v}
        attrs.update(self._scalar_extra())
        return attrs

    def to_log_record(self) -> dict[str, Any]:
        """Log record extras; unset fields render as "-"."""
        fields = {
            "session_id": self.session_id or "-",
            "transport_type": self.transport_type or "-",
            "agent_name": self.agent_name or "-",
        }
        fields.update({k.replace(".", "_"): v for k, v in self._scalar_extra().items()})
        return fields


_current: contextvars.ContextVar[SessionCorrelation | None] = contextvars.ContextVar(
    "realtime_session_correlation", default=None
)


def _span(correlation: SessionCorrelation, name: str):
    return trace.get_tracer(__name__).start_as_current_span(
        name,
        kind=trace.SpanKind.INTERNAL,
        attributes=correlation.to_span_attributes(),
    )


@asynccontextmanager
async def session_context(
    session_id: str | None = None,
    transport_type: str | None = None,
    agent_name: str | None = None,
    *,
    span_name: str | None = None,
    **extra: Any,
):
    """Establish correlation for an awaited lifecycle operation and open a span around it."""
    correlation = SessionCorrelation(session_id, transport_type, agent_name, extra)
    token = _current.set(correlation)
    try:
        with _span(correlation, span_name or f"realtime_session[{transport_type or 'unknown'}]"):
            yield correlation
    finally:
        _current.reset(token)


@contextmanager
def session_context_sync(
    session_id: str | None = None,
    transport_type: str | None = None,
    agent_name: str | None = None,
    *,
    with_span: bool = True,
    **extra: Any,
):
    """Synchronous variant for transport callbacks; ``with_span=False`` on per-event paths."""
    correlation = SessionCorrelation(session_id, transport_type, agent_name, extra)
    token = _current.set(correlation)
    try:
        span_cm = (
            _span(correlation, f"realtime_session_event[{transport_type or 'unknown'}]")
            if with_span
            else nullcontext()
        )
        with span_cm:
            yield correlation
    finally:
        _current.reset(token)


def update_session_correlation(**changes: Any) -> SessionCorrelation | None:
    """Replace fields of the current correlation (e.g. after an agent switch)."""
    ctx = _current.get()
    if ctx is None:
        return None
    updated = replace(ctx, **changes)
    _current.set(updated)
    return updated


def get_session_correlation() -> SessionCorrelation | None:
    """Current correlation, or None outside any session context."""
    return _current.get()


def get_short_id() -> str:
    ctx = _current.get()
    return ctx.short_id if ctx else "unknown"


def get_span_attributes() -> dict[str, Any]:
    ctx = _current.get()
    return ctx.to_span_attributes() if ctx else {}
