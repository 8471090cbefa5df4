"""
Scheduled Detection
===================

Cancellable periodic work owned by a session.

``PeriodicTask`` runs an async callable at a fixed interval with at most one
outstanding asyncio task per owner. ``PersonDetectionMonitor`` builds on it
to poll an injected name-tag detector and surface people found by an
injected lookup. Camera capture, OCR and the lookup service are external.

Usage:
    monitor = PersonDetectionMonitor(detector, lookup, on_person=show_overlay)
    monitor.start()
    ...
    await monitor.stop()
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from apps.rtconsole.backend.config.settings import RealtimeSessionSettings, get_settings
from utils.ml_logging import get_logger

logger = get_logger("realtime.detection")


class PeriodicTask:
    """Runs ``tick`` every ``interval_s`` seconds until stopped; tick errors are logged."""

    def __init__(
        self,
        name: str,
        interval_s: float,
        tick: Callable[[], Awaitable[Any]],
    ) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self._name = name
        self._interval_s = interval_s
        self._tick = tick
        self._task: asyncio.Task | None = None
        self.ticks = 0

    @property
    def interval_s(self) -> float:
        return self._interval_s

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        """Start the loop on the running event loop. Returns False if already running."""
        if self.running:
            return False
        self._task = asyncio.create_task(self._loop(), name=self._name)
        logger.debug(f"[{self._name}] Started (interval={self._interval_s}s)")
        return True

    def cancel(self) -> bool:
        """Request cancellation without awaiting it, for callers outside a coroutine."""
        task, self._task = self._task, None
        if task is None or task.done():
            return False
        task.cancel()
        logger.debug(f"[{self._name}] Cancelled")
        return True

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug(f"[{self._name}] Stopped")

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval_s)
            try:
                await self._tick()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"[{self._name}] Tick failed: {e}")
            self.ticks += 1


@dataclass(frozen=True)
class PersonInfo:
    name: str
    location: str | None = None
    company: str | None = None
    avatar_url: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PersonInfo:
        return cls(
            name=data["name"],
            location=data.get("location"),
            company=data.get("company"),
            avatar_url=data.get("avatar_url") or data.get("avatarUrl"),
        )

    def display_text(self) -> str:
        text = f"{self.name} - {self.location or ''}"
        if self.company:
            text += f" ({self.company})"
        return text.strip()


NametagDetector = Callable[[], Awaitable[str | None]]
PersonLookup = Callable[[str], Awaitable[PersonInfo | None]]


class PersonDetectionMonitor:
    """Polls for a visible name tag and reports the matching person."""

    def __init__(
        self,
        detector: NametagDetector,
        lookup: PersonLookup,
        on_person: Callable[[PersonInfo], None],
        interval_s: float = 2.0,
    ) -> None:
        self._detector = detector
        self._lookup = lookup
        self._on_person = on_person
        self._task = PeriodicTask("person-detection", interval_s, self.poll_once)

    @classmethod
    def from_settings(
        cls,
        detector: NametagDetector,
        lookup: PersonLookup,
        on_person: Callable[[PersonInfo], None],
        settings: RealtimeSessionSettings | None = None,
    ) -> PersonDetectionMonitor:
        """Monitor polling at the configured ``person_detection_interval_s``."""
        settings = settings or get_settings()
        return cls(detector, lookup, on_person, interval_s=settings.person_detection_interval_s)

    @property
    def interval_s(self) -> float:
        return self._task.interval_s

    @property
    def running(self) -> bool:
        return self._task.running

    def start(self) -> bool:
        return self._task.start()

    def cancel(self) -> bool:
        return self._task.cancel()

    async def stop(self) -> None:
        await self._task.stop()

    async def poll_once(self) -> PersonInfo | None:
        name = await self._detector()
        if not name:
            return None
        try:
            info = await self._lookup(name)
        except Exception as e:
            logger.warning("Person lookup failed for %s: %s", name, e)
            return None
        if info is not None:
            self._on_person(info)
        return info


__all__ = [
    "NametagDetector",
    "PeriodicTask",
    "PersonDetectionMonitor",
    "PersonInfo",
    "PersonLookup",
]
