"""Tour lifecycle EventBus.

Synchronous publish/subscribe for the engine's lifecycle events
(``start``, ``stop``, ``stepChange``) plus auxiliary channels such as
``log_record``.

Goals:
 - Decouple the engine from its consumers (tooltip views, analytics, persistence)
 - Safe error isolation: one failing listener doesn't break the publish cycle
 - Listener set may change during a publish (snapshot-first dispatch)
 - ``on`` / ``off`` keyed by callback identity, ``subscribe`` returning a handle
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from threading import RLock
from time import perf_counter
from typing import Any, Callable, Dict, List, Optional

from tourpilot.errors import ListenerError

__all__ = [
    "TourEvent",
    "Event",
    "StartPayload",
    "StopPayload",
    "StepChangePayload",
    "EventBus",
    "Subscription",
]

_logger = logging.getLogger(__name__)


class TourEvent(str, Enum):
    START = "start"
    STOP = "stop"
    STEP_CHANGE = "stepChange"
    LOG_RECORD = "log_record"


@dataclass(frozen=True)
class StartPayload:
    tour_key: str


@dataclass(frozen=True)
class StopPayload:
    tour_key: str
    completed: bool


@dataclass(frozen=True)
class StepChangePayload:
    tour_key: str
    step: Any  # Step; typed loosely to keep the bus free of registry imports
    step_number: int


@dataclass
class Event:
    name: str
    payload: Any
    timestamp: float


Listener = Callable[[Any], None]


@dataclass
class Subscription:
    event: str
    handler: Listener
    once: bool
    active: bool = True

    def cancel(self) -> None:
        self.active = False


def _key(name: str | TourEvent) -> str:
    return name.value if isinstance(name, TourEvent) else name


class EventBus:
    """Synchronous dispatcher; listeners receive the payload object.

    Handlers are invoked while the lock is NOT held (copy-first strategy) so a
    listener may subscribe or unsubscribe, including itself, mid-dispatch.
    Failures are wrapped in ``ListenerError``, logged, and kept in ``errors``.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._subs: Dict[str, List[Subscription]] = {}
        self._errors: List[tuple[Event, ListenerError]] = []

    # ------------------------------------------------------------------
    # Subscription management
    # ------------------------------------------------------------------
    def subscribe(
        self, name: str | TourEvent, handler: Listener, *, once: bool = False
    ) -> Subscription:
        key = _key(name)
        sub = Subscription(event=key, handler=handler, once=once)
        with self._lock:
            self._subs.setdefault(key, []).append(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            bucket = self._subs.get(sub.event)
            if bucket:
                self._subs[sub.event] = [s for s in bucket if s is not sub]
                if not self._subs[sub.event]:
                    self._subs.pop(sub.event, None)
        sub.active = False

    def on(self, name: str | TourEvent, callback: Listener) -> None:
        """Register ``callback``; registering the same callback twice is a no-op."""
        key = _key(name)
        with self._lock:
            if any(s.handler == callback for s in self._subs.get(key, ())):
                return
        self.subscribe(key, callback)

    def off(self, name: str | TourEvent, callback: Listener) -> None:
        key = _key(name)
        with self._lock:
            matches = [s for s in self._subs.get(key, ()) if s.handler == callback]
        for sub in matches:
            self.unsubscribe(sub)

    def remove_all_listeners(self, name: str | TourEvent | None = None) -> None:
        with self._lock:
            if name is None:
                buckets = list(self._subs.values())
                self._subs.clear()
            else:
                buckets = [self._subs.pop(_key(name), [])]
        for bucket in buckets:
            for sub in bucket:
                sub.active = False

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------
    def publish(self, name: str | TourEvent, payload: Any = None) -> Event:
        key = _key(name)
        evt = Event(name=key, payload=payload, timestamp=perf_counter())
        with self._lock:
            subs = list(self._subs.get(key, ()))
        done_once: List[Subscription] = []
        for sub in subs:
            if not sub.active:
                continue
            try:
                sub.handler(payload)
            except Exception as exc:  # noqa: BLE001 - isolate listener failures
                err = ListenerError(key, exc)
                with self._lock:
                    self._errors.append((evt, err))
                # log records raised from a log_record listener would recurse
                if key != TourEvent.LOG_RECORD.value:
                    _logger.exception("[TourPilot] Error in %s listener", key)
            if sub.once:
                done_once.append(sub)
        for sub in done_once:
            self.unsubscribe(sub)
        return evt

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    def subscriber_count(self, name: str | TourEvent) -> int:
        with self._lock:
            return len(self._subs.get(_key(name), ()))

    def list_events(self) -> list[str]:
        with self._lock:
            return list(self._subs.keys())

    @property
    def errors(self) -> list[tuple[Event, ListenerError]]:
        with self._lock:
            return list(self._errors)

    def last_error(self) -> Optional[ListenerError]:
        with self._lock:
            return self._errors[-1][1] if self._errors else None

    def clear(self) -> None:
        with self._lock:
            self._subs.clear()
            self._errors.clear()
