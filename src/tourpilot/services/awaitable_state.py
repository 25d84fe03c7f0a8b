"""AwaitableState: a state cell whose setter resolves on convergence.

``await state.set(value)`` returns only after the new value has been
committed on a later loop iteration *and* every commit effect (e.g. the
overlay applying its visibility) has completed. This separates "intent to
show" from "observably shown".

Semantics
---------
* The commit is deferred with ``loop.call_soon``, the asyncio analogue of the
  next render pass.
* If a newer ``set`` arrives before an older one has converged, the older
  waiter resolves once the state converges to the newest value rather than
  hanging forever.
* Setting the current value still round-trips through a commit so callers get
  the same ordering guarantees.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Generic, List, Optional, Set, TypeVar

__all__ = ["AwaitableState"]

T = TypeVar("T")

Effect = Callable[[T], Optional[Awaitable[None]]]

_logger = logging.getLogger(__name__)


class AwaitableState(Generic[T]):
    def __init__(self, initial: T, *, effect: Effect | None = None) -> None:
        self._value: T = initial
        self._desired: T = initial
        self._effect = effect
        self._waiters: List[asyncio.Future[None]] = []
        self._generation = 0
        self._tasks: Set[asyncio.Task[None]] = set()

    @property
    def value(self) -> T:
        """Committed value (what observers currently see)."""
        return self._value

    @property
    def desired(self) -> T:
        return self._desired

    @property
    def pending(self) -> bool:
        return bool(self._waiters)

    async def set(self, new_value: T) -> None:
        loop = asyncio.get_running_loop()
        fut: asyncio.Future[None] = loop.create_future()
        self._waiters.append(fut)
        self._desired = new_value
        self._generation += 1
        loop.call_soon(self._schedule_commit, self._generation, new_value)
        await fut

    def _schedule_commit(self, generation: int, value: T) -> None:
        task = asyncio.ensure_future(self._commit(generation, value))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _commit(self, generation: int, value: T) -> None:
        self._value = value
        if self._effect is not None:
            try:
                result = self._effect(value)
                if result is not None:
                    await result
            except Exception:  # noqa: BLE001 - a broken observer must not strand waiters
                _logger.exception("[TourPilot] state effect failed for %r", value)
        if generation == self._generation and self._value == self._desired:
            self._settle()

    def _settle(self) -> None:
        waiters, self._waiters = self._waiters, []
        for fut in waiters:
            if not fut.done():
                fut.set_result(None)
