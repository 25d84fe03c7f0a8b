"""Per-tour control handle.

Wraps a ``TourEngine`` for code that only cares about one tour: lifecycle
callbacks are filtered by ``tour_key`` and the step counters read as zero
while another tour (or none) is showing.

Usage::

    with TourControl(engine, "onboarding", on_stop=remember_completion) as tour:
        await tour.start()
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from .event_bus import StartPayload, StepChangePayload, StopPayload, TourEvent
from .step_registry import Step
from .tour_engine import TourEngine

__all__ = ["TourControl"]


class TourControl:
    def __init__(
        self,
        engine: TourEngine,
        tour_key: str,
        *,
        on_start: Optional[Callable[[], None]] = None,
        on_stop: Optional[Callable[[bool], None]] = None,
        on_step_change: Optional[Callable[[Optional[Step], int], None]] = None,
        scroll_container: Any = None,
    ) -> None:
        self._engine = engine
        self.tour_key = tour_key
        self.on_start = on_start
        self.on_stop = on_stop
        self.on_step_change = on_step_change
        self.scroll_container = scroll_container
        self._closed = False
        engine.on(TourEvent.START, self._handle_start)
        engine.on(TourEvent.STOP, self._handle_stop)
        engine.on(TourEvent.STEP_CHANGE, self._handle_step_change)

    # Event filtering ----------------------------------------------------
    def _handle_start(self, data: StartPayload) -> None:
        if data.tour_key == self.tour_key and self.on_start:
            self.on_start()

    def _handle_stop(self, data: StopPayload) -> None:
        if data.tour_key == self.tour_key and self.on_stop:
            self.on_stop(data.completed)

    def _handle_step_change(self, data: StepChangePayload) -> None:
        if data.tour_key == self.tour_key and self.on_step_change:
            self.on_step_change(data.step, data.step_number)

    # Control --------------------------------------------------------------
    async def start(self, from_step: str | None = None) -> None:
        await self._engine.start(self.tour_key, from_step, self.scroll_container)

    async def stop(self) -> None:
        await self._engine.stop()

    # View -----------------------------------------------------------------
    @property
    def is_active(self) -> bool:
        return self._engine.active_tour == self.tour_key and self._engine.visible

    @property
    def current_step(self) -> Optional[Step]:
        return self._engine.current_step if self.is_active else None

    @property
    def current_step_number(self) -> int:
        return self._engine.current_step_number if self.is_active else 0

    @property
    def total_steps_number(self) -> int:
        return self._engine.total_steps_number if self.is_active else 0

    # Teardown -------------------------------------------------------------
    def close(self) -> None:
        if self._closed:
            return
        self._engine.off(TourEvent.START, self._handle_start)
        self._engine.off(TourEvent.STOP, self._handle_stop)
        self._engine.off(TourEvent.STEP_CHANGE, self._handle_step_change)
        self._closed = True

    def __enter__(self) -> "TourControl":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
