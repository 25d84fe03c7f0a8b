"""Tour engine: navigation state machine and async placement pipeline.

One engine per application window (see ``create_tour_app``). It owns the
active tour / current step / visibility state and, on every transition, runs:

    record step -> scroll into view -> settle -> measure -> place -> present

States
------
``IDLE``      no active tour
``STARTING``  resolving the first visible step (frame-deferred, bounded retries)
``ACTIVE``    a step is current; ``go_to_*`` self-transition

Ordering
--------
Everything runs on one asyncio loop. Calls that are not awaited may overlap;
each transition takes a new generation number and a placement result is only
presented while its generation is still the latest, so a slow measurement can
never overwrite a newer step's geometry.

Starting a tour while another one is active is a logged no-op: callers must
``stop()`` first.
"""

from __future__ import annotations

import asyncio
import logging
import warnings
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Coroutine, List, Optional, Set

from tourpilot.app.config_store import TourOptions
from tourpilot.design.geometry import MaskShape, Rect
from tourpilot.design.placement import PlacementFrame, compute_frame, pad_target
from tourpilot.errors import ConfigurationWarning, MeasurementStall

from .awaitable_state import AwaitableState
from .event_bus import (
    EventBus,
    Listener,
    StartPayload,
    StepChangePayload,
    StopPayload,
    TourEvent,
)
from .host import HeadlessRenderer, LayoutHost, TourRenderer
from .step_registry import Step, StepRegistry

__all__ = [
    "EnginePhase",
    "EngineState",
    "TourSnapshot",
    "TourEngine",
    "SCROLL_SETTLE_FRAMES",
    "REMEASURE_DELAY_S",
]

_logger = logging.getLogger(__name__)

# Runs engine work submitted while no asyncio loop is running (e.g. from a Qt
# signal); returns the task it scheduled, if any.
Dispatcher = Callable[[Coroutine[Any, Any, Any]], Optional["asyncio.Task[Any]"]]

SCROLL_SETTLE_FRAMES = 4
REMEASURE_DELAY_S = 0.05


class EnginePhase(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    ACTIVE = "active"


@dataclass(frozen=True)
class EngineState:
    active_tour: Optional[str] = None
    current_step: Optional[Step] = None
    visible: bool = False


@dataclass(frozen=True)
class TourSnapshot:
    """Read-only view handed to tooltip / badge consumers."""

    visible: bool
    active_tour: Optional[str]
    current_step: Optional[Step]
    current_step_number: int
    total_steps_number: int
    is_first_step: bool
    is_last_step: bool
    frame: Optional[PlacementFrame]
    mask_shape: Optional[MaskShape]
    backdrop_color: str


class TourEngine:
    def __init__(
        self,
        registry: StepRegistry,
        host: LayoutHost,
        renderer: TourRenderer | None = None,
        *,
        options: TourOptions | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._registry = registry
        self._host = host
        self._renderer: TourRenderer = renderer if renderer is not None else HeadlessRenderer()
        self._options = options or TourOptions()
        self._bus = event_bus or EventBus()
        self._visible: AwaitableState[bool] = AwaitableState(False, effect=self._apply_visible)
        self._phase = EnginePhase.IDLE
        self._active_tour: Optional[str] = None
        self._current_step: Optional[Step] = None
        self._scroll_container: Any = None
        self._start_tries = 0
        self._generation = 0
        self._transitioning = False
        self._target: Optional[Rect] = None
        self._frame: Optional[PlacementFrame] = None
        self._tasks: Set[asyncio.Task[Any]] = set()
        self._dispatcher: Optional[Dispatcher] = None
        self._host.add_viewport_listener(self.on_viewport_changed)

    # ------------------------------------------------------------------
    # Read-only view
    # ------------------------------------------------------------------
    @property
    def options(self) -> TourOptions:
        return self._options

    @property
    def event_bus(self) -> EventBus:
        return self._bus

    @property
    def registry(self) -> StepRegistry:
        return self._registry

    @property
    def phase(self) -> EnginePhase:
        return self._phase

    @property
    def active_tour(self) -> Optional[str]:
        return self._active_tour

    @property
    def current_step(self) -> Optional[Step]:
        return self._current_step

    @property
    def visible(self) -> bool:
        return self._visible.value

    @property
    def is_tour_active(self) -> bool:
        return self._visible.value

    @property
    def transitioning(self) -> bool:
        return self._transitioning

    @property
    def start_tries(self) -> int:
        return self._start_tries

    @property
    def scroll_container(self) -> Any:
        return self._scroll_container

    @property
    def frame(self) -> Optional[PlacementFrame]:
        return self._frame

    @property
    def state(self) -> EngineState:
        return EngineState(self._active_tour, self._current_step, self._visible.value)

    def ordered_steps(self) -> List[Step]:
        if self._active_tour is None:
            return []
        return self._registry.ordered_steps(self._active_tour)

    def _step_index(self, steps: List[Step]) -> int:
        if self._current_step is None:
            return -1
        key = self._current_step.key
        for i, step in enumerate(steps):
            if step.key == key:
                return i
        return -1

    @property
    def current_step_number(self) -> int:
        return self._step_index(self.ordered_steps()) + 1

    @property
    def total_steps_number(self) -> int:
        return len(self.ordered_steps())

    @property
    def is_first_step(self) -> bool:
        return self._step_index(self.ordered_steps()) == 0

    @property
    def is_last_step(self) -> bool:
        steps = self.ordered_steps()
        idx = self._step_index(steps)
        return idx >= 0 and idx == len(steps) - 1

    def snapshot(self) -> TourSnapshot:
        steps = self.ordered_steps()
        idx = self._step_index(steps)
        return TourSnapshot(
            visible=self._visible.value,
            active_tour=self._active_tour,
            current_step=self._current_step,
            current_step_number=idx + 1,
            total_steps_number=len(steps),
            is_first_step=idx == 0,
            is_last_step=idx >= 0 and idx == len(steps) - 1,
            frame=self._frame,
            mask_shape=self._frame.mask.shape if self._frame else None,
            backdrop_color=self._options.backdrop_color,
        )

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------
    def on(self, event: str | TourEvent, callback: Listener) -> None:
        self._bus.on(event, callback)

    def off(self, event: str | TourEvent, callback: Listener) -> None:
        self._bus.off(event, callback)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def start(
        self,
        tour_key: str,
        from_step_name: str | None = None,
        scroll_container: Any = None,
    ) -> None:
        if self._phase is not EnginePhase.IDLE:
            _logger.warning(
                "[TourPilot] Ignoring start(%r): tour %r is %s; call stop() first",
                tour_key,
                self._active_tour,
                self._phase.value,
            )
            return
        if scroll_container is not None:
            self._scroll_container = scroll_container
        self._phase = EnginePhase.STARTING
        self._start_tries = 0
        while True:
            step = self._resolve_first_step(tour_key, from_step_name)
            if step is not None:
                break
            if self._start_tries >= self._options.max_start_tries:
                self._start_tries = 0
                self._phase = EnginePhase.IDLE
                self._scroll_container = None
                message = f'[TourPilot] Failed to start tour "{tour_key}" - no steps found'
                _logger.warning(message)
                warnings.warn(message, ConfigurationWarning, stacklevel=2)
                return
            self._start_tries += 1
            await self._host.next_frame()
            if self._phase is not EnginePhase.STARTING:
                # stop() was called while we were waiting for steps to mount
                self._start_tries = 0
                return
        self._start_tries = 0
        self._active_tour = tour_key
        self._phase = EnginePhase.ACTIVE
        self._bus.publish(TourEvent.START, StartPayload(tour_key=tour_key))
        await self._transition_to(step)
        if self._active_tour != tour_key:
            return
        await self._visible.set(True)

    def _resolve_first_step(self, tour_key: str, from_step_name: str | None) -> Optional[Step]:
        steps = self._registry.ordered_steps(tour_key)
        if from_step_name is None:
            return steps[0] if steps else None
        for step in steps:
            if step.name == from_step_name:
                return step
        return None

    async def stop(self) -> None:
        tour_key = self._active_tour
        completed = self.is_last_step
        self._generation += 1
        if tour_key is None:
            # idle (or still waiting for steps): nothing to report
            if self._phase is EnginePhase.STARTING:
                self._phase = EnginePhase.IDLE
            self._scroll_container = None
            return
        await self._visible.set(False)
        self._active_tour = None
        self._current_step = None
        self._scroll_container = None
        self._target = None
        self._frame = None
        self._transitioning = False
        self._phase = EnginePhase.IDLE
        self._bus.publish(TourEvent.STOP, StopPayload(tour_key=tour_key, completed=completed))

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------
    async def go_to_next(self) -> None:
        if self._active_tour is None:
            return
        steps = self.ordered_steps()
        idx = self._step_index(steps)
        if idx + 1 < len(steps):
            await self._change_step(self._active_tour, steps[idx + 1], idx + 2)
        else:
            await self.stop()

    async def go_to_prev(self) -> None:
        if self._active_tour is None:
            return
        steps = self.ordered_steps()
        idx = self._step_index(steps)
        if idx - 1 >= 0:
            await self._change_step(self._active_tour, steps[idx - 1], idx)

    async def go_to_nth(self, n: int) -> None:
        if self._active_tour is None:
            return
        steps = self.ordered_steps()
        if 1 <= n <= len(steps):
            await self._change_step(self._active_tour, steps[n - 1], n)

    async def _change_step(self, tour_key: str, step: Step, step_number: int) -> None:
        self._bus.publish(
            TourEvent.STEP_CHANGE,
            StepChangePayload(tour_key=tour_key, step=step, step_number=step_number),
        )
        await self._transition_to(step)

    # ------------------------------------------------------------------
    # Placement pipeline
    # ------------------------------------------------------------------
    async def _transition_to(self, step: Step) -> None:
        self._generation += 1
        generation = self._generation
        self._current_step = step
        self._transitioning = True
        try:
            if self._scroll_container is not None and step.handle is not None:
                await self._scroll_to(step)
            await self._measure_and_place(step, generation)
        finally:
            if generation == self._generation:
                self._transitioning = False

    async def _scroll_to(self, step: Step) -> None:
        try:
            await self._host.scroll_into_view(self._scroll_container, step.handle)
        except Exception:  # noqa: BLE001 - scrolling is best effort; measure anyway
            _logger.exception("[TourPilot] Could not scroll step %r into view", step.name)
            return
        for _ in range(SCROLL_SETTLE_FRAMES):
            await self._host.next_frame()
        await self._host.sleep(self._options.scroll_settle_ms / 1000)

    async def _measure_and_place(self, step: Step, generation: int) -> None:
        try:
            rect = await step.measure()
        except MeasurementStall as exc:
            _logger.warning("[TourPilot] Step %r stalled: %s", step.name, exc)
            return
        if rect is None:
            return
        if generation != self._generation:
            _logger.debug("[TourPilot] Dropping stale placement for step %r", step.name)
            return
        padding = (
            step.highlight_padding
            if step.highlight_padding is not None
            else self._options.highlight_padding
        )
        self._target = pad_target(rect, padding, self._options.vertical_offset)
        frame = self._build_frame(self._target, step)
        self._frame = frame
        await self._renderer.present(frame, animated=self._options.animated and self.visible)

    def _build_frame(self, target: Rect, step: Step) -> PlacementFrame:
        width, height = self._host.viewport_size()
        radius = step.border_radius if step.border_radius is not None else self._options.border_radius
        return compute_frame(
            target,
            Rect(0, 0, width, height),
            shape=step.mask_shape,
            border_radius=radius,
            margin=self._options.margin,
            arrow_size=self._options.arrow_size,
        )

    async def remeasure_current_step(self) -> None:
        """Re-run measure/place for the current step after a layout change."""
        step = self._current_step
        if step is None:
            return
        generation = self._generation
        await self._host.sleep(REMEASURE_DELAY_S)
        if generation != self._generation or self._current_step is not step:
            return
        await self._measure_and_place(step, generation)

    def on_viewport_changed(self, width: float, height: float) -> None:
        step, target = self._current_step, self._target
        if step is None or target is None:
            return
        self._frame = self._build_frame(target, step)
        self._spawn(self._renderer.present(self._frame, animated=False))

    # ------------------------------------------------------------------
    # UI callbacks
    # ------------------------------------------------------------------
    def handle_backdrop_click(self) -> Optional[asyncio.Task[Any]]:
        """Backdrop pressed: stop when ``stop_on_outside_click`` is enabled."""
        if self._options.stop_on_outside_click and self.visible:
            return self._spawn(self.stop())
        return None

    def handle_back_request(self) -> Optional[asyncio.Task[Any]]:
        """Back button / Escape while visible stops the tour."""
        if self.visible:
            return self._spawn(self.stop())
        return None

    def handle_next_request(self) -> Optional[asyncio.Task[Any]]:
        if self.visible:
            return self._spawn(self.go_to_next())
        return None

    def handle_prev_request(self) -> Optional[asyncio.Task[Any]]:
        if self.visible:
            return self._spawn(self.go_to_prev())
        return None

    def set_dispatcher(self, dispatcher: Optional[Dispatcher]) -> None:
        """Route UI-triggered work through ``dispatcher`` when no loop is running."""
        self._dispatcher = dispatcher

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> Optional[asyncio.Task[Any]]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if self._dispatcher is not None:
                return self._dispatcher(coro)
            coro.close()
            _logger.warning(
                "[TourPilot] No running event loop and no dispatcher; dropped scheduled work"
            )
            return None
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _apply_visible(self, visible: bool) -> None:
        await self._renderer.set_visible(visible)

    def close(self) -> None:
        self._host.remove_viewport_listener(self.on_viewport_changed)
