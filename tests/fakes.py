"""Shared test doubles for engine tests (headless host + event recorder)."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from tourpilot.app.config_store import TourOptions
from tourpilot.design.geometry import Rect
from tourpilot.services.event_bus import EventBus, TourEvent
from tourpilot.services.host import HeadlessRenderer, StaticLayoutHost
from tourpilot.services.step_binding import StepBinding
from tourpilot.services.step_registry import Step, StepRegistry
from tourpilot.services.tour_engine import TourEngine

VIEWPORT = (400, 800)


class EventRecorder:
    def __init__(self, bus: EventBus) -> None:
        self.events: List[Tuple[str, Any]] = []
        for evt in (TourEvent.START, TourEvent.STOP, TourEvent.STEP_CHANGE):
            bus.subscribe(evt, self._make(evt.value))

    def _make(self, name: str):
        def handler(payload: Any) -> None:
            self.events.append((name, payload))

        return handler

    def names(self) -> List[str]:
        return [name for name, _ in self.events]


@dataclass
class Harness:
    engine: TourEngine
    host: StaticLayoutHost
    renderer: HeadlessRenderer
    registry: StepRegistry
    bus: EventBus
    recorder: EventRecorder
    bindings: List[StepBinding] = field(default_factory=list)

    def add_step(
        self,
        name: str,
        order: int,
        rect: Optional[Rect] = Rect(20, 20, 60, 60),
        *,
        tour_key: str = "t",
        **props: Any,
    ) -> StepBinding:
        handle = f"{tour_key}:{name}"
        if rect is not None:
            self.host.place(handle, rect)
        props.setdefault("max_measure_frames", self.engine.options.max_measure_frames)
        binding = StepBinding(
            self.registry, self.host, handle, tour_key=tour_key, name=name, order=order, **props
        )
        binding.mount()
        self.bindings.append(binding)
        return binding


def make_harness(**option_overrides: Any) -> Harness:
    option_overrides.setdefault("scroll_settle_ms", 0)
    option_overrides.setdefault("max_start_tries", 3)
    options = TourOptions(**option_overrides)
    host = StaticLayoutHost(*VIEWPORT)
    renderer = HeadlessRenderer()
    registry = StepRegistry()
    bus = EventBus()
    recorder = EventRecorder(bus)
    engine = TourEngine(registry, host, renderer, options=options, event_bus=bus)
    return Harness(engine, host, renderer, registry, bus, recorder)


class GatedMeasure:
    """Measure capability that blocks until ``release`` is called."""

    def __init__(self, rect: Rect) -> None:
        self.rect = rect
        self._gate = asyncio.Event()
        self.calls = 0

    def release(self) -> None:
        self._gate.set()

    async def __call__(self) -> Optional[Rect]:
        self.calls += 1
        await self._gate.wait()
        return self.rect


def manual_step(tour_key: str, name: str, order: int, measure, **kw: Any) -> Step:
    return Step(tour_key=tour_key, name=name, order=order, measure=measure, **kw)
