"""Tour application bootstrap.

Responsibilities:
 - Resolve options (explicit object, mapping, or ``load_options`` from a directory)
 - Build the event bus, step registry, log capture and engine
 - Register them in a ``ServiceLocator`` and return a single context object

One ``TourAppContext`` per application window. Nothing here imports Qt; the
PyQt6 host/overlay are passed in by the caller (see ``tourpilot.qt``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
import time
from pathlib import Path
from typing import Any, Mapping

from tourpilot.services.event_bus import EventBus
from tourpilot.services.host import HeadlessRenderer, LayoutHost, StaticLayoutHost, TourRenderer
from tourpilot.services.logging_service import TourLogService
from tourpilot.services.service_locator import ServiceKeys, ServiceLocator
from tourpilot.services.step_binding import StepBinding
from tourpilot.services.step_registry import StepRegistry
from tourpilot.services.tour_control import TourControl
from tourpilot.services.tour_engine import TourEngine

from .config_store import TourOptions, load_options

__all__ = ["TourAppContext", "create_tour_app"]


@dataclass
class TourAppContext:
    """References created during bootstrap.

    Attributes
    ----------
    services: Locator holding every registered service
    engine: The application's single TourEngine
    registry / event_bus / options / log_service: Shared collaborators
    host / renderer: Layout host and renderer the engine was built with
    duration_s: Elapsed bootstrap seconds
    """

    services: ServiceLocator
    engine: TourEngine
    registry: StepRegistry
    event_bus: EventBus
    options: TourOptions
    log_service: TourLogService
    host: LayoutHost
    renderer: TourRenderer
    duration_s: float
    metadata: dict[str, Any] = field(default_factory=dict)

    def bind_step(self, handle: Any, **props: Any) -> StepBinding:
        """Create and mount a StepBinding for ``handle`` on this app's registry."""
        props.setdefault("max_measure_frames", self.options.max_measure_frames)
        binding = StepBinding(self.registry, self.host, handle, **props)
        binding.mount()
        return binding

    def control(self, tour_key: str, **callbacks: Any) -> TourControl:
        return TourControl(self.engine, tour_key, **callbacks)

    def shutdown(self) -> None:
        self.engine.close()
        self.log_service.detach()


def _resolve_options(
    options: TourOptions | Mapping[str, Any] | None, options_dir: str | Path | None
) -> TourOptions:
    if isinstance(options, TourOptions):
        return options
    if options is not None:
        return TourOptions.from_dict(options)
    if options_dir is not None:
        return load_options(options_dir)
    return TourOptions()


def create_tour_app(
    *,
    options: TourOptions | Mapping[str, Any] | None = None,
    options_dir: str | Path | None = None,
    host: LayoutHost | None = None,
    renderer: TourRenderer | None = None,
    locator: ServiceLocator | None = None,
    attach_logging: bool = True,
) -> TourAppContext:
    """Create and wire the tour engine stack.

    Parameters
    ----------
    options: ``TourOptions`` or a raw mapping (camelCase / alias sections accepted).
    options_dir: Directory to load ``tourpilot_options.json`` from when ``options`` is None.
    host: Layout host; a ``StaticLayoutHost`` when omitted (headless).
    renderer: Renderer; a ``HeadlessRenderer`` when omitted.
    locator: Existing locator to register into; a fresh one by default.
    """
    started = time.perf_counter()
    opts = _resolve_options(options, options_dir)
    services = locator if locator is not None else ServiceLocator()
    host = host if host is not None else StaticLayoutHost()
    renderer = renderer if renderer is not None else HeadlessRenderer()

    bus = EventBus()
    registry = StepRegistry()
    log_service = TourLogService(event_bus=bus)
    if attach_logging:
        log_service.attach()
    engine = TourEngine(registry, host, renderer, options=opts, event_bus=bus)

    origin = __name__
    services.register(ServiceKeys.EVENT_BUS, bus, origin=origin)
    services.register(ServiceKeys.STEP_REGISTRY, registry, origin=origin)
    services.register(ServiceKeys.TOUR_OPTIONS, opts, origin=origin)
    services.register(ServiceKeys.LOG_SERVICE, log_service, origin=origin)
    services.register(ServiceKeys.LAYOUT_HOST, host, origin=origin)
    services.register(ServiceKeys.TOUR_RENDERER, renderer, origin=origin)
    services.register(ServiceKeys.TOUR_ENGINE, engine, origin=origin)

    return TourAppContext(
        services=services,
        engine=engine,
        registry=registry,
        event_bus=bus,
        options=opts,
        log_service=log_service,
        host=host,
        renderer=renderer,
        duration_s=time.perf_counter() - started,
    )
