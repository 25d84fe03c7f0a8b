"""Service layer exports.

Responsibilities:
 - EventBus publish/subscribe for tour lifecycle events
 - StepRegistry and StepBinding for highlightable elements
 - TourEngine navigation / placement pipeline and the per-tour TourControl
 - Dependency/service locator and log capture
"""

from .event_bus import EventBus, TourEvent  # noqa: F401
from .step_registry import Step, StepRegistry  # noqa: F401
from .awaitable_state import AwaitableState  # noqa: F401
from .host import HeadlessRenderer, LayoutHost, StaticLayoutHost, TourRenderer  # noqa: F401
from .service_locator import ServiceKeys, ServiceLocator  # noqa: F401
from .logging_service import TourLogService  # noqa: F401
from .tour_engine import TourEngine  # noqa: F401
from .tour_control import TourControl  # noqa: F401
from .step_binding import StepBinding  # noqa: F401

__all__ = [
    "EventBus",
    "TourEvent",
    "Step",
    "StepRegistry",
    "AwaitableState",
    "HeadlessRenderer",
    "LayoutHost",
    "StaticLayoutHost",
    "TourRenderer",
    "ServiceKeys",
    "ServiceLocator",
    "TourLogService",
    "TourEngine",
    "TourControl",
    "StepBinding",
]
