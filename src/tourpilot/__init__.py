"""TourPilot public API.

Curated, intentionally small surface for applications that want a guided
spotlight tour over their widgets:

- ``create_tour_app`` wires the engine stack and returns a ``TourAppContext``
- ``TourEngine`` / ``TourControl`` drive navigation
- ``StepBinding`` registers highlightable elements
- ``design`` holds the pure placement geometry

Design Principles:
- No Qt import at package import time; ``tourpilot.qt`` is imported explicitly.
- Re-export only the foundational pieces; deeper modules stay namespaced.
"""

from __future__ import annotations

# Application layer first: services import config_store from it
from .app import (  # noqa: F401
    TourAppContext,
    TourOptions,
    create_tour_app,
    load_options,
    save_options,
)
from .services import (  # noqa: F401
    EventBus,
    ServiceLocator,
    StepBinding,
    StepRegistry,
    TourControl,
    TourEngine,
    TourEvent,
)
from .errors import ConfigurationWarning, MeasurementStall, TourPilotError  # noqa: F401

from . import design  # noqa: F401

__all__ = [
    "TourAppContext",
    "TourOptions",
    "create_tour_app",
    "load_options",
    "save_options",
    "EventBus",
    "ServiceLocator",
    "StepBinding",
    "StepRegistry",
    "TourControl",
    "TourEngine",
    "TourEvent",
    "ConfigurationWarning",
    "MeasurementStall",
    "TourPilotError",
    "design",
]
