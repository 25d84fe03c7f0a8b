"""PyQt6 binding: layout host, spotlight overlay widget and asyncio runner."""

from .async_runner import QtAsyncRunner  # noqa: F401
from .layout_host import QtLayoutHost  # noqa: F401
from .spotlight_overlay import SpotlightOverlay  # noqa: F401

__all__ = ["QtAsyncRunner", "QtLayoutHost", "SpotlightOverlay"]
