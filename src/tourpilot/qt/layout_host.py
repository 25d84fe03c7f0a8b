"""PyQt6 layout host.

Implements the engine's ``LayoutHost`` protocol on top of a root widget
(usually the main window's central widget, which the spotlight overlay also
covers):

* ``measure`` maps a widget's geometry into root coordinates; a 0x0 size
  means the widget has not been laid out yet.
* viewport changes are observed with an event filter on the root widget.
* ``scroll_into_view`` delegates to ``QScrollArea.ensureWidgetVisible``.
* frames are ~16 ms asyncio sleeps; under the overlay's ``QtAsyncRunner``
  Qt processes events between them, so widget geometry keeps updating.
"""

from __future__ import annotations

import asyncio
from typing import Any, List, Optional, Tuple

from PyQt6.QtCore import QEvent, QObject, QPoint
from PyQt6.QtWidgets import QScrollArea, QWidget

from tourpilot.design.geometry import Rect
from tourpilot.services.host import ViewportListener

__all__ = ["QtLayoutHost", "FRAME_INTERVAL_S"]

FRAME_INTERVAL_S = 1 / 60


class _ResizeWatcher(QObject):
    def __init__(self, host: "QtLayoutHost") -> None:
        super().__init__(host.root)
        self._host = host

    def eventFilter(self, obj: QObject, event: QEvent) -> bool:  # noqa: D401
        if obj is self._host.root and event.type() == QEvent.Type.Resize:
            self._host._notify_resize()
        return False


class QtLayoutHost:
    def __init__(self, root: QWidget) -> None:
        self.root = root
        self._listeners: List[ViewportListener] = []
        self._watcher = _ResizeWatcher(self)
        root.installEventFilter(self._watcher)

    def measure(self, handle: Any) -> Optional[Rect]:
        if not isinstance(handle, QWidget):
            return None
        if handle is self.root:
            origin = QPoint(0, 0)
        elif self.root.isAncestorOf(handle):
            origin = handle.mapTo(self.root, QPoint(0, 0))
        else:
            origin = self.root.mapFromGlobal(handle.mapToGlobal(QPoint(0, 0)))
        return Rect(origin.x(), origin.y(), handle.width(), handle.height())

    def viewport_size(self) -> Tuple[float, float]:
        return (self.root.width(), self.root.height())

    def add_viewport_listener(self, listener: ViewportListener) -> None:
        self._listeners.append(listener)

    def remove_viewport_listener(self, listener: ViewportListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify_resize(self) -> None:
        width, height = self.viewport_size()
        for listener in list(self._listeners):
            listener(width, height)

    async def scroll_into_view(self, container: Any, handle: Any) -> None:
        if isinstance(container, QScrollArea) and isinstance(handle, QWidget):
            margin = max(0, handle.height() // 2)
            container.ensureWidgetVisible(handle, 0, margin)

    async def next_frame(self) -> None:
        await asyncio.sleep(FRAME_INTERVAL_S)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    def dispose(self) -> None:
        self.root.removeEventFilter(self._watcher)
        self._listeners.clear()
