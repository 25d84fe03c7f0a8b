"""Collaborator protocols for the tour engine.

The engine never talks to a UI toolkit directly. It consumes a ``LayoutHost``
(measurement, viewport, scrolling, frame pacing) and drives a
``TourRenderer`` (mask/tooltip drawing and visibility). ``tourpilot.qt``
provides the PyQt6 implementations; ``HeadlessRenderer`` keeps the last frame
in memory for tests and non-visual consumers.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from tourpilot.design.geometry import Rect
from tourpilot.design.placement import PlacementFrame
from tourpilot.errors import MeasurementStall

from .step_registry import MeasureFn

__all__ = [
    "LayoutHost",
    "TourRenderer",
    "HeadlessRenderer",
    "StaticLayoutHost",
    "ViewportListener",
    "frame_throttled_measure",
]

ViewportListener = Callable[[float, float], None]


class LayoutHost(Protocol):  # noqa: D401 - structural
    def measure(self, handle: Any) -> Optional[Rect]: ...  # pragma: no cover

    def viewport_size(self) -> Tuple[float, float]: ...  # pragma: no cover

    def add_viewport_listener(self, listener: ViewportListener) -> None: ...  # pragma: no cover

    def remove_viewport_listener(self, listener: ViewportListener) -> None: ...  # pragma: no cover

    async def scroll_into_view(self, container: Any, handle: Any) -> None: ...  # pragma: no cover

    async def next_frame(self) -> None: ...  # pragma: no cover

    async def sleep(self, seconds: float) -> None: ...  # pragma: no cover


class TourRenderer(Protocol):
    async def present(self, frame: PlacementFrame, *, animated: bool) -> None: ...  # pragma: no cover

    async def set_visible(self, visible: bool) -> None: ...  # pragma: no cover


class HeadlessRenderer:
    """Renderer that only records what it was asked to show."""

    def __init__(self) -> None:
        self.frames: List[PlacementFrame] = []
        self.visible = False

    @property
    def last_frame(self) -> Optional[PlacementFrame]:
        return self.frames[-1] if self.frames else None

    async def present(self, frame: PlacementFrame, *, animated: bool) -> None:
        self.frames.append(frame)

    async def set_visible(self, visible: bool) -> None:
        self.visible = visible


def frame_throttled_measure(
    host: LayoutHost, handle: Any, *, max_frames: int | None = None
) -> MeasureFn:
    """Build a step ``measure`` capability for ``handle``.

    Polls ``host.measure`` once per frame until it reports a non-empty
    rectangle. Unbounded by default; with ``max_frames`` the poll gives up by
    raising ``MeasurementStall``.
    """

    async def measure() -> Optional[Rect]:
        frames = 0
        while True:
            rect = host.measure(handle)
            if rect is not None and not rect.is_empty():
                return rect
            if max_frames is not None and frames >= max_frames:
                raise MeasurementStall(
                    f"Element not laid out after {frames} frames",
                    context={"handle": repr(handle), "frames": frames},
                )
            frames += 1
            await host.next_frame()

    return measure


class StaticLayoutHost:
    """Headless host with an explicit handle -> rect table.

    Frames are plain loop yields, so measurement retries and start retries
    advance as fast as the event loop turns. Used for headless runs and as
    the default host of ``create_tour_app``.
    """

    def __init__(self, width: float = 0, height: float = 0) -> None:
        self._size: Tuple[float, float] = (width, height)
        self._rects: Dict[Any, Rect] = {}
        self._listeners: List[ViewportListener] = []
        self.scrolled: List[Tuple[Any, Any]] = []
        self.frames = 0

    def place(self, handle: Any, rect: Rect | None) -> None:
        if rect is None:
            self._rects.pop(handle, None)
        else:
            self._rects[handle] = rect

    def resize(self, width: float, height: float) -> None:
        self._size = (width, height)
        for listener in list(self._listeners):
            listener(width, height)

    def measure(self, handle: Any) -> Optional[Rect]:
        return self._rects.get(handle)

    def viewport_size(self) -> Tuple[float, float]:
        return self._size

    def add_viewport_listener(self, listener: ViewportListener) -> None:
        self._listeners.append(listener)

    def remove_viewport_listener(self, listener: ViewportListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def scroll_into_view(self, container: Any, handle: Any) -> None:
        self.scrolled.append((container, handle))

    async def next_frame(self) -> None:
        self.frames += 1
        await asyncio.sleep(0)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
