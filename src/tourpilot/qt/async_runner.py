"""Drive engine coroutines from the Qt event loop.

Qt signal handlers (backdrop clicks, key presses, button clicks) run on the Qt
event loop, where no asyncio loop is running. ``QtAsyncRunner`` owns a private
asyncio loop and advances it in short slices from a ``QTimer`` while it has
pending tasks, so a plain ``app.exec()`` application can still drive the
engine::

    runner = QtAsyncRunner(overlay)
    engine.set_dispatcher(runner.submit)

``SpotlightOverlay.bind_engine`` does this wiring itself. When the application
already runs an asyncio loop the engine schedules on that loop and the runner
stays idle.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine, Optional, Set

from PyQt6.QtCore import QObject, QTimer

__all__ = ["QtAsyncRunner", "PUMP_INTERVAL_MS", "PUMP_SLICE_S"]

_logger = logging.getLogger(__name__)

PUMP_INTERVAL_MS = 16
# Longest time one pump may block the Qt loop while tasks are waiting.
PUMP_SLICE_S = 0.004


class QtAsyncRunner(QObject):
    def __init__(self, parent: Optional[QObject] = None, interval_ms: int = PUMP_INTERVAL_MS):
        super().__init__(parent)
        self._loop = asyncio.new_event_loop()
        self._tasks: Set[asyncio.Task[Any]] = set()
        self._timer = QTimer(self)
        self._timer.setInterval(interval_ms)
        self._timer.timeout.connect(self._pump)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, coro: Coroutine[Any, Any, Any]) -> Optional[asyncio.Task[Any]]:
        if self._loop.is_closed():
            coro.close()
            _logger.warning("[TourPilot] Runner closed; dropped scheduled work")
            return None
        task = self._loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        if not self._timer.isActive():
            self._timer.start()
        QTimer.singleShot(0, self._pump)
        return task

    def _on_done(self, task: "asyncio.Task[Any]") -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _logger.error("[TourPilot] Engine task failed", exc_info=exc)

    def _pump(self) -> None:
        if self._loop.is_closed() or self._loop.is_running():
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            pass
        else:
            # another asyncio loop owns this thread right now; retry next tick
            return
        if self._tasks:
            self._loop.run_until_complete(asyncio.wait(set(self._tasks), timeout=PUMP_SLICE_S))
        if not self._tasks:
            self._timer.stop()

    def close(self) -> None:
        self._timer.stop()
        if self._loop.is_closed() or self._loop.is_running():
            return
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            self._loop.run_until_complete(
                asyncio.gather(*self._tasks, return_exceptions=True)
            )
        self._loop.close()
