"""In-process capture of tour engine log records.

Attaches a ring-buffer handler to the ``tourpilot`` logger namespace so hosts
can show recent engine diagnostics (failed starts, listener errors, stalled
measurements) and tests can assert on them. Each captured record is also
published as ``log_record`` on the EventBus when one is supplied.
"""

from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import asdict, dataclass
from pathlib import Path
from threading import RLock
from typing import Deque, List, Optional

from .event_bus import EventBus, TourEvent

__all__ = [
    "LogEntry",
    "TourLogService",
]

ROOT_LOGGER = "tourpilot"


@dataclass(frozen=True)
class LogEntry:
    level: str
    name: str
    message: str
    created: float


class _RingBufferHandler(logging.Handler):
    def __init__(self, svc: "TourLogService") -> None:
        super().__init__(level=logging.DEBUG)
        self._svc = svc

    def emit(self, record: logging.LogRecord) -> None:  # noqa: D401
        self._svc._ingest(record)


class TourLogService:
    def __init__(
        self,
        capacity: int = 200,
        *,
        event_bus: EventBus | None = None,
        level: int = logging.INFO,
    ) -> None:
        self._lock = RLock()
        self._entries: Deque[LogEntry] = deque(maxlen=max(1, capacity))
        self._handler = _RingBufferHandler(self)
        self._event_bus = event_bus
        self._level = level
        self._attached = False

    # Lifecycle --------------------------------------------------------
    def attach(self) -> None:
        if self._attached:
            return
        logger = logging.getLogger(ROOT_LOGGER)
        logger.addHandler(self._handler)
        if logger.level == logging.NOTSET or logger.level > self._level:
            logger.setLevel(self._level)
        self._attached = True

    def detach(self) -> None:
        if not self._attached:
            return
        logging.getLogger(ROOT_LOGGER).removeHandler(self._handler)
        self._attached = False

    @property
    def attached(self) -> bool:
        return self._attached

    # Ingestion ----------------------------------------------------------
    def _ingest(self, record: logging.LogRecord) -> None:
        entry = LogEntry(
            level=record.levelname,
            name=record.name,
            message=record.getMessage(),
            created=record.created,
        )
        with self._lock:
            self._entries.append(entry)
        if self._event_bus is not None:
            self._event_bus.publish(TourEvent.LOG_RECORD, entry)

    # Query --------------------------------------------------------------
    def recent(self, limit: Optional[int] = None) -> List[LogEntry]:
        with self._lock:
            data = list(self._entries)
        return data[-limit:] if limit is not None else data

    def filter(
        self, *, level: str | None = None, name_contains: str | None = None
    ) -> List[LogEntry]:
        return [
            e
            for e in self.recent()
            if (not level or e.level == level) and (not name_contains or name_contains in e.name)
        ]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def export_jsonl(
        self, path: str | Path, *, level: str | None = None, append: bool = False
    ) -> int:
        """Write (filtered) entries as JSON Lines; returns lines written."""
        entries = self.filter(level=level)
        with open(path, "a" if append else "w", encoding="utf-8") as f:
            for e in entries:
                f.write(json.dumps(asdict(e), ensure_ascii=False) + "\n")
        return len(entries)
