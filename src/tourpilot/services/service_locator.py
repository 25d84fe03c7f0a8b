"""Per-application service container for the tour stack.

``create_tour_app`` builds one locator per application and registers the
event bus, step registry, options, log service and engine under the keys in
``ServiceKeys``. There is no module-level instance: isolated engines (tests,
multi-window hosts) simply use separate locators.

In tests::

    with ctx.services.override_context(tour_renderer=FakeRenderer()):
        ...
"""

from __future__ import annotations

from contextlib import contextmanager
from threading import RLock
from typing import Any, Dict, Generator, List, Tuple, Type, TypeVar

T = TypeVar("T")

__all__ = [
    "ServiceKeys",
    "ServiceLocator",
    "ServiceAlreadyRegisteredError",
    "ServiceNotFoundError",
]


class ServiceKeys:
    EVENT_BUS = "event_bus"
    STEP_REGISTRY = "step_registry"
    TOUR_OPTIONS = "tour_options"
    TOUR_ENGINE = "tour_engine"
    LOG_SERVICE = "log_service"
    LAYOUT_HOST = "layout_host"
    TOUR_RENDERER = "tour_renderer"


class ServiceAlreadyRegisteredError(RuntimeError):
    """Raised when attempting to register an existing key without allow_override."""


class ServiceNotFoundError(KeyError):
    """Raised when a requested service key is not present."""


_MISSING = object()


class ServiceLocator:
    def __init__(self) -> None:
        self._lock = RLock()
        # key -> (value, origin)
        self._services: Dict[str, Tuple[Any, str | None]] = {}

    def register(
        self, key: str, value: Any, *, allow_override: bool = False, origin: str | None = None
    ) -> None:
        with self._lock:
            if key in self._services and not allow_override:
                raise ServiceAlreadyRegisteredError(f"Service '{key}' already registered")
            self._services[key] = (value, origin)

    def get(self, key: str) -> Any:
        with self._lock:
            if key not in self._services:
                raise ServiceNotFoundError(key)
            return self._services[key][0]

    def get_typed(self, key: str, expected_type: Type[T]) -> T:
        value = self.get(key)
        if not isinstance(value, expected_type):
            raise TypeError(
                f"Service '{key}' expected type {expected_type!r} but got {type(value)!r}"
            )
        return value

    def try_get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._services.get(key)
        return entry[0] if entry is not None else default

    def origin(self, key: str) -> str | None:
        with self._lock:
            entry = self._services.get(key)
        return entry[1] if entry is not None else None

    def override(self, key: str, value: Any) -> None:
        with self._lock:
            if key not in self._services:
                raise ServiceNotFoundError(key)
            self._services[key] = (value, "override")

    @contextmanager
    def override_context(self, **overrides: Any) -> Generator[None, None, None]:
        """Temporarily replace (or add) services; previous entries come back on exit."""
        with self._lock:
            previous = {key: self._services.get(key, _MISSING) for key in overrides}
            for key, value in overrides.items():
                origin = "temp" if previous[key] is _MISSING else "override"
                self._services[key] = (value, origin)
        try:
            yield
        finally:
            with self._lock:
                for key, prior in previous.items():
                    if prior is _MISSING:
                        self._services.pop(key, None)
                    else:
                        self._services[key] = prior

    def unregister(self, key: str) -> None:
        with self._lock:
            self._services.pop(key, None)

    def list_keys(self) -> List[str]:
        with self._lock:
            return list(self._services.keys())

    def clear(self) -> None:
        with self._lock:
            self._services.clear()
