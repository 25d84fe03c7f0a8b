"""Step registry (registry-based tour model).

Steps are registered by the UI elements that own them, keyed by
``(tour_key, name)``. A tour is never materialised: it is simply the set of
steps sharing a ``tour_key``. ``ordered_steps`` is recomputed from scratch on
each call; tours are small (typically < 50 steps) so no index is kept.

Ordering ties are resolved by first registration order. Re-registering an
existing key replaces the step in place (last write wins, no merge).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from threading import RLock
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from tourpilot.design.geometry import MaskShape, Rect

__all__ = [
    "Step",
    "StepRegistry",
    "MeasureFn",
    "split_content",
]

MeasureFn = Callable[[], Awaitable[Optional[Rect]]]

CONTENT_SEPARATOR = "||"


async def _never_laid_out() -> Optional[Rect]:
    return None


@dataclass(frozen=True)
class Step:
    tour_key: str
    name: str
    order: int
    content: str = ""
    visible: bool = True
    mask_shape: MaskShape = MaskShape.ROUNDED_RECTANGLE
    border_radius: Optional[float] = None
    highlight_padding: Optional[float] = None
    measure: MeasureFn = field(default=_never_laid_out, compare=False, repr=False)
    handle: Any = field(default=None, compare=False, repr=False)

    @property
    def key(self) -> Tuple[str, str]:
        return (self.tour_key, self.name)


def split_content(text: str) -> Tuple[str, str]:
    """Split ``"Title||Body"`` content; plain text is body only."""
    if CONTENT_SEPARATOR not in text:
        return "", text
    title, body = text.split(CONTENT_SEPARATOR, 1)
    return title.strip(), body.strip()


class StepRegistry:
    def __init__(self) -> None:
        self._lock = RLock()
        self._tours: Dict[str, Dict[str, Step]] = {}

    def register(self, step: Step) -> None:
        with self._lock:
            self._tours.setdefault(step.tour_key, {})[step.name] = step

    def unregister(self, tour_key: str, name: str) -> None:
        with self._lock:
            steps = self._tours.get(tour_key)
            if not steps or name not in steps:
                return
            del steps[name]
            if not steps:
                del self._tours[tour_key]

    def ordered_steps(self, tour_key: str) -> List[Step]:
        with self._lock:
            steps = list(self._tours.get(tour_key, {}).values())
        return sorted((s for s in steps if s.visible), key=lambda s: s.order)

    def get(self, tour_key: str, name: str) -> Optional[Step]:
        with self._lock:
            return self._tours.get(tour_key, {}).get(name)

    def steps_for(self, tour_key: str) -> List[Step]:
        """All registered steps of a tour, invisible ones included."""
        with self._lock:
            return list(self._tours.get(tour_key, {}).values())

    def tour_keys(self) -> List[str]:
        with self._lock:
            return list(self._tours.keys())

    def clear(self) -> None:
        with self._lock:
            self._tours.clear()

    def __len__(self) -> int:
        with self._lock:
            return sum(len(s) for s in self._tours.values())
