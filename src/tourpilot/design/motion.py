"""Transition timing: easing names, durations and rect interpolation.

``animation_duration`` and ``easing`` only shape the interpolation between
two placement frames; the final geometry is always the computed one.

Easing names
------------
``linear``       constant speed
``ease_in_out``  cubic in/out
``elastic``      overshooting spring, the default

The curves themselves are Qt's (``QEasingCurve``); the Qt binding maps these
names onto curve types. This module only validates and normalises names so
options can be checked without importing Qt.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet

from . import reduced_motion
from .geometry import Rect

__all__ = [
    "DEFAULT_EASING",
    "EASING_NAMES",
    "normalize_easing",
    "TransitionTiming",
    "interpolate_rect",
]

DEFAULT_EASING = "elastic"

EASING_NAMES: FrozenSet[str] = frozenset({"linear", "ease_in_out", "elastic"})


def normalize_easing(easing: str | None) -> str:
    """Return the canonical easing name; raise ``KeyError`` when unknown."""
    if easing is None:
        return DEFAULT_EASING
    key = easing.strip().lower().replace("-", "_")
    if key not in EASING_NAMES:
        raise KeyError(f"Unknown easing: {easing}")
    return key


def interpolate_rect(start: Rect, end: Rect, progress: float) -> Rect:
    def lerp(a: float, b: float) -> float:
        return a + (b - a) * progress

    return Rect(
        lerp(start.x, end.x),
        lerp(start.y, end.y),
        lerp(start.width, end.width),
        lerp(start.height, end.height),
    )


@dataclass(frozen=True)
class TransitionTiming:
    duration_ms: int
    easing: str = DEFAULT_EASING

    @classmethod
    def from_options(cls, duration_ms: int, easing: str | None) -> "TransitionTiming":
        return cls(reduced_motion.adjust_duration(duration_ms), normalize_easing(easing))

    @property
    def instant(self) -> bool:
        return self.duration_ms <= 0
