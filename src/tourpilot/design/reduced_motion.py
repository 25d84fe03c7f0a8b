"""Reduced motion preference for spotlight transitions.

Single source of truth for whether mask/tooltip transitions should animate.
``TOURPILOT_PREFER_REDUCED_MOTION=1`` (or "true"/"yes"/"on") enables reduced
motion at import time. When enabled, transition durations collapse to 0 so
the overlay jumps straight to the final geometry; computed geometry is never
affected.
"""

from __future__ import annotations

import contextlib
import os
from typing import Iterator

__all__ = [
    "set_reduced_motion",
    "is_reduced_motion",
    "adjust_duration",
    "temporarily_reduced_motion",
]

ENV_VAR = "TOURPILOT_PREFER_REDUCED_MOTION"

_reduced_motion_enabled: bool = os.getenv(ENV_VAR, "").strip().lower() in {
    "1",
    "true",
    "yes",
    "on",
}


def set_reduced_motion(enabled: bool) -> None:
    global _reduced_motion_enabled
    _reduced_motion_enabled = bool(enabled)


def is_reduced_motion() -> bool:
    return _reduced_motion_enabled


def adjust_duration(ms: int, minimum_ms: int = 0) -> int:
    """Return ``ms`` (clamped >= 0), or ``minimum_ms`` when motion is reduced."""
    minimum_ms = max(0, minimum_ms)
    ms = max(0, ms)
    return minimum_ms if _reduced_motion_enabled else ms


@contextlib.contextmanager
def temporarily_reduced_motion(force: bool = True) -> Iterator[None]:
    prev = _reduced_motion_enabled
    try:
        set_reduced_motion(force)
        yield
    finally:
        set_reduced_motion(prev)
