"""Geometry value types shared by the placement engine and host bindings.

All coordinates are viewport coordinates (origin top-left, y grows down).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

__all__ = ["Rect", "Point", "MaskShape"]


class MaskShape(str, Enum):  # str subclass so option files can use plain names
    CIRCLE = "circle"
    RECTANGLE = "rectangle"
    ROUNDED_RECTANGLE = "rounded-rectangle"

    @classmethod
    def coerce(cls, value: "MaskShape | str | None") -> "MaskShape":
        if value is None:
            return cls.ROUNDED_RECTANGLE
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower().replace("_", "-"))


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> Point:
        return Point(self.x + self.width / 2, self.y + self.height / 2)

    def is_empty(self) -> bool:
        """Zero-size rect: the element exists but has not been laid out yet."""
        return self.width == 0 and self.height == 0

    def translated(self, dx: float = 0, dy: float = 0) -> "Rect":
        return Rect(self.x + dx, self.y + dy, self.width, self.height)

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.x, self.y, self.width, self.height)
