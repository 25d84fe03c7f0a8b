"""Spotlight placement engine.

Pure geometry used on every step transition and every viewport resize:

* ``compute_mask_path`` turns the highlighted rectangle into a single even-odd
  path (full canvas outer rectangle plus the inner cut-out) so one fill paints
  the backdrop with its hole.
* ``compute_tooltip_placement`` chooses the tooltip side and anchor, the arrow
  box and the step-number badge position.
* ``compute_frame`` bundles both for the renderer.

Rules
-----
Vertical side: ``bottom`` when the target centre is further from the bottom
edge than from the top edge (there is more room below), otherwise ``top``.
Ties resolve to ``top``.

Horizontal anchor: ``left`` (tooltip right edge pinned) when the target centre
is further from the left edge than from the right edge, otherwise ``right``
(tooltip left edge pinned). Ties resolve to ``right``.

Anchor offsets and badge coordinates are expressed relative to the viewport
origin. Nothing in this module touches Qt or any mutable state; it is the
primary unit-test surface of the package.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from .geometry import MaskShape, Rect

__all__ = [
    "STEP_NUMBER_RADIUS",
    "STEP_NUMBER_DIAMETER",
    "MaskPath",
    "AnchorBox",
    "TooltipPlacement",
    "PlacementFrame",
    "clamp_corner_radius",
    "compute_mask_path",
    "compute_tooltip_placement",
    "compute_frame",
    "pad_target",
    "mask_bounds",
]

STEP_NUMBER_RADIUS = 14
STEP_NUMBER_DIAMETER = STEP_NUMBER_RADIUS * 2

VERTICAL_TOP = "top"
VERTICAL_BOTTOM = "bottom"
ANCHOR_LEFT = "left"
ANCHOR_RIGHT = "right"


def _fmt(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(round(float(value), 4))


@dataclass(frozen=True)
class MaskPath:
    """Backdrop-with-cutout description.

    ``bounds`` is the bounding box of the inner highlight (for circles the
    circle's own box, not the target's), ``radius`` the corner radius for
    rounded rectangles or the circle radius for circles.
    """

    shape: MaskShape
    canvas: Rect
    bounds: Rect
    radius: float = 0.0
    fill_rule: str = "evenodd"

    @property
    def outer_d(self) -> str:
        w, h = _fmt(self.canvas.width), _fmt(self.canvas.height)
        return f"M0,0H{w}V{h}H0V0Z"

    @property
    def inner_d(self) -> str:
        b, r = self.bounds, self.radius
        if self.shape is MaskShape.CIRCLE:
            cy = b.y + r
            left, right = b.x, b.x + 2 * r
            arc = f"A{_fmt(r)},{_fmt(r)} 0 1 0"
            return (
                f"M{_fmt(left)},{_fmt(cy)}{arc} {_fmt(right)},{_fmt(cy)}"
                f"{arc} {_fmt(left)},{_fmt(cy)}Z"
            )
        if self.shape is MaskShape.RECTANGLE or r <= 0:
            return (
                f"M{_fmt(b.x)},{_fmt(b.y)}H{_fmt(b.right)}V{_fmt(b.bottom)}"
                f"H{_fmt(b.x)}V{_fmt(b.y)}Z"
            )
        arc = f"A{_fmt(r)},{_fmt(r)} 0 0 1"
        return (
            f"M{_fmt(b.x + r)},{_fmt(b.y)}H{_fmt(b.right - r)}"
            f"{arc} {_fmt(b.right)},{_fmt(b.y + r)}V{_fmt(b.bottom - r)}"
            f"{arc} {_fmt(b.right - r)},{_fmt(b.bottom)}H{_fmt(b.x + r)}"
            f"{arc} {_fmt(b.x)},{_fmt(b.bottom - r)}V{_fmt(b.y + r)}"
            f"{arc} {_fmt(b.x + r)},{_fmt(b.y)}Z"
        )

    @property
    def d(self) -> str:
        """SVG path data (outer + inner), drawn with ``fill-rule="evenodd"``."""
        return self.outer_d + self.inner_d


@dataclass(frozen=True)
class AnchorBox:
    """Absolute-position style box; unset edges are ``None``."""

    top: Optional[float] = None
    bottom: Optional[float] = None
    left: Optional[float] = None
    right: Optional[float] = None
    max_width: Optional[float] = None


@dataclass(frozen=True)
class TooltipPlacement:
    tooltip: AnchorBox
    arrow: Optional[AnchorBox]
    step_number: Rect
    vertical: str
    horizontal: str


@dataclass(frozen=True)
class PlacementFrame:
    """Everything the renderer needs to draw one step."""

    target: Rect
    viewport: Rect
    mask: MaskPath
    placement: TooltipPlacement


def clamp_corner_radius(radius: float, width: float, height: float) -> float:
    return max(0.0, min(float(radius), width / 2, height / 2))


def compute_mask_path(
    shape: MaskShape | str,
    target: Rect,
    canvas: Rect,
    border_radius: float = 0,
) -> MaskPath:
    shape = MaskShape.coerce(shape)
    if shape is MaskShape.CIRCLE:
        r = min(target.width, target.height) / 2
        c = target.center
        bounds = Rect(c.x - r, c.y - r, 2 * r, 2 * r)
        return MaskPath(shape=shape, canvas=canvas, bounds=bounds, radius=r)
    if shape is MaskShape.RECTANGLE:
        return MaskPath(shape=shape, canvas=canvas, bounds=target, radius=0.0)
    r = clamp_corner_radius(border_radius, target.width, target.height)
    return MaskPath(shape=shape, canvas=canvas, bounds=target, radius=r)


def compute_tooltip_placement(
    target: Rect,
    viewport: Rect,
    margin: float,
    arrow_size: float,
    *,
    badge_radius: float = STEP_NUMBER_RADIUS,
) -> TooltipPlacement:
    center = target.center
    to_top = center.y - viewport.y
    to_bottom = abs(center.y - viewport.bottom)
    to_left = center.x - viewport.x
    to_right = abs(center.x - viewport.right)

    vertical = VERTICAL_BOTTOM if to_bottom > to_top else VERTICAL_TOP
    horizontal = ANCHOR_LEFT if to_left > to_right else ANCHOR_RIGHT

    top = bottom = left = right = None
    arrow_top = arrow_bottom = arrow_left = arrow_right = None
    if vertical == VERTICAL_BOTTOM:
        top = target.bottom - viewport.y + margin
        arrow_top = top - arrow_size * 2
    else:
        bottom = viewport.height - (target.y - viewport.y - margin)
        arrow_bottom = bottom - arrow_size * 2

    if horizontal == ANCHOR_LEFT:
        right = max(viewport.right - target.right, 0) or margin
        max_width = viewport.width - right - margin
        arrow_right = right + margin
    else:
        left = max(target.x - viewport.x, 0) or margin
        max_width = viewport.width - left - margin
        arrow_left = left + margin

    tooltip = AnchorBox(top=top, bottom=bottom, left=left, right=right, max_width=max_width)
    arrow = None
    if arrow_size > 0:
        arrow = AnchorBox(top=arrow_top, bottom=arrow_bottom, left=arrow_left, right=arrow_right)

    diameter = badge_radius * 2
    badge_x = target.x - viewport.x - badge_radius
    if badge_x < 0:
        badge_x = target.right - viewport.x - badge_radius
        if badge_x > viewport.width - diameter:
            badge_x = viewport.width - diameter
    badge_y = target.y - viewport.y - badge_radius
    badge = Rect(badge_x, badge_y, diameter, diameter)

    return TooltipPlacement(
        tooltip=tooltip,
        arrow=arrow,
        step_number=badge,
        vertical=vertical,
        horizontal=horizontal,
    )


def pad_target(rect: Rect, padding: float, vertical_offset: float = 0) -> Rect:
    """Inflate a measured rectangle by ``padding`` (centred) and shift it."""
    return Rect(
        rect.x - padding / 2,
        rect.y - padding / 2 + vertical_offset,
        rect.width + padding,
        rect.height + padding,
    )


def mask_bounds(rect: Rect) -> Rect:
    # cut-out origin snapped to whole pixels and never off-canvas
    return Rect(
        math.floor(max(rect.x, 0)),
        math.floor(max(rect.y, 0)),
        rect.width,
        rect.height,
    )


def compute_frame(
    target: Rect,
    viewport: Rect,
    *,
    shape: MaskShape | str = MaskShape.ROUNDED_RECTANGLE,
    border_radius: float = 0,
    margin: float = 13,
    arrow_size: float = 6,
) -> PlacementFrame:
    canvas = Rect(0, 0, viewport.width, viewport.height)
    mask = compute_mask_path(shape, mask_bounds(target), canvas, border_radius)
    placement = compute_tooltip_placement(target, viewport, margin, arrow_size)
    return PlacementFrame(target=target, viewport=viewport, mask=mask, placement=placement)
