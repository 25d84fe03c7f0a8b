"""Spotlight overlay widget.

Covers its parent widget and paints the tour backdrop with a cut-out around
the current step (one ``QPainterPath`` with ``OddEvenFill``), the tooltip
arrow, the step-number badge and a tooltip card (step text plus Skip, Previous
and Next/Finish buttons). Implements the engine's ``TourRenderer`` protocol.

Usage::

    overlay = SpotlightOverlay(main_window.centralWidget(), options)
    app = create_tour_app(host=QtLayoutHost(main_window.centralWidget()), renderer=overlay)
    overlay.bind_engine(app.engine)

Behavior
--------
* Showing fades the backdrop in (``backdropOpacity`` property); reduced motion
  shows it at full opacity immediately.
* Animated presents tween the cut-out from the previous bounds to the new
  ones along the configured ``QEasingCurve``; the end state is always the
  computed frame.
* Pressing the backdrop emits ``backdropClicked``; Escape emits
  ``backRequested``; Right/Return and Left emit ``nextRequested`` /
  ``previousRequested``. The tooltip buttons emit the same signals; Previous
  is hidden on the first step and Next reads Finish on the last one.
* ``bind_engine`` routes the signals to the engine and installs a
  ``QtAsyncRunner`` so they work without a running asyncio loop.
"""

from __future__ import annotations

import html
import logging
import re
from typing import Dict, List, Optional, Tuple

from PyQt6.QtCore import (
    QEasingCurve,
    QPointF,
    QPropertyAnimation,
    QRectF,
    Qt,
    QVariantAnimation,
    pyqtProperty,
    pyqtSignal,
)
from PyQt6.QtGui import QColor, QPainter, QPainterPath, QPolygonF
from PyQt6.QtWidgets import QFrame, QHBoxLayout, QLabel, QPushButton, QVBoxLayout, QWidget

from tourpilot.app.config_store import TourOptions
from tourpilot.design import reduced_motion as _reduced_motion
from tourpilot.design.geometry import MaskShape, Rect
from tourpilot.design.motion import TransitionTiming, interpolate_rect, normalize_easing
from tourpilot.design.placement import (
    AnchorBox,
    MaskPath,
    PlacementFrame,
    TooltipPlacement,
    clamp_corner_radius,
)
from tourpilot.services.step_registry import split_content

from .async_runner import QtAsyncRunner

__all__ = [
    "SpotlightOverlay",
    "build_mask_path",
    "anchor_geometry",
    "arrow_polygon",
    "parse_color",
    "easing_curve",
    "EASING_CURVES",
]

_logger = logging.getLogger(__name__)

_RGBA_RE = re.compile(
    r"rgba?\(\s*([\d.]+)\s*,\s*([\d.]+)\s*,\s*([\d.]+)\s*(?:,\s*([\d.]+)\s*)?\)",
    re.IGNORECASE,
)
FADE_DURATION_MS = 200

EASING_CURVES: Dict[str, QEasingCurve.Type] = {
    "linear": QEasingCurve.Type.Linear,
    "ease_in_out": QEasingCurve.Type.InOutCubic,
    "elastic": QEasingCurve.Type.OutElastic,
}


def easing_curve(name: str | None) -> QEasingCurve:
    """Map an easing option name onto a Qt curve (unknown names raise KeyError)."""
    return QEasingCurve(EASING_CURVES[normalize_easing(name)])


def parse_color(text: str) -> QColor:
    """Parse ``rgb()/rgba()`` (alpha 0..1) or anything ``QColor`` accepts."""
    match = _RGBA_RE.fullmatch(text.strip())
    if match:
        r, g, b, a = match.groups()
        color = QColor(int(float(r)), int(float(g)), int(float(b)))
        color.setAlphaF(min(1.0, max(0.0, float(a) if a is not None else 1.0)))
        return color
    color = QColor(text.strip())
    if not color.isValid():
        _logger.warning("[TourPilot] Unrecognised colour %r; using black", text)
        return QColor(0, 0, 0)
    return color


def build_mask_path(mask: MaskPath, bounds: Rect | None = None) -> QPainterPath:
    """Canvas rectangle plus the cut-out, filled with the odd-even rule."""
    path = QPainterPath()
    path.setFillRule(Qt.FillRule.OddEvenFill)
    c = mask.canvas
    path.addRect(QRectF(c.x, c.y, c.width, c.height))
    b = bounds if bounds is not None else mask.bounds
    hole = QRectF(b.x, b.y, b.width, b.height)
    if mask.shape is MaskShape.CIRCLE:
        path.addEllipse(hole)
    elif mask.shape is MaskShape.RECTANGLE or mask.radius <= 0:
        path.addRect(hole)
    else:
        r = clamp_corner_radius(mask.radius, b.width, b.height)
        path.addRoundedRect(hole, r, r)
    return path


def anchor_geometry(
    box: AnchorBox, width: float, height: float, viewport_w: float, viewport_h: float
) -> Rect:
    """Resolve an edge-anchored box to a rectangle of the given size."""
    if box.max_width is not None:
        width = min(width, max(box.max_width, 0))
    x = box.left if box.left is not None else viewport_w - (box.right or 0) - width
    y = box.top if box.top is not None else viewport_h - (box.bottom or 0) - height
    return Rect(x, y, width, height)


def arrow_polygon(
    placement: TooltipPlacement, arrow_size: float, viewport_w: float, viewport_h: float
) -> Optional[List[Tuple[float, float]]]:
    """Triangle pointing from the tooltip towards the target, or None."""
    if placement.arrow is None or arrow_size <= 0:
        return None
    a = arrow_size
    box = anchor_geometry(placement.arrow, 2 * a, 2 * a, viewport_w, viewport_h)
    if placement.vertical == "bottom":
        return [(box.x, box.bottom), (box.right, box.bottom), (box.x + a, box.y + a)]
    return [(box.x, box.y), (box.right, box.y), (box.x + a, box.y + a)]


class SpotlightOverlay(QWidget):
    backdropClicked = pyqtSignal()
    backRequested = pyqtSignal()
    nextRequested = pyqtSignal()
    previousRequested = pyqtSignal()

    def __init__(self, parent: QWidget, options: TourOptions | None = None):
        super().__init__(parent)
        self.setObjectName("SpotlightOverlay")
        self.setAttribute(Qt.WidgetAttribute.WA_NoSystemBackground, True)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self._options = options or TourOptions()
        self._frame: Optional[PlacementFrame] = None
        self._hole: Optional[Rect] = None
        self._badge_text = ""
        self._opacity = 0.0
        self._fade_anim: Optional[QPropertyAnimation] = None
        self._move_anim: Optional[QVariantAnimation] = None
        self._engine = None
        self._runner: Optional[QtAsyncRunner] = None
        self._tooltip = self._build_tooltip()
        self._tooltip.hide()
        self.hide()

    def _build_tooltip(self) -> QFrame:
        labels = self._options.labels
        card = QFrame(self)
        card.setObjectName("TourTooltip")
        card.setAttribute(Qt.WidgetAttribute.WA_StyledBackground, True)
        card.setStyleSheet(
            f"#TourTooltip {{ background: {self._options.arrow_color}; border-radius: 6px; }}"
            " #TourTooltipText { color: #222; }"
        )
        vl = QVBoxLayout(card)
        vl.setContentsMargins(8, 8, 8, 8)
        vl.setSpacing(6)
        self._text = QLabel(card)
        self._text.setObjectName("TourTooltipText")
        self._text.setWordWrap(True)
        self._text.setTextFormat(Qt.TextFormat.RichText)
        vl.addWidget(self._text)
        hl = QHBoxLayout()
        hl.setSpacing(6)
        self._skip_btn = self._make_button(labels.skip, "TourSkipButton", self.backRequested)
        self._prev_btn = self._make_button(labels.previous, "TourPreviousButton", self.previousRequested)
        self._next_btn = self._make_button(labels.next, "TourNextButton", self.nextRequested)
        hl.addWidget(self._skip_btn)
        hl.addStretch(1)
        hl.addWidget(self._prev_btn)
        hl.addWidget(self._next_btn)
        vl.addLayout(hl)
        return card

    def _make_button(self, text: str, name: str, signal) -> QPushButton:
        btn = QPushButton(text, self)
        btn.setObjectName(name)
        btn.setCursor(Qt.CursorShape.PointingHandCursor)
        # keys stay with the overlay
        btn.setFocusPolicy(Qt.FocusPolicy.NoFocus)
        btn.clicked.connect(lambda _=False: signal.emit())  # type: ignore
        return btn

    # Wiring --------------------------------------------------------------
    def bind_engine(self, engine) -> None:  # engine: TourEngine
        self._engine = engine
        if self._runner is None:
            self._runner = QtAsyncRunner(self)
        engine.set_dispatcher(self._runner.submit)
        self.backdropClicked.connect(engine.handle_backdrop_click)
        self.backRequested.connect(engine.handle_back_request)
        self.nextRequested.connect(engine.handle_next_request)
        self.previousRequested.connect(engine.handle_prev_request)

    @property
    def frame(self) -> Optional[PlacementFrame]:
        return self._frame

    @property
    def hole(self) -> Optional[Rect]:
        return self._hole

    @property
    def tooltip(self) -> QFrame:
        return self._tooltip

    @property
    def tooltip_text(self) -> QLabel:
        return self._text

    @property
    def skip_button(self) -> QPushButton:
        return self._skip_btn

    @property
    def previous_button(self) -> QPushButton:
        return self._prev_btn

    @property
    def next_button(self) -> QPushButton:
        return self._next_btn

    @property
    def runner(self) -> Optional[QtAsyncRunner]:
        return self._runner

    # TourRenderer --------------------------------------------------------
    async def present(self, frame: PlacementFrame, *, animated: bool) -> None:
        self._sync_geometry()
        previous = self._hole
        self._frame = frame
        self._update_content()
        self._layout_tooltip(frame)
        timing = TransitionTiming.from_options(
            self._options.animation_duration, self._options.easing
        )
        if self._move_anim is not None:
            self._move_anim.stop()
            self._move_anim = None
        if animated and previous is not None and not timing.instant:
            self._start_move(previous, frame.mask.bounds, timing)
        else:
            self._hole = frame.mask.bounds
        self.update()

    async def set_visible(self, visible: bool) -> None:
        if visible:
            self._sync_geometry()
            self.raise_()
            self.show()
            self.setFocus()
            self._start_fade()
            return
        for anim in (self._fade_anim, self._move_anim):
            if anim is not None:
                anim.stop()
        self._fade_anim = self._move_anim = None
        self.hide()
        self._tooltip.hide()
        self._frame = None
        self._hole = None
        self._opacity = 0.0
        self.update()

    # Painting ------------------------------------------------------------
    def paintEvent(self, event):  # type: ignore[override]
        if self._frame is None:
            return
        p = QPainter(self)
        p.setRenderHint(QPainter.RenderHint.Antialiasing, True)
        backdrop = parse_color(self._options.backdrop_color)
        backdrop.setAlphaF(backdrop.alphaF() * self._opacity)
        p.fillPath(build_mask_path(self._frame.mask, self._hole), backdrop)
        accent = parse_color(self._options.arrow_color)
        triangle = arrow_polygon(
            self._frame.placement, self._options.arrow_size, self.width(), self.height()
        )
        if triangle is not None:
            p.setPen(Qt.PenStyle.NoPen)
            p.setBrush(accent)
            p.drawPolygon(QPolygonF([QPointF(x, y) for x, y in triangle]))
        if self._badge_text:
            badge = self._frame.placement.step_number
            rect = QRectF(badge.x, badge.y, badge.width, badge.height)
            p.setPen(Qt.PenStyle.NoPen)
            p.setBrush(accent)
            p.drawEllipse(rect)
            p.setPen(QColor(0, 0, 0))
            p.drawText(rect, int(Qt.AlignmentFlag.AlignCenter), self._badge_text)
        p.end()

    # Input ---------------------------------------------------------------
    def mousePressEvent(self, event):  # type: ignore[override]
        on_tooltip = self._tooltip.isVisible() and self._tooltip.geometry().contains(
            event.position().toPoint()
        )
        event.accept()
        if not on_tooltip:
            self.backdropClicked.emit()

    def keyPressEvent(self, event):  # type: ignore[override]
        key = event.key()
        if key == Qt.Key.Key_Escape:
            self.backRequested.emit()
        elif key in (Qt.Key.Key_Right, Qt.Key.Key_Return, Qt.Key.Key_Enter):
            self.nextRequested.emit()
        elif key == Qt.Key.Key_Left:
            self.previousRequested.emit()
        else:
            super().keyPressEvent(event)

    # Internal ------------------------------------------------------------
    def _sync_geometry(self) -> None:
        parent = self.parentWidget()
        if parent is not None:
            self.setGeometry(0, 0, parent.width(), parent.height())

    def _update_content(self) -> None:
        if self._engine is None:
            self._badge_text = ""
            return
        snap = self._engine.snapshot()
        self._badge_text = str(snap.current_step_number) if snap.current_step_number else ""
        title, body = split_content(snap.current_step.content if snap.current_step else "")
        body = html.escape(body)
        text = f"<b>{html.escape(title)}</b><br>{body}" if title else body
        self._text.setText(text)
        labels = self._options.labels
        self._prev_btn.setVisible(not snap.is_first_step)
        self._next_btn.setText(labels.finish if snap.is_last_step else labels.next)

    def _layout_tooltip(self, frame: PlacementFrame) -> None:
        if not self._text.text():
            self._tooltip.hide()
            return
        box = frame.placement.tooltip
        if box.max_width is not None:
            self._tooltip.setMaximumWidth(max(0, int(box.max_width)))
        hint = self._tooltip.sizeHint()
        width = min(hint.width(), self._tooltip.maximumWidth())
        height = self._tooltip.heightForWidth(width)
        if height < 0:
            height = hint.height()
        rect = anchor_geometry(box, width, height, self.width(), self.height())
        self._tooltip.setGeometry(int(rect.x), int(rect.y), int(rect.width), int(rect.height))
        self._tooltip.show()

    def _start_move(self, start: Rect, end: Rect, timing: TransitionTiming) -> None:
        anim = QVariantAnimation(self)
        anim.setStartValue(0.0)
        anim.setEndValue(1.0)
        anim.setDuration(timing.duration_ms)
        anim.setEasingCurve(easing_curve(timing.easing))

        def on_value(value) -> None:
            self._hole = interpolate_rect(start, end, float(value))
            self.update()

        def on_finished() -> None:
            self._hole = end
            self.update()

        anim.valueChanged.connect(on_value)
        anim.finished.connect(on_finished)
        self._hole = start
        self._move_anim = anim
        anim.start()

    def _start_fade(self) -> None:
        duration = _reduced_motion.adjust_duration(FADE_DURATION_MS)
        if not self._options.animated or duration <= 0:
            self._opacity = 1.0
            self.update()
            return
        self._fade_anim = QPropertyAnimation(self, b"backdropOpacity")
        self._fade_anim.setStartValue(0.0)
        self._fade_anim.setEndValue(1.0)
        self._fade_anim.setDuration(duration)
        self._fade_anim.setEasingCurve(QEasingCurve.Type.InOutCubic)
        self._fade_anim.start()

    # Property for animation driver ---------------------------------------
    def backdropOpacity(self):  # getter for QPropertyAnimation
        return self._opacity

    def setBackdropOpacity(self, value):  # setter for animation
        self._opacity = float(value)
        self.update()

    backdropOpacity = pyqtProperty(float, fget=backdropOpacity, fset=setBackdropOpacity)  # type: ignore
