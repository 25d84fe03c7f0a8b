"""Binding between a step-bearing UI element and the StepRegistry.

A ``StepBinding`` is created by the widget (or view model) that owns a
highlightable element. It registers on ``mount``, re-registers on ``update``
(unregistering the old key first when the step was renamed), and removes
itself on ``unmount`` or when made inactive. The registry, not the widget,
owns the resulting ``Step``.

``handle_props`` mirrors the wrapper-prop contract used by walkthrough-able
widgets: the handle may arrive under ``tourPilot`` or the legacy ``copilot``
key; the new name wins.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from tourpilot.app.config_store import resolve_alias
from tourpilot.design.geometry import MaskShape

from .host import LayoutHost, frame_throttled_measure
from .step_registry import Step, StepRegistry

__all__ = ["StepBinding", "handle_props"]

_UPDATABLE = (
    "name",
    "order",
    "content",
    "active",
    "mask_shape",
    "border_radius",
    "highlight_padding",
    "tour_key",
)


def handle_props(props: Mapping[str, Any]) -> Mapping[str, Any]:
    """Resolve wrapper props passed as ``tourPilot`` (preferred) or ``copilot``."""
    return resolve_alias(props, "tourPilot", "copilot", default={})


class StepBinding:
    def __init__(
        self,
        registry: StepRegistry,
        host: LayoutHost,
        handle: Any,
        *,
        tour_key: str,
        name: str,
        order: int,
        content: str = "",
        active: bool = True,
        mask_shape: MaskShape | str = MaskShape.ROUNDED_RECTANGLE,
        border_radius: float | None = None,
        highlight_padding: float | None = None,
        max_measure_frames: int | None = None,
    ) -> None:
        self._registry = registry
        self._host = host
        self.handle = handle
        self.tour_key = tour_key
        self.name = name
        self.order = order
        self.content = content
        self.active = active
        self.mask_shape = MaskShape.coerce(mask_shape)
        self.border_radius = border_radius
        self.highlight_padding = highlight_padding
        self._measure = frame_throttled_measure(host, handle, max_frames=max_measure_frames)
        self._registered: Optional[tuple[str, str]] = None

    @property
    def registered_key(self) -> Optional[tuple[str, str]]:
        return self._registered

    def build_step(self) -> Step:
        return Step(
            tour_key=self.tour_key,
            name=self.name,
            order=self.order,
            content=self.content,
            visible=True,
            mask_shape=self.mask_shape,
            border_radius=self.border_radius,
            highlight_padding=self.highlight_padding,
            measure=self._measure,
            handle=self.handle,
        )

    def mount(self) -> None:
        self._sync()

    def update(self, **props: Any) -> None:
        unknown = set(props) - set(_UPDATABLE)
        if unknown:
            raise TypeError(f"Unknown step props: {sorted(unknown)}")
        for key, value in props.items():
            if key == "mask_shape":
                value = MaskShape.coerce(value)
            setattr(self, key, value)
        self._sync()

    def unmount(self) -> None:
        if self._registered is not None:
            self._registry.unregister(*self._registered)
            self._registered = None

    def _sync(self) -> None:
        if not self.active:
            self.unmount()
            return
        key = (self.tour_key, self.name)
        if self._registered is not None and self._registered != key:
            self._registry.unregister(*self._registered)
        self._registry.register(self.build_step())
        self._registered = key
