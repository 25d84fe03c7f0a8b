"""Tour options and their JSON persistence.

Design principles:
- Pure logic (no Qt import) so it can be unit-tested headless.
- Explicit schema with version field to enable future migrations.
- Graceful fallback: corrupt or incompatible files produce defaults instead of raising.
- Lenient input: snake_case or camelCase keys, unknown keys ignored.

Option sections may be nested under ``"tourPilot"`` or the legacy
``"copilot"`` name; ``resolve_alias`` prefers the new name and falls back to
the old one, so older option files keep working.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from tourpilot.design.motion import normalize_easing
from tourpilot.errors import OptionsError

__all__ = [
    "OPTIONS_VERSION",
    "Labels",
    "TourOptions",
    "resolve_alias",
    "load_options",
    "save_options",
]

_logger = logging.getLogger(__name__)

OPTIONS_VERSION = 1

DEFAULT_FILENAME = "tourpilot_options.json"

PRIMARY_SECTION = "tourPilot"
LEGACY_SECTION = "copilot"


def resolve_alias(
    data: Mapping[str, Any], new: str, old: str, default: Any = None
) -> Any:
    """Return ``data[new]`` if truthy, else ``data[old]`` if truthy, else ``default``."""
    value = data.get(new)
    if value:
        return value
    value = data.get(old)
    if value:
        return value
    return default


def _snake(name: str) -> str:
    out = []
    for ch in name:
        if ch.isupper():
            out.append("_")
            out.append(ch.lower())
        else:
            out.append(ch)
    return "".join(out)


@dataclass(slots=True)
class Labels:
    skip: str = "Skip"
    previous: str = "Previous"
    next: str = "Next"
    finish: str = "Finish"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "Labels":
        base = cls()
        if not data:
            return base
        return cls(
            skip=str(data.get("skip", base.skip)),
            previous=str(data.get("previous", base.previous)),
            next=str(data.get("next", base.next)),
            finish=str(data.get("finish", base.finish)),
        )


@dataclass(slots=True)
class TourOptions:
    """Engine and overlay configuration.

    Attributes
    ----------
    backdrop_color: Mask fill (CSS-like colour string).
    border_radius: Default rounded-rectangle corner radius.
    margin: Tooltip offset from the highlighted target.
    arrow_size: Tooltip arrow size; 0 disables the arrow.
    highlight_padding: Default inflation of the measured rectangle.
    vertical_offset: Engine-wide vertical shift applied to every measurement.
    stop_on_outside_click: Clicking the backdrop stops the tour.
    animated / animation_duration / easing: Transition interpolation only.
    scroll_settle_ms: Delay after auto-scroll before measuring.
    max_start_tries: Frame-deferred retries while a tour has no steps.
    max_measure_frames: Frame budget for measuring a step (None = unbounded).
    """

    version: int = OPTIONS_VERSION
    backdrop_color: str = "rgba(0, 0, 0, 0.75)"
    border_radius: float = 8
    margin: float = 13
    arrow_size: float = 6
    arrow_color: str = "#fff"
    highlight_padding: float = 4
    vertical_offset: float = 0
    stop_on_outside_click: bool = False
    animated: bool = True
    animation_duration: int = 400
    easing: str = "elastic"
    labels: Labels = field(default_factory=Labels)
    scroll_settle_ms: int = 150
    max_start_tries: int = 120
    max_measure_frames: Optional[int] = None

    def easing_name(self) -> str:
        return normalize_easing(self.easing)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "TourOptions":
        if not data:
            return cls()
        section = resolve_alias(data, PRIMARY_SECTION, LEGACY_SECTION)
        merged: Dict[str, Any] = {}
        if not isinstance(section, Mapping):
            section = {}
        for source in (data, section):
            for key, value in source.items():
                if key in (PRIMARY_SECTION, LEGACY_SECTION):
                    continue
                merged[_snake(key)] = value
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for name, value in merged.items():
            if name not in known:
                continue
            kwargs[name] = Labels.from_dict(value) if name == "labels" else value
        try:
            opts = cls(**kwargs)
        except TypeError as exc:  # pragma: no cover - guarded by the known-key filter
            raise OptionsError(str(exc)) from exc
        opts.validate()
        return opts

    def validate(self) -> None:
        if self.arrow_size < 0:
            raise OptionsError("arrow_size must be >= 0", context={"arrow_size": self.arrow_size})
        if self.max_start_tries < 0:
            raise OptionsError("max_start_tries must be >= 0")
        if self.max_measure_frames is not None and self.max_measure_frames < 0:
            raise OptionsError("max_measure_frames must be >= 0 or None")
        try:
            normalize_easing(self.easing)
        except KeyError as exc:
            raise OptionsError(str(exc), context={"easing": self.easing}) from exc


def _resolve_path(base_dir: str | Path | None) -> Path:
    base = Path(base_dir) if base_dir else Path.cwd()
    return base / DEFAULT_FILENAME


def load_options(base_dir: str | Path | None = None) -> TourOptions:
    """Load options from ``base_dir`` (defaults to CWD); never raises."""
    path = _resolve_path(base_dir)
    if not path.exists():
        return TourOptions()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        opts = TourOptions.from_dict(data)
    except Exception:  # noqa: BLE001
        _logger.warning("[TourPilot] Ignoring unreadable options file %s", path)
        return TourOptions()
    if opts.version != OPTIONS_VERSION:
        _logger.warning("[TourPilot] Options version %s unsupported; using defaults", opts.version)
        return TourOptions()
    return opts


def save_options(opts: TourOptions, base_dir: str | Path | None = None) -> Path:
    path = _resolve_path(base_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(opts.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
    tmp.replace(path)
    return path
