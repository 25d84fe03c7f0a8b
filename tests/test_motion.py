import pytest

from tourpilot.design import reduced_motion
from tourpilot.design.geometry import Rect
from tourpilot.design.motion import (
    DEFAULT_EASING,
    EASING_NAMES,
    TransitionTiming,
    interpolate_rect,
    normalize_easing,
)


def test_normalize_easing_accepts_spelling_variants():
    assert normalize_easing("Ease-In-Out") == "ease_in_out"
    assert normalize_easing(" linear ") == "linear"
    assert normalize_easing(None) == DEFAULT_EASING == "elastic"
    assert EASING_NAMES == {"linear", "ease_in_out", "elastic"}


def test_normalize_easing_rejects_unknown_names():
    with pytest.raises(KeyError):
        normalize_easing("nope")


def test_interpolate_rect_endpoints_and_midpoint():
    a, b = Rect(0, 0, 10, 10), Rect(10, 20, 30, 50)
    assert interpolate_rect(a, b, 0) == a
    assert interpolate_rect(a, b, 1) == b
    assert interpolate_rect(a, b, 0.5) == Rect(5, 10, 20, 30)


def test_timing_keeps_duration_and_normalised_easing():
    timing = TransitionTiming.from_options(400, "Ease-In-Out")
    assert timing.duration_ms == 400
    assert timing.easing == "ease_in_out"
    assert not timing.instant


def test_reduced_motion_collapses_duration():
    with reduced_motion.temporarily_reduced_motion(True):
        assert reduced_motion.is_reduced_motion()
        assert TransitionTiming.from_options(400, "elastic").instant
    assert TransitionTiming.from_options(400, "elastic").duration_ms == 400


def test_adjust_duration_clamps_negative():
    assert reduced_motion.adjust_duration(-5) == 0
