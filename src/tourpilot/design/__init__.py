"""Design package.

Pure spotlight geometry (mask path, tooltip anchors, badge) plus transition
timing and the reduced motion preference. Nothing here imports Qt.
"""

from .geometry import MaskShape, Point, Rect  # noqa: F401
from .placement import (  # noqa: F401
    AnchorBox,
    MaskPath,
    PlacementFrame,
    TooltipPlacement,
    compute_frame,
    compute_mask_path,
    compute_tooltip_placement,
    pad_target,
)
from .motion import EASING_NAMES, TransitionTiming, normalize_easing  # noqa: F401
from .reduced_motion import is_reduced_motion, set_reduced_motion  # noqa: F401
