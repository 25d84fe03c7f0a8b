"""Application layer: options persistence and tour bootstrap."""

from .config_store import (  # noqa: F401
    TourOptions,
    Labels,
    load_options,
    save_options,
    OPTIONS_VERSION,
)
from .bootstrap import create_tour_app, TourAppContext  # noqa: F401
