from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable

logger = logging.getLogger("pointgrid.fit")


@dataclass(frozen=True)
class FitEvent:
    """
    Outcome of a fit or check pass on a spherical projection model.

    `name` is one of "fit_fast", "fit_robust", "check", "extent_mismatch".
    """

    name: str
    success: bool
    stats: dict[str, Any] = field(default_factory=dict)


FitObserver = Callable[[FitEvent], None]


def log_event(event: FitEvent) -> None:
    """Default observer: forward events to the `pointgrid.fit` logger."""
    s = event.stats
    if event.name == "extent_mismatch":
        logger.warning(
            "Cloud size (%i, %i) inconsistent with model size (%i, %i).",
            s["cloud_height"],
            s["cloud_width"],
            s["model_height"],
            s["model_width"],
        )
    elif not event.success:
        logger.warning("%s failed: %s", event.name, s.get("reason", "unknown reason"))
    elif event.name == "fit_fast":
        logger.info(
            "Spherical model: elevation difference %.3f between rows %i and %i, "
            "azimuth difference %.3f between cols %i and %i (%.6f s).",
            s["elevation_diff"],
            s["row0"],
            s["row1"],
            s["azimuth_diff"],
            s["col0"],
            s["col1"],
            s["seconds"],
        )
    elif event.name == "fit_robust":
        logger.debug(
            "Robust fit [deg]: azimuth [%.1f, %.1f], step %.3f (from %i models), "
            "elevation [%.1f, %.1f], step %.3f (from %i models) (%.6f s).",
            math.degrees(s["azimuth_start"]),
            math.degrees(s["azimuth_end"]),
            math.degrees(s["azimuth_step"]),
            s["azimuth_models"],
            math.degrees(s["elevation_start"]),
            math.degrees(s["elevation_end"]),
            math.degrees(s["elevation_step"]),
            s["elevation_models"],
            s["seconds"],
        )
    elif event.name == "check":
        level = logging.WARNING if s["mean_residual"] > s["tolerance"] else logging.DEBUG
        logger.log(
            level,
            "Mean angular error: %.3f [deg] over %i misplaced points.",
            math.degrees(s["mean_residual"]),
            s["misplaced"],
        )
    else:
        logger.debug("%s: %s", event.name, s)
