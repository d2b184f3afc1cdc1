from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any

from pointgrid.core.spherical import SphericalProjection
from pointgrid.events import FitObserver, log_event

MODEL_SCHEMA = "pointgrid.model.spherical_projection.v0"


def save_spherical_projection(path: Path, model: SphericalProjection) -> Path:
    """
    Save a calibrated model as a small JSON document:

      {"schema_version": ..., "image": {"height", "width"},
       "azimuth": {"start", "step"}, "elevation": {"start", "step"}}

    Angles are in radians.
    """
    if not model.calibrated:
        raise ValueError("refusing to save an uncalibrated model")
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    meta: dict[str, Any] = {
        "schema_version": MODEL_SCHEMA,
        "image": {"height": int(model.height), "width": int(model.width)},
        "azimuth": {"start": float(model.azimuth_start), "step": float(model.azimuth_step)},
        "elevation": {"start": float(model.elevation_start), "step": float(model.elevation_step)},
    }
    path.write_text(json.dumps(meta, indent=2, sort_keys=True), encoding="utf-8")
    return path


def load_spherical_projection(path: Path, observer: FitObserver | None = log_event) -> SphericalProjection:
    meta = json.loads(Path(path).read_text(encoding="utf-8"))
    if str(meta.get("schema_version")) != MODEL_SCHEMA:
        raise ValueError("unsupported model schema")
    try:
        image = meta["image"]
        az = meta["azimuth"]
        el = meta["elevation"]
        model = SphericalProjection(
            azimuth_start=float(az["start"]),
            azimuth_step=float(az["step"]),
            elevation_start=float(el["start"]),
            elevation_step=float(el["step"]),
            height=int(image["height"]),
            width=int(image["width"]),
            observer=observer,
        )
    except KeyError as e:
        raise ValueError(f"{path} missing key: {e}") from e
    params = (model.azimuth_start, model.azimuth_step, model.elevation_start, model.elevation_step)
    if not all(math.isfinite(p) for p in params):
        raise ValueError("non-finite values")
    if not model.calibrated:
        raise ValueError(f"{path} does not describe a calibrated model")
    return model
