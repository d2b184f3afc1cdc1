from __future__ import annotations

from pathlib import Path

import numpy as np
from PIL import Image

from pointgrid.core.cloud import PointCloud


def field_to_image(
    cloud: PointCloud, name: str, vmin: float | None = None, vmax: float | None = None
) -> np.ndarray:
    """
    Render a scalar field as an (H,W) uint8 image.

    Values are scaled linearly from [vmin, vmax] (default: finite min/max) to
    [1, 255]; non-finite values map to 0.
    """
    f = cloud.field(name)
    if f.count != 1:
        raise ValueError(f"field {name!r} has {f.count} elements per point; need a scalar field")
    vals = cloud.field_grid(name).astype(np.float64)
    finite = np.isfinite(vals)
    img = np.zeros(vals.shape, dtype=np.uint8)
    if not np.any(finite):
        return img
    lo = float(np.min(vals[finite])) if vmin is None else float(vmin)
    hi = float(np.max(vals[finite])) if vmax is None else float(vmax)
    span = hi - lo if hi > lo else 1.0
    scaled = 1.0 + 254.0 * np.clip((vals[finite] - lo) / span, 0.0, 1.0)
    img[finite] = np.round(scaled).astype(np.uint8)
    return img


def save_field_image(path: str | Path, cloud: PointCloud, name: str, **kwargs: float | None) -> Path:
    """Write `field_to_image(cloud, name)` with Pillow; format follows the suffix."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(field_to_image(cloud, name, **kwargs)).save(p)
    return p
