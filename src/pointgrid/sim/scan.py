from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

import numpy as np

from pointgrid.core.cloud import Header, PointCloud, xyz_cloud
from pointgrid.core.geometry import spherical_to_cartesian
from pointgrid.core.spherical import SphericalProjection


@dataclass(frozen=True)
class ScanSpec:
    """Ideal spinning-sensor geometry (angles in radians, ranges in metres)."""

    height: int = 16
    width: int = 359
    azimuth_start: float = np.radians(179.5)
    azimuth_step: float = -np.radians(1.0)
    elevation_start: float = np.radians(15.0)
    elevation_step: float = -np.radians(2.0)
    range_min: float = 1.0
    range_max: float = 30.0

    def model(self) -> SphericalProjection:
        return SphericalProjection(
            azimuth_start=float(self.azimuth_start),
            azimuth_step=float(self.azimuth_step),
            elevation_start=float(self.elevation_start),
            elevation_step=float(self.elevation_step),
            height=int(self.height),
            width=int(self.width),
        )


def generate_scan(
    spec: ScanSpec,
    rng: np.random.Generator | int | None = 0,
    noise_std: float = 0.0,
    dropout: float = 0.0,
    corrupt_rows: Iterable[int] = (),
    frame_id: str = "sensor",
) -> PointCloud:
    """
    Synthetic organized scan: cell (r,c) looks along the model direction of
    (r,c) at a random range.

    - noise_std: Gaussian angular noise [rad] added to both angles.
    - dropout: fraction of cells turned into missed returns (NaN).
    - corrupt_rows: rows whose points get uniformly random directions.
    """
    if not 0.0 <= dropout <= 1.0:
        raise ValueError("dropout must be in [0, 1]")
    rng = np.random.default_rng(rng)
    h, w = int(spec.height), int(spec.width)
    rr, cc = np.meshgrid(np.arange(h, dtype=np.float64), np.arange(w, dtype=np.float64), indexing="ij")
    az = spec.azimuth_start + cc * spec.azimuth_step
    el = spec.elevation_start + rr * spec.elevation_step
    if noise_std > 0.0:
        az = az + rng.normal(scale=noise_std, size=az.shape)
        el = el + rng.normal(scale=noise_std, size=el.shape)

    for r in corrupt_rows:
        az[r] = rng.uniform(-np.pi, np.pi, size=w)
        el[r] = rng.uniform(-0.5 * np.pi, 0.5 * np.pi, size=w)

    radius = rng.uniform(spec.range_min, spec.range_max, size=(h, w))
    x, y, z = spherical_to_cartesian(az, el, radius)
    xyz = np.stack([x, y, z], axis=-1)

    if dropout > 0.0:
        xyz[rng.random((h, w)) < dropout] = np.nan

    return xyz_cloud(xyz, header=Header(frame_id=frame_id))
