from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from pointgrid.core.cloud import PointCloud
from pointgrid.core.geometry import azimuth, cartesian_to_spherical, elevation, normalize, spherical_to_cartesian
from pointgrid.errors import FitFailure
from pointgrid.events import FitEvent, FitObserver, log_event

MIN_MODELS = 25


def _round_half_away(x: np.ndarray) -> np.ndarray:
    return np.sign(x) * np.floor(np.abs(x) + 0.5)


@dataclass
class SphericalProjection:
    """
    Spherical sensor model relating a cloud's (row, col) grid to directions.

    Convention:
    - azimuth at column c:   azimuth_start + c * azimuth_step
    - elevation at row r:    elevation_start + r * elevation_step

    Azimuth is the angle in the xy plane (from x towards y), elevation the
    angle from the xy plane towards +z (see `pointgrid.core.geometry`).
    Parameters stay NaN until a fit succeeds; a failed fit leaves them as they were.
    """

    azimuth_start: float = math.nan
    azimuth_step: float = math.nan
    elevation_start: float = math.nan
    elevation_step: float = math.nan
    height: int = 0
    width: int = 0
    observer: FitObserver | None = field(default=log_event, repr=False, compare=False)

    @property
    def calibrated(self) -> bool:
        params = (self.azimuth_start, self.azimuth_step, self.elevation_start, self.elevation_step)
        return (
            all(math.isfinite(p) for p in params)
            and self.azimuth_step != 0.0
            and self.elevation_step != 0.0
            and self.height > 0
            and self.width > 0
        )

    def _emit(self, name: str, success: bool, **stats: Any) -> None:
        if self.observer is not None:
            self.observer(FitEvent(name=name, success=success, stats=stats))

    # Projection.

    def project(self, x: np.ndarray, y: np.ndarray, z: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """
        Map points -> continuous (row, col). No rounding, no clamping to the grid.
        """
        az, el, _r = cartesian_to_spherical(x, y, z)
        with np.errstate(divide="ignore", invalid="ignore"):
            row = (el - self.elevation_start) / self.elevation_step
            col = (az - self.azimuth_start) / self.azimuth_step
        return row, col

    def project_points(self, points: np.ndarray) -> np.ndarray:
        """(N,3) points -> (N,2) [row, col]."""
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        row, col = self.project(pts[:, 0], pts[:, 1], pts[:, 2])
        return np.stack([row, col], axis=1)

    def unproject(self, row: np.ndarray, col: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Map (row, col) -> unit direction (x, y, z)."""
        az = self.azimuth_start + np.asarray(col, dtype=np.float64) * self.azimuth_step
        el = self.elevation_start + np.asarray(row, dtype=np.float64) * self.elevation_step
        return spherical_to_cartesian(az, el, 1.0)

    # Fitting.

    def fit_fast(self, cloud: PointCloud) -> bool:
        """
        Fit from the first points found at the extreme rows and columns.

        Exact for a perfectly regular scan; one bad extremal point spoils it.
        """
        t0 = time.perf_counter()
        pts = cloud.positions()
        valid = np.flatnonzero(np.all(np.isfinite(pts), axis=1))
        w = cloud.width

        i_r0 = i_r1 = i_c0 = i_c1 = -1
        for i in valid.tolist():
            if i_r0 < 0:
                i_r0 = i_r1 = i_c0 = i_c1 = i
            if i // w < i_r0 // w:
                i_r0 = i
            if i // w > i_r1 // w:
                i_r1 = i
            if i % w < i_c0 % w:
                i_c0 = i
            if i % w > i_c1 % w:
                i_c1 = i
            if i_r0 < i_r1 and i_c0 < i_c1:
                break
        if i_r0 < 0:
            self._emit("fit_fast", False, reason="no valid points")
            return False

        r0, r1 = i_r0 // w, i_r1 // w
        c0, c1 = i_c0 % w, i_c1 % w
        if r0 == r1 or c0 == c1:
            self._emit("fit_fast", False, reason="valid points span a single row or column")
            return False

        el0 = float(elevation(*pts[i_r0]))
        el1 = float(elevation(*pts[i_r1]))
        el_step = (el1 - el0) / (r1 - r0)
        az0 = float(azimuth(pts[i_c0, 0], pts[i_c0, 1]))
        az1 = float(azimuth(pts[i_c1, 0], pts[i_c1, 1]))
        az_step = (az1 - az0) / (c1 - c0)

        self.elevation_step = el_step
        self.elevation_start = el0 - r0 * el_step
        self.azimuth_step = az_step
        self.azimuth_start = az0 - c0 * az_step
        self.height = int(cloud.height)
        self.width = int(cloud.width)

        self._emit(
            "fit_fast",
            True,
            elevation_diff=el1 - el0,
            row0=r0,
            row1=r1,
            azimuth_diff=az1 - az0,
            col0=c0,
            col1=c1,
            seconds=time.perf_counter() - t0,
        )
        return True

    def fit_robust(
        self,
        cloud: PointCloud,
        rng: np.random.Generator | int | None = None,
        min_models: int = MIN_MODELS,
    ) -> bool:
        """
        Median-of-pairwise-slopes fit.

        Valid points are shuffled and consecutive pairs give (start, step)
        candidates: along azimuth for pairs from different columns, along
        elevation for pairs from different rows. Collection stops once both axes
        have `min_models` candidates. Each axis takes the candidate with the
        median step, so a minority of corrupted points cannot move the result.

        `rng` may be a seed or a Generator; None draws fresh entropy.
        """
        t0 = time.perf_counter()
        pts = cloud.positions()
        valid = np.flatnonzero(np.all(np.isfinite(pts), axis=1))
        valid = np.random.default_rng(rng).permutation(valid)
        if valid.size < 2:
            self._emit("fit_robust", False, reason=f"{valid.size} valid points")
            return False

        w = cloud.width
        i0 = valid[:-1]
        i1 = valid[1:]
        r0, c0 = np.divmod(i0, w)
        r1, c1 = np.divmod(i1, w)
        az_pair = c0 != c1
        el_pair = r0 != r1

        # Stop at the first pair after which both axes have enough candidates.
        enough = np.flatnonzero((np.cumsum(az_pair) >= min_models) & (np.cumsum(el_pair) >= min_models))
        if enough.size:
            stop = int(enough[0]) + 1
            i0, i1, r0, c0, r1, c1 = (a[:stop] for a in (i0, i1, r0, c0, r1, c1))
            az_pair = az_pair[:stop]
            el_pair = el_pair[:stop]

        if not np.any(az_pair) or not np.any(el_pair):
            self._emit(
                "fit_robust",
                False,
                reason="no point pairs from distinct columns and rows",
                azimuth_models=int(np.sum(az_pair)),
                elevation_models=int(np.sum(el_pair)),
            )
            return False

        az = azimuth(pts[:, 0], pts[:, 1])
        el = elevation(pts[:, 0], pts[:, 1], pts[:, 2])

        a0, a1 = i0[az_pair], i1[az_pair]
        az_steps = (az[a1] - az[a0]) / (c1[az_pair] - c0[az_pair])
        az_starts = az[a0] - c0[az_pair] * az_steps

        e0, e1 = i0[el_pair], i1[el_pair]
        el_steps = (el[e1] - el[e0]) / (r1[el_pair] - r0[el_pair])
        el_starts = el[e0] - r0[el_pair] * el_steps

        az_start, az_step = _median_model(az_starts, az_steps)
        el_start, el_step = _median_model(el_starts, el_steps)

        self.azimuth_start = az_start
        self.azimuth_step = az_step
        self.elevation_start = el_start
        self.elevation_step = el_step
        self.height = int(cloud.height)
        self.width = int(cloud.width)

        self._emit(
            "fit_robust",
            True,
            azimuth_start=az_start,
            azimuth_end=az_start + (self.width - 1) * az_step,
            azimuth_step=az_step,
            azimuth_models=int(az_steps.size),
            elevation_start=el_start,
            elevation_end=el_start + (self.height - 1) * el_step,
            elevation_step=el_step,
            elevation_models=int(el_steps.size),
            seconds=time.perf_counter() - t0,
        )
        return True

    def fit(self, cloud: PointCloud, rng: np.random.Generator | int | None = None) -> bool:
        return self.fit_robust(cloud, rng=rng)

    @classmethod
    def fitted(
        cls,
        cloud: PointCloud,
        method: str = "robust",
        rng: np.random.Generator | int | None = None,
        min_models: int = MIN_MODELS,
        observer: FitObserver | None = log_event,
    ) -> "SphericalProjection":
        """Return a model fitted to `cloud`, raising FitFailure if the fit fails."""
        model = cls(observer=observer)
        if method == "robust":
            ok = model.fit_robust(cloud, rng=rng, min_models=min_models)
        elif method == "fast":
            ok = model.fit_fast(cloud)
        else:
            raise ValueError(f"unknown fit method: {method}")
        if not ok:
            raise FitFailure(f"{method} fit failed on a {cloud.height}x{cloud.width} cloud")
        return model

    # Validation.

    def mean_residual(self, cloud: PointCloud) -> float:
        """
        Mean angle [rad] between observed and modelled directions, over the
        valid points whose projection rounds to a cell other than their own.

        0.0 when every valid point lands in its own cell, NaN if uncalibrated.
        """
        return self._residual(cloud)[0]

    def _residual(self, cloud: PointCloud) -> tuple[float, int]:
        if (cloud.height, cloud.width) != (self.height, self.width):
            self._emit(
                "extent_mismatch",
                False,
                cloud_height=cloud.height,
                cloud_width=cloud.width,
                model_height=self.height,
                model_width=self.width,
            )
        if not self.calibrated:
            return math.nan, 0
        n = cloud.num_points
        if n == 0:
            return 0.0, 0

        pts = cloud.positions()
        valid = np.all(np.isfinite(pts), axis=1)
        rows, cols = np.divmod(np.arange(n), cloud.width)
        r_model, c_model = self.project(pts[:, 0], pts[:, 1], pts[:, 2])
        placed = (_round_half_away(r_model) == rows) & (_round_half_away(c_model) == cols)
        off = valid & ~placed
        if not np.any(off):
            return 0.0, 0

        d_obs = normalize(pts[off])
        d_model = np.stack(self.unproject(rows[off], cols[off]), axis=-1)
        with np.errstate(invalid="ignore"):
            res = np.arccos(np.sum(d_obs * d_model, axis=-1))
        res = res[np.isfinite(res)]
        if res.size == 0:
            return 0.0, 0
        return float(np.mean(res)), int(res.size)

    def check(self, cloud: PointCloud) -> bool:
        """
        Report how well the model explains `cloud`. Advisory only: the model
        is not changed and the result is always True.
        """
        mean, misplaced = self._residual(cloud)
        tolerance = min(abs(self.azimuth_step), abs(self.elevation_step)) / 2.0
        self._emit("check", True, mean_residual=mean, misplaced=misplaced, tolerance=tolerance)
        return True

    # Summaries.

    def model_sample(self, n: int = 8) -> tuple[np.ndarray, np.ndarray]:
        """Azimuth and elevation [deg] predicted on a coarse (row, col) grid."""
        rows, cols = _sample_grid(self.height, self.width, n)
        x, y, z = self.unproject(rows[:, None], cols[None, :])
        az, el, _r = cartesian_to_spherical(x, y, z)
        return np.degrees(az), np.degrees(el)

    def to_dict(self) -> dict[str, Any]:
        return {
            "azimuth_start": float(self.azimuth_start),
            "azimuth_step": float(self.azimuth_step),
            "elevation_start": float(self.elevation_start),
            "elevation_step": float(self.elevation_step),
            "height": int(self.height),
            "width": int(self.width),
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any], observer: FitObserver | None = log_event) -> "SphericalProjection":
        return cls(
            azimuth_start=float(d["azimuth_start"]),
            azimuth_step=float(d["azimuth_step"]),
            elevation_start=float(d["elevation_start"]),
            elevation_step=float(d["elevation_step"]),
            height=int(d["height"]),
            width=int(d["width"]),
            observer=observer,
        )


def _median_model(starts: np.ndarray, steps: np.ndarray) -> tuple[float, float]:
    order = np.argsort(steps, kind="stable")
    k = int(order[order.size // 2])
    return float(starts[k]), float(steps[k])


def _sample_grid(height: int, width: int, n: int) -> tuple[np.ndarray, np.ndarray]:
    rows = np.arange(0, height, max(1, height // n), dtype=np.float64)
    cols = np.arange(0, width, max(1, width // n), dtype=np.float64)
    return rows, cols


def cloud_sample(cloud: PointCloud, n: int = 8) -> tuple[np.ndarray, np.ndarray]:
    """Observed azimuth and elevation [deg] on a coarse (row, col) grid of `cloud`."""
    rows, cols = _sample_grid(cloud.height, cloud.width, n)
    idx = rows.astype(np.int64)[:, None] * cloud.width + cols.astype(np.int64)[None, :]
    pts = cloud.positions()[idx]
    az, el, _r = cartesian_to_spherical(pts[..., 0], pts[..., 1], pts[..., 2])
    return np.degrees(az), np.degrees(el)
