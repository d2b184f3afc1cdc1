from __future__ import annotations

import numpy as np


def azimuth(x: np.ndarray, y: np.ndarray) -> np.ndarray:
    """Angle in the xy plane, positive from x towards y."""
    return np.arctan2(np.asarray(y, dtype=np.float64), np.asarray(x, dtype=np.float64))


def elevation(x: np.ndarray, y: np.ndarray, z: np.ndarray) -> np.ndarray:
    """Angle from the xy plane towards +z."""
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    z = np.asarray(z, dtype=np.float64)
    return np.arctan2(z, np.hypot(x, y))


def cartesian_to_spherical(
    x: np.ndarray, y: np.ndarray, z: np.ndarray
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Map Cartesian coordinates -> (azimuth, elevation, radius).

    Angles are in radians. NaN inputs propagate to NaN outputs.
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    z = np.asarray(z, dtype=np.float64)
    rxy = np.hypot(x, y)
    az = np.arctan2(y, x)
    el = np.arctan2(z, rxy)
    r = np.sqrt(x * x + y * y + z * z)
    return az, el, r


def spherical_to_cartesian(
    az: np.ndarray, el: np.ndarray, r: np.ndarray | float = 1.0
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Inverse of `cartesian_to_spherical` for the same conventions."""
    az = np.asarray(az, dtype=np.float64)
    el = np.asarray(el, dtype=np.float64)
    r = np.asarray(r, dtype=np.float64)
    rxy = r * np.cos(el)
    x = rxy * np.cos(az)
    y = rxy * np.sin(az)
    z = r * np.sin(el)
    return x, y, z


def normalize(v: np.ndarray) -> np.ndarray:
    """Normalize vectors along the last axis (zero vectors become NaN)."""
    v = np.asarray(v, dtype=np.float64)
    norms = np.linalg.norm(v, axis=-1, keepdims=True)
    with np.errstate(invalid="ignore", divide="ignore"):
        return v / norms
