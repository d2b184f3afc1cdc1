from __future__ import annotations

import logging
import sys
import time
from dataclasses import dataclass, field, replace
from typing import Any, Iterable

import numpy as np

from pointgrid.core.datatypes import PointFieldType, dtype_matches
from pointgrid.errors import (
    BoundsError,
    DuplicateFieldError,
    FieldNotFoundError,
    IndexOutOfRangeError,
    SchemaError,
    TypeMismatchError,
)

logger = logging.getLogger(__name__)

POSITION_FIELDS = ("x", "y", "z")
NORMAL_FIELDS = ("nx", "ny", "nz")


@dataclass(frozen=True)
class PointField:
    name: str
    offset: int
    datatype: PointFieldType
    count: int = 1

    @property
    def size(self) -> int:
        return self.count * self.datatype.size


@dataclass
class Header:
    frame_id: str = ""
    stamp: float = 0.0


@dataclass
class PointCloud:
    """
    Structured point buffer: a flat byte array described by a runtime schema.

    Records are packed back to back (`point_step` bytes each) within a row and
    rows start every `row_step` bytes. The record of point `i` sits at row
    `i // width`, column `i % width`.

    Typical construction:

      cloud = PointCloud()
      cloud.append_position_fields()
      cloud.resize(height, width)
      cloud.write_field("x", xs)
    """

    header: Header = field(default_factory=Header)
    height: int = 0
    width: int = 0
    fields: list[PointField] = field(default_factory=list)
    is_bigendian: bool = sys.byteorder == "big"
    point_step: int = 0
    row_step: int = 0
    data: bytearray = field(default_factory=bytearray)
    is_dense: bool = False

    # Schema.

    def reset_fields(self) -> None:
        """
        Drop the schema. The extent and stored records go with it, since bytes
        without a schema cannot be read back.
        """
        self.fields = []
        self.point_step = 0
        self.height = 0
        self.width = 0
        self.row_step = 0
        self.data = bytearray()

    def append_field(self, name: str, datatype: Any, count: int = 1) -> PointField:
        if self.find_field(name) is not None:
            raise DuplicateFieldError(f"field {name!r} already declared")
        if int(count) < 1:
            raise SchemaError(f"field {name!r}: count must be >= 1")
        if len(self.data) > 0:
            raise SchemaError("schema is fixed once the cloud holds points; call reset_fields() first")
        pf = PointField(name=str(name), offset=self.point_step, datatype=PointFieldType.parse(datatype), count=int(count))
        self.fields.append(pf)
        self.point_step += pf.size
        # row_step is set by resize().
        return pf

    def append_position_fields(self, datatype: Any = PointFieldType.FLOAT32) -> None:
        for name in POSITION_FIELDS:
            self.append_field(name, datatype)

    def append_normal_fields(self, datatype: Any = PointFieldType.FLOAT32) -> None:
        for name in NORMAL_FIELDS:
            self.append_field(name, datatype)

    def append_occupancy_fields(self) -> None:
        self.append_field("seen_thru", PointFieldType.UINT8)
        self.append_field("hit", PointFieldType.UINT8)

    def append_traversability_fields(self) -> None:
        self.append_field("normal_pts", PointFieldType.UINT8)
        self.append_field("obs_pts", PointFieldType.UINT8)
        self.append_field("gnd_diff_std", PointFieldType.UINT8)
        self.append_field("gnd_diff_min", PointFieldType.INT8)
        self.append_field("gnd_diff_max", PointFieldType.INT8)
        self.append_field("gnd_abs_diff_mean", PointFieldType.UINT8)
        self.append_field("nz_lbl", PointFieldType.UINT8)
        self.append_field("final_lbl", PointFieldType.UINT8)

    def append_planning_fields(self) -> None:
        self.append_field("path_cost", PointFieldType.FLOAT32)
        self.append_field("utility", PointFieldType.FLOAT32)
        self.append_field("final_cost", PointFieldType.FLOAT32)

    def find_field(self, name: str) -> PointField | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def field(self, name: str) -> PointField:
        f = self.find_field(name)
        if f is None:
            raise FieldNotFoundError(f"field {name!r} not in cloud (fields: {self.field_names})")
        return f

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    # Storage.

    def resize(self, height: int, width: int) -> None:
        height = int(height)
        width = int(width)
        if height < 0 or width < 0:
            raise BoundsError(f"invalid cloud size ({height}, {width})")
        self.height = height
        self.width = width
        self.row_step = width * self.point_step
        self.data = bytearray(height * self.row_step)

    @property
    def num_points(self) -> int:
        return int(self.height) * int(self.width)

    def point_index(self, row: int, col: int) -> int:
        if not (0 <= row < self.height and 0 <= col < self.width):
            raise BoundsError(f"cell ({row}, {col}) outside cloud size ({self.height}, {self.width})")
        return int(row) * self.width + int(col)

    def row_col(self, index: int) -> tuple[int, int]:
        self._check_index(index)
        return divmod(int(index), self.width)

    def record(self, index: int) -> bytes:
        r, c = self.row_col(index)
        start = r * self.row_step + c * self.point_step
        return bytes(self.data[start : start + self.point_step])

    def _check_index(self, index: int) -> None:
        n = self.num_points
        if not 0 <= int(index) < n:
            raise IndexOutOfRangeError(f"index {index} out of range for {n} points")

    def _check_dtype(self, f: PointField, dtype: Any) -> None:
        if not dtype_matches(dtype, f.datatype):
            raise TypeMismatchError(f"field {f.name!r} is {f.datatype.name.lower()}, not {np.dtype(dtype)}")

    def _check_values(self, f: PointField, arr: np.ndarray, dt: np.dtype) -> None:
        # Integers and bools fit any numeric field, floats only float fields.
        if arr.dtype.kind not in ("biuf" if dt.kind == "f" else "biu"):
            raise TypeMismatchError(f"field {f.name!r} is {f.datatype.name.lower()}, cannot store {arr.dtype} values")
        if dt.kind in "iu" and np.any(arr.astype(dt) != arr):
            raise TypeMismatchError(f"values out of range for {f.datatype.name.lower()} field {f.name!r}")

    def _records(self) -> np.ndarray:
        """(N, point_step) uint8 view of the records (a copy when rows are padded)."""
        n = self.num_points
        if n == 0 or self.point_step == 0:
            return np.empty((n, self.point_step), dtype=np.uint8)
        grid = np.ndarray(
            (self.height, self.width, self.point_step),
            dtype=np.uint8,
            buffer=self.data,
            strides=(self.row_step, self.point_step, 1),
        )
        return grid.reshape(n, self.point_step)

    # Typed field access.

    def field_grid(self, name: str, dtype: Any = None) -> np.ndarray:
        """
        Writable, zero-copy view of a field shaped (H,W) or (H,W,count).
        """
        f = self.field(name)
        if dtype is not None:
            self._check_dtype(f, dtype)
        dt = f.datatype.numpy_dtype(self.is_bigendian)
        shape: tuple[int, ...] = (self.height, self.width)
        strides: tuple[int, ...] = (self.row_step, self.point_step)
        if f.count > 1:
            shape += (f.count,)
            strides += (dt.itemsize,)
        if self.num_points == 0:
            return np.empty(shape, dtype=dt)
        return np.ndarray(shape, dtype=dt, buffer=self.data, offset=f.offset, strides=strides)

    def read_field(self, name: str, dtype: Any = None) -> np.ndarray:
        """
        Field values of all points shaped (N,) or (N,count).

        The result is a view into `data` unless rows carry padding.
        """
        grid = self.field_grid(name, dtype)
        return grid.reshape((self.num_points,) + grid.shape[2:])

    def write_field(self, name: str, values: Any, dtype: Any = None) -> None:
        """
        Write a field for all points; a scalar is broadcast to every point.

        numpy inputs must match the field datatype; Python numbers and
        sequences are converted.
        """
        f = self.field(name)
        if dtype is not None:
            self._check_dtype(f, dtype)
        grid = self.field_grid(name)
        arr = np.asarray(values)
        if isinstance(values, (np.ndarray, np.generic)):
            self._check_dtype(f, values.dtype)
        elif arr.size:
            self._check_values(f, arr, grid.dtype)
        if arr.ndim == 0:
            grid[...] = arr
            return
        if arr.size != grid.size:
            raise BoundsError(f"field {name!r}: expected {grid.size} values, got {arr.size}")
        grid[...] = arr.reshape(grid.shape)

    def positions(self) -> np.ndarray:
        """(N,3) float64 positions from the x, y, z fields."""
        cols = []
        for name in POSITION_FIELDS:
            f = self.field(name)
            if f.datatype not in (PointFieldType.FLOAT32, PointFieldType.FLOAT64):
                raise TypeMismatchError(f"position field {name!r} must be floating point")
            cols.append(self.read_field(name).astype(np.float64))
        return np.stack(cols, axis=1)

    def valid_mask(self) -> np.ndarray:
        return np.all(np.isfinite(self.positions()), axis=1)

    # Derived clouds.

    def copy_metadata(self, into: "PointCloud") -> None:
        """Copy everything describing the records, but not the records themselves."""
        into.header = replace(self.header)
        into.fields = list(self.fields)
        into.is_bigendian = self.is_bigendian
        into.point_step = self.point_step
        into.is_dense = self.is_dense

    def select(self, indices: Iterable[int], out: "PointCloud | None" = None) -> "PointCloud":
        """
        Copy selected records, in the order given, into a single-row cloud.
        """
        t0 = time.perf_counter()
        if not isinstance(indices, np.ndarray):
            indices = list(indices)
        idx = np.asarray(indices)
        if idx.size and idx.dtype.kind not in "iu":
            raise TypeMismatchError(f"point indices must be integers, not {idx.dtype}")
        idx = idx.astype(np.int64).reshape(-1)
        n = self.num_points
        bad = (idx < 0) | (idx >= n)
        if np.any(bad):
            raise IndexOutOfRangeError(f"index {int(idx[bad][0])} out of range for {n} points")

        if out is None:
            out = PointCloud()
        self.copy_metadata(out)
        out.height = 1
        out.width = int(idx.size)
        out.row_step = out.width * out.point_step
        out.data = bytearray(self._records()[idx].tobytes())
        logger.debug("%d / %d points copied (%.6f s).", idx.size, n, time.perf_counter() - t0)
        return out


def xyz_cloud(points: np.ndarray, header: Header | None = None, datatype: Any = PointFieldType.FLOAT32) -> PointCloud:
    """
    Build an x,y,z cloud from (H,W,3) or (N,3) positions (the latter as a single row).
    """
    pts = np.asarray(points, dtype=np.float64)
    if pts.ndim == 2:
        pts = pts.reshape(1, -1, 3)
    if pts.ndim != 3 or pts.shape[-1] != 3:
        raise ValueError("points must be (H,W,3) or (N,3)")
    cloud = PointCloud(header=header if header is not None else Header())
    cloud.append_position_fields(datatype)
    cloud.resize(pts.shape[0], pts.shape[1])
    dt = cloud.field("x").datatype.numpy_dtype()
    for k, name in enumerate(POSITION_FIELDS):
        cloud.write_field(name, pts[..., k].astype(dt))
    cloud.is_dense = bool(np.all(np.isfinite(pts)))
    return cloud
