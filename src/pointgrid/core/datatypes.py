from __future__ import annotations

from enum import IntEnum
from typing import Any

import numpy as np

from pointgrid.errors import TypeMismatchError


class PointFieldType(IntEnum):
    """
    Element datatype of a point field.

    Values are the wire codes of the conventional point-cloud record layout.
    """

    INT8 = 1
    UINT8 = 2
    INT16 = 3
    UINT16 = 4
    INT32 = 5
    UINT32 = 6
    FLOAT32 = 7
    FLOAT64 = 8

    @property
    def size(self) -> int:
        return _SIZES[self]

    def numpy_dtype(self, bigendian: bool = False) -> np.dtype:
        dt = np.dtype(_NUMPY_NAMES[self])
        if dt.itemsize == 1:
            return dt
        return dt.newbyteorder(">" if bigendian else "<")

    @classmethod
    def from_dtype(cls, dtype: Any) -> "PointFieldType":
        try:
            dt = np.dtype(dtype)
        except TypeError as e:
            raise TypeMismatchError(f"not a numpy dtype: {dtype!r}") from e
        for t, name in _NUMPY_NAMES.items():
            ref = np.dtype(name)
            if dt.kind == ref.kind and dt.itemsize == ref.itemsize:
                return t
        raise TypeMismatchError(f"unsupported field dtype: {dt}")

    @classmethod
    def parse(cls, value: Any) -> "PointFieldType":
        """Accept an enum member, a wire code, a name such as "float32" or a dtype-like."""
        if isinstance(value, cls):
            return value
        if isinstance(value, (int, np.integer)) and not isinstance(value, bool):
            try:
                return cls(int(value))
            except ValueError as e:
                raise TypeMismatchError(f"unknown datatype code: {value}") from e
        if isinstance(value, str) and value.upper() in cls.__members__:
            return cls[value.upper()]
        return cls.from_dtype(value)


_SIZES = {
    PointFieldType.INT8: 1,
    PointFieldType.UINT8: 1,
    PointFieldType.INT16: 2,
    PointFieldType.UINT16: 2,
    PointFieldType.INT32: 4,
    PointFieldType.UINT32: 4,
    PointFieldType.FLOAT32: 4,
    PointFieldType.FLOAT64: 8,
}

_NUMPY_NAMES = {
    PointFieldType.INT8: "int8",
    PointFieldType.UINT8: "uint8",
    PointFieldType.INT16: "int16",
    PointFieldType.UINT16: "uint16",
    PointFieldType.INT32: "int32",
    PointFieldType.UINT32: "uint32",
    PointFieldType.FLOAT32: "float32",
    PointFieldType.FLOAT64: "float64",
}


def dtype_matches(dtype: Any, datatype: PointFieldType) -> bool:
    """True if `dtype` has the same kind and element size as `datatype`."""
    dt = np.dtype(dtype)
    ref = np.dtype(_NUMPY_NAMES[datatype])
    return dt.kind == ref.kind and dt.itemsize == ref.itemsize
