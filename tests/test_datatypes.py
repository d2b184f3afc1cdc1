import numpy as np
import pytest

from pointgrid.core.datatypes import PointFieldType, dtype_matches
from pointgrid.errors import TypeMismatchError


def test_sizes_and_codes():
    assert [t.size for t in PointFieldType] == [1, 1, 2, 2, 4, 4, 4, 8]
    assert int(PointFieldType.FLOAT32) == 7
    assert PointFieldType.FLOAT64.numpy_dtype(bigendian=True) == np.dtype(">f8")


def test_parse_accepts_codes_names_and_dtypes():
    assert PointFieldType.parse(2) == PointFieldType.UINT8
    assert PointFieldType.parse("int16") == PointFieldType.INT16
    assert PointFieldType.parse(np.float32) == PointFieldType.FLOAT32
    assert PointFieldType.parse(np.dtype(">u4")) == PointFieldType.UINT32


def test_parse_rejects_unsupported():
    with pytest.raises(TypeMismatchError):
        PointFieldType.parse(9)
    with pytest.raises(TypeMismatchError):
        PointFieldType.parse(np.int64)
    with pytest.raises(TypeMismatchError):
        PointFieldType.parse(np.complex64)


def test_dtype_matches_kind_and_size():
    assert dtype_matches(np.float32, PointFieldType.FLOAT32)
    assert not dtype_matches(np.float64, PointFieldType.FLOAT32)
    assert not dtype_matches(np.int32, PointFieldType.FLOAT32)
    assert not dtype_matches(np.uint8, PointFieldType.INT8)
