from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import numpy as np

from pointgrid.core.cloud import Header, PointCloud, PointField
from pointgrid.core.datatypes import PointFieldType
from pointgrid.errors import CloudHeaderError, TypeMismatchError

CLOUD_SCHEMA = "pointgrid.cloud.v0"


def _require(cond: bool, msg: str) -> None:
    if not cond:
        raise CloudHeaderError(msg)


def cloud_header(cloud: PointCloud) -> dict[str, Any]:
    """Wire description of `cloud` (everything except the record bytes)."""
    return {
        "schema_version": CLOUD_SCHEMA,
        "header": {"frame_id": cloud.header.frame_id, "stamp": float(cloud.header.stamp)},
        "height": int(cloud.height),
        "width": int(cloud.width),
        "point_step": int(cloud.point_step),
        "row_step": int(cloud.row_step),
        "is_bigendian": bool(cloud.is_bigendian),
        "is_dense": bool(cloud.is_dense),
        "fields": [
            {"name": f.name, "offset": int(f.offset), "datatype": int(f.datatype), "count": int(f.count)}
            for f in cloud.fields
        ],
    }


def parse_cloud_header(data: dict[str, Any]) -> PointCloud:
    """
    Validate a header produced by `cloud_header` and return an empty cloud
    carrying its metadata (height/width/row_step set, `data` still empty).
    """
    _require(data.get("schema_version") == CLOUD_SCHEMA, f"schema_version must be {CLOUD_SCHEMA}")

    hdr = data.get("header", {})
    _require(isinstance(hdr, dict), "header must be an object")

    try:
        height = int(data["height"])
        width = int(data["width"])
        point_step = int(data["point_step"])
        row_step = int(data["row_step"])
    except KeyError as e:
        raise CloudHeaderError(f"missing key: {e}") from e
    _require(height >= 0 and width >= 0, "height and width must be >= 0")

    raw_fields = data.get("fields")
    _require(isinstance(raw_fields, list), "fields must be a list")
    fields: list[PointField] = []
    offset = 0
    for i, rf in enumerate(raw_fields):
        _require(isinstance(rf, dict), f"fields[{i}] must be an object")
        for k in ("name", "offset", "datatype", "count"):
            _require(k in rf, f"fields[{i}].{k} is required")
        try:
            datatype = PointFieldType.parse(rf["datatype"])
        except TypeMismatchError as e:
            raise CloudHeaderError(f"fields[{i}].datatype: {e}") from e
        pf = PointField(name=str(rf["name"]), offset=int(rf["offset"]), datatype=datatype, count=int(rf["count"]))
        _require(pf.count >= 1, f"fields[{i}].count must be >= 1")
        _require(pf.offset == offset, f"fields[{i}].offset must be {offset} (packed fields)")
        _require(pf.name not in {f.name for f in fields}, f"duplicate field name: {pf.name}")
        fields.append(pf)
        offset += pf.size

    _require(point_step == offset, f"point_step must be {offset} (sum of field sizes)")
    _require(row_step >= width * point_step, "row_step must be >= width * point_step")

    return PointCloud(
        header=Header(frame_id=str(hdr.get("frame_id", "")), stamp=float(hdr.get("stamp", 0.0))),
        height=height,
        width=width,
        fields=fields,
        is_bigendian=bool(data.get("is_bigendian", False)),
        point_step=point_step,
        row_step=row_step,
        is_dense=bool(data.get("is_dense", False)),
    )


def save_cloud(path: Path, cloud: PointCloud) -> Path:
    """
    Save a cloud as a single NPZ: `data` (uint8 record bytes) + `header_json`.
    """
    path = Path(path)
    if path.suffix != ".npz":
        # numpy would append the suffix anyway.
        path = path.with_name(path.name + ".npz")
    path.parent.mkdir(parents=True, exist_ok=True)
    np.savez_compressed(
        path,
        data=np.frombuffer(bytes(cloud.data), dtype=np.uint8),
        header_json=np.array(json.dumps(cloud_header(cloud), sort_keys=True)),
    )
    return path


def load_cloud(path: Path) -> PointCloud:
    with np.load(str(path), allow_pickle=False) as npz:
        for k in ("data", "header_json"):
            if k not in npz:
                raise CloudHeaderError(f"{path} missing key: {k}")
        header = json.loads(str(npz["header_json"]))
        data = np.asarray(npz["data"], dtype=np.uint8).reshape(-1)

    cloud = parse_cloud_header(header)
    expected = cloud.height * cloud.row_step
    if data.size != expected:
        raise CloudHeaderError(f"{path}: data holds {data.size} bytes, header implies {expected}")
    cloud.data = bytearray(data.tobytes())
    return cloud
