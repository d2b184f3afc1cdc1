from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import pytest

from pointgrid.api.cloud_io import cloud_header, load_cloud, parse_cloud_header, save_cloud
from pointgrid.api.model_io import load_spherical_projection, save_spherical_projection
from pointgrid.core.cloud import Header, PointCloud
from pointgrid.core.datatypes import PointFieldType
from pointgrid.core.spherical import SphericalProjection
from pointgrid.errors import CloudHeaderError
from pointgrid.sim.scan import ScanSpec, generate_scan


def test_cloud_save_load(tmp_path: Path):
    cloud = generate_scan(ScanSpec(height=4, width=10), rng=0, dropout=0.2, frame_id="os1")
    cloud.header = Header(frame_id="os1", stamp=3.25)

    path = save_cloud(tmp_path / "scan.npz", cloud)
    loaded = load_cloud(path)

    assert loaded.header == cloud.header
    assert loaded.fields == cloud.fields
    assert (loaded.height, loaded.width, loaded.row_step) == (4, 10, cloud.row_step)
    assert bytes(loaded.data) == bytes(cloud.data)


def test_save_cloud_appends_suffix(tmp_path: Path):
    cloud = generate_scan(ScanSpec(height=2, width=3), rng=0)
    path = save_cloud(tmp_path / "scan", cloud)
    assert path.name == "scan.npz"
    assert path.exists()


def test_parse_cloud_header_rejects_unpacked_fields():
    cloud = PointCloud()
    cloud.append_position_fields()
    cloud.resize(1, 2)
    header = cloud_header(cloud)
    header["fields"][1]["offset"] = 8
    with pytest.raises(CloudHeaderError):
        parse_cloud_header(header)


def test_parse_cloud_header_checks_strides():
    cloud = PointCloud()
    cloud.append_field("v", PointFieldType.UINT16)
    cloud.resize(2, 3)
    header = cloud_header(cloud)

    bad_step = dict(header, point_step=4)
    with pytest.raises(CloudHeaderError):
        parse_cloud_header(bad_step)

    bad_row = dict(header, row_step=5)
    with pytest.raises(CloudHeaderError):
        parse_cloud_header(bad_row)

    padded = parse_cloud_header(dict(header, row_step=8))
    assert padded.row_step == 8
    assert padded.field("v").datatype == PointFieldType.UINT16


def test_load_cloud_checks_data_length(tmp_path: Path):
    cloud = generate_scan(ScanSpec(height=2, width=3), rng=0)
    header = cloud_header(cloud)
    p = tmp_path / "broken.npz"
    np.savez(p, data=np.zeros(5, dtype=np.uint8), header_json=np.array(json.dumps(header)))
    with pytest.raises(CloudHeaderError):
        load_cloud(p)


def test_model_save_load(tmp_path: Path):
    model = ScanSpec().model()
    path = save_spherical_projection(tmp_path / "model" / "model.json", model)
    loaded = load_spherical_projection(path)
    assert loaded.to_dict() == model.to_dict()
    meta = json.loads(path.read_text(encoding="utf-8"))
    assert meta["schema_version"] == "pointgrid.model.spherical_projection.v0"


def test_model_io_rejects_bad_input(tmp_path: Path):
    with pytest.raises(ValueError):
        save_spherical_projection(tmp_path / "m.json", SphericalProjection())

    p = tmp_path / "other.json"
    p.write_text(json.dumps({"schema_version": "something.else"}), encoding="utf-8")
    with pytest.raises(ValueError):
        load_spherical_projection(p)

    model = ScanSpec().model()
    path = save_spherical_projection(tmp_path / "m.json", model)
    meta = json.loads(path.read_text(encoding="utf-8"))
    meta["azimuth"]["step"] = float("nan")
    path.write_text(json.dumps(meta), encoding="utf-8")
    with pytest.raises(ValueError):
        load_spherical_projection(path)
