from __future__ import annotations


def test_public_api_exports() -> None:
    import pointgrid as pg

    assert hasattr(pg, "PointCloud")
    assert hasattr(pg, "SphericalProjection")
    assert hasattr(pg, "load_cloud")
    assert hasattr(pg, "save_spherical_projection")
    assert issubclass(pg.errors.DuplicateFieldError, pg.errors.SchemaError)
    assert issubclass(pg.errors.IndexOutOfRangeError, IndexError)
