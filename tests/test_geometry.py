import numpy as np

from pointgrid.core.geometry import azimuth, cartesian_to_spherical, elevation, normalize, spherical_to_cartesian


def test_spherical_roundtrip():
    rng = np.random.default_rng(0)
    xyz = rng.normal(size=(1000, 3)) * 10.0
    az, el, r = cartesian_to_spherical(xyz[:, 0], xyz[:, 1], xyz[:, 2])
    x, y, z = spherical_to_cartesian(az, el, r)
    assert np.max(np.abs(np.stack([x, y, z], axis=1) - xyz)) < 1e-9


def test_axis_conventions():
    az, el, r = cartesian_to_spherical(0.0, 2.0, 0.0)
    assert np.isclose(az, np.pi / 2)
    assert np.isclose(el, 0.0)
    assert np.isclose(r, 2.0)
    assert np.isclose(elevation(1.0, 0.0, 1.0), np.pi / 4)
    assert np.isclose(azimuth(-1.0, 0.0), np.pi)


def test_unit_radius_by_default():
    x, y, z = spherical_to_cartesian(np.array([0.3, -2.0]), np.array([0.1, -0.4]))
    np.testing.assert_allclose(np.sqrt(x * x + y * y + z * z), 1.0)


def test_nan_propagates():
    az, el, r = cartesian_to_spherical(np.nan, 1.0, 1.0)
    assert np.isnan(az) and np.isnan(el) and np.isnan(r)
    x, y, z = spherical_to_cartesian(np.nan, 0.0, 1.0)
    assert np.isnan(x) and np.isnan(y)


def test_normalize_zero_vector_is_nan():
    v = normalize(np.array([[3.0, 4.0, 0.0], [0.0, 0.0, 0.0]]))
    np.testing.assert_allclose(v[0], [0.6, 0.8, 0.0])
    assert np.all(np.isnan(v[1]))
