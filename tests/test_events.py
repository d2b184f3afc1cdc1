import logging

from pointgrid.core.spherical import SphericalProjection
from pointgrid.sim.scan import ScanSpec, generate_scan


def test_default_observer_logs_fit_and_check(caplog):
    spec = ScanSpec(height=8, width=32)
    cloud = generate_scan(spec, rng=0)
    model = SphericalProjection()
    with caplog.at_level(logging.DEBUG, logger="pointgrid"):
        assert model.fit_fast(cloud)
        assert model.fit_robust(cloud, rng=0)
        assert model.check(cloud)
    messages = [r.getMessage() for r in caplog.records]
    assert any(m.startswith("Spherical model:") for m in messages)
    assert any(m.startswith("Robust fit [deg]:") for m in messages)
    assert any(m.startswith("Mean angular error:") for m in messages)


def test_default_observer_warns_on_failure(caplog):
    model = SphericalProjection()
    cloud = generate_scan(ScanSpec(height=4, width=4), rng=0, dropout=1.0)
    with caplog.at_level(logging.WARNING, logger="pointgrid"):
        assert not model.fit_robust(cloud, rng=0)
    assert any(r.levelno == logging.WARNING and "fit_robust failed" in r.getMessage() for r in caplog.records)
