from __future__ import annotations

import json
import logging
from pathlib import Path

import numpy as np
import pytest

from pointgrid.api.cloud_io import save_cloud
from pointgrid.cli.main import main, setup_logging
from pointgrid.core.cloud import xyz_cloud


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    # main() installs handlers bound to the captured stdout.
    logging.getLogger("pointgrid").handlers.clear()


def test_cli_simulate_fit_check(tmp_path: Path, capsys) -> None:
    cloud_path = tmp_path / "scan.npz"
    model_path = tmp_path / "model.json"
    assert main(["simulate", "--out", str(cloud_path), "--height", "8", "--width", "64", "--dropout", "0.1"]) == 0
    assert cloud_path.exists()

    assert main(["fit", str(cloud_path), "--out", str(model_path), "--seed", "0"]) == 0
    meta = json.loads(model_path.read_text(encoding="utf-8"))
    assert meta["image"] == {"height": 8, "width": 64}

    assert main(["check", str(cloud_path), str(model_path)]) == 0
    assert "Mean angular residual" in capsys.readouterr().out

    assert main(["summary", str(cloud_path), "--model", str(model_path)]) == 0
    assert "Elevation model sample" in capsys.readouterr().out

    png = tmp_path / "z.png"
    assert main(["render", str(cloud_path), "z", "--out", str(png)]) == 0
    assert png.exists()


def test_cli_fit_failure_exit_code(tmp_path: Path) -> None:
    cloud_path = save_cloud(tmp_path / "nan.npz", xyz_cloud(np.full((3, 3, 3), np.nan)))
    cfg = tmp_path / "fit.json"
    cfg.write_text(json.dumps({"fit": {"method": "fast"}}), encoding="utf-8")
    assert main(["fit", str(cloud_path), "--out", str(tmp_path / "m.json"), "--config", str(cfg)]) == 1
    assert not (tmp_path / "m.json").exists()


def test_setup_logging_replaces_handlers_and_writes_log_file(tmp_path: Path) -> None:
    log_file = tmp_path / "run.log"
    setup_logging(logging.DEBUG)
    setup_logging(logging.DEBUG, str(log_file))

    root = logging.getLogger("pointgrid")
    assert len(root.handlers) == 2
    logging.getLogger("pointgrid.fit").debug("fit started")
    for handler in root.handlers:
        handler.flush()
    assert "pointgrid.fit - DEBUG - fit started" in log_file.read_text(encoding="utf-8")
    root.handlers[-1].close()
