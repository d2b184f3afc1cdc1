import json
from pathlib import Path

import pytest

from pointgrid.config import ConfigError, FitConfig, load_fit_config, parse_fit_config


def test_parse_fit_config_defaults():
    assert parse_fit_config({}) == FitConfig(method="robust", min_models=25, seed=None)


def test_parse_fit_config_nested(tmp_path: Path):
    p = tmp_path / "fit.json"
    p.write_text(json.dumps({"fit": {"method": "fast", "min_models": 10, "seed": 3}}), encoding="utf-8")
    assert load_fit_config(p) == FitConfig(method="fast", min_models=10, seed=3)


@pytest.mark.parametrize(
    "data",
    [
        {"method": "ransac"},
        {"min_models": 0},
        {"min_models": 2.5},
        {"seed": -1},
        {"seed": True},
        {"iterations": 4},
    ],
)
def test_parse_fit_config_rejects(data):
    with pytest.raises(ConfigError):
        parse_fit_config(data)
