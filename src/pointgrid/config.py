from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pointgrid.core.spherical import MIN_MODELS

FIT_METHODS = ("robust", "fast")


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class FitConfig:
    method: str = "robust"
    min_models: int = MIN_MODELS
    seed: int | None = None


def _require(cond: bool, msg: str) -> None:
    if not cond:
        raise ConfigError(msg)


def load_fit_config(path: Path) -> FitConfig:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    _require(isinstance(data, dict), f"{path} must hold a JSON object")
    return parse_fit_config(data)


def parse_fit_config(data: dict[str, Any]) -> FitConfig:
    fit = data.get("fit", data)
    _require(isinstance(fit, dict), "fit must be an object")

    unknown = sorted(set(fit) - {"method", "min_models", "seed"})
    _require(not unknown, f"unknown fit keys: {unknown}")

    method = str(fit.get("method", "robust"))
    _require(method in FIT_METHODS, f"fit.method must be one of {FIT_METHODS}")

    min_models = fit.get("min_models", MIN_MODELS)
    _require(isinstance(min_models, int) and not isinstance(min_models, bool), "fit.min_models must be an integer")
    _require(min_models >= 1, "fit.min_models must be >= 1")

    seed = fit.get("seed")
    _require(seed is None or (isinstance(seed, int) and not isinstance(seed, bool)), "fit.seed must be an integer")
    _require(seed is None or seed >= 0, "fit.seed must be >= 0")

    return FitConfig(method=method, min_models=int(min_models), seed=seed)
