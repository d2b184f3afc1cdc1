from __future__ import annotations

import argparse
import logging
import math
import sys
from pathlib import Path

import numpy as np

from pointgrid.api.cloud_io import load_cloud, save_cloud
from pointgrid.api.model_io import load_spherical_projection, save_spherical_projection
from pointgrid.config import FIT_METHODS, FitConfig, load_fit_config
from pointgrid.core.image_io import save_field_image
from pointgrid.core.spherical import SphericalProjection, cloud_sample
from pointgrid.errors import FitFailure
from pointgrid.sim.scan import ScanSpec, generate_scan

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: int = logging.INFO, log_file: str | None = None) -> None:
    """
    Route `pointgrid` log records to stdout, and to `log_file` when given.

    Replaces handlers from an earlier call, so repeated `main()` calls do not
    duplicate output.
    """
    root = logging.getLogger("pointgrid")
    root.setLevel(level)
    root.handlers.clear()
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="w", encoding="utf-8"))
    formatter = logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S")
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root.addHandler(handler)


def _format_grid(grid: np.ndarray) -> str:
    return "\n".join(" ".join(f"{v:8.2f}" for v in row) for row in grid)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="pointgrid")
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    parser.add_argument("--log-file", type=str, default=None)
    sub = parser.add_subparsers(dest="cmd", required=True)

    defaults = ScanSpec()
    sim = sub.add_parser("simulate", help="Generate a synthetic organized scan (x,y,z cloud).")
    sim.add_argument("--out", type=Path, required=True)
    sim.add_argument("--height", type=int, default=defaults.height)
    sim.add_argument("--width", type=int, default=defaults.width)
    sim.add_argument("--azimuth-start-deg", type=float, default=math.degrees(defaults.azimuth_start))
    sim.add_argument("--azimuth-step-deg", type=float, default=math.degrees(defaults.azimuth_step))
    sim.add_argument("--elevation-start-deg", type=float, default=math.degrees(defaults.elevation_start))
    sim.add_argument("--elevation-step-deg", type=float, default=math.degrees(defaults.elevation_step))
    sim.add_argument("--noise-std-deg", type=float, default=0.0, help="Angular noise (0 disables).")
    sim.add_argument("--dropout", type=float, default=0.0, help="Fraction of missed returns (NaN points).")
    sim.add_argument("--seed", type=int, default=0)

    fit = sub.add_parser("fit", help="Calibrate a spherical projection model from a cloud.")
    fit.add_argument("cloud", type=Path)
    fit.add_argument("--out", type=Path, required=True, help="Output model JSON.")
    fit.add_argument("--config", type=Path, default=None, help="JSON fit config (method, min_models, seed).")
    fit.add_argument("--method", type=str, default=None, choices=list(FIT_METHODS))
    fit.add_argument("--seed", type=int, default=None)

    chk = sub.add_parser("check", help="Mean angular residual of a model on a cloud.")
    chk.add_argument("cloud", type=Path)
    chk.add_argument("model", type=Path)

    render = sub.add_parser("render", help="Write a scalar field as a grayscale image.")
    render.add_argument("cloud", type=Path)
    render.add_argument("field")
    render.add_argument("--out", type=Path, required=True)

    summary = sub.add_parser("summary", help="Print azimuth/elevation samples of a cloud (and model).")
    summary.add_argument("cloud", type=Path)
    summary.add_argument("--model", type=Path, default=None)

    args = parser.parse_args(argv)
    setup_logging(getattr(logging, args.log_level), args.log_file)

    if args.cmd == "simulate":
        spec = ScanSpec(
            height=args.height,
            width=args.width,
            azimuth_start=math.radians(args.azimuth_start_deg),
            azimuth_step=math.radians(args.azimuth_step_deg),
            elevation_start=math.radians(args.elevation_start_deg),
            elevation_step=math.radians(args.elevation_step_deg),
        )
        cloud = generate_scan(
            spec,
            rng=args.seed,
            noise_std=math.radians(args.noise_std_deg),
            dropout=args.dropout,
        )
        path = save_cloud(args.out, cloud)
        print(f"Wrote {path}")
        return 0

    if args.cmd == "fit":
        cfg = load_fit_config(args.config) if args.config else FitConfig()
        method = args.method or cfg.method
        seed = args.seed if args.seed is not None else cfg.seed
        cloud = load_cloud(args.cloud)
        try:
            model = SphericalProjection.fitted(cloud, method=method, rng=seed, min_models=cfg.min_models)
        except FitFailure as e:
            logger.error("%s", e)
            return 1
        model.check(cloud)
        save_spherical_projection(args.out, model)
        print(f"Wrote {args.out}")
        return 0

    if args.cmd == "check":
        cloud = load_cloud(args.cloud)
        model = load_spherical_projection(args.model)
        model.check(cloud)
        print(f"Mean angular residual: {math.degrees(model.mean_residual(cloud)):.4f} deg")
        return 0

    if args.cmd == "render":
        cloud = load_cloud(args.cloud)
        save_field_image(args.out, cloud, args.field)
        print(f"Wrote {args.out}")
        return 0

    if args.cmd == "summary":
        cloud = load_cloud(args.cloud)
        print(f"{cloud.height} x {cloud.width} points, fields: {', '.join(cloud.field_names)}")
        az, el = cloud_sample(cloud)
        print(f"Azimuth sample [deg]:\n{_format_grid(az)}")
        print(f"Elevation sample [deg]:\n{_format_grid(el)}")
        if args.model is not None:
            model = load_spherical_projection(args.model)
            az, el = model.model_sample()
            print(f"Azimuth model sample [deg]:\n{_format_grid(az)}")
            print(f"Elevation model sample [deg]:\n{_format_grid(el)}")
        return 0

    raise AssertionError(f"Unhandled cmd: {args.cmd}")


if __name__ == "__main__":
    raise SystemExit(main())
