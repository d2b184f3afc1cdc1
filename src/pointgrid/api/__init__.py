from pointgrid.api.cloud_io import cloud_header, load_cloud, parse_cloud_header, save_cloud
from pointgrid.api.model_io import load_spherical_projection, save_spherical_projection

__all__ = [
    "cloud_header",
    "parse_cloud_header",
    "load_cloud",
    "save_cloud",
    "load_spherical_projection",
    "save_spherical_projection",
]
