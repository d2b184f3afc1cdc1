from pointgrid import errors
from pointgrid.api import load_cloud, load_spherical_projection, save_cloud, save_spherical_projection
from pointgrid.core.cloud import Header, PointCloud, PointField, xyz_cloud
from pointgrid.core.datatypes import PointFieldType
from pointgrid.core.spherical import SphericalProjection
from pointgrid.events import FitEvent

__all__ = [
    "errors",
    "FitEvent",
    "Header",
    "PointCloud",
    "PointField",
    "PointFieldType",
    "SphericalProjection",
    "xyz_cloud",
    "load_cloud",
    "save_cloud",
    "load_spherical_projection",
    "save_spherical_projection",
]
