"""Camera models for primary ray generation."""

from .pinhole import (
    DEFAULT_FOV_SCALE,
    PinholeCamera,
    get_camera_info,
    get_ray,
    get_ray_tent,
    is_camera_ready,
    setup_camera,
    tent_offset,
)

__all__ = [
    "DEFAULT_FOV_SCALE",
    "PinholeCamera",
    "get_camera_info",
    "get_ray",
    "get_ray_tent",
    "is_camera_ready",
    "setup_camera",
    "tent_offset",
]
