"""Pinhole camera with 2x2 sub-pixels and tent-filter jitter.

The camera is described by a position, a viewing direction and a field of
view scale. Two image-plane vectors span the view:

    cx = (width * fov_scale / height, 0, 0)
    cy = normalize(cx x direction) * fov_scale

Every pixel is split into 2x2 sub-pixels. Each sample inside a sub-pixel is
offset by a tent-distributed jitter in [-1, 1) per axis, which spreads
samples across neighbouring pixels and acts as a reconstruction filter.
Row 0 is the bottom of the image.

All ray generation is Taichi-compatible.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu, default_fp=ti.f64)
    >>> from spherept.camera.pinhole import PinholeCamera, setup_camera
    >>> camera = PinholeCamera(origin=(50.0, 52.0, 295.6), direction=(0.0, -0.042612, -1.0))
    >>> setup_camera(camera, width=480, height=360)
"""

from dataclasses import dataclass

import numpy as np
import taichi as ti
import taichi.math as tm

from spherept.core.ray import Ray, make_ray, real, vec3
from spherept.core.rng import next_uniform

# Default field-of-view scale (about 0.5 rad half-angle)
DEFAULT_FOV_SCALE = 0.5135

# =============================================================================
# Camera Data Structures
# =============================================================================


@dataclass
class PinholeCamera:
    """Configuration for a pinhole camera.

    Attributes:
        origin: Camera position in world space (x, y, z).
        direction: Viewing direction; normalized by setup_camera.
        fov_scale: Length of the vertical image-plane vector ``cy``.
    """

    origin: tuple[float, float, float]
    direction: tuple[float, float, float]
    fov_scale: float = DEFAULT_FOV_SCALE


# =============================================================================
# Taichi Fields for Camera State
# =============================================================================

_camera_origin = ti.Vector.field(3, dtype=ti.f64, shape=())
_camera_direction = ti.Vector.field(3, dtype=ti.f64, shape=())
_camera_cx = ti.Vector.field(3, dtype=ti.f64, shape=())  # Horizontal image-plane vector
_camera_cy = ti.Vector.field(3, dtype=ti.f64, shape=())  # Vertical image-plane vector
_camera_ready = ti.field(dtype=ti.i32, shape=())


# =============================================================================
# Camera Setup (Python-side)
# =============================================================================


def setup_camera(camera: PinholeCamera, width: int, height: int) -> None:
    """Compute the image-plane vectors for an image size.

    Args:
        camera: Camera configuration.
        width: Image width in pixels.
        height: Image height in pixels.

    Raises:
        ValueError: If the image size is not positive, the direction is
            zero, or the direction is parallel to the x axis.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Image size must be positive, got {width}x{height}")

    direction = np.array(camera.direction, dtype=np.float64)
    norm = np.linalg.norm(direction)
    if norm == 0.0:
        raise ValueError("Camera direction must be nonzero")
    direction = direction / norm

    cx = np.array([width * camera.fov_scale / height, 0.0, 0.0])
    cy = np.cross(cx, direction)
    cy_norm = np.linalg.norm(cy)
    if cy_norm == 0.0:
        raise ValueError("Camera direction must not be parallel to the x axis")
    cy = cy / cy_norm * camera.fov_scale

    _camera_origin[None] = list(camera.origin)
    _camera_direction[None] = direction.tolist()
    _camera_cx[None] = cx.tolist()
    _camera_cy[None] = cy.tolist()
    _camera_ready[None] = 1


def is_camera_ready() -> bool:
    """Check whether setup_camera has been called."""
    return bool(_camera_ready[None])


# =============================================================================
# Ray Generation (Taichi-compatible)
# =============================================================================


@ti.func
def tent_offset(u: real) -> real:
    """Map a uniform variate to a tent-distributed offset in [-1, 1)."""
    r = 2.0 * u
    offset = 0.0
    if r < 1.0:
        offset = ti.sqrt(r) - 1.0
    else:
        offset = 1.0 - ti.sqrt(2.0 - r)
    return offset


@ti.func
def get_ray(px: real, py: real, width: ti.i32, height: ti.i32) -> Ray:
    """Generate a camera ray through continuous pixel coordinates.

    Args:
        px: Horizontal position in pixels (0 = left edge).
        py: Vertical position in pixels (0 = bottom edge).
        width: Image width in pixels.
        height: Image height in pixels.

    Returns:
        A Ray from the camera origin with unit direction.
    """
    d = (
        _camera_cx[None] * (px / ti.cast(width, real) - 0.5)
        + _camera_cy[None] * (py / ti.cast(height, real) - 0.5)
        + _camera_direction[None]
    )
    return make_ray(_camera_origin[None], tm.normalize(d))


@ti.func
def get_ray_tent(
    x: ti.i32, y: ti.i32, sx: ti.i32, sy: ti.i32, width: ti.i32, height: ti.i32, stream: ti.i32
) -> Ray:
    """Generate a jittered ray for one sample of a sub-pixel.

    Draws two variates (x jitter, then y jitter) from ``stream``.

    Args:
        x: Pixel column (0 = left).
        y: Pixel row (0 = bottom).
        sx: Sub-pixel column, 0 or 1.
        sy: Sub-pixel row, 0 or 1.
        width: Image width in pixels.
        height: Image height in pixels.
        stream: RNG stream owned by the calling task.

    Returns:
        A Ray with unit direction.
    """
    dx = tent_offset(next_uniform(stream))
    dy = tent_offset(next_uniform(stream))
    px = (ti.cast(sx, real) + 0.5 + dx) / 2.0 + ti.cast(x, real)
    py = (ti.cast(sy, real) + 0.5 + dy) / 2.0 + ti.cast(y, real)
    return get_ray(px, py, width, height)


# =============================================================================
# Utility Functions
# =============================================================================


def get_camera_info() -> dict[str, tuple[float, float, float]]:
    """Get current camera state for debugging.

    Returns:
        Dictionary with origin, direction, cx and cy.
    """
    info = {}
    for name, field in (
        ("origin", _camera_origin),
        ("direction", _camera_direction),
        ("cx", _camera_cx),
        ("cy", _camera_cy),
    ):
        vec = field[None]
        info[name] = (float(vec[0]), float(vec[1]), float(vec[2]))
    return info
