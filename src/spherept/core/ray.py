"""Ray data structure and vector utilities.

All vector math runs in double precision. The reference scene builds its
walls from spheres of radius 1e5, and single precision cannot resolve hits
on those surfaces against the 1e-4 self-intersection epsilon.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu, default_fp=ti.f64)
    >>> from spherept.core.ray import make_ray, vec3
    >>> # Inside a Taichi kernel:
    >>> # ray = make_ray(vec3(0.0), vec3(0.0, 0.0, -1.0))
"""

import taichi as ti
import taichi.math as tm

# Scalar and 3D vector types used throughout the renderer
real = ti.f64
vec3 = ti.types.vector(3, ti.f64)


@ti.dataclass
class Ray:
    """A ray with an origin point and direction vector.

    Attributes:
        origin: The starting point of the ray.
        direction: The direction of the ray. Expected to be unit length,
            but not enforced.
    """

    origin: vec3
    direction: vec3


@ti.func
def make_ray(origin: vec3, direction: vec3) -> Ray:
    """Create a ray from origin and direction inside a kernel."""
    return Ray(origin=origin, direction=direction)


# =============================================================================
# Vector Utility Functions
# =============================================================================


@ti.func
def mult(a: vec3, b: vec3) -> vec3:
    """Component-wise product, used to filter a colour by another."""
    return vec3(a.x * b.x, a.y * b.y, a.z * b.z)


@ti.func
def mirror_direction(normal: vec3, outgoing: vec3) -> vec3:
    """Reflect an outgoing direction about the normal.

    Both vectors point away from the surface, so the result is
    ``2 (n . wo) n - wo`` and lies in the same hemisphere as ``outgoing``.

    Args:
        normal: The unit surface normal.
        outgoing: The unit direction toward the viewer.

    Returns:
        The perfect mirror direction.
    """
    return 2.0 * tm.dot(normal, outgoing) * normal - outgoing
