"""Sphere primitive with robust ray-sphere intersection.

The intersection solves the half-b quadratic with the reformulation from
Ray Tracing Gems (chapter 7). The naive formula loses most of its digits
when ``h^2`` is close to ``a*c``, which happens constantly on the large
wall spheres of the reference scene.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu, default_fp=ti.f64)
    >>> from spherept.geometry.sphere import Sphere, hit_sphere, vec3
    >>> # Inside a Taichi kernel:
    >>> # rec = hit_sphere(origin, direction, Sphere(center=vec3(0.0), radius=1.0), 1e-4, 1e20)
"""

import math

import taichi as ti
import taichi.math as tm

from spherept.core.ray import real, vec3


@ti.dataclass
class Sphere:
    """A sphere defined by center point and radius.

    Attributes:
        center: The center point of the sphere.
        radius: The radius of the sphere (positive).
    """

    center: vec3
    radius: real


@ti.dataclass
class HitRecord:
    """Record of a ray-sphere intersection.

    Attributes:
        hit: 1 if the ray hit the sphere inside (t_min, t_max), else 0.
        t: Distance along the ray to the hit. Only valid if hit == 1.
        point: The hit point. Only valid if hit == 1.
        normal: Unit normal at the hit point, flipped to face the incoming
            ray so that ``dot(normal, -direction) >= 0``.
        front_face: 1 if the ray arrived from outside the sphere.
    """

    hit: ti.i32
    t: real
    point: vec3
    normal: vec3
    front_face: ti.i32


@ti.func
def _solve_quadratic_robust(h: real, a: real, c: real, sqrt_d: real):
    """Solve ``a t^2 + 2 h t + c = 0`` without catastrophic cancellation.

    Returns:
        Tuple of (t0, t1) with t0 <= t1.
    """
    sign_h = ti.select(h < 0.0, -1.0, 1.0)
    q = -(h + sign_h * sqrt_d)

    t0 = 0.0
    t1 = 0.0
    if ti.abs(q) < 1e-300:
        # h == 0 and tangent: both roots coincide
        t0 = -h / a
        t1 = t0
    else:
        t0 = q / a
        t1 = c / q

    if t0 > t1:
        temp = t0
        t0 = t1
        t1 = temp

    return t0, t1


@ti.func
def hit_sphere(
    ray_origin: vec3,
    ray_direction: vec3,
    sphere: Sphere,
    t_min: real,
    t_max: real,
) -> HitRecord:
    """Intersect a ray with a sphere and return the nearest valid hit.

    Solves ``|o + t d - c|^2 = r^2`` as ``a t^2 + 2 h t + c = 0`` with
    ``oc = o - center``, ``a = d.d``, ``h = d.oc`` and ``c = oc.oc - r^2``.
    The smaller root is taken if it lies in (t_min, t_max), otherwise the
    larger one. A ray that starts on the surface has a root near zero;
    ``t_min`` rejects it so secondary rays never re-hit their own origin.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The ray direction.
        sphere: The sphere to test.
        t_min: Smallest accepted distance (self-intersection epsilon).
        t_max: Largest accepted distance (closest hit so far).

    Returns:
        A HitRecord; check its ``hit`` field.
    """
    oc = ray_origin - sphere.center

    a = tm.dot(ray_direction, ray_direction)
    h = tm.dot(ray_direction, oc)
    c = tm.dot(oc, oc) - sphere.radius * sphere.radius

    discriminant = h * h - a * c

    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    hit_normal = vec3(0.0, 0.0, 0.0)
    is_front_face = 0

    if discriminant >= 0.0:
        sqrt_d = ti.sqrt(discriminant)
        t0, t1 = _solve_quadratic_robust(h, a, c, sqrt_d)

        t = t0
        valid = (t > t_min) and (t < t_max)
        if not valid:
            t = t1
            valid = (t > t_min) and (t < t_max)

        if valid:
            did_hit = 1
            hit_t = t
            hit_point = ray_origin + t * ray_direction

            outward_normal = (hit_point - sphere.center) / sphere.radius
            if tm.dot(ray_direction, outward_normal) > 0.0:
                is_front_face = 0
                hit_normal = -outward_normal
            else:
                is_front_face = 1
                hit_normal = outward_normal

    return HitRecord(
        hit=did_hit,
        t=hit_t,
        point=hit_point,
        normal=hit_normal,
        front_face=is_front_face,
    )


@ti.func
def make_sphere(center: vec3, radius: real) -> Sphere:
    return Sphere(center=center, radius=radius)


@ti.func
def uniform_sphere_direction(u1: real, u2: real) -> vec3:
    """Map two uniform variates to a direction uniform on the unit sphere.

    Uses ``z = 2 u1 - 1`` and azimuth ``2 pi u2`` (Archimedes' hat-box
    mapping), so the density is ``1 / (4 pi)`` per steradian.
    """
    z = 2.0 * u1 - 1.0
    r = ti.sqrt(ti.max(0.0, 1.0 - z * z))
    phi = 2.0 * tm.pi * u2
    return vec3(r * ti.cos(phi), r * ti.sin(phi), z)


def sphere_area(radius: float) -> float:
    """Surface area of a sphere of the given radius."""
    return 4.0 * math.pi * radius * radius
