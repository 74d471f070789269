"""Scene-level sphere storage and nearest-hit queries.

Spheres are stored in Taichi fields in Structure-of-Arrays layout. Each
sphere carries its emitted radiance and the id of a shared BRDF. One sphere
may be tagged as the light source; the estimator samples that sphere for
next-event estimation and the visibility oracle compares hits against it.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu, default_fp=ti.f64)
    >>> from spherept.scene.intersection import add_sphere, intersect, set_light_index
    >>> idx = add_sphere((0.0, 0.0, 0.0), 1.0, brdf_id=0)
    >>> intersect((0.0, 0.0, 5.0), (0.0, 0.0, -1.0))
    Intersection(hit=True, t=4.0, sphere_id=0)
"""

from typing import NamedTuple

import taichi as ti
import taichi.math as tm

from spherept.core.ray import real, vec3
from spherept.geometry.sphere import Sphere, hit_sphere

# Self-intersection epsilon: roots at or below this distance are ignored
T_MIN = 1e-4

# Distance reported for a miss
T_INFINITY = 1e20


@ti.dataclass
class SceneHitRecord:
    """Record of a ray-scene intersection.

    Attributes:
        hit: 1 if any sphere was hit, else 0.
        t: Distance to the nearest hit, or T_INFINITY on a miss.
        point: The hit point. Only valid if hit == 1.
        normal: Unit normal facing the incoming ray. Only valid if hit == 1.
        front_face: 1 if the ray arrived from outside the sphere.
        sphere_id: Index of the hit sphere, -1 on a miss.
    """

    hit: ti.i32
    t: real
    point: vec3
    normal: vec3
    front_face: ti.i32
    sphere_id: ti.i32


class Intersection(NamedTuple):
    """Python-side result of a nearest-hit query."""

    hit: bool
    t: float
    sphere_id: int


# Maximum number of spheres in the scene
MAX_SPHERES = 64

sphere_centers = ti.Vector.field(3, dtype=ti.f64, shape=MAX_SPHERES)
sphere_radii = ti.field(dtype=ti.f64, shape=MAX_SPHERES)
sphere_emission = ti.Vector.field(3, dtype=ti.f64, shape=MAX_SPHERES)
sphere_brdf_ids = ti.field(dtype=ti.i32, shape=MAX_SPHERES)
num_spheres = ti.field(dtype=ti.i32, shape=())

# Index of the sphere tagged as the light source, -1 if none
_light_index = ti.field(dtype=ti.i32, shape=())

# Set while a built scene owns the storage; edits are refused until released
_scene_frozen = False


def freeze_scene() -> None:
    """Mark the stored scene as built and read-only."""
    global _scene_frozen
    _scene_frozen = True


def release_scene() -> None:
    """Drop the read-only mark so the storage can be cleared and rebuilt."""
    global _scene_frozen
    _scene_frozen = False


def is_scene_frozen() -> bool:
    return _scene_frozen


def _check_not_frozen() -> None:
    if _scene_frozen:
        raise RuntimeError(
            "Sphere storage holds a built scene; call clear() on its SceneManager first"
        )


def clear_scene() -> None:
    """Remove all spheres and the light tag.

    Raises:
        RuntimeError: If a built scene is frozen in the storage.
    """
    _check_not_frozen()
    num_spheres[None] = 0
    _light_index[None] = -1


def add_sphere(
    center: tuple[float, float, float],
    radius: float,
    brdf_id: int,
    emission: tuple[float, float, float] = (0.0, 0.0, 0.0),
) -> int:
    """Append a sphere to the scene.

    This is the low-level storage call; SceneManager validates emission
    and BRDF ids before getting here.

    Args:
        center: The center point of the sphere.
        radius: The radius of the sphere.
        brdf_id: Id of the BRDF in the material registry.
        emission: Emitted radiance (RGB). Nonzero only for the light.

    Returns:
        The index of the added sphere.

    Raises:
        ValueError: If radius is not positive.
        RuntimeError: If the maximum number of spheres is exceeded or the
            scene is frozen.
    """
    _check_not_frozen()
    if not radius > 0.0:
        raise ValueError(f"Sphere radius must be positive, got {radius}")

    idx = num_spheres[None]
    if idx >= MAX_SPHERES:
        raise RuntimeError(f"Maximum number of spheres ({MAX_SPHERES}) exceeded")

    sphere_centers[idx] = [center[0], center[1], center[2]]
    sphere_radii[idx] = radius
    sphere_emission[idx] = [emission[0], emission[1], emission[2]]
    sphere_brdf_ids[idx] = brdf_id
    num_spheres[None] = idx + 1
    return idx


def set_light_index(index: int) -> None:
    """Tag the sphere at ``index`` as the light source.

    Raises:
        ValueError: If index does not refer to a stored sphere.
        RuntimeError: If the scene is frozen.
    """
    _check_not_frozen()
    if index < 0 or index >= num_spheres[None]:
        raise ValueError(f"Invalid light sphere index: {index}")
    _light_index[None] = index


def get_light_index() -> int:
    """Get the index of the light sphere, or -1 if none is tagged."""
    return int(_light_index[None])


def get_sphere_count() -> int:
    """Get the number of spheres in the scene."""
    return int(num_spheres[None])


@ti.func
def light_index() -> ti.i32:
    """Kernel-side accessor for the light tag."""
    return _light_index[None]


@ti.func
def _make_miss_record() -> SceneHitRecord:
    return SceneHitRecord(
        hit=0,
        t=T_INFINITY,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        front_face=0,
        sphere_id=-1,
    )


@ti.func
def intersect_scene(ray_origin: vec3, ray_direction: vec3) -> SceneHitRecord:
    """Find the nearest sphere hit along a ray.

    Tests every sphere and keeps the smallest root above T_MIN. The query
    has no side effects.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The ray direction (unit length).

    Returns:
        The nearest hit, or a miss record with t = T_INFINITY.
    """
    closest_t = T_INFINITY
    result = _make_miss_record()

    for i in range(num_spheres[None]):
        sphere = Sphere(center=sphere_centers[i], radius=sphere_radii[i])
        rec = hit_sphere(ray_origin, ray_direction, sphere, T_MIN, closest_t)
        if rec.hit == 1:
            closest_t = rec.t
            result = SceneHitRecord(
                hit=1,
                t=rec.t,
                point=rec.point,
                normal=rec.normal,
                front_face=rec.front_face,
                sphere_id=i,
            )

    return result


# Single-query result slots for the Python-scope probe
_probe_hit = ti.field(dtype=ti.i32, shape=())
_probe_t = ti.field(dtype=ti.f64, shape=())
_probe_sphere = ti.field(dtype=ti.i32, shape=())


@ti.kernel
def _intersect_kernel(origin: vec3, direction: vec3):
    # Single-iteration outer loop keeps the sphere scan serial
    for _ in range(1):
        rec = intersect_scene(origin, tm.normalize(direction))
        _probe_hit[None] = rec.hit
        _probe_t[None] = rec.t
        _probe_sphere[None] = rec.sphere_id


def intersect(
    origin: tuple[float, float, float],
    direction: tuple[float, float, float],
) -> Intersection:
    """Run a nearest-hit query from Python.

    The direction is normalized before tracing, so ``t`` is a distance.

    Args:
        origin: Ray origin.
        direction: Ray direction (any nonzero length).

    Returns:
        An Intersection with the hit flag, distance and sphere index.
    """
    _intersect_kernel(vec3(*origin), vec3(*direction))
    return Intersection(
        hit=bool(_probe_hit[None]),
        t=float(_probe_t[None]),
        sphere_id=int(_probe_sphere[None]),
    )
