"""Radiance estimator for sphere scenes with one area light.

This module estimates the radiance arriving at a ray origin from the first
surface seen along the ray. At every path vertex the reflected radiance is
split into two estimates:

    direct    Next-event estimation. A point is sampled uniformly on the
              light sphere, a shadow ray checks visibility, and the light's
              emission is weighted by the BRDF, both cosines, the inverse
              squared distance and the inverse area density.
    indirect  One BRDF-sampled bounce, gated by Russian roulette, that
              continues with the reflected radiance of the next vertex.

The emission of a vertex reached by a diffuse bounce is never added: the
previous vertex already collected the light through its direct estimate.
Mirror bounces are delta samples that next-event estimation cannot reach,
so the vertex after a mirror bounce does add emission.

Russian roulette keeps every path alive up to depth ``RR_DEPTH`` and then
lets it survive with fixed probability ``SURVIVAL_PROBABILITY``, dividing
survivors by that probability. Paths end only through roulette or by
leaving the scene; there is no maximum depth, because a hard cap would bias
the estimate.

Taichi functions cannot recurse, so the recursion

    reflected(x, d) = direct(x) + [survive] f cos / (pdf p) * reflected(x', d + 1)

runs as a loop that carries the product of bounce weights (throughput).
The loop consumes random variates in the same order the recursion would:
two for the light sample, one for roulette, then up to two for the BRDF.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu, default_fp=ti.f64)
    >>> from spherept.core.rng import seed_rng_streams
    >>> from spherept.core.integrator import trace_radiance
    >>> from spherept.scene.reference import create_reference_scene
    >>> scene, camera = create_reference_scene()
    >>> seed_rng_streams(1)
    >>> trace_radiance((50.0, 52.0, 295.6), (0.0, -0.042612, -1.0))
"""

import logging

import numpy as np
import taichi as ti
import taichi.math as tm

from spherept.core.ray import mult, real, vec3
from spherept.core.rng import MAX_RNG_STREAMS, check_stream, next_uniform
from spherept.geometry.sphere import uniform_sphere_direction
from spherept.materials.brdf import eval_brdf, get_brdf_reflectance, sample_brdf
from spherept.materials.frame import check_degenerate_normals
from spherept.scene.intersection import (
    get_light_index,
    intersect_scene,
    light_index,
    sphere_brdf_ids,
    sphere_centers,
    sphere_emission,
    sphere_radii,
)

logger = logging.getLogger(__name__)

# =============================================================================
# Estimator Constants
# =============================================================================

# Paths at or below this depth always survive Russian roulette
RR_DEPTH = 5

# Survival probability once depth exceeds RR_DEPTH
SURVIVAL_PROBABILITY = 0.9

# Estimator modes at the first vertex
RADIANCE_FULL = 0  # emission + direct + indirect
RADIANCE_REFLECTED = 1  # direct + indirect
RADIANCE_INDIRECT = 2  # indirect only

_rr_depth = ti.field(dtype=ti.i32, shape=())
_survival_probability = ti.field(dtype=ti.f64, shape=())


def set_russian_roulette(
    depth: int = RR_DEPTH,
    survival_probability: float = SURVIVAL_PROBABILITY,
) -> None:
    """Configure Russian-roulette termination.

    Args:
        depth: Paths at or below this depth always survive.
        survival_probability: Survival probability past ``depth``, in (0, 1].

    Raises:
        ValueError: If depth is negative or the probability is outside (0, 1].
    """
    if depth < 0:
        raise ValueError(f"Russian roulette depth must be non-negative, got {depth}")
    if not 0.0 < survival_probability <= 1.0:
        raise ValueError(
            f"Survival probability must be in (0, 1], got {survival_probability}"
        )
    _rr_depth[None] = depth
    _survival_probability[None] = survival_probability


def reset_russian_roulette() -> None:
    """Restore the default roulette depth and survival probability."""
    set_russian_roulette(RR_DEPTH, SURVIVAL_PROBABILITY)


def get_russian_roulette() -> tuple[int, float]:
    """Get the current (depth, survival_probability) pair."""
    return int(_rr_depth[None]), float(_survival_probability[None])


reset_russian_roulette()


@ti.func
def survival_probability(depth: ti.i32) -> real:
    """Russian-roulette survival probability at a path depth."""
    p = 1.0
    if depth > _rr_depth[None]:
        p = _survival_probability[None]
    return p


# =============================================================================
# Light Sampling and Visibility
# =============================================================================


@ti.func
def sample_light(light_id: ti.i32, stream: ti.i32):
    """Sample a point uniformly on the surface of the light sphere.

    Args:
        light_id: Index of the light sphere.
        stream: RNG stream owned by the calling task.

    Returns:
        A tuple (point, normal, pdf_area) where normal is the outward unit
        normal at the point and pdf_area = 1 / (4 pi R^2).
    """
    u1 = next_uniform(stream)
    u2 = next_uniform(stream)
    normal = uniform_sphere_direction(u1, u2)
    radius = sphere_radii[light_id]
    point = sphere_centers[light_id] + radius * normal
    pdf_area = 1.0 / (4.0 * tm.pi * radius * radius)
    return point, normal, pdf_area


@ti.func
def visible(origin: vec3, direction: vec3, light_id: ti.i32, light_normal: vec3) -> real:
    """Visibility oracle for a shadow ray toward a sampled light point.

    Args:
        origin: Shadow ray origin (the shading point).
        direction: Unit direction toward the sampled light point.
        light_id: Index of the light sphere.
        light_normal: Outward normal at the sampled light point.

    Returns:
        1.0 if the nearest hit is the light sphere and the sampled point
        faces back toward the origin (the light emits only outward),
        otherwise 0.0.
    """
    result = 0.0
    rec = intersect_scene(origin, direction)
    if rec.hit == 1 and rec.sphere_id == light_id:
        if tm.dot(-direction, light_normal) > 0.0:
            result = 1.0
    return result


@ti.func
def direct_radiance(point: vec3, normal: vec3, outgoing: vec3, brdf_id: ti.i32, stream: ti.i32) -> vec3:
    """Next-event estimate of light arriving straight from the light sphere.

    Always draws two variates, even when the sample is rejected, so the
    draw sequence does not depend on geometry.

    Args:
        point: The shading point.
        normal: Unit normal at the shading point, facing ``outgoing``.
        outgoing: Unit direction toward the previous vertex.
        brdf_id: BRDF of the shading point.
        stream: RNG stream owned by the calling task.

    Returns:
        ``Le * f * V * cos_x * cos_y / (r^2 * pdf_area)``, or zero.
    """
    result = vec3(0.0, 0.0, 0.0)
    light_id = light_index()
    if light_id >= 0:
        light_point, light_normal, pdf_area = sample_light(light_id, stream)
        to_light = light_point - point
        r2 = tm.dot(to_light, to_light)
        if r2 > 0.0:
            direction = to_light / ti.sqrt(r2)
            cos_x = tm.dot(normal, direction)
            cos_y = tm.dot(light_normal, -direction)
            if cos_x > 0.0 and cos_y > 0.0:
                v = visible(point, direction, light_id, light_normal)
                if v > 0.0:
                    f = eval_brdf(brdf_id, normal, outgoing, direction)
                    result = mult(sphere_emission[light_id], f) * (
                        v * cos_x * cos_y / (r2 * pdf_area)
                    )
    return result


# =============================================================================
# Radiance Estimator
# =============================================================================


@ti.func
def _scatter(point: vec3, normal: vec3, outgoing: vec3, brdf_id: ti.i32, depth: ti.i32, stream: ti.i32):
    """Russian-roulette gated BRDF sample for the indirect estimate.

    Returns:
        A tuple (alive, direction, weight, is_delta). ``weight`` already
        includes the 1 / p roulette compensation; it is
        ``f cos / (pdf p)`` for finite densities and ``reflectance / p``
        for delta samples.
    """
    alive = 0
    direction = vec3(0.0, 0.0, 0.0)
    weight = vec3(0.0, 0.0, 0.0)
    is_delta = 0

    p = survival_probability(depth)
    if next_uniform(stream) < p:
        direction, pdf, is_delta = sample_brdf(brdf_id, normal, outgoing, stream)
        if pdf > 0.0:
            if is_delta == 1:
                weight = get_brdf_reflectance(brdf_id) / p
            else:
                cos_i = tm.dot(normal, direction)
                f = eval_brdf(brdf_id, normal, outgoing, direction)
                weight = f * (cos_i / (pdf * p))
            alive = 1

    return alive, direction, weight, is_delta


@ti.func
def estimate_radiance(
    point: vec3,
    normal: vec3,
    outgoing: vec3,
    sphere_id: ti.i32,
    front_face: ti.i32,
    depth: ti.i32,
    mode: ti.i32,
    stream: ti.i32,
) -> vec3:
    """Estimate radiance leaving a surface vertex toward ``outgoing``.

    Args:
        point: The vertex position.
        normal: Unit normal, flipped to face ``outgoing``.
        outgoing: Unit direction toward the viewer (or previous vertex).
        sphere_id: Index of the sphere the vertex lies on.
        front_face: 1 if the vertex was reached from outside the sphere.
        depth: Depth of the vertex; the camera's first hit is depth 1.
        mode: RADIANCE_FULL, RADIANCE_REFLECTED or RADIANCE_INDIRECT; it
            selects which terms are counted at this first vertex.
        stream: RNG stream owned by the calling task.

    Returns:
        The radiance estimate (RGB), unclamped.
    """
    radiance = vec3(0.0, 0.0, 0.0)
    throughput = vec3(1.0, 1.0, 1.0)

    x = point
    n = normal
    wo = outgoing
    sid = sphere_id
    outside = front_face
    d = depth
    with_emission = ti.select(mode == RADIANCE_FULL, 1, 0)
    with_direct = ti.select(mode == RADIANCE_INDIRECT, 0, 1)

    active = 1
    while active == 1:
        brdf_id = sphere_brdf_ids[sid]

        # The light emits from its outward side only
        if with_emission == 1 and outside == 1:
            radiance += mult(throughput, sphere_emission[sid])

        if with_direct == 1:
            radiance += mult(throughput, direct_radiance(x, n, wo, brdf_id, stream))

        alive, wi, weight, is_delta = _scatter(x, n, wo, brdf_id, d, stream)
        active = 0
        if alive == 1:
            rec = intersect_scene(x, wi)
            if rec.hit == 1:
                throughput = mult(throughput, weight)
                x = rec.point
                n = rec.normal
                wo = -wi
                sid = rec.sphere_id
                outside = rec.front_face
                d += 1
                with_emission = is_delta
                with_direct = 1
                active = 1

    return radiance


@ti.func
def received_radiance(origin: vec3, direction: vec3, depth: ti.i32, stream: ti.i32) -> vec3:
    """Total radiance reaching ``origin`` from the first surface along a ray.

    Args:
        origin: Ray origin.
        direction: Unit ray direction.
        depth: Depth of the first hit (1 for camera rays).
        stream: RNG stream owned by the calling task.

    Returns:
        Emitted plus reflected radiance at the first hit, or zero on a miss.
    """
    result = vec3(0.0, 0.0, 0.0)
    rec = intersect_scene(origin, direction)
    if rec.hit == 1:
        result = estimate_radiance(
            rec.point,
            rec.normal,
            -direction,
            rec.sphere_id,
            rec.front_face,
            depth,
            RADIANCE_FULL,
            stream,
        )
    return result


# =============================================================================
# Python-Scope Probes
# =============================================================================

_probe_color = ti.Vector.field(3, dtype=ti.f64, shape=())
_probe_value = ti.field(dtype=ti.f64, shape=())
_stream_sums = ti.Vector.field(3, dtype=ti.f64, shape=MAX_RNG_STREAMS)


def _check_scene_ready() -> None:
    if get_light_index() < 0:
        raise RuntimeError("Scene has no light source. Tag one sphere as the light.")


def _check_streams(num_streams: int) -> None:
    check_stream(0)
    check_stream(num_streams - 1)


@ti.kernel
def _trace_kernel(origin: vec3, direction: vec3, depth: ti.i32, stream: ti.i32):
    for _ in range(1):
        _probe_color[None] = received_radiance(origin, tm.normalize(direction), depth, stream)


@ti.kernel
def _visibility_kernel(origin: vec3, direction: vec3, light_normal: vec3):
    for _ in range(1):
        _probe_value[None] = visible(origin, tm.normalize(direction), light_index(), light_normal)


@ti.kernel
def _received_sum_kernel(
    origin: vec3,
    direction: vec3,
    depth: ti.i32,
    num_streams: ti.i32,
    samples_per_stream: ti.i32,
):
    for s in range(num_streams):
        acc = vec3(0.0, 0.0, 0.0)
        for _ in range(samples_per_stream):
            acc += received_radiance(origin, direction, depth, s)
        _stream_sums[s] = acc


@ti.kernel
def _vertex_sum_kernel(
    point: vec3,
    normal: vec3,
    outgoing: vec3,
    sphere_id: ti.i32,
    front_face: ti.i32,
    depth: ti.i32,
    mode: ti.i32,
    num_streams: ti.i32,
    samples_per_stream: ti.i32,
):
    for s in range(num_streams):
        acc = vec3(0.0, 0.0, 0.0)
        for _ in range(samples_per_stream):
            acc += estimate_radiance(point, normal, outgoing, sphere_id, front_face, depth, mode, s)
        _stream_sums[s] = acc


def _mean_of_stream_sums(num_streams: int, samples_per_stream: int) -> tuple[float, float, float]:
    sums = _stream_sums.to_numpy()[:num_streams]
    mean = sums.sum(axis=0) / float(num_streams * samples_per_stream)
    return (float(mean[0]), float(mean[1]), float(mean[2]))


def trace_radiance(
    origin: tuple[float, float, float],
    direction: tuple[float, float, float],
    depth: int = 1,
    stream: int = 0,
) -> tuple[float, float, float]:
    """Trace one radiance sample along a ray from Python.

    Args:
        origin: Ray origin.
        direction: Ray direction (normalized before tracing).
        depth: Depth of the first hit.
        stream: A seeded RNG stream.

    Returns:
        The linear (R, G, B) estimate, unclamped.

    Raises:
        RuntimeError: If the scene has no light or the streams are unseeded.
        DegenerateNormalError: If the sample met a zero-length normal.
    """
    _check_scene_ready()
    check_stream(stream)
    _trace_kernel(vec3(*origin), vec3(*direction), depth, stream)
    check_degenerate_normals()
    color = _probe_color[None]
    return (float(color[0]), float(color[1]), float(color[2]))


def is_visible(
    origin: tuple[float, float, float],
    direction: tuple[float, float, float],
    light_normal: tuple[float, float, float],
) -> float:
    """Evaluate the visibility oracle from Python.

    Args:
        origin: Shadow ray origin.
        direction: Direction toward the light point (normalized here).
        light_normal: Outward light normal at the target point.

    Returns:
        1.0 if visible, else 0.0.
    """
    _check_scene_ready()
    _visibility_kernel(vec3(*origin), vec3(*direction), vec3(*light_normal))
    return float(_probe_value[None])


def mean_received_radiance(
    origin: tuple[float, float, float],
    direction: tuple[float, float, float],
    samples_per_stream: int,
    num_streams: int,
    depth: int = 1,
) -> tuple[float, float, float]:
    """Average many radiance samples along one ray, in parallel over streams.

    Args:
        origin: Ray origin.
        direction: Ray direction (normalized here).
        samples_per_stream: Samples drawn serially by each stream.
        num_streams: Number of streams (parallel tasks) to use.
        depth: Depth of the first hit.

    Returns:
        The sample mean (R, G, B).
    """
    _check_scene_ready()
    _check_streams(num_streams)
    norm = np.linalg.norm(direction)
    unit = tuple(float(c) / norm for c in direction)
    _received_sum_kernel(vec3(*origin), vec3(*unit), depth, num_streams, samples_per_stream)
    check_degenerate_normals()
    return _mean_of_stream_sums(num_streams, samples_per_stream)


def mean_vertex_radiance(
    point: tuple[float, float, float],
    normal: tuple[float, float, float],
    outgoing: tuple[float, float, float],
    sphere_id: int,
    samples_per_stream: int,
    num_streams: int,
    *,
    mode: int = RADIANCE_REFLECTED,
    depth: int = 1,
    front_face: int = 1,
) -> tuple[float, float, float]:
    """Average the estimator at a fixed surface vertex.

    Useful for checking the individual terms: ``RADIANCE_INDIRECT`` gives
    the expectation of the indirect estimate alone.

    Args:
        point: Vertex position on sphere ``sphere_id``.
        normal: Unit normal facing ``outgoing``.
        outgoing: Unit direction toward the viewer.
        sphere_id: Index of the sphere the vertex lies on.
        samples_per_stream: Samples drawn serially by each stream.
        num_streams: Number of streams (parallel tasks) to use.
        mode: Which terms to count at the vertex.
        depth: Depth assigned to the vertex.
        front_face: 1 if the vertex faces the outside of its sphere.

    Returns:
        The sample mean (R, G, B).
    """
    _check_scene_ready()
    _check_streams(num_streams)
    _vertex_sum_kernel(
        vec3(*point),
        vec3(*normal),
        vec3(*outgoing),
        sphere_id,
        front_face,
        depth,
        mode,
        num_streams,
        samples_per_stream,
    )
    check_degenerate_normals()
    return _mean_of_stream_sums(num_streams, samples_per_stream)
