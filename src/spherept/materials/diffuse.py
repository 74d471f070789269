"""Ideal diffuse (Lambertian) BRDF.

The BRDF is constant:
    f_r(wo, wi) = kd / pi

Incoming directions are importance sampled from the cosine-weighted
hemisphere, whose density is
    pdf(wi) = cos(theta) / pi

so ``f_r * cos(theta) / pdf`` reduces to ``kd`` for every sample. The pdf
returned by the sampler is computed from the direction actually drawn, so
the estimator stays unbiased even when the frame is slightly
non-orthogonal from rounding.
"""

import taichi as ti
import taichi.math as tm

from spherept.core.ray import real, vec3
from spherept.materials.frame import build_local_frame


@ti.func
def eval_diffuse(reflectance: vec3) -> vec3:
    """Evaluate the Lambertian BRDF, ``kd / pi``.

    The value excludes the cosine and pdf factors, which the estimator
    applies.
    """
    return reflectance / tm.pi


@ti.func
def pdf_diffuse(normal: vec3, direction: vec3) -> real:
    """Density of cosine-weighted sampling; zero below the surface."""
    cos_theta = tm.dot(normal, direction)
    pdf = 0.0
    if cos_theta > 0.0:
        pdf = cos_theta / tm.pi
    return pdf


@ti.func
def cosine_hemisphere_local(u1: real, u2: real) -> vec3:
    """Map two uniform variates to a z-up cosine-weighted direction.

    ``z = sqrt(u1)`` is the polar component and the azimuth is
    ``2 pi u2``.
    """
    z = ti.sqrt(u1)
    r = ti.sqrt(ti.max(0.0, 1.0 - z * z))
    phi = 2.0 * tm.pi * u2
    return vec3(r * ti.cos(phi), r * ti.sin(phi), z)


@ti.func
def sample_diffuse(normal: vec3, u1: real, u2: real):
    """Draw a cosine-weighted incoming direction around the normal.

    Args:
        normal: The unit surface normal (facing the viewer).
        u1: Uniform variate for the polar component.
        u2: Uniform variate for the azimuth.

    Returns:
        A tuple (direction, pdf). Both are zero when the normal is
        degenerate; a zero pdf means the caller must drop the sample.
    """
    direction = vec3(0.0, 0.0, 0.0)
    pdf = 0.0

    u, v, w, ok = build_local_frame(normal)
    if ok == 1:
        local = cosine_hemisphere_local(u1, u2)
        direction = local.x * u + local.y * v + local.z * w
        pdf = tm.dot(direction, normal) / tm.pi

    return direction, pdf
