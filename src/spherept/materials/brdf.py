"""BRDF registry and tagged dispatch.

BRDFs form a closed set of two kinds. Each registered BRDF is a (kind,
reflectance) pair stored in Taichi fields and addressed by id; spheres
share BRDFs by referring to the same id. Dispatch matches on the kind tag
instead of going through virtual calls, which Taichi kernels do not have.

Capabilities:
    eval_brdf(id, n, wo, wi) -> colour
        BRDF value without cosine or pdf factors.
    sample_brdf(id, n, wo, stream) -> (wi, pdf, is_delta)
        Draw an incoming direction. Diffuse draws two variates; specular
        draws none and flags the sample as a delta.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu, default_fp=ti.f64)
    >>> from spherept.materials.brdf import BRDFKind, add_brdf
    >>> wall = add_brdf(BRDFKind.DIFFUSE, (0.75, 0.25, 0.25))
    >>> mirror = add_brdf(BRDFKind.SPECULAR, (0.999, 0.999, 0.999))
"""

from enum import IntEnum

import taichi as ti

from spherept.core.ray import vec3
from spherept.core.rng import next_uniform
from spherept.materials.diffuse import eval_diffuse, sample_diffuse
from spherept.materials.specular import eval_specular, sample_specular


class BRDFKind(IntEnum):
    """Tag of a registered BRDF."""

    DIFFUSE = 0
    SPECULAR = 1


# Maximum number of distinct BRDFs
MAX_BRDFS = 64

brdf_kinds = ti.field(dtype=ti.i32, shape=MAX_BRDFS)
brdf_reflectance = ti.Vector.field(3, dtype=ti.f64, shape=MAX_BRDFS)
num_brdfs = ti.field(dtype=ti.i32, shape=())


def clear_brdfs() -> None:
    """Remove all registered BRDFs."""
    num_brdfs[None] = 0


def add_brdf(kind: BRDFKind, reflectance: tuple[float, float, float]) -> int:
    """Register a BRDF and return its id.

    Args:
        kind: DIFFUSE or SPECULAR.
        reflectance: Reflectance colour (RGB); ``kd`` for diffuse, ``ks``
            for specular. Each component must be in [0, 1].

    Returns:
        The id of the new BRDF.

    Raises:
        ValueError: If the kind is unknown or a component is outside [0, 1].
        RuntimeError: If the maximum number of BRDFs is exceeded.
    """
    kind = BRDFKind(kind)

    for i, component in enumerate(reflectance):
        if component < 0.0 or component > 1.0:
            raise ValueError(
                f"Reflectance component {i} = {component} is outside [0, 1]. "
                "This would violate energy conservation."
            )

    idx = num_brdfs[None]
    if idx >= MAX_BRDFS:
        raise RuntimeError(f"Maximum number of BRDFs ({MAX_BRDFS}) exceeded")

    brdf_kinds[idx] = int(kind)
    brdf_reflectance[idx] = [reflectance[0], reflectance[1], reflectance[2]]
    num_brdfs[None] = idx + 1
    return idx


def get_brdf_count() -> int:
    """Get the number of registered BRDFs."""
    return int(num_brdfs[None])


def get_brdf_kind(brdf_id: int) -> BRDFKind:
    """Get the kind of a registered BRDF from Python."""
    if brdf_id < 0 or brdf_id >= num_brdfs[None]:
        raise ValueError(f"Invalid BRDF id: {brdf_id}")
    return BRDFKind(int(brdf_kinds[brdf_id]))


@ti.func
def get_brdf_reflectance(brdf_id: ti.i32) -> vec3:
    return brdf_reflectance[brdf_id]


@ti.func
def eval_brdf(brdf_id: ti.i32, normal: vec3, outgoing: vec3, incoming: vec3) -> vec3:
    """Evaluate a BRDF for a pair of unit directions.

    The specular kind has no finite density and evaluates to zero.

    Args:
        brdf_id: Id of the registered BRDF.
        normal: Unit surface normal facing the viewer.
        outgoing: Unit direction toward the viewer.
        incoming: Unit direction toward the light.

    Returns:
        The BRDF value (RGB).
    """
    result = vec3(0.0, 0.0, 0.0)
    kind = brdf_kinds[brdf_id]
    if kind == int(BRDFKind.DIFFUSE):
        result = eval_diffuse(brdf_reflectance[brdf_id])
    elif kind == int(BRDFKind.SPECULAR):
        result = eval_specular()
    return result


@ti.func
def sample_brdf(brdf_id: ti.i32, normal: vec3, outgoing: vec3, stream: ti.i32):
    """Draw an incoming direction for a BRDF.

    Args:
        brdf_id: Id of the registered BRDF.
        normal: Unit surface normal facing the viewer.
        outgoing: Unit direction toward the viewer.
        stream: RNG stream owned by the calling task.

    Returns:
        A tuple (direction, pdf, is_delta). A pdf of zero marks a sample
        that must contribute nothing. ``is_delta`` is 1 for the
        point-mass mirror sample.
    """
    direction = vec3(0.0, 0.0, 0.0)
    pdf = 0.0
    is_delta = 0

    kind = brdf_kinds[brdf_id]
    if kind == int(BRDFKind.DIFFUSE):
        u1 = next_uniform(stream)
        u2 = next_uniform(stream)
        direction, pdf = sample_diffuse(normal, u1, u2)
    elif kind == int(BRDFKind.SPECULAR):
        direction, pdf = sample_specular(normal, outgoing)
        is_delta = 1

    return direction, pdf, is_delta
