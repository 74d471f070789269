"""Local shading frame construction with a degenerate-normal guard.

A zero-length normal cannot define a hemisphere. Rather than let NaNs
spread through the estimator, the frame builder reports failure, the
sample that needed it contributes nothing, and a violation counter is
bumped. The host checks the counter after each kernel and raises
DegenerateNormalError.
"""

import taichi as ti
import taichi.math as tm

from spherept.core.ray import vec3

# Squared-length threshold below which a normal is treated as zero
DEGENERATE_NORMAL_EPSILON = 1e-24


class DegenerateNormalError(RuntimeError):
    """Raised when a kernel met a zero-length shading normal."""


_degenerate_normals = ti.field(dtype=ti.i32, shape=())


def get_degenerate_normal_count() -> int:
    """Number of degenerate normals seen since the last reset."""
    return int(_degenerate_normals[None])


def reset_degenerate_normal_count() -> None:
    _degenerate_normals[None] = 0


def check_degenerate_normals() -> None:
    """Raise if any kernel has met a degenerate normal since the last reset.

    The counter is reset before raising so the next render starts clean.

    Raises:
        DegenerateNormalError: If the violation counter is nonzero.
    """
    count = get_degenerate_normal_count()
    if count > 0:
        reset_degenerate_normal_count()
        raise DegenerateNormalError(
            f"{count} zero-length normal(s) reached local frame construction"
        )


@ti.func
def build_local_frame(normal: vec3):
    """Build an orthonormal basis (u, v, w) with w along the normal.

    The helper axis is +y when the normal has a sizeable x component and
    +x otherwise, so the cross product never collapses.

    Args:
        normal: The unit surface normal.

    Returns:
        A tuple (u, v, w, ok). ``ok`` is 0 and the axes are zero when the
        normal is degenerate.
    """
    u = vec3(0.0, 0.0, 0.0)
    v = vec3(0.0, 0.0, 0.0)
    w = vec3(0.0, 0.0, 0.0)
    ok = 0

    if tm.dot(normal, normal) < DEGENERATE_NORMAL_EPSILON:
        ti.atomic_add(_degenerate_normals[None], 1)
    else:
        w = normal
        helper = vec3(1.0, 0.0, 0.0)
        if ti.abs(w.x) > 0.1:
            helper = vec3(0.0, 1.0, 0.0)
        u = tm.normalize(tm.cross(helper, w))
        v = tm.cross(w, u)
        ok = 1

    return u, v, w, ok
