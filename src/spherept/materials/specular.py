"""Ideal specular (mirror) BRDF.

A perfect mirror reflects all light into the single direction
``m = 2 (n . wo) n - wo``. Its BRDF is a Dirac delta, which has no finite
value to evaluate: ``eval_specular`` returns zero, and the reflection
reaches the image only through ``sample_specular``, which always returns
``m`` with a point-mass pdf of 1. The estimator treats such samples as
delta samples and weights them by the reflectance alone.
"""

import taichi as ti

from spherept.core.ray import mirror_direction, vec3


@ti.func
def eval_specular() -> vec3:
    """Finite-density part of the mirror BRDF, which is zero everywhere."""
    return vec3(0.0, 0.0, 0.0)


@ti.func
def sample_specular(normal: vec3, outgoing: vec3):
    """Return the mirror direction with its point-mass pdf.

    Args:
        normal: The unit surface normal (facing the viewer).
        outgoing: The unit direction toward the viewer.

    Returns:
        A tuple (direction, pdf) with pdf == 1.
    """
    return mirror_direction(normal, outgoing), 1.0
