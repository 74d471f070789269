"""Core rendering module.

Components:
    ray: Ray data structure and vector utilities
    rng: Per-worker random streams seeded from one master seed
    integrator: Radiance estimator (next-event estimation, BRDF sampling,
        Russian roulette) and the visibility oracle
    renderer: Row-parallel render target and driver

Only ``ray`` is imported here. ``rng``, ``integrator`` and ``renderer``
declare Taichi fields and must be imported after ``ti.init``.
"""

from .ray import Ray, make_ray, mirror_direction, mult, real, vec3

__all__ = [
    "Ray",
    "make_ray",
    "real",
    "vec3",
    "mult",
    "mirror_direction",
]
