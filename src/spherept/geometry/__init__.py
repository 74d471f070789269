"""Geometry module for the sphere primitive.

Components:
    sphere: Sphere primitive, robust ray-sphere intersection and uniform
        sampling of the sphere surface

Spheres are the only primitive: walls are spheres large enough to look
flat from inside the scene. There is no acceleration structure; the scene
is scanned linearly.
"""

from .sphere import (
    HitRecord,
    Sphere,
    hit_sphere,
    make_sphere,
    sphere_area,
    uniform_sphere_direction,
)

__all__ = [
    "Sphere",
    "HitRecord",
    "hit_sphere",
    "make_sphere",
    "sphere_area",
    "uniform_sphere_direction",
]
