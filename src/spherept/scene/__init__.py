"""Scene module for sphere storage, scene building and the reference scene.

Components:
    intersection: Sphere storage in Taichi fields and nearest-hit queries
    manager: SceneManager enforcing the single-light rule, plus JSON loading
    reference: The reference box scene and its camera

Scene data is organized for kernel access:
    - Structure-of-Arrays layout for sphere data
    - Shared BRDF ids per sphere
    - An explicit light tag instead of a fixed light index
"""

from .intersection import (
    MAX_SPHERES,
    T_INFINITY,
    T_MIN,
    Intersection,
    SceneHitRecord,
    add_sphere,
    clear_scene,
    freeze_scene,
    get_light_index,
    get_sphere_count,
    intersect,
    intersect_scene,
    is_scene_frozen,
    release_scene,
    set_light_index,
)
from .manager import BRDFInfo, SceneConfig, SceneManager, SphereInfo, load_scene_file
from .reference import ReferenceSceneParams, create_reference_scene

__all__ = [
    # Intersection module
    "SceneHitRecord",
    "Intersection",
    "add_sphere",
    "clear_scene",
    "freeze_scene",
    "release_scene",
    "is_scene_frozen",
    "get_light_index",
    "get_sphere_count",
    "set_light_index",
    "intersect",
    "intersect_scene",
    "MAX_SPHERES",
    "T_MIN",
    "T_INFINITY",
    # Manager module
    "SceneManager",
    "BRDFInfo",
    "SphereInfo",
    "SceneConfig",
    "load_scene_file",
    # Reference scene
    "ReferenceSceneParams",
    "create_reference_scene",
]
