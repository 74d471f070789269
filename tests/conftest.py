"""Pytest configuration for spherept tests.

This module provides shared fixtures for all test modules, including
Taichi initialization which must happen once per session.
"""

import pytest
import taichi as ti


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Using session scope prevents multiple ti.init() calls which can cause
    segmentation faults due to Taichi runtime conflicts. Geometry runs in
    double precision.
    """
    ti.init(arch=ti.cpu, default_fp=ti.f64, random_seed=42)
    yield


@pytest.fixture(autouse=True)
def clear_all_scene_data():
    """Reset scene, BRDF, roulette and RNG state around each test.

    This ensures tests are isolated from each other.
    """
    # Import here so the fields are created after ti.init
    from spherept.core.integrator import reset_russian_roulette
    from spherept.core.rng import seed_rng_streams
    from spherept.materials.brdf import clear_brdfs
    from spherept.materials.frame import reset_degenerate_normal_count
    from spherept.scene.intersection import clear_scene, release_scene

    def _clear_all():
        release_scene()
        clear_scene()
        clear_brdfs()
        reset_russian_roulette()
        reset_degenerate_normal_count()
        seed_rng_streams(64, seed=1234)

    _clear_all()
    yield
    _clear_all()


@pytest.fixture
def open_scene():
    """A floor, a diffuse ball and a small light above it.

    The scene is open to the sky, so every path escapes eventually even
    when Russian roulette never kills it.

    Sphere indices: 0 floor, 1 ball, 2 light.
    """
    from spherept.scene.manager import SceneManager

    scene = SceneManager()
    grey = scene.add_diffuse_brdf((0.5, 0.5, 0.5))
    black = scene.add_diffuse_brdf((0.0, 0.0, 0.0))
    scene.add_sphere((0.0, -1e5, 0.0), 1e5, grey)
    scene.add_sphere((0.0, 1.0, 0.0), 1.0, grey)
    scene.add_sphere((0.0, 4.0, 0.0), 0.5, black, emission=(10.0, 10.0, 10.0), is_light=True)
    scene.build()
    yield scene
    scene.clear()
