"""Taichi path tracer for scenes built from spheres.

This package renders closed sphere scenes with an unbiased Monte Carlo
estimator that combines next-event estimation (explicit light sampling)
with BRDF importance sampling and Russian-roulette termination.

Subpackages:
    core: Vector utilities, per-row random streams, the radiance estimator
        and the row-parallel renderer
    geometry: Sphere primitive and ray-sphere intersection
    materials: Diffuse and specular BRDFs behind a tagged dispatch
    scene: Sphere storage, scene building and the reference scene
    camera: Pinhole camera with tent-filtered sub-pixel jitter
    preview: Display encoding and image export

Taichi must be initialised (``ti.init(default_fp=ti.f64)``) before any
module that declares fields is imported.
"""

__version__ = "0.1.0"
