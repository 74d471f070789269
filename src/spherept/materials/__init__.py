"""Materials module for the two BRDF kinds.

Components:
    brdf: BRDF registry (kind + reflectance per id) and tagged dispatch
    diffuse: Lambertian BRDF with cosine-weighted sampling
    specular: Perfect mirror BRDF (delta lobe)
    frame: Local shading frame with degenerate-normal guard

Every BRDF exposes:
    - eval(): BRDF value for a pair of directions, without cosine/pdf
    - sample(): An incoming direction with the density it was drawn from

Import after ``ti.init``: the registry declares Taichi fields.
"""

from .brdf import (
    MAX_BRDFS,
    BRDFKind,
    add_brdf,
    clear_brdfs,
    eval_brdf,
    get_brdf_count,
    get_brdf_kind,
    get_brdf_reflectance,
    sample_brdf,
)
from .diffuse import cosine_hemisphere_local, eval_diffuse, pdf_diffuse, sample_diffuse
from .frame import (
    DegenerateNormalError,
    build_local_frame,
    check_degenerate_normals,
    get_degenerate_normal_count,
    reset_degenerate_normal_count,
)
from .specular import eval_specular, sample_specular

__all__ = [
    # Registry and dispatch
    "BRDFKind",
    "MAX_BRDFS",
    "add_brdf",
    "clear_brdfs",
    "get_brdf_count",
    "get_brdf_kind",
    "get_brdf_reflectance",
    "eval_brdf",
    "sample_brdf",
    # Diffuse
    "eval_diffuse",
    "pdf_diffuse",
    "sample_diffuse",
    "cosine_hemisphere_local",
    # Specular
    "eval_specular",
    "sample_specular",
    # Frame
    "build_local_frame",
    "DegenerateNormalError",
    "check_degenerate_normals",
    "get_degenerate_normal_count",
    "reset_degenerate_normal_count",
]
