"""Image export: display encoding, PPM and Pillow writers."""

from .export import (
    DISPLAY_GAMMA,
    compute_rmse,
    image_to_uint8,
    load_ppm,
    save_image,
    save_png_from_array,
    save_ppm,
    to_display_int,
)

__all__ = [
    "DISPLAY_GAMMA",
    "to_display_int",
    "image_to_uint8",
    "save_ppm",
    "load_ppm",
    "save_png_from_array",
    "save_image",
    "compute_rmse",
]
