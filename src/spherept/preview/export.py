"""Image export utilities for rendered images.

Rendered radiance is already clamped to [0, 1] per sub-pixel. Export
applies display gamma and quantizes with round-half-up:

    to_display_int(x) = int(clamp(x) ** (1 / 2.2) * 255 + 0.5)

Supported formats:
    - PPM (plain-text P3, written directly)
    - PNG and anything else Pillow can write

Images are NumPy arrays of shape (H, W, 3) whose first row is the top of
the picture.

Example:
    >>> from spherept.preview.export import save_image
    >>> save_image(renderer.get_linear_image(), "image.ppm")
"""

from pathlib import Path

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage

DISPLAY_GAMMA = 2.2


def to_display_int(x: float, gamma: float = DISPLAY_GAMMA) -> int:
    """Encode one linear value as an 8-bit display value.

    Args:
        x: Linear value. Clamped to [0, 1]; NaN maps to 0.
        gamma: Display gamma.

    Returns:
        Integer in [0, 255].
    """
    if not x > 0.0:
        x = 0.0
    elif x > 1.0:
        x = 1.0
    return int(x ** (1.0 / gamma) * 255 + 0.5)


def image_to_uint8(
    image: npt.NDArray[np.floating],
    *,
    gamma: float = DISPLAY_GAMMA,
) -> npt.NDArray[np.uint8]:
    """Convert a linear image to 8-bit display values.

    Same encoding as to_display_int, applied element-wise.

    Args:
        image: Linear image array of shape (H, W, 3).
        gamma: Display gamma.

    Returns:
        8-bit image array of shape (H, W, 3) with dtype uint8.
    """
    clamped = np.clip(np.nan_to_num(image.astype(np.float64), nan=0.0), 0.0, 1.0)
    encoded = np.floor(np.power(clamped, 1.0 / gamma) * 255.0 + 0.5)
    return encoded.astype(np.uint8)


def save_ppm(image_uint8: npt.NDArray[np.uint8], filepath: str | Path) -> None:
    """Write an 8-bit image as a plain-text P3 PPM file.

    The header is ``P3\\n{w} {h}\\n255\\n`` followed by ``r g b `` triples,
    top row first.

    Args:
        image_uint8: Array of shape (H, W, 3) with dtype uint8.
        filepath: Output file path.
    """
    height, width = image_uint8.shape[:2]
    body = " ".join(str(int(v)) for v in image_uint8.reshape(-1))
    with open(filepath, "w") as f:
        f.write(f"P3\n{width} {height}\n255\n")
        if body:
            f.write(body)
            f.write(" ")


def load_ppm(filepath: str | Path) -> npt.NDArray[np.uint8]:
    """Read a plain-text P3 PPM file written by save_ppm.

    Raises:
        ValueError: If the file is not a P3 image with maxval 255.
    """
    tokens = Path(filepath).read_text().split()
    if len(tokens) < 4 or tokens[0] != "P3":
        raise ValueError(f"Not a P3 PPM file: {filepath}")
    width, height, maxval = int(tokens[1]), int(tokens[2]), int(tokens[3])
    if maxval != 255:
        raise ValueError(f"Unsupported PPM maxval {maxval}")
    values = np.array([int(t) for t in tokens[4:]], dtype=np.uint8)
    if values.size != width * height * 3:
        raise ValueError(
            f"PPM body has {values.size} values, expected {width * height * 3}"
        )
    return values.reshape(height, width, 3)


def save_png_from_array(
    image: npt.NDArray[np.floating],
    filepath: str | Path,
    *,
    gamma: float = DISPLAY_GAMMA,
) -> None:
    """Save a linear image through Pillow (format from the file extension).

    Args:
        image: Linear image array of shape (H, W, 3).
        filepath: Output file path (e.g. ending in .png).
        gamma: Display gamma.
    """
    pil_image = PILImage.fromarray(image_to_uint8(image, gamma=gamma))
    pil_image.save(filepath)


def save_image(
    image: npt.NDArray[np.floating],
    filepath: str | Path,
    *,
    gamma: float = DISPLAY_GAMMA,
) -> None:
    """Save a linear image, choosing the writer by file extension.

    ``.ppm`` is written as text P3; every other extension goes to Pillow.

    Args:
        image: Linear image array of shape (H, W, 3), top row first.
        filepath: Output file path.
        gamma: Display gamma.
    """
    if Path(filepath).suffix.lower() == ".ppm":
        save_ppm(image_to_uint8(image, gamma=gamma), filepath)
    else:
        save_png_from_array(image, filepath, gamma=gamma)


def compute_rmse(
    image_a: npt.NDArray[np.floating],
    image_b: npt.NDArray[np.floating],
) -> float:
    """Compute root mean squared error between two images.

    Args:
        image_a: First image array.
        image_b: Second image array (must have same shape as image_a).

    Returns:
        RMSE value (lower is more similar).

    Raises:
        ValueError: If image shapes don't match.
    """
    if image_a.shape != image_b.shape:
        raise ValueError(
            f"Image shapes must match: {image_a.shape} vs {image_b.shape}"
        )

    diff = image_a.astype(np.float64) - image_b.astype(np.float64)
    return float(np.sqrt(np.mean(diff**2)))
