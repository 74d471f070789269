"""Row-parallel image renderer.

The Renderer drives the radiance estimator over an image:

- Each pixel is split into 2x2 sub-pixels.
- Each sub-pixel averages ``max(1, spp // 4)`` tent-jittered camera samples.
- Each sub-pixel mean is clamped to [0, 1] (NaN becomes 0) and contributes
  a quarter of the pixel value.

Rows are the unit of parallel work. The top-level loop of the render kernel
runs over rows, and row ``y`` draws only from RNG stream ``y``. A render
with a fixed seed and image size is therefore bit-identical no matter how
many CPU threads the Taichi runtime uses.

Rows are rendered in batches so the host can report progress or stop
between batches without any locking inside kernels.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu, default_fp=ti.f64)
    >>> from spherept.core.renderer import Renderer, RenderSettings
    >>> from spherept.scene.reference import create_reference_scene
    >>> scene, camera = create_reference_scene()
    >>> renderer = Renderer(RenderSettings(width=64, height=48), camera)
    >>> renderer.render()
    >>> renderer.save_image("image.ppm")
"""

import logging
import time
from collections.abc import Callable, Generator
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import numpy.typing as npt
import taichi as ti

from spherept.camera.pinhole import PinholeCamera, get_ray_tent, setup_camera
from spherept.core.integrator import received_radiance
from spherept.core.ray import real, vec3
from spherept.core.rng import DEFAULT_SEED, MAX_RNG_STREAMS, seed_rng_streams
from spherept.materials.frame import check_degenerate_normals
from spherept.preview.export import DISPLAY_GAMMA, image_to_uint8, save_image
from spherept.scene.intersection import get_light_index

logger = logging.getLogger(__name__)

# Callback receives (rows_done, total_rows)
ProgressCallback = Callable[[int, int], None]

# =============================================================================
# Render Target
# =============================================================================

MAX_IMAGE_WIDTH = 1024
MAX_IMAGE_HEIGHT = min(1024, MAX_RNG_STREAMS)

# Pixel values indexed [x, y]; y = 0 is the bottom row
_color_buffer = ti.Vector.field(3, dtype=ti.f64, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))


@dataclass
class RenderSettings:
    """Settings for one render.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        samples_per_pixel: Camera samples per pixel, split over 2x2
            sub-pixels; each sub-pixel takes max(1, spp // 4).
        seed: Master seed for the per-row RNG streams.
        rows_per_batch: Rows rendered per kernel launch between progress
            reports.
    """

    width: int = 480
    height: int = 360
    samples_per_pixel: int = 4
    seed: int = DEFAULT_SEED
    rows_per_batch: int = 16

    @property
    def samples_per_subpixel(self) -> int:
        return max(1, self.samples_per_pixel // 4)


@ti.func
def _clamp_unit(c: vec3) -> vec3:
    # NaN fails the comparison and maps to 0
    out = vec3(0.0, 0.0, 0.0)
    for i in ti.static(range(3)):
        if c[i] > 0.0:
            out[i] = ti.min(c[i], 1.0)
    return out


@ti.kernel
def _render_rows(
    row_start: ti.i32,
    row_end: ti.i32,
    width: ti.i32,
    height: ti.i32,
    samples_per_subpixel: ti.i32,
):
    """Render rows [row_start, row_end); each row uses its own RNG stream."""
    for y in range(row_start, row_end):
        for x in range(width):
            pixel = vec3(0.0, 0.0, 0.0)
            for sy in range(2):
                for sx in range(2):
                    acc = vec3(0.0, 0.0, 0.0)
                    for _ in range(samples_per_subpixel):
                        ray = get_ray_tent(x, y, sx, sy, width, height, y)
                        acc += received_radiance(ray.origin, ray.direction, 1, y)
                    pixel += 0.25 * _clamp_unit(acc / ti.cast(samples_per_subpixel, real))
            _color_buffer[x, y] = pixel


class Renderer:
    """Image renderer for the current scene.

    The scene is read from the module-level scene fields, so build the
    scene (SceneManager.build or create_reference_scene) before rendering.

    Attributes:
        settings: The RenderSettings in use.
        camera: The PinholeCamera in use.
    """

    def __init__(self, settings: RenderSettings, camera: PinholeCamera) -> None:
        """Validate the settings and set up the camera.

        Raises:
            ValueError: If the image size is not positive or exceeds the
                maximum, or spp / rows_per_batch are not positive.
        """
        if settings.width <= 0 or settings.height <= 0:
            raise ValueError(
                f"Image dimensions must be positive, got {settings.width}x{settings.height}"
            )
        if settings.width > MAX_IMAGE_WIDTH or settings.height > MAX_IMAGE_HEIGHT:
            raise ValueError(
                f"Image dimensions ({settings.width}x{settings.height}) exceed maximum "
                f"supported ({MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT})"
            )
        if settings.samples_per_pixel < 1:
            raise ValueError(
                f"samples_per_pixel must be at least 1, got {settings.samples_per_pixel}"
            )
        if settings.rows_per_batch < 1:
            raise ValueError(f"rows_per_batch must be at least 1, got {settings.rows_per_batch}")

        self.settings = settings
        self.camera = camera
        self._rows_done = 0
        setup_camera(camera, settings.width, settings.height)

    @property
    def width(self) -> int:
        return self.settings.width

    @property
    def height(self) -> int:
        return self.settings.height

    @property
    def rows_done(self) -> int:
        """Number of rows finished by the current or last render."""
        return self._rows_done

    def render_progressive(self) -> Generator[tuple[int, int], None, None]:
        """Render the image in row batches, yielding after each batch.

        Closing the generator stops the render between batches; rows not
        yet rendered keep their previous contents.

        Yields:
            Tuple of (rows_done, total_rows).

        Raises:
            RuntimeError: If the scene has no light.
            DegenerateNormalError: If a sample met a zero-length normal.
        """
        if get_light_index() < 0:
            raise RuntimeError("Scene has no light source. Build a scene before rendering.")

        width, height = self.width, self.height
        spp = self.settings.samples_per_subpixel

        # Reseed so repeated renders with the same settings are identical
        seed_rng_streams(height, self.settings.seed)
        setup_camera(self.camera, width, height)
        self._rows_done = 0

        logger.info(
            "Rendering %dx%d, %d spp (%d per sub-pixel), seed %d",
            width,
            height,
            4 * spp,
            spp,
            self.settings.seed,
        )
        start = time.perf_counter()

        for row_start in range(0, height, self.settings.rows_per_batch):
            row_end = min(row_start + self.settings.rows_per_batch, height)
            _render_rows(row_start, row_end, width, height, spp)
            check_degenerate_normals()
            self._rows_done = row_end
            yield (row_end, height)

        elapsed = time.perf_counter() - start
        logger.info("Render finished in %.2fs", elapsed)

    def render(self, callback: ProgressCallback | None = None) -> None:
        """Render the whole image.

        Args:
            callback: Optional callback called after each row batch with
                (rows_done, total_rows).
        """
        for done, total in self.render_progressive():
            if callback is not None:
                callback(done, total)

    def get_linear_image(self) -> npt.NDArray[np.float64]:
        """Get the rendered image as linear values in [0, 1].

        Returns:
            Array of shape (height, width, 3), top row first.
        """
        buffer = _color_buffer.to_numpy()[: self.width, : self.height]
        return np.ascontiguousarray(np.flipud(buffer.transpose(1, 0, 2)))

    def get_image_uint8(self, gamma: float = DISPLAY_GAMMA) -> npt.NDArray[np.uint8]:
        """Get the rendered image as gamma-encoded 8-bit values.

        Returns:
            Array of shape (height, width, 3) with dtype uint8, top row first.
        """
        return image_to_uint8(self.get_linear_image(), gamma=gamma)

    def save_image(self, filepath: str | Path, gamma: float = DISPLAY_GAMMA) -> None:
        """Save the rendered image (``.ppm`` as text P3, others via Pillow)."""
        save_image(self.get_linear_image(), filepath, gamma=gamma)
        logger.info("Saved image to %s", filepath)

    def __repr__(self) -> str:
        return (
            f"Renderer(width={self.width}, height={self.height}, "
            f"spp={self.settings.samples_per_pixel}, seed={self.settings.seed})"
        )
