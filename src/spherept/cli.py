#!/usr/bin/env python3
"""Render a sphere scene to an image file.

Renders the built-in reference scene (or a scene loaded from JSON) with the
path tracer and writes a text PPM (or, for other extensions, an image
written by Pillow).

Usage:
    spherept-render [options]
    python -m spherept.cli [options]

Options:
    --width WIDTH       Image width in pixels (default: 480)
    --height HEIGHT     Image height in pixels (default: 360)
    --samples SAMPLES   Samples per pixel, split over 2x2 sub-pixels (default: 4)
    --seed SEED         Master RNG seed (default: 1234)
    --output OUTPUT     Output file path (default: image.ppm)
    --arch ARCH         Taichi backend: cpu, gpu or cuda (default: cpu)
    --mirror            Make the left ball of the reference scene a mirror
    --scene FILE        Load the scene from a JSON file instead
    --quiet             Suppress progress output
    --verbose           Enable debug logging

Example:
    spherept-render --width 240 --height 180 --samples 40 --output box.png
"""

import argparse
import logging
import sys
import time
from pathlib import Path

import taichi as ti

logger = logging.getLogger(__name__)

_ARCHS = {
    "cpu": ti.cpu,
    "gpu": ti.gpu,
    "cuda": ti.cuda,
}


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="spherept-render",
        description="Render a sphere scene with the Monte Carlo path tracer.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--width",
        type=int,
        default=480,
        help="Image width in pixels (default: 480)",
    )
    parser.add_argument(
        "--height",
        type=int,
        default=360,
        help="Image height in pixels (default: 360)",
    )
    parser.add_argument(
        "--samples",
        type=int,
        default=4,
        help="Samples per pixel, split over 2x2 sub-pixels (default: 4)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=1234,
        help="Master RNG seed (default: 1234)",
    )
    parser.add_argument(
        "--output",
        type=str,
        default="image.ppm",
        help="Output file path; .ppm writes text P3 (default: image.ppm)",
    )
    parser.add_argument(
        "--arch",
        choices=sorted(_ARCHS),
        default="cpu",
        help="Taichi backend (default: cpu)",
    )
    parser.add_argument(
        "--mirror",
        action="store_true",
        help="Make the left ball of the reference scene a mirror",
    )
    parser.add_argument(
        "--scene",
        type=str,
        default=None,
        help="Load the scene from a JSON file instead of the reference scene",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress progress output",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


def render_scene(
    width: int = 480,
    height: int = 360,
    samples_per_pixel: int = 4,
    seed: int = 1234,
    output_path: str = "image.ppm",
    mirror: bool = False,
    scene_file: str | None = None,
    quiet: bool = False,
) -> Path:
    """Build the scene, render it and save the image.

    Taichi must already be initialised with ``default_fp=ti.f64``.

    Returns:
        Path to the saved image file.
    """
    # Lazy imports: these modules declare Taichi fields
    from spherept.camera.pinhole import DEFAULT_FOV_SCALE, PinholeCamera
    from spherept.core.renderer import Renderer, RenderSettings
    from spherept.scene.manager import load_scene_file
    from spherept.scene.reference import (
        CAMERA_DIRECTION,
        CAMERA_ORIGIN,
        ReferenceSceneParams,
        create_reference_scene,
    )

    if scene_file is not None:
        scene, camera_config = load_scene_file(scene_file)
        camera_config = camera_config or {}
        camera = PinholeCamera(
            origin=tuple(camera_config.get("origin", CAMERA_ORIGIN)),
            direction=tuple(camera_config.get("direction", CAMERA_DIRECTION)),
            fov_scale=float(camera_config.get("fov_scale", DEFAULT_FOV_SCALE)),
        )
    else:
        scene, camera = create_reference_scene(ReferenceSceneParams(mirror_ball=mirror))

    if not quiet:
        print(f"Scene: {scene.get_sphere_count()} spheres ({width}x{height})...")

    settings = RenderSettings(
        width=width,
        height=height,
        samples_per_pixel=samples_per_pixel,
        seed=seed,
    )
    renderer = Renderer(settings, camera)

    start_time = time.time()

    def progress_callback(done: int, total: int) -> None:
        if not quiet:
            pct = 100.0 * done / total if total > 0 else 0.0
            print(
                f"\rRendering ({4 * settings.samples_per_subpixel} spp) {pct:5.1f}%",
                end="",
                flush=True,
            )

    renderer.render(callback=progress_callback)

    if not quiet:
        print()

    output_file = Path(output_path)
    renderer.save_image(output_file)

    total_time = time.time() - start_time
    if not quiet:
        print(f"Saved to: {output_file.absolute()}")
        print(f"Total time: {total_time:.2f}s")

    return output_file


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    ti.init(arch=_ARCHS[args.arch], default_fp=ti.f64)

    try:
        render_scene(
            width=args.width,
            height=args.height,
            samples_per_pixel=args.samples,
            seed=args.seed,
            output_path=args.output,
            mirror=args.mirror,
            scene_file=args.scene,
            quiet=args.quiet,
        )
        return 0
    except Exception as e:
        logger.debug("Render failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
