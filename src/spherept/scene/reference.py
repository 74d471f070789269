"""Reference box scene built from spheres.

The box is made of five huge spheres (radius 1e5) whose surfaces are
nearly flat inside the viewing volume:

- Left wall: red diffuse
- Right wall: blue diffuse
- Back wall, floor, ceiling: grey diffuse
- 2 diffuse balls of radius 16.5 resting on the floor
- A small spherical light below the ceiling

The front of the box is open; the camera sits outside and looks in. The
sphere order is fixed, so sphere indices in tests and scene files stay
stable: walls 0-4, balls 5-6, light 7.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu, default_fp=ti.f64)
    >>> from spherept.scene.reference import create_reference_scene
    >>> scene, camera = create_reference_scene()
    >>> scene.light_index
    7
"""

from dataclasses import dataclass

from spherept.camera.pinhole import DEFAULT_FOV_SCALE, PinholeCamera
from spherept.scene.manager import SceneManager

# =============================================================================
# Reference Scene Parameters
# =============================================================================


@dataclass
class ReferenceSceneParams:
    """Parameters for configuring the reference scene.

    Attributes:
        light_emission: Emitted radiance of the light sphere (RGB).
        mirror_ball: Replace the left ball's diffuse BRDF with a mirror.
    """

    light_emission: tuple[float, float, float] = (50.0, 50.0, 50.0)
    mirror_ball: bool = False


WALL_RADIUS = 1e5
BALL_RADIUS = 16.5
LIGHT_RADIUS = 5.0

LEFT_WALL_KD = (0.75, 0.25, 0.25)
RIGHT_WALL_KD = (0.25, 0.25, 0.75)
GREY_WALL_KD = (0.75, 0.75, 0.75)
BALL_KD = (0.9, 0.9, 0.9)
MIRROR_KS = (0.999, 0.999, 0.999)
LIGHT_KD = (0.0, 0.0, 0.0)

LIGHT_CENTER = (50.0, 70.0, 81.6)

CAMERA_ORIGIN = (50.0, 52.0, 295.6)
CAMERA_DIRECTION = (0.0, -0.042612, -1.0)


def create_reference_scene(
    params: ReferenceSceneParams | None = None,
) -> tuple[SceneManager, PinholeCamera]:
    """Create and build the reference scene.

    Args:
        params: Scene parameters. Defaults to ReferenceSceneParams().

    Returns:
        Tuple of (built SceneManager, PinholeCamera).
    """
    if params is None:
        params = ReferenceSceneParams()

    scene = SceneManager()

    left = scene.add_diffuse_brdf(LEFT_WALL_KD)
    right = scene.add_diffuse_brdf(RIGHT_WALL_KD)
    grey = scene.add_diffuse_brdf(GREY_WALL_KD)
    ball = scene.add_diffuse_brdf(BALL_KD)
    black = scene.add_diffuse_brdf(LIGHT_KD)
    ball_1 = ball
    if params.mirror_ball:
        ball_1 = scene.add_specular_brdf(MIRROR_KS)

    r = WALL_RADIUS
    scene.add_sphere((r + 1.0, 40.8, 81.6), r, left)  # Left
    scene.add_sphere((-r + 99.0, 40.8, 81.6), r, right)  # Right
    scene.add_sphere((50.0, 40.8, r), r, grey)  # Back
    scene.add_sphere((50.0, r, 81.6), r, grey)  # Bottom
    scene.add_sphere((50.0, -r + 81.6, 81.6), r, grey)  # Top

    scene.add_sphere((27.0, BALL_RADIUS, 47.0), BALL_RADIUS, ball_1)
    scene.add_sphere((73.0, BALL_RADIUS, 78.0), BALL_RADIUS, ball)

    scene.add_sphere(
        LIGHT_CENTER,
        LIGHT_RADIUS,
        black,
        emission=params.light_emission,
        is_light=True,
    )

    scene.build()

    camera = PinholeCamera(
        origin=CAMERA_ORIGIN,
        direction=CAMERA_DIRECTION,
        fov_scale=DEFAULT_FOV_SCALE,
    )
    return scene, camera
