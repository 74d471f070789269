"""Scene manager for spheres, shared BRDFs and the light tag.

This module provides the high-level scene API on top of the sphere storage
in ``scene.intersection`` and the BRDF registry in ``materials.brdf``. It
enforces the scene rules the estimator relies on:

- Only the light sphere may emit.
- Exactly one sphere is tagged as the light.
- A built scene is frozen; it is shared read-only by all render workers.

The SceneManager also converts scenes to and from plain dictionaries so a
scene can be described in a JSON file.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu, default_fp=ti.f64)
    >>> from spherept.scene.manager import SceneManager
    >>> scene = SceneManager()
    >>> grey = scene.add_diffuse_brdf((0.75, 0.75, 0.75))
    >>> black = scene.add_diffuse_brdf((0.0, 0.0, 0.0))
    >>> scene.add_sphere((0.0, -1e5, 0.0), 1e5, grey)
    >>> scene.add_sphere((0.0, 4.0, 0.0), 0.5, black, emission=(10.0, 10.0, 10.0), is_light=True)
    >>> scene.build()
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from spherept.materials.brdf import (
    MAX_BRDFS,
    BRDFKind,
    add_brdf,
    clear_brdfs,
    get_brdf_count,
)
from spherept.scene.intersection import (
    MAX_SPHERES,
    add_sphere,
    clear_scene,
    freeze_scene,
    get_light_index,
    get_sphere_count,
    is_scene_frozen,
    release_scene,
    set_light_index,
)

logger = logging.getLogger(__name__)


@dataclass
class BRDFInfo:
    """Information about a registered BRDF.

    Attributes:
        brdf_id: Id in the BRDF registry.
        kind: DIFFUSE or SPECULAR.
        reflectance: Reflectance colour as given.
    """

    brdf_id: int
    kind: BRDFKind
    reflectance: tuple[float, float, float]


@dataclass
class SphereInfo:
    """Information about a sphere in the scene.

    Attributes:
        sphere_index: The index in the sphere storage arrays.
        center: The center of the sphere.
        radius: The radius of the sphere.
        brdf_id: The BRDF assigned to the sphere.
        emission: Emitted radiance; zero unless is_light.
        is_light: Whether this sphere is the light source.
    """

    sphere_index: int
    center: tuple[float, float, float]
    radius: float
    brdf_id: int
    emission: tuple[float, float, float]
    is_light: bool


@dataclass
class SceneConfig:
    """Configuration for scene serialization.

    Attributes:
        brdfs: List of BRDF configurations.
        spheres: List of sphere configurations.
    """

    brdfs: list[dict[str, Any]] = field(default_factory=list)
    spheres: list[dict[str, Any]] = field(default_factory=list)


def _as_triple(values: Any, name: str) -> tuple[float, float, float]:
    try:
        components = [float(v) for v in values]
    except (TypeError, ValueError) as e:
        raise ValueError(f"{name} must be 3 numbers, got {values!r}") from e
    if len(components) != 3:
        raise ValueError(f"{name} must have 3 components, got {len(components)}")
    return (components[0], components[1], components[2])


class SceneManager:
    """Scene builder coordinating spheres, BRDFs and the light.

    Attributes:
        brdfs: List of BRDFInfo for all registered BRDFs.
        spheres: List of SphereInfo for all spheres in the scene.

    Example:
        >>> scene = SceneManager()
        >>> red = scene.add_diffuse_brdf((0.75, 0.25, 0.25))
        >>> mirror = scene.add_specular_brdf((0.999, 0.999, 0.999))
        >>> scene.add_sphere((27.0, 16.5, 47.0), 16.5, mirror)
    """

    def __init__(self) -> None:
        """Initialize an empty scene.

        Raises:
            RuntimeError: If another SceneManager holds a built scene that
                has not been cleared.
        """
        self.brdfs: list[BRDFInfo] = []
        self.spheres: list[SphereInfo] = []
        self._frozen = False
        self._clear_all()

    def _clear_all(self) -> None:
        clear_scene()
        clear_brdfs()
        self.brdfs.clear()
        self.spheres.clear()
        self._frozen = False

    def clear(self) -> None:
        """Clear the entire scene (spheres, BRDFs and light tag).

        A cleared scene is no longer frozen, and the storage is free for
        another SceneManager.

        Raises:
            RuntimeError: If a different SceneManager holds a built scene.
        """
        if self._frozen:
            release_scene()
        self._clear_all()

    def _check_not_frozen(self) -> None:
        if self._frozen or is_scene_frozen():
            raise RuntimeError("Scene is frozen after build(); call clear() to start over")

    @property
    def is_frozen(self) -> bool:
        """Whether build() has been called."""
        return self._frozen

    # =========================================================================
    # BRDF Management
    # =========================================================================

    def _add_brdf(self, kind: BRDFKind, reflectance: tuple[float, float, float]) -> int:
        self._check_not_frozen()
        reflectance = _as_triple(reflectance, "reflectance")
        brdf_id = add_brdf(kind, reflectance)
        self.brdfs.append(BRDFInfo(brdf_id=brdf_id, kind=kind, reflectance=reflectance))
        return brdf_id

    def add_diffuse_brdf(self, kd: tuple[float, float, float]) -> int:
        """Add a diffuse (Lambertian) BRDF.

        Args:
            kd: Diffuse reflectance (R, G, B), each in [0, 1].

        Returns:
            The BRDF id.

        Raises:
            ValueError: If a component is outside [0, 1].
            RuntimeError: If the scene is frozen or the registry is full.
        """
        return self._add_brdf(BRDFKind.DIFFUSE, kd)

    def add_specular_brdf(self, ks: tuple[float, float, float]) -> int:
        """Add a perfect mirror BRDF.

        Args:
            ks: Mirror reflectance (R, G, B), each in [0, 1].

        Returns:
            The BRDF id.

        Raises:
            ValueError: If a component is outside [0, 1].
            RuntimeError: If the scene is frozen or the registry is full.
        """
        return self._add_brdf(BRDFKind.SPECULAR, ks)

    def get_brdf_count(self) -> int:
        """Get the number of registered BRDFs."""
        return get_brdf_count()

    # =========================================================================
    # Sphere Management
    # =========================================================================

    def add_sphere(
        self,
        center: tuple[float, float, float],
        radius: float,
        brdf_id: int,
        emission: tuple[float, float, float] | None = None,
        is_light: bool = False,
    ) -> int:
        """Add a sphere to the scene.

        Args:
            center: The center point of the sphere as (x, y, z).
            radius: The radius of the sphere (positive).
            brdf_id: Id returned by add_diffuse_brdf or add_specular_brdf.
            emission: Emitted radiance (R, G, B). Only the light may emit.
            is_light: Tag this sphere as the light source.

        Returns:
            The index of the added sphere.

        Raises:
            ValueError: If the radius is not positive, the BRDF id is
                unknown, a non-light sphere emits, emission is negative, or
                a light is already tagged.
            RuntimeError: If the scene is frozen or the storage is full.
        """
        self._check_not_frozen()

        if brdf_id < 0 or brdf_id >= get_brdf_count():
            raise ValueError(f"Invalid brdf_id: {brdf_id}")

        if emission is None:
            emission = (0.0, 0.0, 0.0)
        emission = _as_triple(emission, "emission")
        if any(c < 0.0 for c in emission):
            raise ValueError(f"Emission must be non-negative, got {emission}")
        if not is_light and any(c != 0.0 for c in emission):
            raise ValueError("Only the light sphere may have nonzero emission")
        if is_light and get_light_index() >= 0:
            raise ValueError(
                f"Scene already has a light (sphere {get_light_index()}); only one is supported"
            )

        center = _as_triple(center, "center")
        sphere_index = add_sphere(center, radius, brdf_id, emission)
        if is_light:
            set_light_index(sphere_index)

        self.spheres.append(
            SphereInfo(
                sphere_index=sphere_index,
                center=center,
                radius=float(radius),
                brdf_id=brdf_id,
                emission=emission,
                is_light=is_light,
            )
        )
        return sphere_index

    def build(self) -> None:
        """Validate and freeze the scene.

        Raises:
            ValueError: If no sphere is tagged as the light.
        """
        if self.light_index < 0:
            raise ValueError("Scene has no light source; tag one sphere with is_light=True")
        freeze_scene()
        self._frozen = True
        logger.info(
            "Built scene: %d spheres, %d BRDFs, light sphere %d",
            self.get_sphere_count(),
            self.get_brdf_count(),
            self.light_index,
        )

    @property
    def light_index(self) -> int:
        """Index of the light sphere, or -1 if none is tagged."""
        return get_light_index()

    def get_sphere_count(self) -> int:
        """Get the number of spheres in the scene."""
        return get_sphere_count()

    # =========================================================================
    # Scene Serialization
    # =========================================================================

    def to_config(self) -> SceneConfig:
        """Export the scene to a configuration object.

        Returns:
            A SceneConfig containing all BRDFs and spheres.
        """
        config = SceneConfig()

        for brdf in self.brdfs:
            config.brdfs.append(
                {
                    "type": brdf.kind.name.lower(),
                    "reflectance": list(brdf.reflectance),
                }
            )

        for sphere in self.spheres:
            sphere_config: dict[str, Any] = {
                "center": list(sphere.center),
                "radius": sphere.radius,
                "brdf_id": sphere.brdf_id,
            }
            if sphere.is_light:
                sphere_config["emission"] = list(sphere.emission)
                sphere_config["light"] = True
            config.spheres.append(sphere_config)

        return config

    def from_config(self, config: SceneConfig) -> None:
        """Load and build a scene from a configuration object.

        Clears the current scene first. If loading fails the scene is left
        empty.

        Args:
            config: The scene configuration to load.

        Raises:
            ValueError: If the configuration contains invalid data.
        """
        self.clear()
        try:
            self._load_config(config)
            self.build()
        except Exception:
            self.clear()
            raise

    def _load_config(self, config: SceneConfig) -> None:
        if not isinstance(config.brdfs, list) or not isinstance(config.spheres, list):
            raise ValueError("Scene 'brdfs' and 'spheres' must be lists")

        for i, brdf_config in enumerate(config.brdfs):
            if not isinstance(brdf_config, dict):
                raise ValueError(f"BRDF entry {i} must be an object, got {brdf_config!r}")
            brdf_type = str(brdf_config.get("type", "")).lower()
            reflectance = brdf_config.get("reflectance")
            if reflectance is None:
                raise ValueError(f"BRDF entry is missing 'reflectance': {brdf_config}")
            if brdf_type == "diffuse":
                self.add_diffuse_brdf(reflectance)
            elif brdf_type == "specular":
                self.add_specular_brdf(reflectance)
            else:
                raise ValueError(f"Unknown BRDF type: {brdf_type}")

        for i, sphere_config in enumerate(config.spheres):
            if not isinstance(sphere_config, dict):
                raise ValueError(f"Sphere entry {i} must be an object, got {sphere_config!r}")
            try:
                center = sphere_config["center"]
                radius = float(sphere_config["radius"])
                brdf_id = int(sphere_config["brdf_id"])
            except KeyError as e:
                raise ValueError(f"Sphere entry is missing {e}: {sphere_config}") from e
            except (TypeError, ValueError) as e:
                raise ValueError(f"Invalid sphere entry {i}: {e}") from e
            self.add_sphere(
                center,
                radius,
                brdf_id,
                emission=sphere_config.get("emission"),
                is_light=bool(sphere_config.get("light", False)),
            )

    def to_dict(self) -> dict[str, Any]:
        """Export the scene to a dictionary (for JSON serialization)."""
        config = self.to_config()
        return {
            "brdfs": config.brdfs,
            "spheres": config.spheres,
        }

    def from_dict(self, data: dict[str, Any]) -> None:
        """Load and build a scene from a dictionary.

        Args:
            data: Dictionary with 'brdfs' and 'spheres' keys.
        """
        config = SceneConfig(
            brdfs=data.get("brdfs", []),
            spheres=data.get("spheres", []),
        )
        self.from_config(config)

    # =========================================================================
    # Capacity Information
    # =========================================================================

    @staticmethod
    def get_max_spheres() -> int:
        """Get the maximum number of spheres supported."""
        return MAX_SPHERES

    @staticmethod
    def get_max_brdfs() -> int:
        """Get the maximum number of BRDFs supported."""
        return MAX_BRDFS


def load_scene_file(path: str | Path) -> tuple[SceneManager, dict[str, Any] | None]:
    """Load a scene description from a JSON file.

    The file holds ``brdfs`` and ``spheres`` lists as produced by
    SceneManager.to_dict(), plus an optional ``camera`` object with
    ``origin``, ``direction`` and ``fov_scale`` keys.

    Args:
        path: Path to the JSON file.

    Returns:
        Tuple of (built SceneManager, camera dict or None).

    Raises:
        ValueError: If the file is not valid JSON or describes an invalid scene.
        OSError: If the file cannot be read.
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid scene file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Invalid scene file {path}: expected a JSON object")

    scene = SceneManager()
    scene.from_dict(data)
    logger.debug("Loaded scene from %s", path)
    return scene, data.get("camera")
