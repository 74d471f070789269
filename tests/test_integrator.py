"""Tests for the radiance estimator.

Tests cover:
- Visibility oracle (visible, occluded, back side of the light)
- Emission rules (outward side only, excluded after diffuse bounces,
  included after mirror bounces)
- Next-event estimate against the analytic sphere-light irradiance
- Russian roulette leaves the expected indirect radiance unchanged
- Russian-roulette configuration
- pdf-zero guard and degenerate normals
- Error handling for missing lights and bad streams
"""

import math

import pytest


def _light_scene(floor_kind="diffuse", floor_reflectance=(0.5, 0.5, 0.5), light_y=4.0, light_radius=0.5):
    """Floor plus one light; returns the SceneManager.

    Sphere indices: 0 floor (top surface at y = 0), 1 light.
    """
    from spherept.scene.manager import SceneManager

    scene = SceneManager()
    if floor_kind == "diffuse":
        floor = scene.add_diffuse_brdf(floor_reflectance)
    else:
        floor = scene.add_specular_brdf(floor_reflectance)
    black = scene.add_diffuse_brdf((0.0, 0.0, 0.0))
    scene.add_sphere((0.0, -1e5, 0.0), 1e5, floor)
    scene.add_sphere(
        (0.0, light_y, 0.0), light_radius, black, emission=(10.0, 10.0, 10.0), is_light=True
    )
    scene.build()
    return scene


class TestVisibility:
    """Tests for the visibility oracle."""

    def _occluder_scene(self):
        from spherept.scene.manager import SceneManager

        scene = SceneManager()
        grey = scene.add_diffuse_brdf((0.5, 0.5, 0.5))
        black = scene.add_diffuse_brdf((0.0, 0.0, 0.0))
        scene.add_sphere((0.0, 5.0, 0.0), 1.0, grey)
        scene.add_sphere((0.0, 10.0, 0.0), 1.0, black, emission=(1.0, 1.0, 1.0), is_light=True)
        scene.build()
        return scene

    def test_unoccluded(self):
        from spherept.core.integrator import is_visible

        self._occluder_scene()
        # From the side, straight at the light's near point (-1, 10, 0)
        origin = (-6.0, 10.0, 0.0)
        assert is_visible(origin, (1.0, 0.0, 0.0), (-1.0, 0.0, 0.0)) == 1.0

    def test_occluded(self):
        from spherept.core.integrator import is_visible

        self._occluder_scene()
        assert is_visible((0.0, 0.0, 0.0), (0.0, 1.0, 0.0), (0.0, -1.0, 0.0)) == 0.0

    def test_back_side_of_light(self):
        """Test a sampled point on the far side of the light is not visible."""
        from spherept.core.integrator import is_visible

        self._occluder_scene()
        origin = (-6.0, 10.0, 0.0)
        # Nearest hit is the light, but the target normal faces away
        assert is_visible(origin, (1.0, 0.0, 0.0), (1.0, 0.0, 0.0)) == 0.0

    def test_missing_everything(self):
        from spherept.core.integrator import is_visible

        self._occluder_scene()
        assert is_visible((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (-1.0, 0.0, 0.0)) == 0.0


class TestEmission:
    """Tests for when emitted radiance is counted."""

    def test_camera_ray_sees_light(self):
        """Test a ray hitting the light from outside returns its emission."""
        from spherept.core.integrator import trace_radiance

        _light_scene()
        r = trace_radiance((0.0, 10.0, 0.0), (0.0, -1.0, 0.0))
        assert r == pytest.approx((10.0, 10.0, 10.0), abs=1e-12)

    def test_miss_is_zero(self):
        from spherept.core.integrator import trace_radiance

        _light_scene()
        assert trace_radiance((0.0, 10.0, 0.0), (0.0, 1.0, 0.0)) == (0.0, 0.0, 0.0)

    def test_light_interior_does_not_emit(self):
        """Test the light emits from its outward side only."""
        from spherept.core.integrator import trace_radiance

        _light_scene()
        r = trace_radiance((0.0, 4.0, 0.0), (0.0, 1.0, 0.0))
        assert r == (0.0, 0.0, 0.0)

    def test_no_emission_after_diffuse_bounce(self):
        """Test the indirect estimate ignores the light's emission.

        The only thing above the floor is the black light, so with its
        emission excluded the indirect term is exactly zero.
        """
        from spherept.core.integrator import RADIANCE_INDIRECT, mean_vertex_radiance

        _light_scene()
        r = mean_vertex_radiance(
            (0.0, 0.0, 0.0),
            (0.0, 1.0, 0.0),
            (0.0, 1.0, 0.0),
            0,
            samples_per_stream=200,
            num_streams=16,
            mode=RADIANCE_INDIRECT,
        )
        assert r == (0.0, 0.0, 0.0)

    def test_emission_after_mirror_bounce(self):
        """Test a mirror reflecting the light returns ks * Le exactly."""
        from spherept.core.integrator import RADIANCE_REFLECTED, mean_vertex_radiance

        _light_scene(floor_kind="specular", floor_reflectance=(0.8, 0.8, 0.8))
        r = mean_vertex_radiance(
            (0.0, 0.0, 0.0),
            (0.0, 1.0, 0.0),
            (0.0, 1.0, 0.0),
            0,
            samples_per_stream=10,
            num_streams=4,
            mode=RADIANCE_REFLECTED,
        )
        assert r == pytest.approx((8.0, 8.0, 8.0), rel=1e-12)

    def test_mirror_without_light_in_view(self):
        from spherept.core.integrator import RADIANCE_REFLECTED, mean_vertex_radiance

        _light_scene(floor_kind="specular", floor_reflectance=(0.8, 0.8, 0.8))
        s = 1.0 / math.sqrt(2.0)
        r = mean_vertex_radiance(
            (0.0, 0.0, 0.0),
            (0.0, 1.0, 0.0),
            (s, s, 0.0),
            0,
            samples_per_stream=10,
            num_streams=4,
            mode=RADIANCE_REFLECTED,
        )
        assert r == (0.0, 0.0, 0.0)


class TestDirectLighting:
    """Next-event estimation against a closed-form answer."""

    def test_matches_sphere_light_irradiance(self):
        """Test Lo = kd * Le * (R / d)^2 under a sphere light overhead.

        A sphere of radiance Le and radius R at distance d along the normal
        gives irradiance E = pi Le (R / d)^2, so a diffuse surface reflects
        kd / pi * E. Indirect light is zero because only the black light
        sits above the floor.
        """
        from spherept.core.integrator import RADIANCE_REFLECTED, mean_vertex_radiance

        _light_scene(floor_reflectance=(0.5, 0.5, 0.5), light_y=4.0, light_radius=1.0)
        r = mean_vertex_radiance(
            (0.0, 0.0, 0.0),
            (0.0, 1.0, 0.0),
            (0.0, 1.0, 0.0),
            0,
            samples_per_stream=4000,
            num_streams=64,
            mode=RADIANCE_REFLECTED,
        )
        expected = 0.5 * 10.0 * (1.0 / 4.0) ** 2
        for channel in r:
            assert abs(channel - expected) / expected < 0.03

    def test_received_radiance_on_floor(self):
        """Test the full estimator from above matches the same value."""
        from spherept.core.integrator import mean_received_radiance

        _light_scene(floor_reflectance=(0.5, 0.5, 0.5), light_y=4.0, light_radius=1.0)
        # Look straight down at (2, 0, 0), beside the light
        r = mean_received_radiance(
            (2.0, 1.0, 0.0),
            (0.0, -1.0, 0.0),
            samples_per_stream=4000,
            num_streams=64,
        )
        # Point (2, 0, 0): the light center is at distance sqrt(20) and
        # cos(theta) = 4 / sqrt(20) from the normal. E = pi Le (R/d)^2 cos
        d2 = 20.0
        cos_theta = 4.0 / math.sqrt(d2)
        expected = 0.5 * 10.0 * (1.0 / d2) * cos_theta
        assert abs(r[0] - expected) / expected < 0.03


class TestRussianRoulette:
    """Russian roulette must not change the expected radiance."""

    def test_defaults(self):
        from spherept.core.integrator import (
            RR_DEPTH,
            SURVIVAL_PROBABILITY,
            get_russian_roulette,
        )

        assert (RR_DEPTH, SURVIVAL_PROBABILITY) == (5, 0.9)
        assert get_russian_roulette() == (5, 0.9)

    def test_configuration(self):
        from spherept.core.integrator import (
            get_russian_roulette,
            reset_russian_roulette,
            set_russian_roulette,
        )

        set_russian_roulette(2, 0.5)
        assert get_russian_roulette() == (2, 0.5)
        reset_russian_roulette()
        assert get_russian_roulette() == (5, 0.9)

    @pytest.mark.parametrize(
        "depth,survival", [(-1, 0.9), (5, 0.0), (5, 1.5), (5, -0.2)]
    )
    def test_invalid_configuration(self, depth, survival):
        from spherept.core.integrator import set_russian_roulette

        with pytest.raises(ValueError):
            set_russian_roulette(depth, survival)

    def test_indirect_mean_invariant_to_survival(self, open_scene):
        """Test the indirect estimate agrees for p in {0.5, 0.7, 1.0}.

        Roulette applies from the first bounce (depth 0). The scene is
        open, so paths still end by escaping when p = 1.
        """
        from spherept.core.integrator import (
            RADIANCE_INDIRECT,
            mean_vertex_radiance,
            set_russian_roulette,
        )

        means = {}
        for survival in (0.5, 0.7, 1.0):
            set_russian_roulette(depth=0, survival_probability=survival)
            r = mean_vertex_radiance(
                (1.5, 0.0, 0.0),
                (0.0, 1.0, 0.0),
                (0.0, 1.0, 0.0),
                0,
                samples_per_stream=4096,
                num_streams=64,
                mode=RADIANCE_INDIRECT,
            )
            means[survival] = r[0]

        reference = means[1.0]
        assert reference > 0.0
        for survival in (0.5, 0.7):
            assert abs(means[survival] - reference) / reference < 0.1

    def test_default_roulette_matches_no_roulette(self, open_scene):
        """Test the default (depth 5, p 0.9) agrees with never killing."""
        from spherept.core.integrator import (
            RADIANCE_REFLECTED,
            mean_vertex_radiance,
            reset_russian_roulette,
            set_russian_roulette,
        )

        def estimate():
            return mean_vertex_radiance(
                (1.5, 0.0, 0.0),
                (0.0, 1.0, 0.0),
                (0.0, 1.0, 0.0),
                0,
                samples_per_stream=2048,
                num_streams=64,
                mode=RADIANCE_REFLECTED,
            )[0]

        reset_russian_roulette()
        with_roulette = estimate()
        set_russian_roulette(depth=0, survival_probability=1.0)
        without = estimate()
        assert abs(with_roulette - without) / without < 0.05


class TestGuards:
    """Tests for degenerate inputs and error handling."""

    def test_degenerate_normal_raises(self, open_scene):
        from spherept.core.integrator import RADIANCE_REFLECTED, mean_vertex_radiance
        from spherept.materials.frame import DegenerateNormalError, get_degenerate_normal_count

        with pytest.raises(DegenerateNormalError):
            mean_vertex_radiance(
                (1.5, 0.0, 0.0),
                (0.0, 0.0, 0.0),
                (0.0, 1.0, 0.0),
                0,
                samples_per_stream=4,
                num_streams=2,
                mode=RADIANCE_REFLECTED,
            )
        assert get_degenerate_normal_count() == 0

    def test_no_light_raises(self):
        from spherept.core.integrator import trace_radiance
        from spherept.scene.intersection import add_sphere

        add_sphere((0.0, 0.0, 0.0), 1.0, brdf_id=0)
        with pytest.raises(RuntimeError):
            trace_radiance((0.0, 0.0, 5.0), (0.0, 0.0, -1.0))

    def test_bad_stream_raises(self, open_scene):
        from spherept.core.integrator import mean_received_radiance, trace_radiance

        with pytest.raises(ValueError):
            trace_radiance((0.0, 10.0, 0.0), (0.0, -1.0, 0.0), stream=1000)
        with pytest.raises(ValueError):
            mean_received_radiance((0.0, 10.0, 0.0), (0.0, -1.0, 0.0), 1, num_streams=1000)

    def test_same_stream_state_same_sample(self, open_scene):
        from spherept.core.integrator import trace_radiance
        from spherept.core.rng import seed_rng_streams

        seed_rng_streams(8, seed=77)
        first = trace_radiance((1.5, 3.0, 2.0), (0.0, -1.0, -0.3), stream=5)
        seed_rng_streams(8, seed=77)
        second = trace_radiance((1.5, 3.0, 2.0), (0.0, -1.0, -0.3), stream=5)
        assert first == second
