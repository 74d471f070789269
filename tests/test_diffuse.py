"""Unit tests for the diffuse BRDF and the local frame.

Tests cover:
- BRDF evaluation (kd / pi)
- PDF of cosine-weighted sampling
- Sampled directions stay in the normal's hemisphere
- Per-sample weight f cos / pdf equals kd
- Mean cosine of cosine-weighted samples is 2/3
- Local frame orthonormality and the degenerate-normal guard
"""

import math

import numpy as np
import pytest
import taichi as ti


class TestDiffuseEval:
    """Tests for eval_diffuse and pdf_diffuse."""

    def test_eval_is_kd_over_pi(self):
        from spherept.core.ray import vec3
        from spherept.materials.diffuse import eval_diffuse

        result = ti.Vector.field(3, dtype=ti.f64, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = eval_diffuse(vec3(0.75, 0.25, 0.0))

        test_kernel()
        r = result[None]
        assert abs(r[0] - 0.75 / math.pi) < 1e-12
        assert abs(r[1] - 0.25 / math.pi) < 1e-12
        assert abs(r[2]) < 1e-12

    def test_pdf(self):
        from spherept.core.ray import vec3
        from spherept.materials.diffuse import pdf_diffuse

        result = ti.field(dtype=ti.f64, shape=3)

        @ti.kernel
        def test_kernel():
            n = vec3(0.0, 1.0, 0.0)
            s = 1.0 / ti.sqrt(2.0)
            result[0] = pdf_diffuse(n, n)
            result[1] = pdf_diffuse(n, vec3(s, s, 0.0))
            result[2] = pdf_diffuse(n, vec3(0.0, -1.0, 0.0))

        test_kernel()
        assert abs(result[0] - 1.0 / math.pi) < 1e-12
        assert abs(result[1] - 1.0 / (math.sqrt(2.0) * math.pi)) < 1e-12
        assert result[2] == 0.0

    def test_cosine_hemisphere_local_corners(self):
        from spherept.materials.diffuse import cosine_hemisphere_local

        result = ti.Vector.field(3, dtype=ti.f64, shape=2)

        @ti.kernel
        def test_kernel():
            result[0] = cosine_hemisphere_local(1.0, 0.0)
            result[1] = cosine_hemisphere_local(0.25, 0.0)

        test_kernel()
        assert abs(result[0][2] - 1.0) < 1e-12
        # z = sqrt(0.25), r = sqrt(0.75) along +x
        assert abs(result[1][2] - 0.5) < 1e-12
        assert abs(result[1][0] - math.sqrt(0.75)) < 1e-12


class TestDiffuseSampling:
    """Monte Carlo checks of sample_diffuse."""

    N = 20000

    def _sample(self, normal):
        from spherept.core.ray import vec3
        from spherept.core.rng import next_uniform, seed_rng_streams
        from spherept.materials.diffuse import eval_diffuse, sample_diffuse

        n_samples = self.N
        cosines = ti.field(dtype=ti.f64, shape=n_samples)
        weights = ti.field(dtype=ti.f64, shape=n_samples)
        lengths = ti.field(dtype=ti.f64, shape=n_samples)

        @ti.kernel
        def test_kernel(n: vec3):
            ti.loop_config(serialize=True)
            for i in range(n_samples):
                u1 = next_uniform(0)
                u2 = next_uniform(0)
                d, pdf = sample_diffuse(n, u1, u2)
                cos_theta = d.dot(n)
                cosines[i] = cos_theta
                lengths[i] = d.norm()
                f = eval_diffuse(vec3(0.6, 0.6, 0.6))
                weights[i] = f[0] * cos_theta / pdf

        seed_rng_streams(1, seed=2024)
        test_kernel(vec3(*normal))
        return cosines.to_numpy(), weights.to_numpy(), lengths.to_numpy()

    @pytest.mark.parametrize(
        "normal",
        [(0.0, 1.0, 0.0), (1.0, 0.0, 0.0), (0.0, 0.0, -1.0), (0.48, 0.6, 0.64)],
    )
    def test_samples_in_hemisphere(self, normal):
        cosines, _, lengths = self._sample(normal)
        assert (cosines >= 0.0).all()
        assert abs(lengths - 1.0).max() < 1e-9

    def test_weight_equals_kd(self):
        """Test f cos / pdf is exactly kd for every sample."""
        _, weights, _ = self._sample((0.0, 1.0, 0.0))
        assert abs(weights - 0.6).max() < 1e-9

    def test_mean_cosine(self):
        """Test E[cos] = 2/3 under cosine-weighted sampling."""
        cosines, _, _ = self._sample((0.48, 0.6, 0.64))
        assert abs(cosines.mean() - 2.0 / 3.0) < 0.01


class TestLocalFrame:
    """Tests for build_local_frame and the degenerate guard."""

    @pytest.mark.parametrize(
        "normal", [(0.0, 1.0, 0.0), (1.0, 0.0, 0.0), (0.05, 0.0, 0.99874921777)]
    )
    def test_orthonormal(self, normal):
        from spherept.core.ray import vec3
        from spherept.materials.frame import build_local_frame

        axes = ti.Vector.field(3, dtype=ti.f64, shape=3)
        ok = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel(n: vec3):
            u, v, w, good = build_local_frame(n)
            axes[0] = u
            axes[1] = v
            axes[2] = w
            ok[None] = good

        test_kernel(vec3(*normal))
        assert ok[None] == 1
        u, v, w = axes.to_numpy()
        for a in (u, v, w):
            assert abs(np.linalg.norm(a) - 1.0) < 1e-9
        assert abs(np.dot(u, v)) < 1e-9
        assert abs(np.dot(u, w)) < 1e-9
        assert abs(np.dot(v, w)) < 1e-9
        np.testing.assert_allclose(w, normal, atol=1e-12)

    def test_degenerate_normal_is_counted(self):
        from spherept.core.ray import vec3
        from spherept.materials.diffuse import sample_diffuse
        from spherept.materials.frame import (
            DegenerateNormalError,
            check_degenerate_normals,
            get_degenerate_normal_count,
        )

        pdf_result = ti.field(dtype=ti.f64, shape=())

        @ti.kernel
        def test_kernel():
            d, pdf = sample_diffuse(vec3(0.0, 0.0, 0.0), 0.3, 0.7)
            pdf_result[None] = pdf

        test_kernel()
        assert pdf_result[None] == 0.0
        assert get_degenerate_normal_count() == 1

        with pytest.raises(DegenerateNormalError):
            check_degenerate_normals()
        # The check resets the counter
        assert get_degenerate_normal_count() == 0
        check_degenerate_normals()
