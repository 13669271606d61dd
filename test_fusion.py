"""
Test suite for Bayesian fusion and conversion between point distributions.

Run: pytest test_fusion.py -v
"""

import importlib
import sys
import pytest
import numpy as np
from numpy.random import default_rng

from particle_point_pdf.pdfs.base import GaussianMode
from particle_point_pdf.pdfs.gaussian import PointPDFGaussian
from particle_point_pdf.pdfs.sog import PointPDFSOG
from particle_point_pdf.pdfs.particles import PointPDFParticles
from particle_point_pdf.pdfs.fusion import fuse_gaussians, mixture_moments, sample_modes
from particle_point_pdf.config import ParticlesConfig
from particle_point_pdf.errors import (
    EmptyDistributionError,
    IncompatibleFusionOperandsError,
)


def random_spd(rng, scale: float = 1.0) -> np.ndarray:
    A = rng.normal(size=(3, 3))
    return scale * (A @ A.T + 0.5 * np.eye(3))


def info_form_fusion(m1, P1, m2, P2):
    """Reference: information-form product of two Gaussians."""
    I1, I2 = np.linalg.inv(P1), np.linalg.inv(P2)
    P = np.linalg.inv(I1 + I2)
    return P @ (I1 @ m1 + I2 @ m2), P


# ============================================================================
# Gaussian algebra
# ============================================================================

class TestFuseGaussians:

    @pytest.mark.parametrize("seed", [0, 1, 2])
    def test_matches_information_form(self, seed):
        rng = default_rng(seed)
        m1, m2 = rng.normal(size=3), rng.normal(size=3)
        P1, P2 = random_spd(rng), random_spd(rng, 2.0)

        mean, cov, _ = fuse_gaussians(m1, P1, m2, P2)
        mean_ref, cov_ref = info_form_fusion(m1, P1, m2, P2)

        np.testing.assert_allclose(mean, mean_ref, atol=1e-10)
        np.testing.assert_allclose(cov, cov_ref, atol=1e-10)
        np.testing.assert_allclose(cov, cov.T, atol=0.0)

    def test_exact_operand_dominates(self):
        exact = np.array([1.0, 2.0, 3.0])
        mean, cov, _ = fuse_gaussians(exact, np.zeros((3, 3)), np.zeros(3), np.eye(3))
        np.testing.assert_allclose(mean, exact, atol=1e-12)
        np.testing.assert_allclose(cov, np.zeros((3, 3)), atol=1e-12)

        mean, cov, _ = fuse_gaussians(np.zeros(3), np.eye(3), exact, np.zeros((3, 3)))
        np.testing.assert_allclose(mean, exact, atol=1e-12)
        np.testing.assert_allclose(cov, np.zeros((3, 3)), atol=1e-12)

    def test_two_exact_operands_incompatible(self):
        with pytest.raises(IncompatibleFusionOperandsError):
            fuse_gaussians(np.zeros(3), np.zeros((3, 3)), np.ones(3), np.zeros((3, 3)))

    def test_mixture_moments(self):
        modes = [
            GaussianMode(np.log(0.5), [-1.0, 0.0, 0.0], np.eye(3)),
            GaussianMode(np.log(0.5), [1.0, 0.0, 0.0], np.eye(3)),
        ]
        mean, cov = mixture_moments(modes)
        np.testing.assert_allclose(mean, np.zeros(3), atol=1e-15)
        np.testing.assert_allclose(cov, np.diag([2.0, 1.0, 1.0]), atol=1e-15)

    def test_sample_modes_respects_weights(self):
        modes = [
            GaussianMode(np.log(0.2), [-10.0, 0.0, 0.0], 0.01 * np.eye(3)),
            GaussianMode(np.log(0.8), [10.0, 0.0, 0.0], 0.01 * np.eye(3)),
        ]
        samples = sample_modes(modes, 10000, default_rng(0))
        assert samples.shape == (10000, 3)
        assert np.mean(samples[:, 0] > 0) == pytest.approx(0.8, abs=0.02)


# ============================================================================
# Particle fusion
# ============================================================================

class TestParticleFusion:

    def test_two_gaussians(self):
        p1 = PointPDFGaussian(np.zeros(3), np.eye(3))
        p2 = PointPDFGaussian(np.array([2.0, 0.0, 0.0]), np.eye(3))

        pdf = PointPDFParticles(20000, seed=0)
        pdf.bayesian_fusion(p1, p2)

        assert pdf.size() == 20000
        assert np.all(pdf.log_weights == 0.0)
        cov, mean = pdf.get_covariance_and_mean()
        np.testing.assert_allclose(mean, [1.0, 0.0, 0.0], atol=0.03)
        np.testing.assert_allclose(cov, 0.5 * np.eye(3), atol=0.03)

    def test_particle_operands(self):
        rng = default_rng(1)
        a = PointPDFParticles(0)
        b = PointPDFParticles(0)
        a.set_particles(rng.normal(size=(4000, 3)))
        b.set_particles(3.0 + rng.normal(size=(4000, 3)))

        cov_a, mean_a = a.get_covariance_and_mean()
        cov_b, mean_b = b.get_covariance_and_mean()
        mean_ref, _ = info_form_fusion(mean_a, cov_a, mean_b, cov_b)

        pdf = PointPDFParticles(0, config=ParticlesConfig(default_particle_count=20000), seed=2)
        pdf.bayesian_fusion(a, b)
        assert pdf.size() == 20000
        np.testing.assert_allclose(pdf.get_mean(), mean_ref, atol=0.03)

    def test_keeps_current_size(self):
        pdf = PointPDFParticles(37, seed=3)
        pdf.bayesian_fusion(PointPDFGaussian(np.zeros(3), np.eye(3)),
                            PointPDFGaussian(np.ones(3), np.eye(3)))
        assert pdf.size() == 37

    def test_reproducible(self):
        p1 = PointPDFGaussian(np.zeros(3), np.eye(3))
        p2 = PointPDFGaussian(np.ones(3), 2.0 * np.eye(3))
        a, b = PointPDFParticles(50), PointPDFParticles(50)
        a.bayesian_fusion(p1, p2, rng=default_rng(9))
        b.bayesian_fusion(p1, p2, rng=default_rng(9))
        np.testing.assert_array_equal(a.positions, b.positions)

    def test_incompatible_operand_leaves_contents(self):
        pdf = PointPDFParticles(0)
        pdf.set_particles([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]], [0.0, -1.0])
        before = (pdf.positions, pdf.log_weights)

        with pytest.raises(IncompatibleFusionOperandsError):
            pdf.bayesian_fusion(PointPDFGaussian(np.zeros(3), np.eye(3)), np.zeros(3))

        same_point = PointPDFParticles()
        with pytest.raises(IncompatibleFusionOperandsError):
            pdf.bayesian_fusion(same_point, same_point)

        np.testing.assert_array_equal(pdf.positions, before[0])
        np.testing.assert_array_equal(pdf.log_weights, before[1])

    def test_empty_operand(self):
        pdf = PointPDFParticles(5)
        with pytest.raises(EmptyDistributionError):
            pdf.bayesian_fusion(PointPDFParticles(0), PointPDFGaussian(np.zeros(3), np.eye(3)))
        assert pdf.size() == 5

    def test_min_mahalanobis_noop_for_single_modes(self):
        p1 = PointPDFGaussian(np.zeros(3), np.eye(3))
        p2 = PointPDFGaussian(np.full(3, 50.0), np.eye(3))
        a, b = PointPDFParticles(100), PointPDFParticles(100)
        a.bayesian_fusion(p1, p2, rng=default_rng(4))
        b.bayesian_fusion(p1, p2, min_mahalanobis_dist_to_drop=1.0, rng=default_rng(4))
        np.testing.assert_array_equal(a.positions, b.positions)


# ============================================================================
# Mixture fusion and dropping
# ============================================================================

class TestSOGFusion:

    @pytest.fixture
    def bimodal(self):
        return PointPDFSOG([
            GaussianMode(np.log(0.5), np.zeros(3), np.eye(3)),
            GaussianMode(np.log(0.5), [100.0, 0.0, 0.0], np.eye(3)),
        ])

    def test_keeps_all_modes_without_threshold(self, bimodal):
        out = PointPDFSOG()
        out.bayesian_fusion(bimodal, PointPDFGaussian(np.zeros(3), np.eye(3)))
        assert len(out) == 2
        np.testing.assert_allclose(out.get_mean(), np.zeros(3), atol=1e-6)

    def test_drops_far_modes(self, bimodal):
        out = PointPDFSOG()
        with pytest.warns(RuntimeWarning):
            out.bayesian_fusion(
                bimodal,
                PointPDFGaussian(np.zeros(3), np.eye(3)),
                min_mahalanobis_dist_to_drop=3.0,
            )
        assert len(out) == 1
        np.testing.assert_allclose(out.modes[0].mean, np.zeros(3), atol=1e-12)
        assert out.modes[0].log_weight == pytest.approx(0.0)

    def test_particles_from_sog_fusion(self, bimodal):
        other = PointPDFSOG([
            GaussianMode(0.0, np.zeros(3), np.eye(3)),
            GaussianMode(0.0, [100.0, 0.0, 0.0], np.eye(3)),
        ])
        pdf = PointPDFParticles(5000, seed=5)
        pdf.bayesian_fusion(bimodal, other)
        # Fused modes at 0 and 100 have equal mass; the cross terms at 50 are negligible
        frac_right = np.mean(pdf.positions[:, 0] > 50.0)
        assert frac_right == pytest.approx(0.5, abs=0.05)
        assert np.all(np.abs(pdf.positions[:, 0] - 50.0) > 30.0)

    def test_particles_keep_only_dominant_neighbourhood(self, bimodal):
        pdf = PointPDFParticles(2000, seed=6)
        with pytest.warns(RuntimeWarning):
            pdf.bayesian_fusion(
                bimodal,
                PointPDFGaussian(np.zeros(3), np.eye(3)),
                min_mahalanobis_dist_to_drop=3.0,
            )
        assert pdf.size() == 2000
        assert np.all(np.abs(pdf.positions[:, 0]) < 10.0)

    def test_gaussian_target_moment_matches(self, bimodal):
        out = PointPDFGaussian()
        out.bayesian_fusion(bimodal, PointPDFGaussian(np.zeros(3), np.eye(3)))
        np.testing.assert_allclose(out.mean, np.zeros(3), atol=1e-6)
        np.testing.assert_allclose(out.cov, 0.5 * np.eye(3), atol=1e-6)


# ============================================================================
# copy_from
# ============================================================================

class TestCopyFrom:

    def test_from_particles_is_deep_copy(self):
        src = PointPDFParticles(0)
        src.set_particles([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]], [-np.inf, 0.5])
        dst = PointPDFParticles(10)
        dst.copy_from(src)
        np.testing.assert_array_equal(dst.positions, src.positions)
        np.testing.assert_array_equal(dst.log_weights, src.log_weights)

        src.set_w(1, -7.0)
        assert dst.get_w(1) == 0.5

    def test_from_gaussian_uses_current_size(self):
        g = PointPDFGaussian(np.array([1.0, -1.0, 2.0]), np.diag([0.1, 0.2, 0.3]))
        dst = PointPDFParticles(8000, seed=6)
        dst.copy_from(g)
        assert dst.size() == 8000
        assert np.all(dst.log_weights == 0.0)
        cov, mean = dst.get_covariance_and_mean()
        np.testing.assert_allclose(mean, g.mean, atol=0.03)
        np.testing.assert_allclose(np.diag(cov), [0.1, 0.2, 0.3], rtol=0.1)

    def test_from_gaussian_into_empty(self):
        dst = PointPDFParticles(0, config=ParticlesConfig(default_particle_count=123), seed=7)
        dst.copy_from(PointPDFGaussian(np.zeros(3), np.eye(3)))
        assert dst.size() == 123

    def test_from_sog(self):
        sog = PointPDFSOG([
            GaussianMode(0.0, [-5.0, 0.0, 0.0], 0.01 * np.eye(3)),
            GaussianMode(0.0, [5.0, 0.0, 0.0], 0.01 * np.eye(3)),
        ])
        dst = PointPDFParticles(4000, seed=8)
        dst.copy_from(sog)
        assert np.mean(dst.positions[:, 0] > 0) == pytest.approx(0.5, abs=0.05)

    def test_gaussian_from_particles(self):
        src = PointPDFParticles(0)
        src.set_particles([[1.0, 0.0, 0.0], [-1.0, 0.0, 0.0]])
        g = PointPDFGaussian()
        g.copy_from(src)
        np.testing.assert_allclose(g.mean, np.zeros(3))
        np.testing.assert_allclose(g.cov, np.diag([1.0, 0.0, 0.0]))

    def test_rejects_non_pdf(self):
        with pytest.raises(IncompatibleFusionOperandsError):
            PointPDFParticles(3).copy_from([1.0, 2.0, 3.0])


# ============================================================================
# Experiment script
# ============================================================================

class TestExperimentScript:

    def test_runs_without_matplotlib(self, monkeypatch):
        monkeypatch.setitem(sys.modules, "matplotlib", None)
        monkeypatch.setitem(sys.modules, "matplotlib.pyplot", None)
        monkeypatch.delitem(sys.modules, "particle_point_pdf.fusion_experiment", raising=False)

        module = importlib.import_module("particle_point_pdf.fusion_experiment")
        fused = module.run_experiment_1(200, 0)
        assert fused.size() == 200
        with pytest.raises(ImportError):
            module.plot_results(fused, fused, {})
