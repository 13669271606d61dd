"""
Fusion Experiment: two noisy observers locating one 3D landmark.

Experiments:
1. Gaussian x Gaussian fused into particles vs. the closed-form product
2. Particle set x particle set (observer frames mapped to the world frame)
3. Bimodal sum-of-Gaussians x Gaussian with and without mode dropping

Run: python fusion_experiment.py [--no-plot]
"""

import argparse
import time
import numpy as np
from numpy.random import default_rng

from particle_point_pdf.pdfs import (
    GaussianMode,
    PointPDFGaussian,
    PointPDFParticles,
    PointPDFSOG,
)
from particle_point_pdf.poses import Pose3D


def print_estimate(name: str, pdf):
    cov, mean = pdf.get_covariance_and_mean()
    print(f"{name:28s} mean={np.array2string(mean, precision=3)} "
          f"std={np.array2string(np.sqrt(np.diag(cov)), precision=3)}")


def run_experiment_1(n_particles: int, seed: int):
    print("\n" + "=" * 60)
    print("Experiment 1: Gaussian x Gaussian")
    print("=" * 60)

    p1 = PointPDFGaussian(np.array([0.0, 0.0, 0.0]), np.diag([1.0, 0.2, 0.5]))
    p2 = PointPDFGaussian(np.array([1.0, 0.5, 0.0]), np.diag([0.2, 1.0, 0.5]))

    exact = PointPDFGaussian()
    exact.bayesian_fusion(p1, p2)

    start = time.time()
    particles = PointPDFParticles(n_particles, seed=seed)
    particles.bayesian_fusion(p1, p2)
    elapsed = time.time() - start

    print_estimate("closed form", exact)
    print_estimate(f"particles (N={n_particles})", particles)
    print(f"Fusion time: {elapsed * 1e3:.1f} ms, kurtosis: {particles.compute_kurtosis():.3f}")
    return particles


def run_experiment_2(n_particles: int, seed: int):
    print("\n" + "=" * 60)
    print("Experiment 2: particles observed from two robot frames")
    print("=" * 60)

    rng = default_rng(seed)
    landmark = np.array([4.0, 3.0, 1.0])
    robots = [
        Pose3D.from_xyz_ypr(0.0, 0.0, 0.0, yaw=0.5),
        Pose3D.from_xyz_ypr(6.0, 0.0, 0.0, yaw=2.0),
    ]

    observations = []
    for robot in robots:
        local = robot.inverse().apply(landmark)
        local_pdf = PointPDFGaussian(local, 0.1 * np.eye(3), rng=rng)
        obs = PointPDFParticles(n_particles, rng=rng)
        obs.copy_from(local_pdf)
        obs.change_coordinates_reference(robot)
        observations.append(obs)
        print_estimate("observation (world frame)", obs)

    fused = PointPDFParticles(n_particles, rng=rng)
    fused.bayesian_fusion(*observations)
    print_estimate("fused", fused)
    print(f"Error: {np.linalg.norm(fused.get_mean() - landmark):.4f}")
    return fused


def run_experiment_3(n_particles: int, seed: int):
    print("\n" + "=" * 60)
    print("Experiment 3: bimodal prior x Gaussian observation")
    print("=" * 60)

    prior = PointPDFSOG([
        GaussianMode(np.log(0.5), [-2.0, 0.0, 0.0], 0.5 * np.eye(3)),
        GaussianMode(np.log(0.5), [2.0, 0.0, 0.0], 0.5 * np.eye(3)),
    ])
    obs = PointPDFGaussian(np.array([1.5, 0.0, 0.0]), 2.0 * np.eye(3))

    results = {}
    for threshold in [0.0, 1.0]:
        sog = PointPDFSOG()
        sog.bayesian_fusion(prior, obs, min_mahalanobis_dist_to_drop=threshold)
        particles = PointPDFParticles(n_particles, seed=seed)
        particles.bayesian_fusion(prior, obs, min_mahalanobis_dist_to_drop=threshold)
        print(f"threshold={threshold}: {len(sog)} fused modes")
        print_estimate("  particles", particles)
        results[threshold] = particles
    return results


def plot_results(fused_1, fused_2, fused_3):
    """Scatter the fused particle sets and the x marginal of the bimodal case."""
    import matplotlib.pyplot as plt

    fig, axes = plt.subplots(1, 3, figsize=(15, 4.5))

    X = fused_1.positions
    axes[0].scatter(X[:, 0], X[:, 1], s=2, alpha=0.3)
    axes[0].set_title("Gaussian x Gaussian")

    X = fused_2.positions
    axes[1].scatter(X[:, 0], X[:, 1], s=2, alpha=0.3)
    axes[1].set_title("Two observers")

    for threshold, pdf in fused_3.items():
        axes[2].hist(pdf.positions[:, 0], bins=80, alpha=0.5, label=f"drop > {threshold}")
    axes[2].set_title("Bimodal prior, x marginal")
    axes[2].legend()

    for ax in axes[:2]:
        ax.set_xlabel("x")
        ax.set_ylabel("y")
        ax.axis("equal")

    plt.tight_layout()
    plt.show()


def main():
    parser = argparse.ArgumentParser(description="Point PDF fusion experiments")
    parser.add_argument("--n-particles", type=int, default=5000)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--no-plot", action="store_true")
    args = parser.parse_args()

    fused_1 = run_experiment_1(args.n_particles, args.seed)
    fused_2 = run_experiment_2(args.n_particles, args.seed)
    fused_3 = run_experiment_3(args.n_particles, args.seed)

    if not args.no_plot:
        try:
            plot_results(fused_1, fused_2, fused_3)
        except ImportError:
            print("matplotlib not available; skipping plots.")


if __name__ == "__main__":
    main()
