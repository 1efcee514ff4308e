"""
Example: Refining polynomial-approximation candidates with critpoint

A polynomial surrogate of an expensive objective yields candidate critical
points that are only approximately right. This example refines a jittered
grid of such candidates for a 2D double-well objective, validates the
gradients of the refined points, classifies them and collapses duplicates
into distinct minima.
"""

import itertools

import numpy as np

from critpoint import BatchOrchestrator, RefinementConfig, configure_logging


def double_well(x):
    """f(x) = sum (x_i^2 - 1)^2 + 0.2 sum x_i: four minima in 2D."""
    x = np.asarray(x, dtype=float)
    return float(((x**2 - 1.0) ** 2).sum() + 0.2 * x.sum())


def make_candidates(seed=0):
    rng = np.random.default_rng(seed)
    grid = np.array(list(itertools.product((-0.9, 0.05, 0.95), repeat=2)))
    return grid + rng.uniform(-0.03, 0.03, size=grid.shape)


def main():
    configure_logging(level="WARNING")
    candidates = make_candidates()
    config = RefinementConfig(
        method="nelder_mead",
        max_time_per_point=10.0,
        f_abstol=1e-14,
        x_abstol=1e-10,
        max_iterations=2000,
        gradient_tolerance=1e-5,
        max_workers=2,
    )

    print("=" * 60)
    print(f"Refining {len(candidates)} candidates with {config.method}")
    print("=" * 60)
    report = BatchOrchestrator(config).run(double_well, candidates)

    for record in report.records:
        row = record.to_dict()
        print(
            f"[{record.index}] raw=({row['raw_dim1']:+.3f}, {row['raw_dim2']:+.3f}) "
            f"f={row['raw_value']:+.5f} -> f={row['refined_value']:+.8f} "
            f"({row['convergence_reason']}, |g|={row['gradient_norm']:.1e})"
        )

    summary = report.summary
    print()
    print(f"Convergence rate: {summary.convergence_rate:.2f}")
    print(f"Best refined value: {summary.best_refined_value:.8f}")
    print(f"Gradient validation rate: {report.gradient_validation.validation_rate:.2f}")
    print(f"Distinct minima: {report.distinct_minima.n_distinct}")
    for point in report.distinct_minima_points:
        print(f"  minimum at ({point[0]:+.6f}, {point[1]:+.6f})")


if __name__ == "__main__":
    main()
