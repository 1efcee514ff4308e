"""Benchmark batch refinement across optimizer strategies and worker counts."""

import itertools
import time
from typing import Dict

import numpy as np

from critpoint.refinement import BatchOrchestrator, RefinementConfig


def double_well(x: np.ndarray) -> float:
    return float(((x**2 - 1.0) ** 2).sum() + 0.2 * x.sum())


def make_candidates(dim: int, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    grid = np.array(list(itertools.product((-0.9, 0.05, 0.95), repeat=dim)), dtype=float)
    return grid + rng.uniform(-0.02, 0.02, size=grid.shape)


def benchmark_batch_refinement(
    dim: int = 4,
    method: str = "nelder_mead",
    max_workers: int = 1,
) -> Dict[str, float]:
    """Benchmark one batch refinement run.

    Args:
        dim: Dimension of the double-well objective (3**dim candidates).
        method: Optimizer strategy name.
        max_workers: Worker threads for the batch.

    Returns:
        Dictionary with timing and call-count results.
    """
    candidates = make_candidates(dim)
    config = RefinementConfig(
        method=method,
        max_time_per_point=None,
        f_abstol=1e-12,
        x_abstol=1e-10,
        max_iterations=5000,
        max_workers=max_workers,
        show_progress=False,
    )
    orchestrator = BatchOrchestrator(config)

    # Warmup
    orchestrator.refine(double_well, candidates[:2])

    start = time.perf_counter()
    results = orchestrator.refine(double_well, candidates)
    total_time = time.perf_counter() - start

    return {
        "dim": dim,
        "n_points": len(candidates),
        "max_workers": max_workers,
        "total_time_sec": total_time,
        "time_per_point_sec": total_time / len(candidates),
        "convergence_rate": sum(r.converged for r in results) / len(results),
        "mean_f_calls": float(np.mean([r.f_calls for r in results])),
        "mean_g_calls": float(np.mean([r.g_calls for r in results])),
    }


if __name__ == "__main__":
    print("Batch refinement benchmarks")
    print("=" * 60)

    for method in ("nelder_mead", "bfgs", "lbfgs", "newton"):
        results = benchmark_batch_refinement(dim=4, method=method)
        print(f"{method} (dim=4, {results['n_points']} points):")
        print(f"  Time per point: {results['time_per_point_sec']*1e3:.2f} ms")
        print(f"  Convergence rate: {results['convergence_rate']:.2f}")
        print(f"  Mean f/g calls: {results['mean_f_calls']:.0f} / {results['mean_g_calls']:.0f}")

    print()
    for workers in (1, 2, 4):
        results = benchmark_batch_refinement(dim=4, max_workers=workers)
        print(f"nelder_mead with {workers} worker(s): {results['total_time_sec']:.3f} s")
