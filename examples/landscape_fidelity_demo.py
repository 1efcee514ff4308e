"""
Example: Basin fidelity of polynomial critical points

Checks whether candidates produced by a polynomial approximation lie in the
same basin of attraction as the points they refine to, first with the
objective-proximity criterion alone and then together with the Hessian
basin radius.
"""

import numpy as np

from critpoint.analysis import BasinFidelityAssessor, FidelityConfig, estimate_basin_radius


def shifted_sphere(x):
    x = np.asarray(x, dtype=float)
    return float(((x - 0.5) ** 2).sum())


def main():
    x_min = np.full(4, 0.5)
    hessian = 2.0 * np.eye(4)
    assessor = BasinFidelityAssessor(FidelityConfig(tolerance=0.05))

    print("=" * 60)
    print("Landscape fidelity for f(x) = sum (x_i - 0.5)^2")
    print("=" * 60)
    print(f"Basin radius at x_min: {estimate_basin_radius(shifted_sphere(x_min), hessian):.4f}")

    candidates = {
        "near": np.array([0.48, 0.52, 0.49, 0.51]),
        "far": np.full(4, 0.9),
    }
    for label, x_star in candidates.items():
        for hess in (None, hessian):
            result = assessor.assess(x_star, x_min, shifted_sphere, hessian_min=hess)
            mode = "proximity only" if hess is None else "proximity + Hessian"
            print(
                f"{label:>4} ({mode}): same basin = {result.is_same_basin}, "
                f"confidence = {result.confidence:.2f}"
            )
            for criterion in result.criteria:
                print(f"       {criterion.name}: passed={criterion.passed} metric={criterion.metric:.4g}")


if __name__ == "__main__":
    main()
