"""critpoint - refinement and verification of candidate critical points.

Candidates produced by a polynomial-approximation search are refined by
local optimization, validated by their gradient norm, classified from
their Hessian, deduplicated into distinct minima and checked for basin
fidelity against the true objective. Degenerate minima can be followed
along their valleys.
"""

__version__ = "0.1.0"

from .analysis import (
    BasinFidelityAssessor,
    BasinFidelityResult,
    CaptureResult,
    ClusterAssignment,
    CriticalPointKind,
    DistinctMinima,
    DistinctMinimaClusterer,
    FidelityConfig,
    GradientValidationResult,
    GradientValidator,
    HessianBasinResult,
    HessianClassification,
    HessianClassifier,
    KnownCriticalPoints,
    ObjectiveProximityResult,
    ValleyTraceResult,
    ValleyWalkConfig,
    assess_landscape_fidelity,
    batch_assess_fidelity,
    check_hessian_basin,
    check_objective_proximity,
    classification_summary,
    classify_critical_point,
    compute_capture_analysis,
    count_classifications,
    estimate_basin_radius,
    find_distinct_minima,
    missed_critical_points,
    trace_valley,
    trace_valleys,
    validate_critical_points,
)
from .logging import configure_logging, get_logger, set_log_level
from .optimize import OptimizeResult, Problem
from .refinement import (
    BatchOrchestrator,
    BatchReport,
    BatchSummary,
    ComparisonRecord,
    ConvergenceReason,
    RefinementConfig,
    RefinementResult,
    Refiner,
    ode_refinement_config,
    refine_critical_point,
    refine_critical_points_batch,
)

__all__ = [
    "__version__",
    "BasinFidelityAssessor",
    "BasinFidelityResult",
    "BatchOrchestrator",
    "BatchReport",
    "BatchSummary",
    "CaptureResult",
    "ClusterAssignment",
    "ComparisonRecord",
    "ConvergenceReason",
    "CriticalPointKind",
    "DistinctMinima",
    "DistinctMinimaClusterer",
    "FidelityConfig",
    "GradientValidationResult",
    "GradientValidator",
    "HessianBasinResult",
    "HessianClassification",
    "HessianClassifier",
    "KnownCriticalPoints",
    "ObjectiveProximityResult",
    "OptimizeResult",
    "Problem",
    "RefinementConfig",
    "RefinementResult",
    "Refiner",
    "ValleyTraceResult",
    "ValleyWalkConfig",
    "assess_landscape_fidelity",
    "batch_assess_fidelity",
    "check_hessian_basin",
    "check_objective_proximity",
    "classification_summary",
    "classify_critical_point",
    "compute_capture_analysis",
    "configure_logging",
    "count_classifications",
    "estimate_basin_radius",
    "find_distinct_minima",
    "get_logger",
    "missed_critical_points",
    "ode_refinement_config",
    "refine_critical_point",
    "refine_critical_points_batch",
    "set_log_level",
    "trace_valley",
    "trace_valleys",
    "validate_critical_points",
]
