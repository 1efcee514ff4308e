"""Post-refinement analysis: gradient validation, Hessian classification,
distinct-minima clustering, basin fidelity, capture analysis and valley
walking."""

from .capture import (
    DEFAULT_TOLERANCE_FRACTIONS,
    CaptureResult,
    KnownCriticalPoints,
    compute_capture_analysis,
    missed_critical_points,
)
from .classification import (
    CriticalPointKind,
    HessianClassification,
    HessianClassifier,
    classification_summary,
    classify_critical_point,
    count_classifications,
)
from .clustering import (
    ClusterAssignment,
    DistinctMinima,
    DistinctMinimaClusterer,
    UnionFind,
    find_distinct_minima,
)
from .fidelity import (
    BasinFidelityAssessor,
    BasinFidelityResult,
    FidelityConfig,
    FidelityCriterion,
    HessianBasinResult,
    ObjectiveProximityResult,
    assess_landscape_fidelity,
    batch_assess_fidelity,
    check_hessian_basin,
    check_objective_proximity,
    estimate_basin_radius,
)
from .gradient_validation import (
    GradientValidationResult,
    GradientValidator,
    PointGradient,
    validate_critical_points,
)
from .valley import (
    ValleyTraceResult,
    ValleyWalkConfig,
    WalkMethod,
    detect_valley,
    project_to_valley,
    trace_valley,
    trace_valleys,
    valley_starts,
    valley_tangent,
    walk_valley,
)

__all__ = [
    "BasinFidelityAssessor",
    "BasinFidelityResult",
    "CaptureResult",
    "ClusterAssignment",
    "CriticalPointKind",
    "DEFAULT_TOLERANCE_FRACTIONS",
    "DistinctMinima",
    "DistinctMinimaClusterer",
    "FidelityConfig",
    "FidelityCriterion",
    "GradientValidationResult",
    "GradientValidator",
    "HessianBasinResult",
    "HessianClassification",
    "HessianClassifier",
    "KnownCriticalPoints",
    "ObjectiveProximityResult",
    "PointGradient",
    "UnionFind",
    "ValleyTraceResult",
    "ValleyWalkConfig",
    "WalkMethod",
    "assess_landscape_fidelity",
    "batch_assess_fidelity",
    "check_hessian_basin",
    "check_objective_proximity",
    "classification_summary",
    "classify_critical_point",
    "compute_capture_analysis",
    "count_classifications",
    "detect_valley",
    "estimate_basin_radius",
    "find_distinct_minima",
    "missed_critical_points",
    "project_to_valley",
    "trace_valley",
    "trace_valleys",
    "validate_critical_points",
    "valley_starts",
    "valley_tangent",
    "walk_valley",
]
