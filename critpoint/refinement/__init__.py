"""Local refinement of candidate critical points."""

from .batch import (
    BatchOrchestrator,
    BatchReport,
    BatchSummary,
    ComparisonRecord,
    refine_critical_points_batch,
)
from .config import RefinementConfig, ode_refinement_config
from .refiner import Refiner, RefinementTimeout, refine_critical_point
from .result import ConvergenceReason, RefinementResult, determine_convergence_reason
from .strategies import (
    STRATEGIES,
    BFGSStrategy,
    LBFGSStrategy,
    NelderMeadStrategy,
    NewtonStrategy,
    OptimizerStrategy,
    get_strategy,
)

__all__ = [
    "BFGSStrategy",
    "BatchOrchestrator",
    "BatchReport",
    "BatchSummary",
    "ComparisonRecord",
    "ConvergenceReason",
    "LBFGSStrategy",
    "NelderMeadStrategy",
    "NewtonStrategy",
    "OptimizerStrategy",
    "RefinementConfig",
    "RefinementResult",
    "RefinementTimeout",
    "Refiner",
    "STRATEGIES",
    "determine_convergence_reason",
    "get_strategy",
    "ode_refinement_config",
    "refine_critical_point",
    "refine_critical_points_batch",
]
