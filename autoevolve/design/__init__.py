"""Experiment design: turning opportunities into control/treatment experiments."""

from .designer import ExperimentDesigner, min_sample_size_for, safety_bounds_for
from .improvements import (
    Improvement,
    ImprovementCategory,
    ImprovementPriority,
    ImprovementSummary,
    calculate_roi,
    filter_by_category,
    filter_by_effort,
    filter_by_impact,
    rank_by_priority,
    summarize_improvements,
)
from .models import (
    ExperimentDesign,
    ImpactLevel,
    Opportunity,
    SafetyBounds,
    SampleConfig,
    SuccessCriteria,
    Variant,
)
from .safety import (
    SafetyEvaluation,
    SafetyViolation,
    ViolationSeverity,
    evaluate_safety,
)
from .strategies import StrategyRegistry, TreatmentStrategy

__all__ = [
    # Models
    "ExperimentDesign",
    "ImpactLevel",
    "Opportunity",
    "SafetyBounds",
    "SampleConfig",
    "SuccessCriteria",
    "Variant",
    # Designer
    "ExperimentDesigner",
    "StrategyRegistry",
    "TreatmentStrategy",
    "min_sample_size_for",
    "safety_bounds_for",
    # Safety
    "SafetyEvaluation",
    "SafetyViolation",
    "ViolationSeverity",
    "evaluate_safety",
    # Improvements
    "Improvement",
    "ImprovementCategory",
    "ImprovementPriority",
    "ImprovementSummary",
    "calculate_roi",
    "filter_by_category",
    "filter_by_effort",
    "filter_by_impact",
    "rank_by_priority",
    "summarize_improvements",
]
