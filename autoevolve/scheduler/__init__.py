"""Evolution scheduling across independently versioned areas."""

from .models import (
    DEFAULT_PRIORITY,
    AreaStatus,
    EvolutionArea,
    EvolutionSummary,
    Experiment,
    ExperimentEvaluation,
    ExperimentOutcome,
    ImprovementReport,
    VersionRecord,
)
from .reporter import format_summary_console, format_summary_json, print_summary
from .scheduler import EvolutionScheduler

__all__ = [
    # Models
    "DEFAULT_PRIORITY",
    "AreaStatus",
    "EvolutionArea",
    "EvolutionSummary",
    "Experiment",
    "ExperimentEvaluation",
    "ExperimentOutcome",
    "ImprovementReport",
    "VersionRecord",
    # Scheduler
    "EvolutionScheduler",
    # Reporter
    "format_summary_console",
    "format_summary_json",
    "print_summary",
]
