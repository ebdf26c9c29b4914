"""Data models for evolution scheduling."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from autoevolve.analysis.models import AnalysisVerdict
from autoevolve.rollout.models import Deployment

# Priority assigned to areas registered without one; lower is more urgent
DEFAULT_PRIORITY = 999


class EvolutionArea(BaseModel):
    """A subsystem that can be experimented on and versioned independently."""

    name: str = Field(..., min_length=1, description="Area name")
    current_version: str = Field(..., description="Version at registration time")
    metric_names: list[str] = Field(default_factory=list, description="Tracked metrics")
    priority: int = Field(
        default=DEFAULT_PRIORITY, description="Scheduling priority (lower = sooner)"
    )
    baseline_metrics: dict[str, float] = Field(
        default_factory=dict, description="Metric values at registration"
    )


class VersionRecord(BaseModel):
    """One entry of an area's append-only version history."""

    version: str = Field(..., description="Version identifier")
    timestamp: datetime = Field(..., description="When the version became current")
    improvement: float | None = Field(None, description="Measured improvement")
    metrics: dict[str, float] = Field(default_factory=dict)


class AreaStatus(BaseModel):
    """Running counters for an area."""

    area: str
    current_version: str
    active_experiments: int = 0
    total_experiments: int = 0
    success_rate: float = 0.0
    last_experiment_at: datetime | None = None


class Experiment(BaseModel):
    """A running experiment, the unit of scheduling."""

    id: str = Field(..., description="Experiment ID")
    area: str = Field(..., description="Area under experiment")
    hypothesis: str = Field(..., description="What is being tested")
    treatment: Any = Field(None, description="Treatment payload")
    started_at: datetime = Field(..., description="Start time")
    paused: bool = Field(default=False, description="Paused experiments do not count")
    design_id: str | None = Field(None, description="ExperimentDesign this runs")


class ExperimentOutcome(BaseModel):
    """Result reported when an experiment completes."""

    success: bool
    improvement: float | None = None
    new_version: str | None = None


class ImprovementReport(BaseModel):
    """Per-area evolution report."""

    area: str
    current_version: str
    total_experiments: int
    successful_experiments: int
    success_rate: float
    total_improvement: float


class EvolutionSummary(BaseModel):
    """Report across every registered area."""

    total_areas: int
    total_experiments: int
    overall_success_rate: float
    areas: dict[str, ImprovementReport] = Field(default_factory=dict)


class ExperimentEvaluation(BaseModel):
    """What happened when an experiment's results were evaluated."""

    experiment_id: str
    area: str
    verdict: AnalysisVerdict
    completed: bool = Field(..., description="Experiment left the active set")
    deployment: Deployment | None = Field(None, description="Rollout, if deployed")
    new_version: str | None = Field(None, description="Version recorded on success")
