"""Data models for experiment design."""

from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(UTC)


class ImpactLevel(str, Enum):
    """Business impact of an opportunity."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Opportunity(BaseModel):
    """A detected, quantified chance to improve a metric in an area."""

    model_config = {"frozen": True}

    area: str = Field(..., min_length=1, description="Area to evolve")
    metric: str = Field(..., min_length=1, description="Metric to improve")
    current_value: float = Field(..., description="Current metric value")
    target_value: float = Field(..., description="Target metric value")
    confidence: float = Field(
        default=0.5, ge=0.0, le=1.0, description="Confidence in the opportunity"
    )
    impact: ImpactLevel | str = Field(
        default=ImpactLevel.MEDIUM,
        description="Business impact; unrecognized values get the loosest bounds",
    )

    @property
    def delta(self) -> float:
        """Absolute distance between current and target value."""
        return abs(self.target_value - self.current_value)

    @property
    def relative_delta(self) -> float:
        """Delta relative to the current value.

        inf when only the current value is 0; nan when both current value and
        delta are 0, which sizes the experiment like a large effect.
        """
        if self.current_value == 0:
            return float("inf") if self.delta else float("nan")
        return self.delta / abs(self.current_value)


class Variant(BaseModel):
    """Configuration for one arm of an experiment."""

    name: str = Field(..., description="Variant name (control or treatment)")
    description: str = Field(default="", description="Human-readable description")
    is_control: bool = Field(..., description="Whether this is the control arm")
    config: dict[str, Any] = Field(
        default_factory=dict, description="Opaque key/value configuration"
    )


class SuccessCriteria(BaseModel):
    """What the treatment must achieve to count as a win."""

    target_metric_value: float = Field(..., description="Target for primary metric")
    min_improvement: float = Field(..., ge=0.0, description="Minimum improvement")
    significance_level: float = Field(default=0.05, description="Alpha")
    min_sample_size: int = Field(..., ge=1, description="Samples needed per variant")


class SafetyBounds(BaseModel):
    """Guard rails applied while the experiment runs."""

    max_regression: float = Field(..., ge=0.0, description="Max acceptable drop")
    rollback_threshold: float = Field(
        ..., ge=0.0, description="Threshold that triggers automatic rollback"
    )
    max_error_rate: float = Field(..., ge=0.0, le=1.0, description="Max error rate")


class SampleConfig(BaseModel):
    """Sampling and timing plan."""

    min_sample_size: int = Field(..., ge=1, description="Samples per variant")
    max_duration: timedelta = Field(
        default=timedelta(days=7), description="Maximum experiment duration"
    )
    checkpoint_interval: timedelta = Field(
        default=timedelta(hours=1), description="How often to look at results"
    )


class ExperimentDesign(BaseModel):
    """A fully specified, reproducible control/treatment experiment."""

    model_config = {"frozen": True}

    id: str = Field(..., description="Unique design ID")
    name: str = Field(..., description="Human-readable name")
    hypothesis: str = Field(..., description="What the experiment tests")
    area: str = Field(..., description="Area being evolved")
    metric: str = Field(..., description="Primary metric")
    variants: list[Variant] = Field(..., description="Control and treatment")
    success_criteria: SuccessCriteria
    safety_bounds: SafetyBounds
    sample_config: SampleConfig
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def control(self) -> Variant:
        """The control variant."""
        return next(v for v in self.variants if v.is_control)

    @property
    def treatment(self) -> Variant:
        """The treatment variant."""
        return next(v for v in self.variants if not v.is_control)
