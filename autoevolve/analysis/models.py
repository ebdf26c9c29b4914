"""Data models for experiment result analysis."""

import math
from collections.abc import Sequence
from enum import Enum

from pydantic import BaseModel, Field


class Recommendation(str, Enum):
    """What to do with the treatment after analysis."""

    DEPLOY = "deploy"  # Significant improvement
    ROLLBACK = "rollback"  # Significant regression
    CONTINUE = "continue"  # Not significant yet, collect more data
    NO_CHANGE = "no_change"  # Means are identical


class SampleSummary(BaseModel):
    """Aggregate statistics for one variant's observations."""

    mean: float = Field(..., description="Sample mean")
    stddev: float = Field(default=0.0, ge=0.0, description="Sample standard deviation")
    n: int = Field(..., ge=0, description="Number of observations")

    @property
    def variance(self) -> float:
        """Sample variance (stddev squared)."""
        return self.stddev**2

    @classmethod
    def from_values(cls, values: Sequence[float]) -> "SampleSummary":
        """Summarize raw observations (sample std with ddof=1).

        Args:
            values: Observed metric values.

        Returns:
            Summary with mean, sample standard deviation and count.
        """
        n = len(values)
        if n == 0:
            return cls(mean=0.0, stddev=0.0, n=0)

        mean = sum(values) / n
        if n > 1:
            variance = sum((x - mean) ** 2 for x in values) / (n - 1)
            stddev = math.sqrt(variance)
        else:
            stddev = 0.0
        return cls(mean=mean, stddev=stddev, n=n)


class ConfidenceInterval(BaseModel):
    """Confidence interval for the absolute improvement."""

    lower: float = Field(..., description="Lower bound")
    upper: float = Field(..., description="Upper bound")
    level: float = Field(default=0.95, description="Confidence level, e.g. 0.95")

    @property
    def width(self) -> float:
        """Distance between the bounds."""
        return self.upper - self.lower

    def contains(self, value: float) -> bool:
        """Check whether a value lies inside the interval."""
        return self.lower <= value <= self.upper


class WelchResult(BaseModel):
    """Outcome of Welch's unequal-variance t-test."""

    test_statistic: float = Field(..., description="t statistic (variant - control)")
    p_value: float = Field(..., description="Approximate two-tailed p-value")
    degrees_of_freedom: int = Field(..., description="Welch-Satterthwaite df")
    standard_error: float = Field(..., description="Standard error of the difference")


class AnalysisVerdict(BaseModel):
    """Full verdict for a control/treatment comparison."""

    significant: bool = Field(..., description="p_value below significance level")
    p_value: float = Field(..., description="Two-tailed p-value")
    effect_size: float = Field(..., description="Cohen's d (magnitude)")
    improvement: float = Field(..., description="variant.mean - control.mean")
    relative_improvement: float = Field(
        ..., description="improvement / |control.mean| (0 if control mean is 0)"
    )
    confidence_interval: ConfidenceInterval = Field(
        ..., description="Confidence interval for the improvement"
    )
    recommendation: Recommendation = Field(..., description="Recommended action")
    confidence: float = Field(..., description="Confidence in the recommendation")
    has_regression: bool = Field(..., description="Significant negative change")
    test_statistic: float = Field(..., description="Welch's t statistic")
    degrees_of_freedom: int = Field(..., description="Degrees of freedom used")
    warnings: list[str] = Field(default_factory=list, description="Data warnings")

    @property
    def should_deploy(self) -> bool:
        """Whether the treatment should be rolled out."""
        return self.recommendation == Recommendation.DEPLOY
