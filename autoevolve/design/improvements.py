"""Ranking of candidate improvements by priority, impact and ROI.

Improvements are produced by external analyzers; this module only scores,
filters and summarizes them so the most valuable ones become opportunities.
"""

from collections.abc import Sequence
from enum import Enum

from pydantic import BaseModel, Field


class ImprovementCategory(str, Enum):
    """Kind of change an improvement proposes."""

    REFACTORING = "refactoring"
    PERFORMANCE = "performance"
    MAINTAINABILITY = "maintainability"
    SECURITY = "security"
    TESTING = "testing"
    DOCUMENTATION = "documentation"


class ImprovementPriority(str, Enum):
    """Urgency of an improvement."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


PRIORITY_ORDER: dict[ImprovementPriority, int] = {
    ImprovementPriority.CRITICAL: 0,
    ImprovementPriority.HIGH: 1,
    ImprovementPriority.MEDIUM: 2,
    ImprovementPriority.LOW: 3,
}


class Improvement(BaseModel):
    """A candidate improvement with estimated impact and effort."""

    id: str = Field(..., description="Improvement ID")
    category: ImprovementCategory = Field(..., description="Improvement category")
    priority: ImprovementPriority = Field(..., description="Priority")
    impact: float = Field(..., ge=0.0, le=10.0, description="Impact on a 0-10 scale")
    effort: float = Field(..., ge=0.0, le=10.0, description="Effort on a 0-10 scale")
    description: str = Field(default="", description="What to change")
    affected_files: list[str] = Field(default_factory=list)
    roi: float | None = Field(None, description="impact / effort once calculated")


class ImprovementSummary(BaseModel):
    """Aggregate view over a set of improvements."""

    total_improvements: int = 0
    by_category: dict[ImprovementCategory, int] = Field(default_factory=dict)
    by_priority: dict[ImprovementPriority, int] = Field(default_factory=dict)
    average_impact: float = 0.0
    average_effort: float = 0.0
    average_roi: float = 0.0


def calculate_roi(improvements: Sequence[Improvement]) -> list[Improvement]:
    """Return copies of the improvements with ``roi = impact / effort``.

    Zero-effort improvements get an ROI of 0.
    """
    return [
        imp.model_copy(
            update={"roi": imp.impact / imp.effort if imp.effort > 0 else 0.0}
        )
        for imp in improvements
    ]


def rank_by_priority(improvements: Sequence[Improvement]) -> list[Improvement]:
    """Sort by priority (critical first), then by impact descending."""
    return sorted(
        improvements,
        key=lambda imp: (PRIORITY_ORDER[imp.priority], -imp.impact),
    )


def filter_by_impact(
    improvements: Sequence[Improvement], min_impact: float
) -> list[Improvement]:
    """Keep improvements with impact of at least ``min_impact``."""
    return [imp for imp in improvements if imp.impact >= min_impact]


def filter_by_effort(
    improvements: Sequence[Improvement], max_effort: float
) -> list[Improvement]:
    """Keep improvements with effort of at most ``max_effort``."""
    return [imp for imp in improvements if imp.effort <= max_effort]


def filter_by_category(
    improvements: Sequence[Improvement], category: ImprovementCategory
) -> list[Improvement]:
    """Keep improvements of one category."""
    return [imp for imp in improvements if imp.category == category]


def summarize_improvements(improvements: Sequence[Improvement]) -> ImprovementSummary:
    """Count improvements by category and priority and average their scores.

    Improvements without a calculated ROI contribute 0 to the ROI average.
    """
    by_category = {category: 0 for category in ImprovementCategory}
    by_priority = {priority: 0 for priority in ImprovementPriority}

    for imp in improvements:
        by_category[imp.category] += 1
        by_priority[imp.priority] += 1

    count = len(improvements)
    if count == 0:
        return ImprovementSummary(by_category=by_category, by_priority=by_priority)

    return ImprovementSummary(
        total_improvements=count,
        by_category=by_category,
        by_priority=by_priority,
        average_impact=sum(imp.impact for imp in improvements) / count,
        average_effort=sum(imp.effort for imp in improvements) / count,
        average_roi=sum(imp.roi or 0.0 for imp in improvements) / count,
    )
