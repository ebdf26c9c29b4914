"""Evaluation of observed metrics against an experiment's safety bounds."""

import logging
from enum import Enum

from pydantic import BaseModel, Field

from .models import SafetyBounds

logger = logging.getLogger(__name__)

# Number of simultaneous violations that forces a rollback even if none is critical
ROLLBACK_VIOLATION_COUNT = 2


class ViolationSeverity(str, Enum):
    """How serious a bound violation is."""

    WARNING = "warning"
    CRITICAL = "critical"


class SafetyViolation(BaseModel):
    """A single bound that the observed metrics crossed."""

    bound: str = Field(..., description="Name of the violated bound")
    observed: float = Field(..., description="Observed value")
    threshold: float = Field(..., description="Threshold that was crossed")
    severity: ViolationSeverity = Field(..., description="Violation severity")
    message: str = Field(..., description="Human-readable description")


class SafetyEvaluation(BaseModel):
    """Result of checking metrics against safety bounds."""

    passed: bool = Field(..., description="No bound was violated")
    violations: list[SafetyViolation] = Field(default_factory=list)
    should_rollback: bool = Field(default=False, description="Rollback recommended")
    rollback_reason: str | None = Field(None, description="Why rollback is advised")


def evaluate_safety(
    bounds: SafetyBounds,
    regression: float = 0.0,
    error_rate: float = 0.0,
) -> SafetyEvaluation:
    """Check an experiment's observed regression and error rate.

    Regression above ``max_regression`` is a warning and above
    ``rollback_threshold`` critical. An error rate above ``max_error_rate``
    is always critical. Rollback is advised on any critical violation or on
    ROLLBACK_VIOLATION_COUNT violations of any severity.

    Args:
        bounds: Safety bounds of the experiment.
        regression: Observed relative drop of the primary metric (positive = worse).
        error_rate: Observed error rate of the treatment.

    Returns:
        The evaluation with all violations found.
    """
    violations: list[SafetyViolation] = []

    if regression > bounds.rollback_threshold:
        violations.append(
            SafetyViolation(
                bound="rollback_threshold",
                observed=regression,
                threshold=bounds.rollback_threshold,
                severity=ViolationSeverity.CRITICAL,
                message=(
                    f"Regression {regression:.1%} exceeds rollback threshold "
                    f"{bounds.rollback_threshold:.1%}"
                ),
            )
        )
    elif regression > bounds.max_regression:
        violations.append(
            SafetyViolation(
                bound="max_regression",
                observed=regression,
                threshold=bounds.max_regression,
                severity=ViolationSeverity.WARNING,
                message=(
                    f"Regression {regression:.1%} exceeds maximum "
                    f"{bounds.max_regression:.1%}"
                ),
            )
        )

    if error_rate > bounds.max_error_rate:
        violations.append(
            SafetyViolation(
                bound="max_error_rate",
                observed=error_rate,
                threshold=bounds.max_error_rate,
                severity=ViolationSeverity.CRITICAL,
                message=(
                    f"Error rate {error_rate:.1%} exceeds maximum "
                    f"{bounds.max_error_rate:.1%}"
                ),
            )
        )

    critical = [v for v in violations if v.severity == ViolationSeverity.CRITICAL]
    should_rollback = bool(critical) or len(violations) >= ROLLBACK_VIOLATION_COUNT

    reason = None
    if should_rollback:
        reason = "; ".join(v.message for v in (critical or violations))
        logger.warning("Safety bounds violated, rollback advised: %s", reason)

    return SafetyEvaluation(
        passed=not violations,
        violations=violations,
        should_rollback=should_rollback,
        rollback_reason=reason,
    )
