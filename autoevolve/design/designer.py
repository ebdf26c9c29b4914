"""Experiment designer.

Converts an Opportunity into an ExperimentDesign with:
- control and treatment variants (area-specific strategies)
- success criteria sized to the expected effect
- safety bounds scaled to business impact
- sampling and timing plan
"""

import logging
import uuid
from datetime import UTC, datetime, timedelta

from .models import (
    ExperimentDesign,
    ImpactLevel,
    Opportunity,
    SafetyBounds,
    SampleConfig,
    SuccessCriteria,
    Variant,
)
from .strategies import StrategyRegistry

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(UTC)


BASE_SAMPLE_SIZE = 100
SIGNIFICANCE_LEVEL = 0.05
MIN_IMPROVEMENT_FRACTION = 0.5  # Half of the targeted delta counts as success
MAX_DURATION = timedelta(days=7)
CHECKPOINT_INTERVAL = timedelta(hours=1)

# (relative effect upper bound, sample size multiplier); smaller effects need more data
SAMPLE_SIZE_MULTIPLIERS: list[tuple[float, int]] = [
    (0.05, 15),
    (0.10, 10),
    (0.20, 5),
]
LARGE_EFFECT_MULTIPLIER = 2

SAFETY_PROFILES: dict[str, SafetyBounds] = {
    ImpactLevel.CRITICAL.value: SafetyBounds(
        max_regression=0.02, rollback_threshold=0.05, max_error_rate=0.01
    ),
    ImpactLevel.HIGH.value: SafetyBounds(
        max_regression=0.05, rollback_threshold=0.10, max_error_rate=0.02
    ),
}
DEFAULT_SAFETY_PROFILE = SafetyBounds(
    max_regression=0.10, rollback_threshold=0.15, max_error_rate=0.05
)


def _impact_value(impact: ImpactLevel | str) -> str:
    return impact.value if isinstance(impact, ImpactLevel) else str(impact)


def min_sample_size_for(opportunity: Opportunity) -> int:
    """Samples per variant needed to detect the opportunity's effect.

    Args:
        opportunity: The opportunity being tested.

    Returns:
        BASE_SAMPLE_SIZE scaled by the multiplier for its relative delta.
    """
    relative = opportunity.relative_delta
    for bound, multiplier in SAMPLE_SIZE_MULTIPLIERS:
        if relative < bound:
            return BASE_SAMPLE_SIZE * multiplier
    return BASE_SAMPLE_SIZE * LARGE_EFFECT_MULTIPLIER


def safety_bounds_for(impact: ImpactLevel | str) -> SafetyBounds:
    """Safety bounds for an impact level.

    Critical and high impact get stricter bounds; everything else, including
    unrecognized values, gets the default profile.
    """
    profile = SAFETY_PROFILES.get(_impact_value(impact), DEFAULT_SAFETY_PROFILE)
    return profile.model_copy()


class ExperimentDesigner:
    """Generates reproducible experiment designs from opportunities."""

    def __init__(self, strategies: StrategyRegistry | None = None) -> None:
        """Initialize the designer.

        Args:
            strategies: Strategy registry; the built-in one is used if omitted.
        """
        self.strategies = strategies or StrategyRegistry()

    def generate(self, opportunity: Opportunity) -> ExperimentDesign:
        """Generate an experiment design for an opportunity.

        Args:
            opportunity: Opportunity to test.

        Returns:
            Immutable experiment design. Only ``id`` and ``created_at``
            differ between calls with the same opportunity.
        """
        created_at = _utcnow()
        criteria = self.success_criteria(opportunity)

        design = ExperimentDesign(
            id=str(uuid.uuid4()),
            name=f"{opportunity.area}-{created_at.isoformat()}",
            hypothesis=(
                f"Changing {opportunity.area} configuration can improve "
                f"{opportunity.metric} from {opportunity.current_value} "
                f"to {opportunity.target_value}"
            ),
            area=opportunity.area,
            metric=opportunity.metric,
            variants=[
                self.control_variant(opportunity),
                self.treatment_variant(opportunity),
            ],
            success_criteria=criteria,
            safety_bounds=safety_bounds_for(opportunity.impact),
            sample_config=SampleConfig(
                min_sample_size=criteria.min_sample_size,
                max_duration=MAX_DURATION,
                checkpoint_interval=CHECKPOINT_INTERVAL,
            ),
            created_at=created_at,
        )

        logger.info(
            "Designed experiment %s for %s/%s (min samples %d, impact %s)",
            design.id,
            opportunity.area,
            opportunity.metric,
            criteria.min_sample_size,
            _impact_value(opportunity.impact),
        )
        return design

    def control_variant(self, opportunity: Opportunity) -> Variant:
        """Control variant: the area's current configuration."""
        return Variant(
            name="control",
            description=f"Current {opportunity.area} configuration",
            is_control=True,
            config=self.strategies.baseline(opportunity.area),
        )

    def treatment_variant(self, opportunity: Opportunity) -> Variant:
        """Treatment variant: the area's strategy applied to the baseline."""
        return Variant(
            name="treatment",
            description=(
                f"Experimental {opportunity.area} configuration "
                f"targeting {opportunity.target_value}"
            ),
            is_control=False,
            config=self.strategies.treatment(
                opportunity.area, opportunity.target_value
            ),
        )

    def success_criteria(self, opportunity: Opportunity) -> SuccessCriteria:
        """Success criteria for an opportunity."""
        return SuccessCriteria(
            target_metric_value=opportunity.target_value,
            min_improvement=opportunity.delta * MIN_IMPROVEMENT_FRACTION,
            significance_level=SIGNIFICANCE_LEVEL,
            min_sample_size=min_sample_size_for(opportunity),
        )
