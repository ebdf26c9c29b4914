"""Tests for the experiment designer."""

import math
from datetime import timedelta

import pytest

from autoevolve.design.designer import (
    BASE_SAMPLE_SIZE,
    DEFAULT_SAFETY_PROFILE,
    ExperimentDesigner,
    min_sample_size_for,
    safety_bounds_for,
)
from autoevolve.design.models import ImpactLevel, Opportunity
from autoevolve.design.strategies import StrategyRegistry


def _opportunity(current: float, target: float, **kwargs: object) -> Opportunity:
    return Opportunity(
        area=str(kwargs.get("area", "performance")),
        metric="latency_ms",
        current_value=current,
        target_value=target,
        impact=kwargs.get("impact", ImpactLevel.MEDIUM),  # type: ignore[arg-type]
    )


class TestMinSampleSize:
    """Tests for sample sizing by relative effect."""

    @pytest.mark.parametrize(
        "current,target,expected",
        [
            (100.0, 103.0, BASE_SAMPLE_SIZE * 15),  # 3%
            (100.0, 92.0, BASE_SAMPLE_SIZE * 10),  # 8%
            (100.0, 115.0, BASE_SAMPLE_SIZE * 5),  # 15%
            (100.0, 150.0, BASE_SAMPLE_SIZE * 2),  # 50%
        ],
    )
    def test_smaller_effects_need_more_samples(
        self, current: float, target: float, expected: int
    ) -> None:
        """Test multiplier buckets."""
        assert min_sample_size_for(_opportunity(current, target)) == expected

    def test_boundary_goes_to_next_bucket(self) -> None:
        """Test that exactly 5% falls into the x10 bucket."""
        assert min_sample_size_for(_opportunity(100.0, 105.0)) == 1000

    def test_zero_current_value(self) -> None:
        """Test that a zero baseline counts as a large effect."""
        assert min_sample_size_for(_opportunity(0.0, 1.0)) == BASE_SAMPLE_SIZE * 2

    def test_zero_current_and_target(self) -> None:
        """Test that an undefined relative delta also gets the large-effect size."""
        opportunity = _opportunity(0.0, 0.0)

        assert math.isnan(opportunity.relative_delta)
        assert min_sample_size_for(opportunity) == BASE_SAMPLE_SIZE * 2


class TestSafetyBounds:
    """Tests for impact-scaled safety bounds."""

    def test_critical_bounds(self) -> None:
        """Test the strictest profile."""
        bounds = safety_bounds_for(ImpactLevel.CRITICAL)

        assert bounds.max_regression == 0.02
        assert bounds.rollback_threshold == 0.05
        assert bounds.max_error_rate == 0.01

    def test_high_bounds(self) -> None:
        """Test the high-impact profile."""
        bounds = safety_bounds_for("high")

        assert bounds.max_regression == 0.05
        assert bounds.rollback_threshold == 0.10
        assert bounds.max_error_rate == 0.02

    @pytest.mark.parametrize("impact", [ImpactLevel.MEDIUM, ImpactLevel.LOW, "unknown"])
    def test_default_bounds(self, impact: ImpactLevel | str) -> None:
        """Test that everything else gets the default profile."""
        assert safety_bounds_for(impact) == DEFAULT_SAFETY_PROFILE

    def test_returns_independent_copy(self) -> None:
        """Test that callers cannot mutate the shared profile."""
        bounds = safety_bounds_for(ImpactLevel.LOW)
        bounds.max_regression = 0.9

        assert DEFAULT_SAFETY_PROFILE.max_regression == 0.10


class TestExperimentDesigner:
    """Tests for ExperimentDesigner.generate."""

    def test_generate_design(self, cost_opportunity: Opportunity) -> None:
        """Test the full design for a known area."""
        design = ExperimentDesigner().generate(cost_opportunity)

        assert design.area == "model-routing"
        assert design.metric == "cost_savings"
        assert design.hypothesis == (
            "Changing model-routing configuration can improve cost_savings "
            "from 0.26 to 0.56"
        )
        assert design.name.startswith("model-routing-")
        assert len(design.variants) == 2
        assert design.control.config["routingStrategy"] == "complexity-based"
        assert design.treatment.config["routingStrategy"] == "ml-optimized"
        assert design.treatment.config["fallbackModel"] == "sonnet"

    def test_success_criteria(self, cost_opportunity: Opportunity) -> None:
        """Test criteria derived from the opportunity."""
        criteria = ExperimentDesigner().generate(cost_opportunity).success_criteria

        assert criteria.target_metric_value == 0.56
        assert criteria.min_improvement == pytest.approx(0.15)
        assert criteria.significance_level == 0.05
        assert criteria.min_sample_size == 200

    def test_sample_config(self, cost_opportunity: Opportunity) -> None:
        """Test sampling plan."""
        sample_config = ExperimentDesigner().generate(cost_opportunity).sample_config

        assert sample_config.min_sample_size == 200
        assert sample_config.max_duration == timedelta(days=7)
        assert sample_config.checkpoint_interval == timedelta(hours=1)

    def test_safety_bounds_follow_impact(self, cost_opportunity: Opportunity) -> None:
        """Test that a high-impact opportunity gets high-impact bounds."""
        design = ExperimentDesigner().generate(cost_opportunity)
        assert design.safety_bounds.rollback_threshold == 0.10

    def test_unknown_area_uses_fallback(self) -> None:
        """Test an area without a strategy."""
        design = ExperimentDesigner().generate(
            _opportunity(10.0, 12.0, area="search-ranking")
        )

        assert design.control.config == {"strategy": "default"}
        assert design.treatment.config == {
            "strategy": "default",
            "experimentalMode": True,
        }

    def test_designs_differ_only_in_identity(
        self, cost_opportunity: Opportunity
    ) -> None:
        """Test reproducibility of generated designs."""
        designer = ExperimentDesigner()
        first = designer.generate(cost_opportunity)
        second = designer.generate(cost_opportunity)

        assert first.id != second.id
        ignore = {"id", "name", "created_at"}
        assert first.model_dump(exclude=ignore) == second.model_dump(exclude=ignore)

    def test_design_is_immutable(self, cost_opportunity: Opportunity) -> None:
        """Test that designs are frozen."""
        design = ExperimentDesigner().generate(cost_opportunity)

        with pytest.raises(ValueError):
            design.hypothesis = "changed"  # type: ignore[misc]

    def test_custom_registry(self, cost_opportunity: Opportunity) -> None:
        """Test that a custom strategy is used."""
        registry = StrategyRegistry()
        registry.register(
            "model-routing",
            lambda base, target: {**base, "costThreshold": target},
        )

        design = ExperimentDesigner(strategies=registry).generate(cost_opportunity)

        assert design.treatment.config["costThreshold"] == 0.56
