"""Shared pytest fixtures for autoevolve tests."""

from datetime import UTC, datetime, timedelta

import pytest

from autoevolve.analysis.analyzer import StatisticalAnalyzer
from autoevolve.analysis.models import SampleSummary
from autoevolve.design.models import ImpactLevel, Opportunity
from autoevolve.rollout.manager import RolloutManager
from autoevolve.scheduler.models import EvolutionArea
from autoevolve.scheduler.scheduler import EvolutionScheduler


class FakeClock:
    """Manually advanced clock for deterministic time-dependent tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


@pytest.fixture
def clock() -> FakeClock:
    """Return a fake clock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture
def analyzer() -> StatisticalAnalyzer:
    """Return an analyzer with default parameters."""
    return StatisticalAnalyzer()


@pytest.fixture
def rollout(clock: FakeClock) -> RolloutManager:
    """Return a rollout manager with a known initial configuration."""
    return RolloutManager(initial_config={"version": "1.0.0"}, clock=clock)


@pytest.fixture
def scheduler(clock: FakeClock, rollout: RolloutManager) -> EvolutionScheduler:
    """Return a scheduler with the default limits and a fake clock."""
    return EvolutionScheduler(
        max_concurrent_experiments=3,
        min_experiment_gap=timedelta(hours=24),
        rollout=rollout,
        clock=clock,
    )


@pytest.fixture
def model_routing_area() -> EvolutionArea:
    """Return a registered-ready model-routing area."""
    return EvolutionArea(
        name="model-routing",
        current_version="1.0.0",
        metric_names=["cost_savings"],
        priority=1,
        baseline_metrics={"cost_savings": 0.26},
    )


@pytest.fixture
def cost_opportunity() -> Opportunity:
    """Return a high-impact cost-savings opportunity for model routing."""
    return Opportunity(
        area="model-routing",
        metric="cost_savings",
        current_value=0.26,
        target_value=0.56,
        confidence=0.8,
        impact=ImpactLevel.HIGH,
    )


@pytest.fixture
def winning_samples() -> tuple[SampleSummary, SampleSummary]:
    """Return control/treatment summaries with a clear improvement."""
    return (
        SampleSummary(mean=0.26, stddev=0.05, n=1000),
        SampleSummary(mean=0.56, stddev=0.08, n=1000),
    )


@pytest.fixture
def losing_samples() -> tuple[SampleSummary, SampleSummary]:
    """Return control/treatment summaries with a clear regression."""
    return (
        SampleSummary(mean=0.90, stddev=0.05, n=600),
        SampleSummary(mean=0.70, stddev=0.08, n=600),
    )
