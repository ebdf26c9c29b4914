"""Evolution scheduler.

Coordinates experiments across many areas that evolve independently but
share global limits:

- at most ``max_concurrent_experiments`` unpaused experiments at once
- at least ``min_experiment_gap`` between experiment starts in one area
- priority-based choice of the next area to experiment on
- append-only version history per area with rollback to any version

It also composes the other components: opportunities are designed by
ExperimentDesigner, results judged by StatisticalAnalyzer, and winners
rolled out through RolloutManager.

Example:
    scheduler = EvolutionScheduler(max_concurrent_experiments=3)
    scheduler.register_area(
        EvolutionArea(name="model-routing", current_version="1.0.0", priority=1)
    )
    experiment, design = scheduler.propose_experiment(opportunity)
    evaluation = scheduler.evaluate_experiment(
        "model-routing", control_summary, treatment_summary, new_version="1.1.0"
    )
"""

import logging
import threading
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from structlog.contextvars import bound_contextvars

from autoevolve.analysis.analyzer import StatisticalAnalyzer
from autoevolve.analysis.models import Recommendation, SampleSummary
from autoevolve.core.exceptions import (
    AreaNotFoundError,
    ConcurrencyExceededError,
    CooldownViolationError,
    InvalidConfigurationError,
    NotFoundError,
)
from autoevolve.design.designer import ExperimentDesigner
from autoevolve.design.models import ExperimentDesign, Opportunity
from autoevolve.rollout.manager import RolloutManager
from autoevolve.rollout.models import Deployment, DeploymentConfig

from .models import (
    AreaStatus,
    EvolutionArea,
    EvolutionSummary,
    Experiment,
    ExperimentEvaluation,
    ExperimentOutcome,
    ImprovementReport,
    VersionRecord,
)

if TYPE_CHECKING:
    from autoevolve.core.settings import EvolutionSettings

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT_EXPERIMENTS = 3
DEFAULT_MIN_EXPERIMENT_GAP = timedelta(hours=24)


def _utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(UTC)


@dataclass
class _AreaState:
    """Mutable bookkeeping for one registered area."""

    info: EvolutionArea
    status: AreaStatus
    version_history: list[VersionRecord] = field(default_factory=list)
    last_experiment_time: datetime | None = None
    successes: int = 0


class EvolutionScheduler:
    """Schedules experiments across areas and tracks their versions.

    All state is owned by the instance and guarded by one re-entrant lock,
    so the concurrency check-then-increment and the cooldown
    check-then-stamp are atomic.
    """

    def __init__(
        self,
        max_concurrent_experiments: int = DEFAULT_MAX_CONCURRENT_EXPERIMENTS,
        min_experiment_gap: timedelta = DEFAULT_MIN_EXPERIMENT_GAP,
        designer: ExperimentDesigner | None = None,
        analyzer: StatisticalAnalyzer | None = None,
        rollout: RolloutManager | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the scheduler.

        Args:
            max_concurrent_experiments: Limit on unpaused experiments (> 0).
            min_experiment_gap: Cooldown between starts in one area.
            designer: Experiment designer used by ``propose_experiment``.
            analyzer: Analyzer used by ``evaluate_experiment``.
            rollout: Rollout manager used to deploy winners.
            clock: Source of the current time.

        Raises:
            InvalidConfigurationError: If the concurrency limit is not positive
                or the gap is negative.
        """
        if max_concurrent_experiments <= 0:
            raise InvalidConfigurationError(
                "max_concurrent_experiments must be positive",
                field="max_concurrent_experiments",
                value=max_concurrent_experiments,
            )
        if min_experiment_gap < timedelta(0):
            raise InvalidConfigurationError(
                "min_experiment_gap must not be negative",
                field="min_experiment_gap",
                value=min_experiment_gap,
            )

        self.max_concurrent_experiments = max_concurrent_experiments
        self.min_experiment_gap = min_experiment_gap
        self.designer = designer or ExperimentDesigner()
        self.analyzer = analyzer or StatisticalAnalyzer()
        self.rollout = rollout or RolloutManager()
        self._clock = clock

        self._areas: dict[str, _AreaState] = {}
        self._experiments: dict[str, Experiment] = {}
        self._designs: dict[str, ExperimentDesign] = {}
        self._running = False
        self._lock = threading.RLock()

    @classmethod
    def from_settings(
        cls,
        settings: "EvolutionSettings",
        clock: Callable[[], datetime] = _utcnow,
    ) -> "EvolutionScheduler":
        """Build a scheduler and its collaborators from settings."""
        return cls(
            max_concurrent_experiments=settings.scheduler.max_concurrent_experiments,
            min_experiment_gap=settings.scheduler.min_experiment_gap,
            analyzer=StatisticalAnalyzer.from_settings(settings),
            rollout=RolloutManager.from_settings(settings),
            clock=clock,
        )

    def get_config(self) -> dict[str, Any]:
        """Get the scheduling limits."""
        return {
            "max_concurrent_experiments": self.max_concurrent_experiments,
            "min_experiment_gap": self.min_experiment_gap,
        }

    # ==================== Areas ====================

    def _area(self, name: str) -> _AreaState:
        state = self._areas.get(name)
        if state is None:
            raise AreaNotFoundError(name)
        return state

    def register_area(self, area: EvolutionArea) -> AreaStatus:
        """Register an area; its current version becomes the baseline record.

        Raises:
            InvalidConfigurationError: If an area with that name is already
                registered.
        """
        with self._lock, bound_contextvars(area=area.name):
            if area.name in self._areas:
                raise InvalidConfigurationError(
                    f"Area already registered: {area.name}",
                    field="name",
                    value=area.name,
                )
            now = self._clock()
            state = _AreaState(
                info=area,
                status=AreaStatus(area=area.name, current_version=area.current_version),
                version_history=[
                    VersionRecord(
                        version=area.current_version,
                        timestamp=now,
                        metrics=dict(area.baseline_metrics),
                    )
                ],
            )
            self._areas[area.name] = state

            logger.info(
                "Registered area %s at version %s (priority %d)",
                area.name,
                area.current_version,
                area.priority,
            )
        return state.status.model_copy()

    def list_areas(self) -> list[str]:
        """Names of registered areas in registration order."""
        with self._lock:
            return list(self._areas)

    def get_area_status(self, area: str) -> AreaStatus:
        """Get a snapshot of an area's counters."""
        with self._lock:
            return self._area(area).status.model_copy()

    # ==================== Scheduling ====================

    def _cooldown_remaining(self, state: _AreaState, now: datetime) -> timedelta:
        if state.last_experiment_time is None:
            return timedelta(0)
        elapsed = now - state.last_experiment_time
        return max(self.min_experiment_gap - elapsed, timedelta(0))

    def _active_count(self) -> int:
        return sum(1 for e in self._experiments.values() if not e.paused)

    def get_next_experiment(self) -> str | None:
        """Pick the most urgent area whose cooldown has elapsed.

        Returns:
            Name of the area with the lowest priority number among eligible
            areas (ties go to the earliest registered), or None.
        """
        with self._lock:
            now = self._clock()
            eligible = [
                state
                for state in self._areas.values()
                if self._cooldown_remaining(state, now) == timedelta(0)
            ]
            if not eligible:
                return None
            # min() keeps the first of equal priorities
            return min(eligible, key=lambda s: s.info.priority).info.name

    def start_experiment(
        self,
        area: str,
        hypothesis: str,
        treatment: Any = None,
        design_id: str | None = None,
    ) -> Experiment:
        """Start an experiment in an area.

        Args:
            area: Area name.
            hypothesis: What the experiment tests.
            treatment: Treatment payload (opaque).
            design_id: Optional ExperimentDesign id the experiment runs.

        Returns:
            The started experiment.

        Raises:
            ConcurrencyExceededError: If the concurrency limit is reached.
            AreaNotFoundError: If the area is not registered.
            CooldownViolationError: If the area's minimum gap has not elapsed.
        """
        with self._lock, bound_contextvars(area=area):
            active = self._active_count()
            if active >= self.max_concurrent_experiments:
                logger.info(
                    "Refused experiment in %s: %d/%d experiments active",
                    area,
                    active,
                    self.max_concurrent_experiments,
                )
                raise ConcurrencyExceededError(
                    limit=self.max_concurrent_experiments, active=active
                )

            state = self._area(area)
            now = self._clock()
            remaining = self._cooldown_remaining(state, now)
            if remaining > timedelta(0):
                logger.info(
                    "Refused experiment in %s: cooldown has %s remaining",
                    area,
                    remaining,
                )
                raise CooldownViolationError(area=area, remaining=remaining)

            experiment = Experiment(
                id=f"exp-{area}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}",
                area=area,
                hypothesis=hypothesis,
                treatment=treatment,
                started_at=now,
                design_id=design_id,
            )
            self._experiments[experiment.id] = experiment

            state.status.active_experiments += 1
            state.status.total_experiments += 1
            state.status.last_experiment_at = now
            state.last_experiment_time = now

            logger.info("Started experiment %s: %s", experiment.id, hypothesis)
        return experiment.model_copy()

    def _active_for(self, area: str) -> Experiment | None:
        return next((e for e in self._experiments.values() if e.area == area), None)

    def complete_experiment(self, area: str, outcome: ExperimentOutcome) -> None:
        """Complete the oldest active experiment in an area.

        Updates the running success rate and, on success with a new
        version, upgrades the area.

        Raises:
            AreaNotFoundError: If the area is not registered.
        """
        with self._lock, bound_contextvars(area=area):
            state = self._area(area)

            experiment = self._active_for(area)
            if experiment is not None:
                del self._experiments[experiment.id]
                self._designs.pop(experiment.id, None)
                state.status.active_experiments -= 1
            else:
                logger.warning("No active experiment to complete in %s", area)

            total = state.status.total_experiments
            if outcome.success:
                state.successes = min(state.successes + 1, total)
            if total > 0:
                state.status.success_rate = state.successes / total

            logger.info(
                "Completed experiment %s in %s: %s",
                experiment.id if experiment else "-",
                area,
                "success" if outcome.success else "failure",
            )

            if outcome.success and outcome.new_version:
                self.upgrade_version(
                    area, outcome.new_version, improvement=outcome.improvement
                )

    def rollback_experiment(self, area: str, reason: str) -> None:
        """Abandon an area's active experiment, counting it as a failure."""
        logger.warning("Rolling back experiment in %s: %s", area, reason)
        self.complete_experiment(area, ExperimentOutcome(success=False))

    def get_active_experiments(self) -> list[Experiment]:
        """All tracked experiments, paused ones included."""
        with self._lock:
            return [e.model_copy() for e in self._experiments.values()]

    def pause_all(self) -> None:
        """Pause every tracked experiment; paused ones free concurrency slots."""
        with self._lock:
            for experiment in self._experiments.values():
                experiment.paused = True
        logger.info("Paused all experiments")

    def resume_all(self) -> None:
        """Resume every tracked experiment."""
        with self._lock:
            for experiment in self._experiments.values():
                experiment.paused = False
        logger.info("Resumed all experiments")

    # ==================== Versions ====================

    def upgrade_version(
        self,
        area: str,
        new_version: str,
        improvement: float | None = None,
        metrics: dict[str, float] | None = None,
    ) -> None:
        """Make a new version current and append it to the history."""
        with self._lock, bound_contextvars(area=area):
            state = self._area(area)
            state.status.current_version = new_version
            state.version_history.append(
                VersionRecord(
                    version=new_version,
                    timestamp=self._clock(),
                    improvement=improvement,
                    metrics=metrics or {},
                )
            )
            logger.info("Upgraded %s to version %s", area, new_version)

    def get_version_history(self, area: str) -> list[VersionRecord]:
        """Copy of an area's version history, baseline first."""
        with self._lock:
            return [r.model_copy() for r in self._area(area).version_history]

    def rollback_to_version(self, area: str, version: str) -> None:
        """Make an earlier version current without truncating history."""
        with self._lock, bound_contextvars(area=area):
            state = self._area(area)
            previous = state.status.current_version
            state.status.current_version = version
            logger.warning("Rolled %s back from %s to %s", area, previous, version)

    # ==================== Reporting ====================

    def generate_report(self, area: str) -> ImprovementReport:
        """Summarize an area's experiments and accumulated improvement."""
        with self._lock:
            state = self._area(area)
            status = state.status
            total_improvement = sum(
                record.improvement or 0.0 for record in state.version_history[1:]
            )
            return ImprovementReport(
                area=area,
                current_version=status.current_version,
                total_experiments=status.total_experiments,
                successful_experiments=state.successes,
                success_rate=status.success_rate,
                total_improvement=total_improvement,
            )

    def generate_summary(self) -> EvolutionSummary:
        """Aggregate every area's report.

        The overall success rate weights each area by its experiment count.
        """
        with self._lock:
            reports = {name: self.generate_report(name) for name in self._areas}

        total_experiments = sum(r.total_experiments for r in reports.values())
        total_successes = sum(r.successful_experiments for r in reports.values())
        return EvolutionSummary(
            total_areas=len(reports),
            total_experiments=total_experiments,
            overall_success_rate=(
                total_successes / total_experiments if total_experiments > 0 else 0.0
            ),
            areas=reports,
        )

    # ==================== Lifecycle ====================

    def start(self) -> None:
        """Mark the scheduler as running."""
        self._running = True
        logger.info("Evolution scheduler started")

    def stop(self) -> None:
        """Mark the scheduler as stopped."""
        self._running = False
        logger.info("Evolution scheduler stopped")

    def is_running(self) -> bool:
        """Whether the scheduler is running."""
        return self._running

    # ==================== Orchestration ====================

    def propose_experiment(
        self, opportunity: Opportunity
    ) -> tuple[Experiment, ExperimentDesign]:
        """Design an experiment for an opportunity and start it.

        Raises:
            AreaNotFoundError: If the opportunity's area is not registered.
            ConcurrencyExceededError: If the concurrency limit is reached.
            CooldownViolationError: If the area's cooldown has not elapsed.
        """
        design = self.designer.generate(opportunity)
        with self._lock:
            experiment = self.start_experiment(
                opportunity.area,
                hypothesis=design.hypothesis,
                treatment=design.treatment.config,
                design_id=design.id,
            )
            self._designs[experiment.id] = design
        return experiment, design

    def evaluate_experiment(
        self,
        area: str,
        control: SampleSummary,
        treatment: SampleSummary,
        new_version: str | None = None,
    ) -> ExperimentEvaluation:
        """Judge an area's active experiment and act on the recommendation.

        - deploy: roll the treatment out behind a canary, complete the
          experiment as a success and record ``new_version``
        - rollback / no_change: complete the experiment as a failure
        - continue: leave the experiment running

        Raises:
            AreaNotFoundError: If the area is not registered.
            NotFoundError: If the area has no active experiment.
        """
        with self._lock, bound_contextvars(area=area):
            self._area(area)
            experiment = self._active_for(area)
            if experiment is None:
                raise NotFoundError(
                    f"No active experiment in area: {area}",
                    kind="experiment",
                    key=area,
                )
            design = self._designs.get(experiment.id)

            verdict = self.analyzer.analyze(control, treatment)
            logger.info(
                "Experiment %s verdict: %s (p=%.4f, improvement=%.4f)",
                experiment.id,
                verdict.recommendation.value,
                verdict.p_value,
                verdict.improvement,
            )

            if verdict.recommendation == Recommendation.CONTINUE:
                return ExperimentEvaluation(
                    experiment_id=experiment.id,
                    area=area,
                    verdict=verdict,
                    completed=False,
                )

            deployment: Deployment | None = None
            if verdict.recommendation == Recommendation.DEPLOY:
                deployment = self._deploy_treatment(experiment, design)
                self.complete_experiment(
                    area,
                    ExperimentOutcome(
                        success=True,
                        improvement=verdict.improvement,
                        new_version=new_version,
                    ),
                )
            else:
                self.complete_experiment(area, ExperimentOutcome(success=False))

            return ExperimentEvaluation(
                experiment_id=experiment.id,
                area=area,
                verdict=verdict,
                completed=True,
                deployment=deployment,
                new_version=new_version if deployment is not None else None,
            )

    def _deploy_treatment(
        self, experiment: Experiment, design: ExperimentDesign | None
    ) -> Deployment:
        if design is not None:
            config = design.treatment.config
            threshold = design.safety_bounds.rollback_threshold
        else:
            treatment = experiment.treatment
            config = treatment if isinstance(treatment, dict) else {}
            threshold = self.rollout.default_health_threshold

        return self.rollout.deploy(
            DeploymentConfig(
                variant_id=experiment.id,
                variant=config,
                rollback_threshold=threshold,
                canary_percent=self.rollout.canary_steps[0],
            )
        )

    def abort_deployment(
        self,
        deployment_id: str,
        area: str,
        previous_version: str,
        reason: str | None = None,
    ) -> Deployment:
        """Roll a deployment back and return the area to an earlier version.

        Raises:
            AreaNotFoundError: If the area is not registered.
            DeploymentNotFoundError: If the deployment is unknown.
            AlreadyTerminalError: If the deployment was already rolled back.
        """
        with self._lock, bound_contextvars(area=area, deployment_id=deployment_id):
            self._area(area)
            deployment = self.rollout.rollback(deployment_id, reason)
            self.rollback_to_version(area, previous_version)
            return deployment
