"""Canary rollout manager.

Owns the deployment state machine:

    deploying -> deployed (canary active) -> deployed (100%) | rolled_back

``deploy`` swaps the manager's current configuration eagerly; the canary
percentage only gates how much traffic is exposed to it (see CanaryRouter).
Every deployment carries a RollbackPlan captured before the swap, and
``rollback`` restores exactly that snapshot. A rolled-back deployment is
terminal: a second rollback or any canary change raises AlreadyTerminalError.
"""

import logging
import threading
import time
import uuid
from collections.abc import Callable, Sequence
from copy import deepcopy
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from structlog.contextvars import bound_contextvars

from autoevolve.core.exceptions import (
    AlreadyTerminalError,
    DeploymentNotFoundError,
    InvalidConfigurationError,
)

from .models import (
    Deployment,
    DeploymentConfig,
    DeploymentStatus,
    HealthCheck,
    RollbackPlan,
    is_canary_active,
)

if TYPE_CHECKING:
    from autoevolve.core.settings import EvolutionSettings

logger = logging.getLogger(__name__)

DEFAULT_HEALTH_THRESHOLD = 0.10
DEFAULT_CANARY_STEPS: tuple[float, ...] = (5.0, 25.0, 50.0, 100.0)
DEFAULT_ROLLBACK_REASON = "Rollback requested"


def _utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(UTC)


def _generate_deployment_id() -> str:
    return f"deploy-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


class RolloutManager:
    """Deploys variant configurations behind a canary and rolls them back.

    Thread-safe: the manager lock guards the deployment map and the current
    configuration; a per-deployment lock serializes transitions of one id.
    """

    def __init__(
        self,
        initial_config: dict[str, Any] | None = None,
        default_health_threshold: float = DEFAULT_HEALTH_THRESHOLD,
        honor_deployment_threshold: bool = True,
        canary_steps: Sequence[float] = DEFAULT_CANARY_STEPS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the rollout manager.

        Args:
            initial_config: Configuration active before any deployment.
            default_health_threshold: Error rate that fails a health check when
                deployment thresholds are not honored.
            honor_deployment_threshold: Use each deployment's configured
                rollback_threshold in health checks.
            canary_steps: Increasing percentages used by ``advance``.
            clock: Source of the current time.
        """
        self.default_health_threshold = default_health_threshold
        self.honor_deployment_threshold = honor_deployment_threshold
        self.canary_steps = sorted(canary_steps)
        self._clock = clock

        self._current_config: dict[str, Any] = deepcopy(initial_config or {})
        self._deployments: dict[str, Deployment] = {}
        self._error_rates: dict[str, float] = {}
        self._deployment_locks: dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: "EvolutionSettings",
        initial_config: dict[str, Any] | None = None,
    ) -> "RolloutManager":
        """Build a manager from the ``rollout`` settings group."""
        return cls(
            initial_config=initial_config,
            default_health_threshold=settings.rollout.default_health_threshold,
            honor_deployment_threshold=settings.rollout.honor_deployment_threshold,
            canary_steps=settings.rollout.canary_steps,
        )

    def _get(self, deployment_id: str) -> Deployment:
        deployment = self._deployments.get(deployment_id)
        if deployment is None:
            raise DeploymentNotFoundError(deployment_id)
        return deployment

    def _lock_for(self, deployment_id: str) -> threading.Lock:
        with self._lock:
            if deployment_id not in self._deployments:
                raise DeploymentNotFoundError(deployment_id)
            return self._deployment_locks[deployment_id]

    def get_current_config(self) -> dict[str, Any]:
        """Get a copy of the configuration currently in effect."""
        with self._lock:
            return deepcopy(self._current_config)

    def deploy(self, config: DeploymentConfig) -> Deployment:
        """Deploy a variant configuration with an initial canary percentage.

        Args:
            config: What to deploy and how.

        Returns:
            Snapshot of the new deployment.

        Raises:
            InvalidConfigurationError: If canary_percent is outside 0-100.
        """
        if not 0 <= config.canary_percent <= 100:
            raise InvalidConfigurationError(
                "Invalid canary percentage: must be 0-100",
                field="canary_percent",
                value=config.canary_percent,
            )

        with self._lock:
            now = self._clock()
            rollback_plan = RollbackPlan(
                previous_config=deepcopy(self._current_config),
                created_at=now,
            )
            deployment_id = _generate_deployment_id()
            while deployment_id in self._deployments:
                deployment_id = _generate_deployment_id()

            deployment = Deployment(
                deployment_id=deployment_id,
                variant_id=config.variant_id,
                status=DeploymentStatus.DEPLOYED,
                canary_percent=config.canary_percent,
                canary_active=is_canary_active(config.canary_percent),
                rollback_plan=rollback_plan,
                rollback_threshold=config.rollback_threshold,
                deployed_at=now,
                current_config=deepcopy(config.variant),
            )

            self._deployments[deployment_id] = deployment
            self._deployment_locks[deployment_id] = threading.Lock()
            self._error_rates[deployment_id] = 0.0
            self._current_config = deepcopy(config.variant)

        with bound_contextvars(deployment_id=deployment_id):
            logger.info(
                "Deployed variant %s as %s at %.1f%% canary",
                config.variant_id,
                deployment_id,
                config.canary_percent,
            )
        return deployment.model_copy(deep=True)

    def increase_canary(self, deployment_id: str, new_percent: float) -> Deployment:
        """Change the canary percentage of a deployment.

        The percentage is not range-checked here; widening to 100 ends the
        canary phase.

        Raises:
            DeploymentNotFoundError: If the deployment is unknown.
            AlreadyTerminalError: If the deployment was rolled back.
        """
        with (
            self._lock_for(deployment_id),
            bound_contextvars(deployment_id=deployment_id),
        ):
            deployment = self._get(deployment_id)
            if deployment.is_terminal:
                raise AlreadyTerminalError(deployment_id)

            previous = deployment.canary_percent
            deployment.canary_percent = new_percent
            deployment.canary_active = is_canary_active(new_percent)

            logger.info(
                "Canary for %s moved from %.1f%% to %.1f%%",
                deployment_id,
                previous,
                new_percent,
            )
            return deployment.model_copy(deep=True)

    def record_error_rate(self, deployment_id: str, error_rate: float) -> None:
        """Record the latest observed error rate for a deployment.

        Raises:
            DeploymentNotFoundError: If the deployment is unknown.
        """
        with self._lock_for(deployment_id):
            self._error_rates[deployment_id] = error_rate

    def health_threshold(self, deployment_id: str) -> float:
        """Error-rate threshold applied to a deployment's health checks."""
        with self._lock:
            deployment = self._get(deployment_id)
            if self.honor_deployment_threshold:
                return deployment.rollback_threshold
            return self.default_health_threshold

    def check_health(self, deployment_id: str) -> HealthCheck:
        """Compare the observed error rate against the health threshold.

        Raises:
            DeploymentNotFoundError: If the deployment is unknown.
        """
        threshold = self.health_threshold(deployment_id)
        with self._lock_for(deployment_id):
            error_rate = self._error_rates.get(deployment_id, 0.0)

        check = HealthCheck(
            deployment_id=deployment_id,
            healthy=error_rate < threshold,
            error_rate=error_rate,
            threshold=threshold,
            timestamp=self._clock(),
        )
        if not check.healthy:
            with bound_contextvars(deployment_id=deployment_id):
                logger.warning(
                    "Deployment %s unhealthy: error rate %.4f >= threshold %.4f",
                    deployment_id,
                    error_rate,
                    threshold,
                )
        return check

    def rollback(self, deployment_id: str, reason: str | None = None) -> Deployment:
        """Roll a deployment back to its captured previous configuration.

        Raises:
            DeploymentNotFoundError: If the deployment is unknown.
            AlreadyTerminalError: If it was already rolled back.
        """
        with (
            self._lock_for(deployment_id),
            bound_contextvars(deployment_id=deployment_id),
        ):
            deployment = self._get(deployment_id)
            if deployment.is_terminal:
                raise AlreadyTerminalError(deployment_id)

            previous_config = deployment.rollback_plan.previous_config
            deployment.status = DeploymentStatus.ROLLED_BACK
            deployment.canary_active = False
            deployment.rollback_reason = reason or DEFAULT_ROLLBACK_REASON
            deployment.rolled_back_at = self._clock()
            deployment.current_config = deepcopy(previous_config)

            with self._lock:
                self._current_config = deepcopy(previous_config)

            logger.warning(
                "Rolled back %s (variant %s): %s",
                deployment_id,
                deployment.variant_id,
                deployment.rollback_reason,
            )
            return deployment.model_copy(deep=True)

    def advance(self, deployment_id: str) -> Deployment:
        """Run one canary progression step.

        Health-checks the deployment; if unhealthy it is rolled back,
        otherwise its canary is widened to the next configured step. A
        deployment already at or beyond the last step is returned unchanged.

        Raises:
            DeploymentNotFoundError: If the deployment is unknown.
            AlreadyTerminalError: If it was already rolled back.
        """
        current = self.get_status(deployment_id)
        if current.is_terminal:
            raise AlreadyTerminalError(deployment_id)

        health = self.check_health(deployment_id)
        if not health.healthy:
            return self.rollback(
                deployment_id,
                reason=(
                    f"Health check failed: error rate {health.error_rate:.4f} "
                    f"exceeds threshold {health.threshold:.4f}"
                ),
            )

        next_step = next(
            (step for step in self.canary_steps if step > current.canary_percent),
            None,
        )
        if next_step is None:
            return current
        return self.increase_canary(deployment_id, next_step)

    def get_status(self, deployment_id: str) -> Deployment:
        """Get a snapshot of a deployment.

        Raises:
            DeploymentNotFoundError: If the deployment is unknown.
        """
        with self._lock:
            return self._get(deployment_id).model_copy(deep=True)

    def get_history(self) -> list[Deployment]:
        """All deployments in the order they were created."""
        with self._lock:
            return [d.model_copy(deep=True) for d in self._deployments.values()]
