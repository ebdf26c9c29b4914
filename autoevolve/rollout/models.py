"""Data models for canary rollouts."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

ROLLBACK_STEPS = [
    "Stop canary rollout",
    "Restore previous configuration",
    "Verify restoration successful",
]


def _utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(UTC)


def is_canary_active(percent: float) -> bool:
    """A canary is active strictly between 0% and 100% exposure."""
    return 0 < percent < 100


class DeploymentStatus(str, Enum):
    """Lifecycle state of a deployment."""

    DEPLOYING = "deploying"
    DEPLOYED = "deployed"
    ROLLED_BACK = "rolled_back"  # Terminal
    FAILED = "failed"  # Reserved for deploy-time validation errors


class DeploymentConfig(BaseModel):
    """Request to deploy a variant configuration.

    ``canary_percent`` is range-checked by ``RolloutManager.deploy`` so an
    out-of-range value surfaces as InvalidConfigurationError.
    """

    variant_id: str = Field(..., description="Variant identifier")
    variant: dict[str, Any] = Field(
        default_factory=dict, description="Configuration blob to deploy"
    )
    rollback_threshold: float = Field(
        default=0.10, ge=0.0, le=1.0, description="Error rate that fails health"
    )
    canary_percent: float = Field(default=0.0, description="Initial exposure 0-100")


class RollbackPlan(BaseModel):
    """Snapshot taken at deploy time; the sole source of truth for reversal."""

    previous_config: dict[str, Any] = Field(
        default_factory=dict, description="Configuration active before deploy"
    )
    rollback_steps: list[str] = Field(default_factory=lambda: list(ROLLBACK_STEPS))
    created_at: datetime = Field(default_factory=_utcnow)


class Deployment(BaseModel):
    """State of one deployment."""

    deployment_id: str = Field(..., description="Unique deployment ID")
    variant_id: str = Field(..., description="Variant being deployed")
    status: DeploymentStatus = Field(default=DeploymentStatus.DEPLOYED)
    canary_percent: float = Field(..., description="Current exposure percentage")
    canary_active: bool = Field(..., description="0 < canary_percent < 100")
    rollback_plan: RollbackPlan = Field(..., description="How to undo this deploy")
    rollback_threshold: float = Field(
        default=0.10, description="Configured error-rate threshold"
    )
    deployed_at: datetime = Field(default_factory=_utcnow)
    current_config: dict[str, Any] = Field(
        default_factory=dict, description="Configuration this deployment holds"
    )
    rollback_reason: str | None = Field(None, description="Why it was rolled back")
    rolled_back_at: datetime | None = Field(None, description="When it was rolled back")

    @property
    def is_terminal(self) -> bool:
        """Whether no further transitions are allowed."""
        return self.status == DeploymentStatus.ROLLED_BACK

    @property
    def fully_rolled_out(self) -> bool:
        """Deployed to 100% of traffic."""
        return self.status == DeploymentStatus.DEPLOYED and self.canary_percent >= 100


class HealthCheck(BaseModel):
    """Result of a deployment health check."""

    deployment_id: str = Field(..., description="Deployment checked")
    healthy: bool = Field(..., description="error_rate below threshold")
    error_rate: float = Field(..., description="Observed error rate")
    threshold: float = Field(..., description="Threshold applied")
    timestamp: datetime = Field(default_factory=_utcnow)
