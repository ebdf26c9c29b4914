"""Canary rollout with health checks and guaranteed rollback."""

from .manager import RolloutManager
from .models import (
    Deployment,
    DeploymentConfig,
    DeploymentStatus,
    HealthCheck,
    RollbackPlan,
    is_canary_active,
)
from .router import CanaryRouter

__all__ = [
    "CanaryRouter",
    "Deployment",
    "DeploymentConfig",
    "DeploymentStatus",
    "HealthCheck",
    "RollbackPlan",
    "RolloutManager",
    "is_canary_active",
]
