"""Canary exposure routing.

The manager swaps the current configuration eagerly on deploy; whether a
given unit of traffic actually sees it is decided here from the canary
percentage. Assignment uses consistent hashing so the same unit stays on
the same side while the percentage is unchanged, and widening the canary
only ever adds units.
"""

import hashlib

from .models import Deployment, DeploymentStatus


class CanaryRouter:
    """Decides which traffic units are exposed to a deployment."""

    def __init__(self, deployment: Deployment) -> None:
        """Initialize the router.

        Args:
            deployment: Deployment snapshot to route for.
        """
        self.deployment = deployment

    def _bucket(self, unit_id: str) -> float:
        """Map a unit to a stable point in [0, 100)."""
        hash_input = f"{self.deployment.deployment_id}:{unit_id}"
        hash_value = hashlib.md5(hash_input.encode()).hexdigest()
        # First 8 hex chars as a fraction of the 32-bit range
        return int(hash_value[:8], 16) / 0x100000000 * 100

    def is_exposed(self, unit_id: str) -> bool:
        """Whether a traffic unit should receive the deployed configuration.

        Args:
            unit_id: Stable identifier of the request, session or user.

        Returns:
            False for rolled-back or failed deployments; otherwise True for
            units whose bucket falls below the canary percentage.
        """
        if self.deployment.status != DeploymentStatus.DEPLOYED:
            return False
        percent = self.deployment.canary_percent
        if percent <= 0:
            return False
        if percent >= 100:
            return True
        return self._bucket(unit_id) < percent
