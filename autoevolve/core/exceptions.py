"""autoevolve exceptions."""

from datetime import timedelta
from typing import Any


class EvolutionError(Exception):
    """Base exception for all autoevolve errors."""


class InvalidConfigurationError(EvolutionError):
    """Raised when a component is configured with out-of-range values."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any = None,
    ) -> None:
        self.message = message
        self.field = field
        self.value = value
        super().__init__(message)


class NotFoundError(EvolutionError):
    """Raised when an area or deployment is referenced but unknown."""

    def __init__(self, message: str, kind: str, key: str) -> None:
        self.message = message
        self.kind = kind
        self.key = key
        super().__init__(message)


class AreaNotFoundError(NotFoundError):
    """Raised for operations on an unregistered area."""

    def __init__(self, area: str) -> None:
        super().__init__(f"Area not found: {area}", kind="area", key=area)


class DeploymentNotFoundError(NotFoundError):
    """Raised for operations on an unknown deployment id."""

    def __init__(self, deployment_id: str) -> None:
        super().__init__(
            f"Deployment {deployment_id} not found",
            kind="deployment",
            key=deployment_id,
        )


class ConcurrencyExceededError(EvolutionError):
    """Raised when the global concurrent experiment limit is reached."""

    def __init__(self, limit: int, active: int) -> None:
        self.limit = limit
        self.active = active
        super().__init__("Maximum concurrent experiments reached")


class CooldownViolationError(EvolutionError):
    """Raised when an area is still inside its minimum experiment gap."""

    def __init__(self, area: str, remaining: timedelta) -> None:
        self.area = area
        self.remaining = remaining
        super().__init__("Minimum gap not met")


class AlreadyTerminalError(EvolutionError):
    """Raised when rolling back a deployment that is already rolled back."""

    def __init__(self, deployment_id: str) -> None:
        self.deployment_id = deployment_id
        super().__init__(f"Deployment {deployment_id} already rolled back")
