"""Per-area configuration strategies.

Each area has a baseline (control) configuration and a treatment strategy
that mutates a copy of that baseline toward the opportunity's target. Areas
without a registered strategy fall back to enabling ``experimentalMode``.
"""

from collections.abc import Callable
from copy import deepcopy
from typing import Any

from autoevolve.core.exceptions import InvalidConfigurationError

Config = dict[str, Any]
TreatmentStrategy = Callable[[Config, float], Config]

FALLBACK_BASELINE: Config = {"strategy": "default"}


def _crash_prevention(base: Config, target: float) -> Config:
    # Shorter prediction window, stricter confidence
    return {**base, "predictionWindow": 30000, "thresholdConfidence": 0.85}


def _model_routing(base: Config, target: float) -> Config:
    return {**base, "routingStrategy": "ml-optimized", "costThreshold": 0.3}


def _cost_optimization(base: Config, target: float) -> Config:
    return {**base, "savingsTarget": target, "optimizationMode": "aggressive"}


def _performance(base: Config, target: float) -> Config:
    return {**base, "latencyTarget": target, "cacheStrategy": "adaptive"}


def _load_balancing(base: Config, target: float) -> Config:
    return {**base, "algorithm": "least-connections", "maxConcurrent": 10}


def experimental_mode(base: Config, target: float) -> Config:
    """Fallback treatment for areas without a dedicated strategy."""
    return {**base, "experimentalMode": True}


_BUILTIN_AREAS: dict[str, tuple[Config, TreatmentStrategy]] = {
    "crash-prevention": (
        {
            "predictionWindow": 60000,
            "thresholdConfidence": 0.80,
            "checkpointStrategy": "periodic",
        },
        _crash_prevention,
    ),
    "model-routing": (
        {
            "routingStrategy": "complexity-based",
            "fallbackModel": "sonnet",
            "costThreshold": 0.5,
        },
        _model_routing,
    ),
    "cost-optimization": (
        {
            "savingsTarget": 0.26,
            "qualityThreshold": 0.90,
            "optimizationMode": "balanced",
        },
        _cost_optimization,
    ),
    "performance": (
        {
            "latencyTarget": 100,
            "throughputTarget": 1000,
            "cacheStrategy": "lru",
        },
        _performance,
    ),
    "load-balancing": (
        {
            "algorithm": "round-robin",
            "healthCheckInterval": 30000,
            "maxConcurrent": 5,
        },
        _load_balancing,
    ),
}


class StrategyRegistry:
    """Registry of baseline configs and treatment strategies keyed by area."""

    def __init__(self, fallback: TreatmentStrategy = experimental_mode) -> None:
        """Initialize the registry with the built-in areas.

        Args:
            fallback: Strategy used for areas with no registered strategy.
        """
        self._baselines: dict[str, Config] = {}
        self._strategies: dict[str, TreatmentStrategy] = {}
        self._fallback = fallback

        for area, (baseline, strategy) in _BUILTIN_AREAS.items():
            self.register(area, strategy, baseline=baseline)

    def register(
        self,
        area: str,
        strategy: TreatmentStrategy,
        baseline: Config | None = None,
    ) -> None:
        """Register (or replace) the strategy for an area.

        Args:
            area: Area name.
            strategy: Function ``(base_config, target_value) -> config``.
            baseline: Optional control configuration for the area.

        Raises:
            InvalidConfigurationError: If the area is empty or the strategy is
                not callable.
        """
        if not area:
            raise InvalidConfigurationError(
                "Strategy area must not be empty", field="area", value=area
            )
        if not callable(strategy):
            raise InvalidConfigurationError(
                f"Strategy for {area} is not callable",
                field="strategy",
                value=strategy,
            )
        self._strategies[area] = strategy
        if baseline is not None:
            self._baselines[area] = deepcopy(baseline)

    def unregister(self, area: str) -> bool:
        """Remove an area's strategy and baseline.

        Returns:
            True if the area was registered, False otherwise.
        """
        if area not in self._strategies and area not in self._baselines:
            return False
        self._strategies.pop(area, None)
        self._baselines.pop(area, None)
        return True

    def has_strategy(self, area: str) -> bool:
        """Check whether an area has a dedicated strategy."""
        return area in self._strategies

    def list_areas(self) -> list[str]:
        """List areas with a dedicated strategy."""
        return sorted(self._strategies)

    def baseline(self, area: str) -> Config:
        """Get a copy of the control configuration for an area."""
        return deepcopy(self._baselines.get(area, FALLBACK_BASELINE))

    def treatment(self, area: str, target: float) -> Config:
        """Build the treatment configuration for an area.

        The strategy receives a copy of the baseline, so the stored baseline
        is never mutated.
        """
        strategy = self._strategies.get(area, self._fallback)
        return strategy(self.baseline(area), target)
