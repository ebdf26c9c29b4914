"""Tests for the strategy registry."""

import pytest

from autoevolve.core.exceptions import InvalidConfigurationError
from autoevolve.design.strategies import (
    FALLBACK_BASELINE,
    StrategyRegistry,
    experimental_mode,
)


@pytest.fixture
def registry() -> StrategyRegistry:
    """Return a registry with the built-in areas."""
    return StrategyRegistry()


class TestBuiltinStrategies:
    """Tests for the built-in area strategies."""

    def test_builtin_areas(self, registry: StrategyRegistry) -> None:
        """Test that all built-in areas are registered."""
        assert registry.list_areas() == [
            "cost-optimization",
            "crash-prevention",
            "load-balancing",
            "model-routing",
            "performance",
        ]

    def test_crash_prevention(self, registry: StrategyRegistry) -> None:
        """Test the crash-prevention treatment."""
        config = registry.treatment("crash-prevention", 0.9)

        assert config["predictionWindow"] == 30000
        assert config["thresholdConfidence"] == 0.85
        assert config["checkpointStrategy"] == "periodic"

    def test_target_flows_into_treatment(self, registry: StrategyRegistry) -> None:
        """Test strategies that use the target value."""
        assert registry.treatment("cost-optimization", 0.4)["savingsTarget"] == 0.4
        assert registry.treatment("performance", 80)["latencyTarget"] == 80
        assert registry.treatment("performance", 80)["cacheStrategy"] == "adaptive"

    def test_load_balancing(self, registry: StrategyRegistry) -> None:
        """Test the load-balancing treatment."""
        config = registry.treatment("load-balancing", 0.0)

        assert config["algorithm"] == "least-connections"
        assert config["maxConcurrent"] == 10
        assert config["healthCheckInterval"] == 30000


class TestRegistry:
    """Tests for registry behavior."""

    def test_unknown_area_fallback(self, registry: StrategyRegistry) -> None:
        """Test the fallback baseline and treatment."""
        assert registry.baseline("unknown") == FALLBACK_BASELINE
        assert registry.treatment("unknown", 1.0) == {
            "strategy": "default",
            "experimentalMode": True,
        }
        assert not registry.has_strategy("unknown")

    def test_baseline_is_a_copy(self, registry: StrategyRegistry) -> None:
        """Test that mutating a returned baseline has no effect."""
        registry.baseline("performance")["cacheStrategy"] = "none"
        assert registry.baseline("performance")["cacheStrategy"] == "lru"

    def test_treatment_does_not_mutate_baseline(
        self, registry: StrategyRegistry
    ) -> None:
        """Test that a mutating strategy only sees a copy."""

        def mutating(base: dict, target: float) -> dict:
            base["mutated"] = True
            return base

        registry.register("custom", mutating, baseline={"a": 1})
        registry.treatment("custom", 0.0)

        assert registry.baseline("custom") == {"a": 1}

    def test_register_and_unregister(self, registry: StrategyRegistry) -> None:
        """Test registering a new area."""
        registry.register("search", experimental_mode, baseline={"ranker": "bm25"})

        assert registry.has_strategy("search")
        assert registry.treatment("search", 0.0) == {
            "ranker": "bm25",
            "experimentalMode": True,
        }
        assert registry.unregister("search") is True
        assert registry.unregister("search") is False
        assert registry.baseline("search") == FALLBACK_BASELINE

    def test_custom_fallback(self) -> None:
        """Test a registry with a different fallback."""
        registry = StrategyRegistry(fallback=lambda base, target: {"target": target})
        assert registry.treatment("anything", 3.0) == {"target": 3.0}

    def test_register_rejects_bad_input(self, registry: StrategyRegistry) -> None:
        """Test that invalid registrations are refused."""
        with pytest.raises(InvalidConfigurationError):
            registry.register("", experimental_mode)
        with pytest.raises(InvalidConfigurationError, match="not callable"):
            registry.register("search", "not-a-function")  # type: ignore[arg-type]
        assert not registry.has_strategy("search")
