"""Tests for safety bound evaluation."""

import pytest

from autoevolve.design.models import SafetyBounds
from autoevolve.design.safety import ViolationSeverity, evaluate_safety


@pytest.fixture
def bounds() -> SafetyBounds:
    """Return the default safety profile."""
    return SafetyBounds(
        max_regression=0.10, rollback_threshold=0.15, max_error_rate=0.05
    )


class TestEvaluateSafety:
    """Tests for evaluate_safety."""

    def test_within_bounds(self, bounds: SafetyBounds) -> None:
        """Test healthy metrics."""
        result = evaluate_safety(bounds, regression=0.05, error_rate=0.01)

        assert result.passed is True
        assert result.violations == []
        assert result.should_rollback is False
        assert result.rollback_reason is None

    def test_regression_warning(self, bounds: SafetyBounds) -> None:
        """Test a regression between max_regression and rollback_threshold."""
        result = evaluate_safety(bounds, regression=0.12)

        assert result.passed is False
        assert len(result.violations) == 1
        assert result.violations[0].severity == ViolationSeverity.WARNING
        assert result.violations[0].bound == "max_regression"
        assert result.should_rollback is False

    def test_regression_critical(self, bounds: SafetyBounds) -> None:
        """Test a regression above the rollback threshold."""
        result = evaluate_safety(bounds, regression=0.20)

        assert result.violations[0].severity == ViolationSeverity.CRITICAL
        assert result.violations[0].bound == "rollback_threshold"
        assert result.should_rollback is True
        assert "rollback threshold" in (result.rollback_reason or "")

    def test_error_rate_critical(self, bounds: SafetyBounds) -> None:
        """Test that an error rate breach is always critical."""
        result = evaluate_safety(bounds, error_rate=0.06)

        assert result.violations[0].bound == "max_error_rate"
        assert result.violations[0].severity == ViolationSeverity.CRITICAL
        assert result.should_rollback is True

    def test_two_violations(self, bounds: SafetyBounds) -> None:
        """Test multiple violations together."""
        result = evaluate_safety(bounds, regression=0.12, error_rate=0.2)

        assert len(result.violations) == 2
        assert result.should_rollback is True

    def test_thresholds_are_exclusive(self, bounds: SafetyBounds) -> None:
        """Test values exactly at a bound pass."""
        result = evaluate_safety(bounds, regression=0.10, error_rate=0.05)
        assert result.passed is True
