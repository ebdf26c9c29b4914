"""Statistical analysis of experiment results.

Decides from aggregate statistics alone whether a treatment is better,
worse, or indistinguishable from control:

- Welch's t-test (unequal variances) with Welch-Satterthwaite degrees of freedom
- Cohen's d effect size using the pooled standard deviation
- Normal-approximation confidence interval for the improvement
- deploy / rollback / continue / no_change recommendation

P-values are approximate. For df > 100 the t statistic is treated as a
standard normal variate; below that a coarse lookup table returns one of a
handful of bucket values. The buckets are accurate enough to separate
p < 0.05 from p >= 0.05 but must not be read as exact probabilities.
"""

import math
from statistics import NormalDist
from typing import TYPE_CHECKING

from .models import (
    AnalysisVerdict,
    ConfidenceInterval,
    Recommendation,
    SampleSummary,
    WelchResult,
)

if TYPE_CHECKING:
    from autoevolve.core.settings import EvolutionSettings

# Variance floor so zero-variance samples still yield a finite t statistic
VARIANCE_FLOOR = 1e-10

# Cohen's d reported when both samples have zero spread but different means
ZERO_SPREAD_EFFECT_SIZE = 10.0

DEFAULT_SIGNIFICANCE_LEVEL = 0.05
DEFAULT_MIN_SAMPLE_SIZE = 30
DEFAULT_CONFIDENCE_LEVEL = 0.95

MAX_RECOMMENDATION_CONFIDENCE = 0.99
INCONCLUSIVE_CONFIDENCE = 0.50

WARNING_INSUFFICIENT_SAMPLE = "insufficient_sample_size"
WARNING_ZERO_VARIANCE = "zero_variance"

# Two-sided z critical values for common confidence levels
_Z_CRITICAL_VALUES: dict[float, float] = {
    0.90: 1.645,
    0.95: 1.96,
    0.99: 2.576,
}

# (t threshold, p-value) buckets, checked top to bottom
_P_TABLE_MEDIUM_DF: list[tuple[float, float]] = [
    (2.75, 0.01),
    (2.04, 0.05),
    (1.70, 0.10),
]
_P_TABLE_SMALL_DF: list[tuple[float, float]] = [
    (3.0, 0.01),
    (2.0, 0.05),
    (1.5, 0.15),
]


def _z_critical(level: float) -> float:
    """Two-sided z critical value for a confidence level."""
    if level in _Z_CRITICAL_VALUES:
        return _Z_CRITICAL_VALUES[level]
    return NormalDist().inv_cdf(1 - (1 - level) / 2)


def normal_cdf(z: float) -> float:
    """Standard normal CDF (Abramowitz & Stegun 26.2.17 approximation)."""
    t = 1 / (1 + 0.2316419 * abs(z))
    d = 0.3989423 * math.exp(-z * z / 2)
    poly = 1.781478 + t * (-1.821256 + t * 1.330274)
    prob = d * t * (0.3193815 + t * (-0.3565638 + t * poly))
    return 1 - prob if z > 0 else prob


def t_test_p_value(t_stat: float, df: int) -> float:
    """Approximate two-tailed p-value for a t statistic.

    Args:
        t_stat: t statistic (sign is ignored).
        df: Degrees of freedom.

    Returns:
        Approximate p-value. Only the normal branch (df > 100) is continuous;
        smaller df return bucketed values.
    """
    t = abs(t_stat)

    if t > 10:
        return 0.0001
    if t < 0.1:
        return 0.9

    if df > 100:
        return 2 * (1 - normal_cdf(t))

    if df >= 30:
        table, floor = _P_TABLE_MEDIUM_DF, 0.20
    else:
        table, floor = _P_TABLE_SMALL_DF, 0.30

    for threshold, p_value in table:
        if t >= threshold:
            return p_value
    return floor


def welchs_t_test(control: SampleSummary, variant: SampleSummary) -> WelchResult:
    """Perform Welch's t-test for two samples with unequal variances.

    Variances are floored at VARIANCE_FLOOR and sample sizes below one are
    treated as one, so degenerate input produces a result instead of an error.

    Args:
        control: Control variant summary.
        variant: Treatment variant summary.

    Returns:
        t statistic, p-value, degrees of freedom and standard error.
    """
    n_c = max(control.n, 1)
    n_v = max(variant.n, 1)
    var_c = max(control.variance, VARIANCE_FLOOR)
    var_v = max(variant.variance, VARIANCE_FLOOR)

    se_c = var_c / n_c
    se_v = var_v / n_v
    se = math.sqrt(se_c + se_v)

    t_stat = (variant.mean - control.mean) / se

    numerator = (se_c + se_v) ** 2
    denominator = 0.0
    if n_c > 1:
        denominator += se_c**2 / (n_c - 1)
    if n_v > 1:
        denominator += se_v**2 / (n_v - 1)

    if denominator > 0:
        df = max(1, math.floor(numerator / denominator))
    else:
        df = 1

    return WelchResult(
        test_statistic=t_stat,
        p_value=t_test_p_value(t_stat, df),
        degrees_of_freedom=df,
        standard_error=se,
    )


def cohens_d(control: SampleSummary, variant: SampleSummary) -> float:
    """Calculate Cohen's d magnitude using the pooled standard deviation.

    Returns ZERO_SPREAD_EFFECT_SIZE when the pooled deviation is zero and the
    means differ, and 0.0 when it is zero and the means are equal.
    """
    dof = control.n + variant.n - 2
    if dof > 0:
        pooled_var = (
            (control.n - 1) * control.variance + (variant.n - 1) * variant.variance
        ) / dof
        pooled_sd = math.sqrt(max(pooled_var, 0.0))
    else:
        pooled_sd = 0.0

    if pooled_sd == 0:
        return ZERO_SPREAD_EFFECT_SIZE if variant.mean != control.mean else 0.0

    return abs(variant.mean - control.mean) / pooled_sd


def confidence_interval(
    improvement: float,
    standard_error: float,
    level: float = DEFAULT_CONFIDENCE_LEVEL,
) -> ConfidenceInterval:
    """Normal-approximation confidence interval for the improvement."""
    margin = _z_critical(level) * standard_error
    return ConfidenceInterval(
        lower=improvement - margin,
        upper=improvement + margin,
        level=level,
    )


class StatisticalAnalyzer:
    """Turns control/treatment summaries into an AnalysisVerdict.

    Stateless: every call to ``analyze`` is independent and side-effect free.
    """

    def __init__(
        self,
        significance_level: float = DEFAULT_SIGNIFICANCE_LEVEL,
        min_sample_size: int = DEFAULT_MIN_SAMPLE_SIZE,
        confidence_level: float = DEFAULT_CONFIDENCE_LEVEL,
    ) -> None:
        """Initialize the analyzer.

        Args:
            significance_level: Alpha below which a p-value is significant.
            min_sample_size: Per-variant size below which a warning is emitted.
            confidence_level: Level of the reported confidence interval.
        """
        self.significance_level = significance_level
        self.min_sample_size = min_sample_size
        self.confidence_level = confidence_level

    @classmethod
    def from_settings(cls, settings: "EvolutionSettings") -> "StatisticalAnalyzer":
        """Build an analyzer from the ``analysis`` settings group."""
        return cls(
            significance_level=settings.analysis.significance_level,
            min_sample_size=settings.analysis.min_sample_size,
            confidence_level=settings.analysis.confidence_level,
        )

    def analyze(
        self, control: SampleSummary, variant: SampleSummary
    ) -> AnalysisVerdict:
        """Analyze experiment results and recommend an action.

        Args:
            control: Summary of the control variant.
            variant: Summary of the treatment variant.

        Returns:
            The verdict, including significance, effect size and warnings.
        """
        warnings: list[str] = []
        if control.n < self.min_sample_size or variant.n < self.min_sample_size:
            warnings.append(WARNING_INSUFFICIENT_SAMPLE)
        if control.stddev == 0 and variant.stddev == 0:
            warnings.append(WARNING_ZERO_VARIANCE)

        improvement = variant.mean - control.mean
        relative_improvement = (
            improvement / abs(control.mean) if control.mean != 0 else 0.0
        )

        welch = welchs_t_test(control, variant)
        significant = welch.p_value < self.significance_level
        recommendation, confidence = self._recommend(
            improvement, significant, welch.p_value
        )

        return AnalysisVerdict(
            significant=significant,
            p_value=welch.p_value,
            effect_size=cohens_d(control, variant),
            improvement=improvement,
            relative_improvement=relative_improvement,
            confidence_interval=confidence_interval(
                improvement, welch.standard_error, self.confidence_level
            ),
            recommendation=recommendation,
            confidence=confidence,
            has_regression=improvement < 0 and significant,
            test_statistic=welch.test_statistic,
            degrees_of_freedom=welch.degrees_of_freedom,
            warnings=warnings,
        )

    def _recommend(
        self,
        improvement: float,
        significant: bool,
        p_value: float,
    ) -> tuple[Recommendation, float]:
        """Map the test outcome to a recommendation and its confidence."""
        if improvement == 0:
            return Recommendation.NO_CHANGE, 1.0

        if significant:
            confidence = min(MAX_RECOMMENDATION_CONFIDENCE, 1 - p_value)
            if improvement > 0:
                return Recommendation.DEPLOY, confidence
            return Recommendation.ROLLBACK, confidence

        return Recommendation.CONTINUE, INCONCLUSIVE_CONFIDENCE
