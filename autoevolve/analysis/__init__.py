"""Statistical analysis of control/treatment experiment results."""

from .analyzer import (
    StatisticalAnalyzer,
    cohens_d,
    confidence_interval,
    normal_cdf,
    t_test_p_value,
    welchs_t_test,
)
from .models import (
    AnalysisVerdict,
    ConfidenceInterval,
    Recommendation,
    SampleSummary,
    WelchResult,
)
from .reporter import format_verdict_console, format_verdict_json

__all__ = [
    # Models
    "AnalysisVerdict",
    "ConfidenceInterval",
    "Recommendation",
    "SampleSummary",
    "WelchResult",
    # Analyzer
    "StatisticalAnalyzer",
    "cohens_d",
    "confidence_interval",
    "normal_cdf",
    "t_test_p_value",
    "welchs_t_test",
    # Reporter
    "format_verdict_console",
    "format_verdict_json",
]
