"""Console and JSON formatting for analysis verdicts."""

import json
import sys

from .models import AnalysisVerdict, Recommendation


# ANSI color codes
class Colors:
    """ANSI color codes for terminal output."""

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    CYAN = "\033[96m"
    BOLD = "\033[1m"
    RESET = "\033[0m"
    DIM = "\033[2m"


RECOMMENDATION_COLORS = {
    Recommendation.DEPLOY: Colors.GREEN,
    Recommendation.ROLLBACK: Colors.RED,
    Recommendation.CONTINUE: Colors.YELLOW,
    Recommendation.NO_CHANGE: Colors.DIM,
}


def supports_color() -> bool:
    """Check if stdout is a terminal that supports color output."""
    if not hasattr(sys.stdout, "isatty"):
        return False
    return sys.stdout.isatty()


def colorize(text: str, color: str, use_colors: bool = True) -> str:
    """Apply color to text if colors are enabled."""
    if not use_colors:
        return text
    return f"{color}{text}{Colors.RESET}"


def format_verdict_console(
    verdict: AnalysisVerdict,
    metric: str | None = None,
    use_colors: bool = True,
) -> str:
    """Format an analysis verdict for console output.

    Args:
        verdict: Verdict to format.
        metric: Optional metric name shown in the header.
        use_colors: Whether to use ANSI colors.

    Returns:
        Multi-line string.
    """
    lines: list[str] = []

    header = "Experiment Analysis" + (f": {metric}" if metric else "")
    lines.append(colorize(header, Colors.BOLD, use_colors))
    lines.append("=" * len(header))

    sign = "+" if verdict.improvement >= 0 else ""
    lines.append(
        f"  Improvement: {sign}{verdict.improvement:.4f} "
        f"({sign}{verdict.relative_improvement * 100:.1f}%)"
    )
    ci = verdict.confidence_interval
    lines.append(
        f"  {ci.level * 100:.0f}% CI: [{ci.lower:.4f}, {ci.upper:.4f}]"
    )
    stats_line = (
        f"  t={verdict.test_statistic:.3f}, df={verdict.degrees_of_freedom}, "
        f"p={verdict.p_value:.4f}, d={verdict.effect_size:.2f}"
    )
    lines.append(colorize(stats_line, Colors.DIM, use_colors))

    if verdict.warnings:
        warn_line = f"  Warnings: {', '.join(verdict.warnings)}"
        lines.append(colorize(warn_line, Colors.YELLOW, use_colors))

    lines.append("")
    color = RECOMMENDATION_COLORS.get(verdict.recommendation, Colors.DIM)
    status = (
        f"{verdict.recommendation.value.upper()} "
        f"(confidence {verdict.confidence:.2f})"
    )
    lines.append(colorize(status, color + Colors.BOLD, use_colors))

    return "\n".join(lines)


def format_verdict_json(verdict: AnalysisVerdict, indent: int = 2) -> str:
    """Format an analysis verdict as JSON."""
    return json.dumps(verdict.model_dump(mode="json"), indent=indent)
