"""Reporter for evolution summaries."""

import json
from pathlib import Path

from autoevolve.analysis.reporter import Colors, colorize, supports_color

from .models import EvolutionSummary, ImprovementReport


def _rate_color(rate: float) -> str:
    if rate >= 0.5:
        return Colors.GREEN
    if rate > 0:
        return Colors.YELLOW
    return Colors.DIM


def _format_area(report: ImprovementReport, use_colors: bool) -> str:
    rate = colorize(
        f"{report.success_rate * 100:.0f}%",
        _rate_color(report.success_rate),
        use_colors,
    )
    sign = "+" if report.total_improvement >= 0 else ""
    return (
        f"  {report.area} @ {report.current_version}: "
        f"{report.successful_experiments}/{report.total_experiments} succeeded "
        f"({rate}), improvement {sign}{report.total_improvement:.4f}"
    )


def format_summary_console(summary: EvolutionSummary, use_colors: bool = True) -> str:
    """Format an evolution summary for console output.

    Args:
        summary: Summary to format.
        use_colors: Whether to use ANSI colors.

    Returns:
        Formatted string for console output.
    """
    lines: list[str] = []

    header = "Evolution Summary"
    lines.append(colorize(header, Colors.BOLD, use_colors))
    lines.append("=" * len(header))
    lines.append(f"  Areas: {summary.total_areas}")
    lines.append(f"  Experiments: {summary.total_experiments}")
    lines.append(
        "  Overall success rate: "
        + colorize(
            f"{summary.overall_success_rate * 100:.1f}%",
            _rate_color(summary.overall_success_rate),
            use_colors,
        )
    )

    if summary.areas:
        lines.append("")
        lines.append(colorize("Areas:", Colors.CYAN, use_colors))
        for report in summary.areas.values():
            lines.append(_format_area(report, use_colors))

    return "\n".join(lines)


def format_summary_json(summary: EvolutionSummary, indent: int = 2) -> str:
    """Format an evolution summary as JSON."""
    return json.dumps(
        summary.model_dump(mode="json"), indent=indent, ensure_ascii=False
    )


def print_summary(
    summary: EvolutionSummary,
    output_format: str = "console",
    output_file: Path | None = None,
    use_colors: bool = True,
) -> None:
    """Print an evolution summary.

    Args:
        summary: Summary to print.
        output_format: Output format ('console' or 'json').
        output_file: Optional file path to write output.
        use_colors: Whether to use ANSI colors (console only).
    """
    if output_format == "json":
        output = format_summary_json(summary)
    else:
        use_colors = use_colors and supports_color()
        output = format_summary_console(summary, use_colors)

    if output_file:
        output_file.parent.mkdir(parents=True, exist_ok=True)
        with open(output_file, "w", encoding="utf-8") as f:
            f.write(output)
            f.write("\n")
    else:
        print(output)
