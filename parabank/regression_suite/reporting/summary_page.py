"""Executive summary HTML page placed in front of the detailed report."""

from datetime import datetime, timezone
from html import escape
from string import Template

from parabank.regression_suite.models.report_stats import (
    AggregateStats,
    FailingScenario,
    TrendPoint,
)

_PAGE = Template(
    """<!DOCTYPE html>
<html>
<head>
<meta charset="UTF-8">
<title>Executive Summary</title>
<style>
  body { font-family: Arial, sans-serif; padding: 20px; }
  h1 { color: #2e6c80; }
  table { border-collapse: collapse; width: 100%; margin-top: 20px; }
  th, td { border: 1px solid #ddd; padding: 8px; text-align: left; }
  th { background-color: #f2f2f2; }
</style>
</head>
<body>
<h1>$title</h1>
<p><strong>Total Scenarios:</strong> $total</p>
<p><strong>Passed:</strong> $passed</p>
<p><strong>Failed:</strong> $failed</p>
<p><strong>Success Rate:</strong> $rate</p>
$failing
$trend
<p><em>Report generated on $generated</em></p>
<hr>
</body>
</html>
"""
)


def _failing_table(failing: list[FailingScenario]) -> str:
    if not failing:
        return ""
    rows = "\n".join(
        f"<tr><td>{escape(f.feature)}</td><td>{escape(f.scenario)}</td></tr>"
        for f in failing
    )
    return (
        "<h2>Top Failing Scenarios</h2>\n<table>\n"
        "<tr><th>Feature</th><th>Scenario</th></tr>\n"
        f"{rows}\n</table>"
    )


def _trend_table(points: list[TrendPoint]) -> str:
    if not points:
        return ""
    rows = "\n".join(
        f"<tr><td>{escape(p.label)}</td><td>{p.passed}</td>"
        f"<td>{p.failed}</td><td>{p.skipped}</td></tr>"
        for p in points
    )
    return (
        "<h2>Trend (steps per run)</h2>\n<table>\n"
        "<tr><th>Run</th><th>Passed</th><th>Failed</th><th>Skipped</th></tr>\n"
        f"{rows}\n</table>"
    )


def render_summary_page(
    stats: AggregateStats,
    failing: list[FailingScenario],
    trend: list[TrendPoint],
    title: str = "Executive Summary",
    generated_at: datetime | None = None,
) -> str:
    """Render the summary page as a standalone HTML document."""
    generated_at = generated_at or datetime.now(timezone.utc)
    return _PAGE.substitute(
        title=escape(title),
        total=stats.total,
        passed=stats.passed,
        failed=stats.failed,
        rate=f"{stats.success_rate:.1%}",
        failing=_failing_table(failing),
        trend=_trend_table(trend),
        generated=generated_at.strftime("%Y-%m-%d %H:%M:%S %Z"),
    )
