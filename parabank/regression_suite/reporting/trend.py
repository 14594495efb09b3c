"""Build pass/fail/skip time series from historical run files."""

import logging
from pathlib import Path

from parabank.regression_suite.models.report_stats import TrendPoint
from parabank.regression_suite.models.run_summary import RunSummary
from parabank.regression_suite.result_loader import load_run_summary

logger = logging.getLogger(__name__)


def discover(directory: Path, pattern: str = "*.json") -> list[Path]:
    """Historical run files in a directory, sorted by file name."""
    if not directory.is_dir():
        return []
    return sorted(directory.glob(pattern), key=lambda p: p.name)


def count_steps(summary: RunSummary, label: str) -> TrendPoint:
    """Count step statuses across every scenario of a run."""
    point = TrendPoint(label=label)
    for _, scenario in summary.scenarios():
        for step in scenario.steps:
            if step.status == "passed":
                point.passed += 1
            elif step.status == "failed":
                point.failed += 1
            else:
                point.skipped += 1
    return point


class TrendBuilder:
    """Turns historical run files into an ordered TrendPoint sequence.

    Run order is the lexicographic order of file names, so file names must
    embed a monotonically increasing run identifier.
    """

    def build(self, paths: list[Path]) -> list[TrendPoint]:
        """One point per file, ordered by file name.

        Raises:
            ReportGenerationError: If any file cannot be read or parsed

        """
        points = [
            count_steps(load_run_summary(path), label=path.stem)
            for path in sorted(paths, key=lambda p: p.name)
        ]
        logger.info(f"Built trend over {len(points)} run(s)")
        return points

    @staticmethod
    def to_chart_series(points: list[TrendPoint]) -> dict[str, list[object]]:
        """Column-oriented series for charting."""
        return {
            "labels": [p.label for p in points],
            "passed": [p.passed for p in points],
            "failed": [p.failed for p in points],
            "skipped": [p.skipped for p in points],
        }
