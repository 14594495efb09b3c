"""Aggregate scenario statistics across run result files."""

import logging
from pathlib import Path

from pydantic import BaseModel, Field

from parabank.regression_suite.models.report_stats import (
    AggregateStats,
    FailingScenario,
)
from parabank.regression_suite.models.run_summary import RunSummary, ScenarioResult
from parabank.regression_suite.result_loader import load_run_summary

logger = logging.getLogger(__name__)


class AggregateReport(BaseModel):
    """Per-file statistics plus their combined totals."""

    per_run: list[AggregateStats] = Field(default_factory=list)
    combined: AggregateStats = Field(
        default_factory=lambda: AggregateStats(source="combined")
    )


def scenario_failed(scenario: ScenarioResult) -> bool:
    """A scenario failed when any of its steps did not pass."""
    return any(step.status != "passed" for step in scenario.steps)


def summarize(summary: RunSummary, source: str = "") -> AggregateStats:
    """Count passed and failed scenarios of one run."""
    stats = AggregateStats(source=source)
    for feature, scenario in summary.scenarios():
        stats.total += 1
        if scenario_failed(scenario):
            stats.failed += 1
            stats.failing.append(
                FailingScenario(feature=feature.name, scenario=scenario.name)
            )
        else:
            stats.passed += 1
    return stats


class ReportAggregator:
    """Reads run result files and computes scenario statistics.

    Each ``ingest`` call starts from scratch; only the most recently ingested
    summary is kept, for ``failing_scenarios``.
    """

    def __init__(self, sanitize: bool = False) -> None:
        """Initialize the aggregator; ``sanitize`` fixes Windows paths."""
        self.sanitize = sanitize
        self._latest: AggregateStats | None = None

    def ingest(self, paths: list[Path]) -> AggregateReport:
        """Compute statistics for every file and their combined total.

        Raises:
            ReportGenerationError: If any file cannot be read or parsed

        """
        report = AggregateReport()
        for path in paths:
            stats = summarize(
                load_run_summary(path, sanitize=self.sanitize), source=str(path)
            )
            logger.info(
                f"Ingested {path.name}: total={stats.total} "
                f"passed={stats.passed} failed={stats.failed}"
            )
            report.per_run.append(stats)
            report.combined.total += stats.total
            report.combined.passed += stats.passed
            report.combined.failed += stats.failed
            report.combined.failing.extend(stats.failing)

        self._latest = report.per_run[-1] if report.per_run else None
        return report

    def failing_scenarios(self) -> list[FailingScenario]:
        """Failing scenarios of the most recently ingested file."""
        if self._latest is None:
            return []
        return list(self._latest.failing)
