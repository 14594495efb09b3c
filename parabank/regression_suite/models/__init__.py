"""Data models for run results, statistics and configuration."""

from parabank.regression_suite.models.report_stats import (
    AggregateStats,
    FailingScenario,
    RunAggregate,
    TrendPoint,
)
from parabank.regression_suite.models.run_summary import (
    FeatureResult,
    RunSummary,
    ScenarioResult,
    StepOutcome,
    StepResult,
)
from parabank.regression_suite.models.suite_config import (
    ExecutionProfile,
    SuiteSettings,
)

__all__ = [
    "AggregateStats",
    "ExecutionProfile",
    "FailingScenario",
    "FeatureResult",
    "RunAggregate",
    "RunSummary",
    "ScenarioResult",
    "StepOutcome",
    "StepResult",
    "SuiteSettings",
    "TrendPoint",
]
