"""Models for aggregated run statistics."""

from datetime import datetime

from pydantic import BaseModel, Field


class FailingScenario(BaseModel):
    """A (feature, scenario) pair that failed."""

    feature: str = Field(..., description="Feature name")
    scenario: str = Field(..., description="Scenario name")


class AggregateStats(BaseModel):
    """Scenario counts for one run file, or combined across runs."""

    source: str = Field(default="", description="Result file or 'combined'")
    total: int = Field(default=0, description="Total scenarios")
    passed: int = Field(default=0, description="Passed scenarios")
    failed: int = Field(default=0, description="Failed scenarios")
    failing: list[FailingScenario] = Field(
        default_factory=list, description="Failing scenarios in encounter order"
    )

    @property
    def success_rate(self) -> float:
        """Passed ratio, 0 when nothing ran."""
        return self.passed / self.total if self.total else 0.0


class TrendPoint(BaseModel):
    """Step status counts of one historical run."""

    label: str = Field(..., description="Run label")
    passed: int = Field(default=0, description="Passed steps")
    failed: int = Field(default=0, description="Failed steps")
    skipped: int = Field(default=0, description="Skipped or unexecuted steps")


class RunAggregate(BaseModel):
    """Suite-level counters owned by the scheduler."""

    total: int = Field(default=0, description="Scenarios started")
    passed: int = Field(default=0, description="Scenarios passed")
    failed: int = Field(default=0, description="Scenarios failed")
    skipped: int = Field(default=0, description="Scenarios skipped")
    started_at: datetime | None = Field(default=None, description="Suite start")
    finished_at: datetime | None = Field(default=None, description="Suite end")

    @property
    def success_rate(self) -> float:
        """Passed ratio, 0 when no scenario ran."""
        return self.passed / self.total if self.total else 0.0

    @property
    def duration(self) -> float:
        """Suite wall time in seconds."""
        if self.started_at is None or self.finished_at is None:
            return 0.0
        return max(0.0, (self.finished_at - self.started_at).total_seconds())
