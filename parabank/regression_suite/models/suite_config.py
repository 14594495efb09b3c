"""Configuration models for suite execution."""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from parabank.regression_suite.tag_expression import compile_tag_expression, matches


class SuiteSettings(BaseModel):
    """Environment-driven settings, read once at process start."""

    base_url: str = Field(
        default="https://parabank.parasoft.com/parabank/",
        description="ParaBank UI base URL",
    )
    api_base_url: str = Field(
        default="https://parabank.parasoft.com/parabank",
        description="ParaBank API base URL (without /services/bank)",
    )
    headless: bool = Field(default=True, description="Run the browser headless")
    step_timeout: float = Field(default=60.0, description="Per-step timeout (s)")
    page_timeout: float = Field(
        default=30.0, description="Browser action and navigation timeout (s)"
    )
    api_timeout: float = Field(default=10.0, description="HTTP request timeout (s)")
    reports_dir: Path = Field(default=Path("reports"), description="Reports root")
    screenshot_on_step: bool = Field(
        default=False, description="Capture a screenshot after every UI step"
    )

    @property
    def screenshots_dir(self) -> Path:
        """Failure evidence directory."""
        return self.reports_dir / "screenshots"

    @property
    def html_report_dir(self) -> Path:
        """Directory of the externally rendered HTML report."""
        return self.reports_dir / "html-report"

    @property
    def pdf_dir(self) -> Path:
        """Directory of the merged PDF."""
        return self.reports_dir / "pdf"

    @property
    def history_dir(self) -> Path:
        """Directory of historical run files used for trends."""
        return self.reports_dir / "history"


class ExecutionProfile(BaseModel):
    """Named preset selecting scenarios and parallelism."""

    name: str = Field(..., description="Profile name")
    tags: str = Field(default="", description="Tag filter expression")
    parallel: int = Field(default=1, ge=1, description="Concurrent scenarios")
    report_name: str = Field(
        default="cucumber-report.json", description="Result file name"
    )
    fail_fast: bool = Field(
        default=False, description="Stop scheduling scenarios after a failure"
    )

    @field_validator("tags")
    @classmethod
    def _valid_expression(cls, value: str) -> str:
        compile_tag_expression(value)
        return value

    def matches(self, tags: list[str]) -> bool:
        """Check whether a scenario with these tags is selected."""
        return matches(self.tags, tags)
