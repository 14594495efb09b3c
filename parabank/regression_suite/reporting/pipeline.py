"""Suite-end reporting chain: aggregate, trend, summary page, merged PDF."""

import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, Field

from parabank.regression_suite.errors import ReportGenerationError
from parabank.regression_suite.models.report_stats import FailingScenario, TrendPoint
from parabank.regression_suite.models.suite_config import SuiteSettings
from parabank.regression_suite.reporting.aggregator import (
    AggregateReport,
    ReportAggregator,
)
from parabank.regression_suite.reporting.merger import DocumentMerger
from parabank.regression_suite.reporting.summary_page import render_summary_page
from parabank.regression_suite.reporting.trend import TrendBuilder, discover

logger = logging.getLogger(__name__)

DEFAULT_PDF_NAME = "Parabank-Test-Report.pdf"


class PipelineResult(BaseModel):
    """Artifacts and statistics produced by one reporting pass."""

    report: AggregateReport = Field(..., description="Scenario statistics")
    failing: list[FailingScenario] = Field(default_factory=list)
    trend: list[TrendPoint] = Field(default_factory=list)
    summary_page: Path = Field(..., description="Executive summary HTML")
    merged_pdf: Path = Field(..., description="Merged PDF document")
    page_count: int = Field(default=0, description="Pages in the merged PDF")


def archive_run(result_file: Path, history_dir: Path) -> Path:
    """Copy a result file into the history directory under a sortable name."""
    history_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    target = history_dir / f"run-{stamp}.json"
    shutil.copyfile(result_file, target)
    return target


class ReportingPipeline:
    """Runs aggregator, trend builder and merger in that order."""

    def __init__(
        self,
        settings: SuiteSettings,
        html_report: Path | None = None,
        output: Path | None = None,
        merger: DocumentMerger | None = None,
        history_dir: Path | None = None,
        title: str = "ParaBank Regression Suite - Executive Summary",
    ) -> None:
        """Initialize with artifact locations derived from the settings."""
        self.settings = settings
        self.html_report = html_report or settings.html_report_dir / "index.html"
        self.output = output or settings.pdf_dir / DEFAULT_PDF_NAME
        self.merger = merger or DocumentMerger()
        self.history_dir = history_dir or settings.history_dir
        self.title = title

    async def run(
        self, result_files: list[Path], archive: bool = False
    ) -> PipelineResult:
        """Produce statistics, the summary page and the merged PDF.

        Args:
            result_files: Run result files, the last one being the latest run
            archive: Copy the latest run into the history directory first

        Raises:
            ReportGenerationError: On any failure in the chain

        """
        try:
            return await self._run(result_files, archive)
        except ReportGenerationError:
            raise
        except Exception as e:
            raise ReportGenerationError(f"Reporting pipeline failed: {e}") from e

    async def _run(self, result_files: list[Path], archive: bool) -> PipelineResult:
        if not result_files:
            raise ReportGenerationError("No result files to report on")

        if archive:
            archived = archive_run(result_files[-1], self.history_dir)
            logger.info(f"Run archived for trends: {archived}")

        aggregator = ReportAggregator(sanitize=True)
        report = aggregator.ingest(result_files)
        failing = aggregator.failing_scenarios()
        latest = report.per_run[-1]

        trend = TrendBuilder().build(discover(self.history_dir))

        summary_page = self.settings.html_report_dir / "summary.html"
        summary_page.parent.mkdir(parents=True, exist_ok=True)
        summary_page.write_text(
            render_summary_page(latest, failing, trend, title=self.title),
            encoding="utf-8",
        )
        logger.info(f"Executive summary written: {summary_page}")

        if not self.html_report.exists():
            raise ReportGenerationError(f"HTML report not found: {self.html_report}")

        page_count = await self.merger.merge(
            summary_page, self.html_report, self.output
        )

        return PipelineResult(
            report=report,
            failing=failing,
            trend=trend,
            summary_page=summary_page,
            merged_pdf=self.output,
            page_count=page_count,
        )
