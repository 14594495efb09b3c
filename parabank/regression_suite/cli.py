"""CLI entry point for the ParaBank regression suite tooling."""

import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Optional

import typer

from parabank.regression_suite.api.client import ApiAdapter
from parabank.regression_suite.errors import ConfigurationError, ReportGenerationError
from parabank.regression_suite.models.suite_config import SuiteSettings
from parabank.regression_suite.reporting.aggregator import ReportAggregator
from parabank.regression_suite.reporting.pipeline import ReportingPipeline
from parabank.regression_suite.runner import load_hooks, load_scenarios
from parabank.regression_suite.scheduler import LifecycleScheduler, SuiteOutcome
from parabank.regression_suite.settings import (
    load_profiles,
    load_settings,
    select_profile,
)

# Configure logging - force reconfiguration
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,
    force=True,  # Force reconfiguration even if already set up
)
logger = logging.getLogger(__name__)

app = typer.Typer()


def _settings(reports_dir: Optional[Path] = None) -> SuiteSettings:
    try:
        settings = load_settings()
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=2)
    if reports_dir is not None:
        settings = settings.model_copy(update={"reports_dir": reports_dir})
    return settings


def _result_files(reports_dir: Path) -> list[Path]:
    """Result files oldest first; the last one is the latest run."""
    return sorted(
        reports_dir.glob("*.json"), key=lambda p: (p.stat().st_mtime, p.name)
    )


@app.command()
def run(
    scenarios: str = typer.Argument(
        ..., help="Import path (module:attr) of the scenarios to run"
    ),
    hooks: Optional[str] = typer.Option(
        None, help="Import path (module:attr) of lifecycle hooks"
    ),
    profile: Optional[str] = typer.Option(
        None, help="Execution profile; defaults to PROFILE or 'default'"
    ),
    profiles_file: Optional[Path] = typer.Option(  # noqa: B008
        None, help="YAML file extending or overriding the built-in profiles"
    ),
    reports_dir: Optional[Path] = typer.Option(  # noqa: B008
        None, help="Reports root for results and evidence"
    ),
    report: bool = typer.Option(
        True, help="Build the summary page and merged PDF after the run"
    ),
) -> None:
    """Run scenarios through the lifecycle scheduler."""
    settings = _settings(reports_dir)
    try:
        selected = select_profile(profile, profiles_path=profiles_file)
    except ConfigurationError as e:
        logger.error(f"Invalid profile: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=2)

    async def _run() -> SuiteOutcome:
        loaded = await load_scenarios(scenarios)
        suite_hooks = await load_hooks(hooks) if hooks else []
        scheduler = LifecycleScheduler(
            settings,
            selected,
            hooks=suite_hooks,
            reporter=ReportingPipeline(settings) if report else None,
        )
        return await scheduler.run(loaded)

    try:
        outcome = asyncio.run(_run())
    except ConfigurationError as e:
        logger.error(f"Cannot load scenarios: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=2)

    aggregate = outcome.aggregate
    output_json = {
        "profile": selected.name,
        "total": aggregate.total,
        "passed": aggregate.passed,
        "failed": aggregate.failed,
        "skipped": aggregate.skipped,
        "success_rate": aggregate.success_rate,
        "result_file": str(outcome.result_file) if outcome.result_file else None,
        "failing": [
            {"feature": feature.name, "scenario": scenario.name}
            for feature, scenario in outcome.summary.scenarios()
            if scenario.status == "failed"
        ],
    }
    typer.echo(json.dumps(output_json, indent=2))

    if outcome.exit_code:
        logger.error(f"Scenarios failed: {aggregate.failed}/{aggregate.total}")
        raise typer.Exit(code=outcome.exit_code)


@app.command()
def report(
    reports_dir: Optional[Path] = typer.Option(  # noqa: B008
        None, help="Reports root holding the run result JSON files"
    ),
    html_report: Optional[Path] = typer.Option(  # noqa: B008
        None, help="Externally rendered HTML report to append to the PDF"
    ),
    output: Optional[Path] = typer.Option(  # noqa: B008
        None, help="Merged PDF path"
    ),
    history_dir: Optional[Path] = typer.Option(  # noqa: B008
        None, help="Directory of archived runs used for the trend"
    ),
) -> None:
    """Aggregate run results and build the merged PDF report."""
    settings = _settings(reports_dir)
    result_files = _result_files(settings.reports_dir)

    logger.info("=" * 80)
    logger.info("ParaBank report generation - Starting")
    logger.info("=" * 80)
    logger.info(f"Reports root: {settings.reports_dir}")
    logger.info(f"Result files: {[p.name for p in result_files]}")

    if not result_files:
        typer.echo("No result files found")
        return

    aggregator = ReportAggregator(sanitize=True)
    try:
        aggregate = aggregator.ingest(result_files)
    except ReportGenerationError as e:
        logger.error(f"Failed to read results: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    pipeline = ReportingPipeline(
        settings, html_report=html_report, output=output, history_dir=history_dir
    )
    merged_pdf: Optional[str] = None
    try:
        result = asyncio.run(pipeline.run(result_files))
        merged_pdf = str(result.merged_pdf)
    except ReportGenerationError as e:
        logger.warning(f"Report generation failed: {e}")
        typer.echo(f"Warning: report generation failed: {e}", err=True)

    latest = aggregate.per_run[-1]
    output_json = {
        "total": aggregate.combined.total,
        "passed": aggregate.combined.passed,
        "failed": aggregate.combined.failed,
        "latest": {
            "source": latest.source,
            "total": latest.total,
            "passed": latest.passed,
            "failed": latest.failed,
            "success_rate": latest.success_rate,
        },
        "failing": [f.model_dump() for f in aggregator.failing_scenarios()],
        "merged_pdf": merged_pdf,
    }
    typer.echo(json.dumps(output_json, indent=2))

    if latest.failed:
        logger.error(f"Scenarios failed: {latest.failed}/{latest.total}")
        raise typer.Exit(code=1)


@app.command()
def health() -> None:
    """Probe the ParaBank API once and print the result."""
    settings = _settings()
    adapter = ApiAdapter(settings.api_base_url, timeout=settings.api_timeout)
    healthy = asyncio.run(adapter.check_health())
    typer.echo(
        json.dumps(
            {
                "healthy": healthy,
                "response_time_ms": round(adapter.response_time, 1),
                "base_url": adapter.base_url,
            },
            indent=2,
        )
    )


@app.command()
def profiles(
    profiles_file: Optional[Path] = typer.Option(  # noqa: B008
        None, help="YAML file extending or overriding the built-in profiles"
    ),
    profile: Optional[str] = typer.Option(
        None, help="Print only this profile, resolved with PROFILE and TAGS"
    ),
) -> None:
    """Print the execution profiles."""
    try:
        if profile is not None or os.environ.get("PROFILE"):
            selected = select_profile(profile, profiles_path=profiles_file)
            resolved = {selected.name: selected}
        else:
            resolved = load_profiles(profiles_file)
    except ConfigurationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=2)
    typer.echo(
        json.dumps({name: p.model_dump() for name, p in resolved.items()}, indent=2)
    )


if __name__ == "__main__":  # pragma: no cover
    app()
