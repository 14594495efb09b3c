"""Read and write RunSummary result files."""

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from parabank.regression_suite.errors import ReportGenerationError
from parabank.regression_suite.models.run_summary import RunSummary

logger = logging.getLogger(__name__)


def sanitize_report_text(text: str) -> str:
    """Rewrite escaped Windows path separators to forward slashes."""
    return text.replace("\\\\", "/")


def load_run_summary(path: Path, sanitize: bool = False) -> RunSummary:
    """Load one run result file.

    Args:
        path: Path to a cucumber JSON result file
        sanitize: Rewrite Windows path separators before parsing

    Returns:
        Parsed run summary, empty for an empty file

    Raises:
        ReportGenerationError: If the file is missing, not JSON, or not
            shaped like a run summary

    """
    if not path.exists():
        raise ReportGenerationError(f"Result file not found: {path}")

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ReportGenerationError(f"Cannot read result file {path}: {e}") from e

    if sanitize:
        text = sanitize_report_text(text)

    if not text.strip():
        logger.warning(f"Result file is empty: {path}")
        return RunSummary()

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ReportGenerationError(f"Invalid JSON in {path}: {e}") from e

    try:
        return RunSummary.model_validate(data)
    except ValidationError as e:
        raise ReportGenerationError(f"Invalid run summary schema in {path}: {e}") from e


def load_run_summaries(paths: list[Path], sanitize: bool = False) -> list[RunSummary]:
    """Load several result files, preserving input order."""
    return [load_run_summary(path, sanitize=sanitize) for path in paths]


def write_run_summary(summary: RunSummary, path: Path) -> Path:
    """Write a run summary atomically and return its path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = summary.model_dump_json(indent=2)

    fd, tmp_name = tempfile.mkstemp(
        dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

    logger.info(f"Run summary written: {path}")
    return path
