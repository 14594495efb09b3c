"""Render HTML documents to PDF and concatenate their pages."""

import io
import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol

from playwright.async_api import async_playwright
from pypdf import PdfReader, PdfWriter

from parabank.regression_suite.errors import ReportGenerationError

logger = logging.getLogger(__name__)


class PdfRenderer(Protocol):
    """Renders an HTML document to paginated PDF bytes."""

    async def render(self, document: Path) -> bytes:
        """Return the PDF bytes of the document."""
        ...


class PlaywrightPdfRenderer:
    """Prints HTML documents to A4 PDF with headless Chromium."""

    def __init__(self, page_format: str = "A4", timeout: float = 30.0) -> None:
        """Initialize the renderer."""
        self.page_format = page_format
        self.timeout_ms = timeout * 1000

    async def render(self, document: Path) -> bytes:
        """Load the document from disk and print it."""
        if not document.exists():
            raise FileNotFoundError(f"Document not found: {document}")

        async with async_playwright() as p:
            browser = await p.chromium.launch()
            try:
                page = await browser.new_page()
                await page.goto(
                    document.resolve().as_uri(),
                    wait_until="networkidle",
                    timeout=self.timeout_ms,
                )
                pdf: bytes = await page.pdf(
                    format=self.page_format, print_background=True
                )
            finally:
                await browser.close()
        return pdf


class DocumentMerger:
    """Produces one PDF whose pages are pages(A) followed by pages(B)."""

    def __init__(self, renderer: PdfRenderer | None = None) -> None:
        """Initialize with a renderer, Playwright by default."""
        self.renderer = renderer or PlaywrightPdfRenderer()

    async def _render_pages(self, document: Path) -> PdfReader:
        try:
            data = await self.renderer.render(document)
            return PdfReader(io.BytesIO(data))
        except Exception as e:
            raise ReportGenerationError(f"Failed to render {document}: {e}") from e

    async def merge(self, document_a: Path, document_b: Path, output: Path) -> int:
        """Render both documents and write their concatenation.

        Both renders complete before anything is written; a failure leaves
        no output file.

        Returns:
            Page count of the merged document

        Raises:
            ReportGenerationError: If either render or the write fails

        """
        first = await self._render_pages(document_a)
        second = await self._render_pages(document_b)

        writer = PdfWriter()
        try:
            for reader in (first, second):
                for page in reader.pages:
                    writer.add_page(page)
        except Exception as e:
            raise ReportGenerationError(f"Failed to combine PDF pages: {e}") from e

        page_count = len(writer.pages)
        _write_atomic(writer, output)
        logger.info(f"Merged PDF written: {output} ({page_count} pages)")
        return page_count


def _write_atomic(writer: PdfWriter, output: Path) -> None:
    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=output.parent, prefix=f".{output.name}.", suffix=".tmp"
        )
    except OSError as e:
        raise ReportGenerationError(f"Cannot write {output}: {e}") from e

    try:
        with os.fdopen(fd, "wb") as f:
            writer.write(f)
        os.replace(tmp_name, output)
    except Exception as e:
        Path(tmp_name).unlink(missing_ok=True)
        raise ReportGenerationError(f"Cannot write {output}: {e}") from e
