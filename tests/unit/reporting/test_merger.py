"""Tests for the PDF document merger."""

import io
from pathlib import Path

import pytest
from pypdf import PdfReader, PdfWriter

from parabank.regression_suite.errors import ReportGenerationError
from parabank.regression_suite.reporting.merger import DocumentMerger


def _blank_pdf(pages: int, width: float = 595, height: float = 842) -> bytes:
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=width, height=height)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


class FakeRenderer:
    """Renders documents to blank PDFs with a fixed page count per name."""

    __test__ = False

    def __init__(self, pages: dict[str, int]) -> None:
        """Initialize with page counts keyed by document name."""
        self.pages = pages
        self.rendered: list[str] = []

    async def render(self, document: Path) -> bytes:
        """Return a PDF with the configured number of pages."""
        self.rendered.append(document.name)
        if document.name not in self.pages:
            raise FileNotFoundError(f"Document not found: {document}")
        width = 300 if document.name == "summary.html" else 595
        return _blank_pdf(self.pages[document.name], width=width)


@pytest.fixture
def documents(tmp_path: Path) -> tuple[Path, Path]:
    """Create two HTML documents."""
    summary = tmp_path / "summary.html"
    detail = tmp_path / "index.html"
    summary.write_text("<html>summary</html>")
    detail.write_text("<html>detail</html>")
    return summary, detail


async def test_merge_concatenates_pages(
    tmp_path: Path, documents: tuple[Path, Path]
) -> None:
    """The merged PDF holds A's pages followed by B's."""
    renderer = FakeRenderer({"summary.html": 1, "index.html": 3})
    output = tmp_path / "pdf" / "report.pdf"

    page_count = await DocumentMerger(renderer).merge(*documents, output)

    assert page_count == 4
    reader = PdfReader(output)
    assert len(reader.pages) == 4
    widths = [float(page.mediabox.width) for page in reader.pages]
    assert widths == [300, 595, 595, 595]
    assert renderer.rendered == ["summary.html", "index.html"]


async def test_merge_failure_leaves_no_output(
    tmp_path: Path, documents: tuple[Path, Path]
) -> None:
    """A failed render writes nothing."""
    renderer = FakeRenderer({"summary.html": 1})
    output = tmp_path / "report.pdf"

    with pytest.raises(ReportGenerationError, match="Failed to render"):
        await DocumentMerger(renderer).merge(*documents, output)

    assert not output.exists()
    assert list(tmp_path.glob("*.tmp")) == []


async def test_merge_failure_keeps_previous_output(
    tmp_path: Path, documents: tuple[Path, Path]
) -> None:
    """An existing PDF survives a failed merge untouched."""
    output = tmp_path / "report.pdf"
    output.write_bytes(b"previous")

    with pytest.raises(ReportGenerationError):
        await DocumentMerger(FakeRenderer({})).merge(*documents, output)

    assert output.read_bytes() == b"previous"


async def test_merge_rejects_invalid_pdf(
    tmp_path: Path, documents: tuple[Path, Path]
) -> None:
    """Renderer output that is not a PDF is a generation error."""

    class Garbage:
        async def render(self, document: Path) -> bytes:
            return b"not a pdf"

    with pytest.raises(ReportGenerationError):
        await DocumentMerger(Garbage()).merge(*documents, tmp_path / "out.pdf")
