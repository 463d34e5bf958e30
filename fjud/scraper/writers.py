"""Output sinks for reformatted rulings.

Every sink exposes ``write(document, content) -> Optional[Path]`` and writes
nothing for invalid content. Sinks block, so the runner calls them through
``asyncio.to_thread``.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional, Protocol

from .config import CrawlOptions
from .export_client import download_pdf
from .logging_utils import _crawl_event
from .models import RulingContent, StructuredDocument
from .utils import sanitize_filename_component


class Sink(Protocol):
    def write(self, document: StructuredDocument, content: RulingContent) -> Optional[Path]: ...


def output_stem(case_number: str) -> str:
    stem = sanitize_filename_component(case_number)
    if not stem:
        raise ValueError(f"case number {case_number!r} gives an empty file name")
    return stem


class TextWriter:
    """Write ``<case_number>.txt`` containing the rendered sections."""

    def __init__(self, destination: Path) -> None:
        self.destination = Path(destination)

    def write(self, document: StructuredDocument, content: RulingContent) -> Optional[Path]:
        if not content.is_valid:
            return None
        path = self.destination / f"{output_stem(content.case_number)}.txt"
        path.write_text(document.render_text(), encoding="utf-8")
        _crawl_event("run", kind="written", case_number=content.case_number, path=str(path))
        return path


class ExportPdfDownloader:
    """Fetch the portal's own PDF export next to the text file."""

    def __init__(self, destination: Path, options: CrawlOptions, *, http_client=None) -> None:
        self.destination = Path(destination)
        self._options = options
        self._http_client = http_client

    def write(self, document: StructuredDocument, content: RulingContent) -> Optional[Path]:
        if not content.is_valid or not content.export_link_url:
            return None
        path = self.destination / f"{output_stem(content.case_number)}.pdf"
        download_pdf(
            content.export_link_url,
            path,
            http_client=self._http_client,
            max_retries=self._options.export_retries,
            timeout=self._options.export_timeout_seconds,
            verify=self._options.export_verify_tls,
            token=content.case_number,
        )
        return path


__all__ = ["Sink", "TextWriter", "ExportPdfDownloader", "output_stem"]
