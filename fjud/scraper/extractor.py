from __future__ import annotations

import urllib.parse

from .config import CrawlOptions
from .error_codes import NavigationError, ScrapeError
from .logging_utils import _crawl_event
from .models import RulingContent, RulingMetadata
from .selectors import PORTAL_SELECTORS, PortalSelectors
from .session import WebSession


class ContentExtractor:
    """Read the export link and full text from a resolved ruling page."""

    def __init__(
        self, options: CrawlOptions, *, selectors: PortalSelectors = PORTAL_SELECTORS
    ) -> None:
        self._options = options
        self._selectors = selectors

    async def extract(self, session: WebSession, metadata: RulingMetadata) -> RulingContent:
        """Return the ruling content, or ``RulingContent.empty()`` when the
        page could not be reached.

        Raises :class:`ScrapeError` when the page is reached but is not a
        ruling page or lacks the export anchor or text container.
        """

        try:
            await session.navigate(metadata.link)
        except NavigationError as exc:
            _crawl_event(
                "extract",
                kind="skipped",
                case_number=metadata.case_number,
                error_code=exc.error_code,
                error=str(exc),
            )
            return RulingContent.empty()

        current_url = session.url
        if self._options.document_page_fragment not in current_url:
            raise ScrapeError(
                f"landed on {current_url!r} instead of a ruling page",
                case_number=metadata.case_number,
            )

        href = await session.read_attribute(self._selectors.export_pdf_link, "href")
        export_link = urllib.parse.urljoin(current_url, href) if href else ""
        raw_text = await session.read_text(self._selectors.ruling_text)

        _crawl_event(
            "extract",
            kind="extracted",
            case_number=metadata.case_number,
            chars=len(raw_text),
            has_export=bool(export_link),
        )
        return RulingContent(
            case_number=metadata.case_number,
            raw_text=raw_text,
            export_link_url=export_link,
        )


__all__ = ["ContentExtractor"]
