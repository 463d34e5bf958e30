"""Search pipeline for the FJUD portal.

Workflow for one date window:

- Submit the advanced search form (court ``TPS``, civil category, era dates).
- Read ``#hlLast`` inside the ``qryresultlst.aspx`` frame to learn the page
  count and build one listing URL per page.
- Collect ruling metadata from each listing page (odd rows only; every
  visible row is followed by a hidden summary row).
- Resolve every listing link to a permanent document link through the
  portal's "copy permanent link" action.
"""
from __future__ import annotations

import asyncio
import re
import urllib.parse
from functools import partial
from typing import Dict, List, Sequence, TypeVar

from bs4 import BeautifulSoup

from .config import CrawlOptions
from .date_utils import DateWindow, parse_local_era_date, to_local_era
from .error_codes import (
    LinkResolutionError,
    NavigationError,
    PaginationError,
    PoolCapacityError,
    PoolClosedError,
    ScrapeError,
)
from .logging_utils import _crawl_event
from .models import RulingMetadata
from .selectors import PORTAL_SELECTORS, PortalSelectors
from .session import WebSession
from .session_pool import SessionPool
from .utils import log_line

T = TypeVar("T")

_SIZE_KB = re.compile(r"[（(]\s*(\d+)[^（()）]*[）)]")
# Per-entry failures that drop the entry instead of aborting the window.
_DROPPABLE = (LinkResolutionError, NavigationError, ScrapeError)


def expand_page_urls(last_page_url: str) -> List[str]:
    """Return listing URLs for pages ``1..N`` given the "last page" URL.

    Only the ``page`` query parameter is rewritten; every other query
    segment is kept byte-for-byte.
    """

    parsed = urllib.parse.urlsplit(last_page_url)
    segments = parsed.query.split("&") if parsed.query else []
    page_index = next(
        (i for i, segment in enumerate(segments) if segment.split("=", 1)[0] == "page"),
        None,
    )
    if page_index is None:
        raise PaginationError(f"no page parameter in {last_page_url!r}")

    raw_count = urllib.parse.unquote(segments[page_index].partition("=")[2])
    try:
        page_count = int(raw_count)
    except ValueError:
        raise PaginationError(f"page parameter {raw_count!r} is not a number") from None
    if page_count < 1:
        raise PaginationError(f"page count {page_count} in {last_page_url!r}")

    urls: List[str] = []
    for number in range(1, page_count + 1):
        rewritten = list(segments)
        rewritten[page_index] = f"page={number}"
        urls.append(urllib.parse.urlunsplit(parsed._replace(query="&".join(rewritten))))
    return urls


def select_result_rows(rows: Sequence[T]) -> List[T]:
    """Keep rows at odd positional index (header and summary rows are even)."""

    return list(rows[1::2])


def parse_size_bytes(text: str) -> int:
    """``"（12K）"`` -> ``12 * 1024``; the last parenthesised figure wins."""

    matches = _SIZE_KB.findall(text or "")
    if not matches:
        raise ValueError(f"no size figure in {text!r}")
    return int(matches[-1]) * 1024


def listing_base_url(page_url: str) -> str:
    """Directory of ``page_url``, against which row links are relative."""

    return page_url[: page_url.rfind("/") + 1]


def parse_result_row(row_html: str, base_url: str, *, era_offset: int) -> RulingMetadata:
    """Parse one visible listing row (four ``<td>`` cells).

    Raises :class:`ScrapeError` when the row does not have the expected shape.
    """

    soup = BeautifulSoup(row_html, "html.parser")
    cells = soup.find_all("td")
    if len(cells) < 4:
        raise ScrapeError(f"expected 4 cells, found {len(cells)}")

    anchor = cells[1].find("a")
    if anchor is None or not anchor.get("href"):
        raise ScrapeError("row has no ruling link")

    try:
        ruling_date = parse_local_era_date(cells[2].get_text(strip=True), era_offset)
        size = parse_size_bytes(cells[1].get_text())
    except ValueError as exc:
        raise ScrapeError(str(exc)) from exc

    return RulingMetadata(
        case_number=anchor.get_text(strip=True),
        ruling_date=ruling_date,
        document_size_bytes=size,
        subject_reason=cells[3].get_text(strip=True),
        link=urllib.parse.urljoin(base_url, anchor["href"]),
    )


class SearchPipeline:
    """Run the portal workflow for one :class:`DateWindow` through a pool."""

    def __init__(
        self,
        pool: SessionPool,
        options: CrawlOptions,
        *,
        selectors: PortalSelectors = PORTAL_SELECTORS,
    ) -> None:
        self._pool = pool
        self._options = options
        self._selectors = selectors
        self.page_count = 0
        self.found_count = 0

    async def run(self, window: DateWindow) -> List[RulingMetadata]:
        page_urls = await self._pool.with_session(partial(self.initiate, window=window))
        self.page_count = len(page_urls)
        log_line(f"[SEARCH] {window}: {len(page_urls)} result page(s)")

        pending: List[RulingMetadata] = []
        tasks: List[asyncio.Task] = []
        try:
            for number, page_url in enumerate(page_urls, start=1):
                found = await self._pool.with_session(
                    partial(self.collect_metadata, page_url=page_url)
                )
                _crawl_event("search", kind="page_collected", page=number, rows=len(found))
                for metadata in found:
                    pending.append(metadata)
                    tasks.append(
                        asyncio.ensure_future(
                            self._pool.with_session(partial(self.resolve_link, metadata=metadata))
                        )
                    )
            self.found_count = len(pending)
            results = await asyncio.gather(*tasks, return_exceptions=True)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        resolved: Dict[str, RulingMetadata] = {}
        for metadata, result in zip(pending, results):
            if isinstance(result, (PoolClosedError, asyncio.CancelledError)):
                raise result
            if isinstance(result, PoolCapacityError) or isinstance(result, _DROPPABLE):
                _crawl_event(
                    "resolve",
                    kind="dropped",
                    case_number=metadata.case_number,
                    error_code=result.error_code,
                    error=str(result),
                )
                continue
            if isinstance(result, BaseException):
                raise result
            if result.case_number in resolved:
                _crawl_event("resolve", kind="duplicate", case_number=result.case_number)
                continue
            resolved[result.case_number] = result

        log_line(
            f"[SEARCH] {window}: resolved {len(resolved)} of {len(pending)} ruling(s)"
        )
        return list(resolved.values())

    async def initiate(self, session: WebSession, window: DateWindow) -> List[str]:
        """Submit the search form and return one URL per result page."""

        sel = self._selectors
        await session.navigate(self._options.search_url)
        await asyncio.gather(
            session.wait_for(sel.court_option(self._options.target_court)),
            session.wait_for(sel.court_select),
            session.wait_for(sel.category_checkbox),
        )
        await session.select_option(sel.court_select, self._options.target_court)
        await session.click(sel.category_checkbox)
        offset = self._options.era_offset
        era_fields = to_local_era(window.start, offset) + to_local_era(window.end, offset)
        for selector, value in zip(sel.date_fields, era_fields):
            await session.fill_field(selector, str(value))
        await session.click(sel.submit, expect_navigation=True)

        fragment = self._options.result_frame_fragment
        try:
            frame_url = await session.frame_url(fragment)
            href = await session.read_attribute(sel.last_page_link, "href", frame=fragment)
        except ScrapeError as exc:
            raise PaginationError(f"pagination not found: {exc}") from exc
        if not href:
            raise PaginationError(f"{sel.last_page_link} has an empty href")

        last_page_url = urllib.parse.urljoin(frame_url, href)
        _crawl_event("search", kind="last_page", url=last_page_url)
        return expand_page_urls(last_page_url)

    async def collect_metadata(self, session: WebSession, page_url: str) -> List[RulingMetadata]:
        """Parse one listing page; any failure yields an empty list."""

        try:
            await session.navigate(page_url, wait_until="domcontentloaded")
            rows = await session.read_outer_html_all(self._selectors.result_rows)
            base_url = listing_base_url(session.url)
            return [
                parse_result_row(row, base_url, era_offset=self._options.era_offset)
                for row in select_result_rows(rows)
            ]
        except (NavigationError, ScrapeError) as exc:
            _crawl_event(
                "error",
                phase="search",
                kind="page_skipped",
                url=page_url,
                error_code=exc.error_code,
                error=str(exc),
            )
            return []

    async def resolve_link(self, session: WebSession, metadata: RulingMetadata) -> RulingMetadata:
        """Replace the listing link with the permanent document link."""

        if self._options.listing_link_fragment not in metadata.link:
            raise LinkResolutionError(
                f"{metadata.link!r} is not a document link", case_number=metadata.case_number
            )

        await session.navigate(metadata.link, wait_until="domcontentloaded")
        await session.click(self._selectors.copy_permanent_link)
        deadline = self._options.link_read_timeout_ms / 1000
        try:
            permanent_link = await asyncio.wait_for(self._read_permanent_link(session), deadline)
        except asyncio.TimeoutError:
            raise LinkResolutionError(
                f"no permanent link within {self._options.link_read_timeout_ms}ms",
                case_number=metadata.case_number,
            ) from None

        metadata.resolve(permanent_link)
        _crawl_event("resolve", kind="resolved", case_number=metadata.case_number)
        return metadata

    async def _read_permanent_link(self, session: WebSession) -> str:
        while True:
            value = (await session.read_value(self._selectors.permanent_link_field)).strip()
            if value:
                return value
            await asyncio.sleep(0.02)


__all__ = [
    "SearchPipeline",
    "expand_page_urls",
    "select_result_rows",
    "parse_size_bytes",
    "listing_base_url",
    "parse_result_row",
]
