"""Offline sessions over saved portal pages.

:class:`FixtureSession` implements the ``WebSession`` protocol on top of
BeautifulSoup so the search pipeline, the extractor and the runner can be
exercised without a browser. Pages are looked up by absolute URL; an unknown
URL behaves like a page that never finished loading.

A fixture directory holds the saved HTML files plus an ``index.json`` mapping
each URL to its file name.
"""
from __future__ import annotations

import copy
import json
import urllib.parse
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from bs4 import BeautifulSoup
from bs4.element import Tag

from .error_codes import NavigationTimeout, ScrapeError
from .logging_utils import _crawl_event
from .session import WebSession

INDEX_FILE = "index.json"


def load_fixture_pages(directory: Path) -> Dict[str, str]:
    """Read ``index.json`` and the HTML files it names."""

    directory = Path(directory)
    index = json.loads((directory / INDEX_FILE).read_text(encoding="utf-8"))
    if not isinstance(index, dict):
        raise ValueError(f"{directory / INDEX_FILE} must map URLs to file names")
    return {
        str(url): (directory / str(name)).read_text(encoding="utf-8")
        for url, name in index.items()
    }


class FixtureSession:
    def __init__(self, pages: Mapping[str, str]) -> None:
        self._pages = pages
        self._url = "about:blank"
        self._soup: Optional[BeautifulSoup] = None
        self._closed = False
        self.visits: List[str] = []
        self.clicks: List[str] = []
        self.filled: Dict[str, str] = {}
        self.selected: Dict[str, str] = {}

    @property
    def url(self) -> str:
        return self._url

    def is_closed(self) -> bool:
        return self._closed

    def _document(self, fragment: Optional[str] = None) -> BeautifulSoup:
        if fragment is not None:
            frame_url = self._frame_src(fragment)
            if frame_url not in self._pages:
                raise ScrapeError(f"frame {frame_url!r} has no saved page")
            return BeautifulSoup(self._pages[frame_url], "html.parser")
        if self._soup is None:
            raise ScrapeError("no page loaded", url=self._url)
        return self._soup

    def _frame_src(self, fragment: str) -> str:
        for frame in self._document().find_all("iframe"):
            src = frame.get("src") or ""
            if fragment in src:
                return urllib.parse.urljoin(self._url, src)
        raise ScrapeError(f"frame containing {fragment!r} not found", url=self._url)

    def _element(self, selector: str, fragment: Optional[str] = None) -> Tag:
        element = self._document(fragment).select_one(selector)
        if element is None:
            raise ScrapeError(f"could not find {selector}", url=self._url, selector=selector)
        return element

    async def navigate(self, url: str, *, wait_until: str = "load") -> None:
        self.visits.append(url)
        if url not in self._pages:
            raise NavigationTimeout(f"goto({url!r}) timed out", url=url)
        self._url = url
        self._soup = BeautifulSoup(self._pages[url], "html.parser")

    async def wait_for(self, selector: str) -> None:
        self._element(selector)

    async def read_text(self, selector: str, *, frame: Optional[str] = None) -> str:
        element = copy.copy(self._element(selector, frame))
        for br in element.find_all("br"):
            br.replace_with("\n")
        return element.get_text()

    async def read_attribute(
        self, selector: str, name: str, *, frame: Optional[str] = None
    ) -> Optional[str]:
        value = self._element(selector, frame).get(name)
        if isinstance(value, list):
            return " ".join(value)
        return value

    async def read_value(self, selector: str) -> str:
        return self._element(selector).get("value") or ""

    async def read_outer_html_all(self, selector: str) -> List[str]:
        return [str(element) for element in self._document().select(selector)]

    async def frame_url(self, fragment: str) -> str:
        return self._frame_src(fragment)

    async def click(self, selector: str, *, expect_navigation: bool = False) -> None:
        element = self._element(selector)
        self.clicks.append(selector)
        if not expect_navigation:
            return
        target = element.get("href")
        if not target:
            form = element.find_parent("form")
            target = form.get("action") if form is not None else None
        if not target:
            raise NavigationTimeout(f"no navigation after clicking {selector}")
        await self.navigate(urllib.parse.urljoin(self._url, target))

    async def fill_field(self, selector: str, value: str) -> None:
        element = self._element(selector)
        if element.name not in {"input", "textarea"}:
            raise ScrapeError(f"{selector} is not a fillable input")
        element["value"] = value
        self.filled[selector] = value

    async def select_option(self, selector: str, value: str) -> None:
        element = self._element(selector)
        if element.select_one(f'option[value="{value}"]') is None:
            raise ScrapeError(f"{selector} has no option {value!r}")
        self.selected[selector] = value

    async def close(self) -> None:
        self._closed = True


class ReplaySessionFactory:
    """Session factory handing out :class:`FixtureSession` objects."""

    def __init__(self, pages: Mapping[str, str]) -> None:
        self._pages = dict(pages)
        self.created: List[FixtureSession] = []

    @classmethod
    def from_directory(cls, directory: Path) -> "ReplaySessionFactory":
        pages = load_fixture_pages(directory)
        _crawl_event("run", kind="replay_fixtures", directory=str(directory), pages=len(pages))
        return cls(pages)

    async def create(self) -> FixtureSession:
        session = FixtureSession(self._pages)
        self.created.append(session)
        return session

    async def destroy(self, session: WebSession) -> None:
        await session.close()

    def validate(self, session: WebSession) -> bool:
        return session is not None and not session.is_closed()

    async def close(self) -> None:
        return None


__all__ = ["FixtureSession", "ReplaySessionFactory", "load_fixture_pages"]
