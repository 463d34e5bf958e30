"""Browser sessions for the FJUD portal.

A session is one browser tab. The pipeline only talks to the
:class:`WebSession` protocol; :class:`PlaywrightSession` implements it over
Playwright's async API and ``replay_session.FixtureSession`` implements it
over saved HTML.
"""
from __future__ import annotations

import asyncio
import urllib.parse
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Protocol, Sequence

from playwright.async_api import (
    Browser,
    BrowserContext,
    ElementHandle,
    Error as PWError,
    Frame,
    Page,
    Playwright,
    Route,
    TimeoutError as PWTimeout,
    async_playwright,
)

from .config import UA, BROWSER_ARGS, CrawlOptions
from .error_codes import NavigationError, NavigationTimeout, ScrapeError
from .logging_utils import _crawl_event


class WebSession(Protocol):
    @property
    def url(self) -> str: ...

    def is_closed(self) -> bool: ...

    async def navigate(self, url: str, *, wait_until: str = "load") -> None: ...

    async def wait_for(self, selector: str) -> None: ...

    async def read_text(self, selector: str, *, frame: Optional[str] = None) -> str: ...

    async def read_attribute(
        self, selector: str, name: str, *, frame: Optional[str] = None
    ) -> Optional[str]: ...

    async def read_value(self, selector: str) -> str: ...

    async def read_outer_html_all(self, selector: str) -> List[str]: ...

    async def frame_url(self, fragment: str) -> str: ...

    async def click(self, selector: str, *, expect_navigation: bool = False) -> None: ...

    async def fill_field(self, selector: str, value: str) -> None: ...

    async def select_option(self, selector: str, value: str) -> None: ...

    async def close(self) -> None: ...


class SessionFactory(Protocol):
    async def create(self) -> WebSession: ...

    async def destroy(self, session: WebSession) -> None: ...

    def validate(self, session: WebSession) -> bool: ...

    async def close(self) -> None: ...


def should_block_request(
    url: str, resource_type: str, *, origin: str, blocked_types: Sequence[str]
) -> bool:
    """Return ``True`` for off-portal requests and non-essential resources."""

    target = urllib.parse.urlsplit(url)
    portal = urllib.parse.urlsplit(origin)
    if (target.scheme, target.netloc.lower()) != (portal.scheme, portal.netloc.lower()):
        return True
    return resource_type in blocked_types


class PlaywrightSession:
    """:class:`WebSession` backed by one Playwright context and page.

    Playwright failures never leave this class untranslated: a timed-out
    navigation becomes :class:`NavigationTimeout`, any other navigation failure
    :class:`NavigationError`, and element-level failures :class:`ScrapeError`.
    """

    def __init__(self, context: BrowserContext, page: Page, *, nav_timeout_ms: int) -> None:
        self._context = context
        self._page = page
        self._nav_timeout_ms = nav_timeout_ms

    @property
    def url(self) -> str:
        return self._page.url

    def is_closed(self) -> bool:
        return self._page.is_closed()

    @asynccontextmanager
    async def _element_errors(self, action: str, selector: str) -> AsyncIterator[None]:
        try:
            yield
        except PWTimeout as exc:
            raise ScrapeError(
                f"{action} {selector} timed out", url=self.url, selector=selector
            ) from exc
        except PWError as exc:
            raise ScrapeError(
                f"{action} {selector} failed: {exc}", url=self.url, selector=selector
            ) from exc

    def _frame(self, fragment: Optional[str]) -> Page | Frame:
        if fragment is None:
            return self._page
        for frame in self._page.frames:
            if fragment in frame.url:
                return frame
        raise ScrapeError(f"frame containing {fragment!r} not found", url=self.url)

    async def _element(self, selector: str, frame: Optional[str] = None) -> ElementHandle:
        target = self._frame(frame)
        async with self._element_errors("query", selector):
            handle = await target.query_selector(selector)
        if handle is None:
            raise ScrapeError(f"could not find {selector}", url=self.url, selector=selector)
        return handle

    async def navigate(self, url: str, *, wait_until: str = "load") -> None:
        _crawl_event("nav", step="goto", url=url)
        try:
            await self._page.goto(url, wait_until=wait_until, timeout=self._nav_timeout_ms)
        except PWTimeout as exc:
            raise NavigationTimeout(f"goto({url!r}) timed out", url=url) from exc
        except PWError as exc:
            raise NavigationError(f"goto({url!r}) failed: {exc}", url=url) from exc

    async def wait_for(self, selector: str) -> None:
        async with self._element_errors("wait for", selector):
            await self._page.wait_for_selector(selector, state="attached")

    async def read_text(self, selector: str, *, frame: Optional[str] = None) -> str:
        handle = await self._element(selector, frame)
        async with self._element_errors("read text of", selector):
            return await handle.inner_text()

    async def read_attribute(
        self, selector: str, name: str, *, frame: Optional[str] = None
    ) -> Optional[str]:
        handle = await self._element(selector, frame)
        async with self._element_errors(f"read {name} of", selector):
            return await handle.get_attribute(name)

    async def read_value(self, selector: str) -> str:
        handle = await self._element(selector)
        async with self._element_errors("read value of", selector):
            return await handle.input_value()

    async def read_outer_html_all(self, selector: str) -> List[str]:
        async with self._element_errors("read rows", selector):
            return await self._page.eval_on_selector_all(
                selector, "elements => elements.map(e => e.outerHTML)"
            )

    async def frame_url(self, fragment: str) -> str:
        return self._frame(fragment).url

    async def click(self, selector: str, *, expect_navigation: bool = False) -> None:
        handle = await self._element(selector)
        if not expect_navigation:
            async with self._element_errors("click", selector):
                await handle.click()
            return
        try:
            async with self._page.expect_navigation(timeout=self._nav_timeout_ms):
                await handle.click()
        except PWTimeout as exc:
            raise NavigationTimeout(f"no navigation after clicking {selector}") from exc
        except PWError as exc:
            raise NavigationError(f"clicking {selector} failed: {exc}") from exc

    async def fill_field(self, selector: str, value: str) -> None:
        handle = await self._element(selector)
        async with self._element_errors("fill", selector):
            await handle.fill(value)

    async def select_option(self, selector: str, value: str) -> None:
        handle = await self._element(selector)
        async with self._element_errors("select option in", selector):
            selected = await handle.select_option(value)
        if value not in selected:
            raise ScrapeError(f"{selector} has no option {value!r}")

    async def close(self) -> None:
        if not self._page.is_closed():
            await self._page.close()
        await self._context.close()


class PlaywrightSessionFactory:
    """Create, validate and destroy Playwright sessions sharing one browser.

    Each session gets its own context so form state and cookies of the
    ASP.NET search never leak between concurrent borrowers.
    """

    def __init__(self, options: CrawlOptions) -> None:
        self._options = options
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._lock = asyncio.Lock()

    async def _ensure_browser(self) -> Browser:
        async with self._lock:
            if self._browser is None:
                self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(
                    headless=self._options.headless,
                    args=list(BROWSER_ARGS),
                )
                _crawl_event("pool", kind="browser_launched", headless=self._options.headless)
            return self._browser

    async def _intercept(self, route: Route) -> None:
        request = route.request
        if should_block_request(
            request.url,
            request.resource_type,
            origin=self._options.portal_origin,
            blocked_types=self._options.blocked_resource_types,
        ):
            await route.abort()
        else:
            await route.continue_()

    async def create(self) -> PlaywrightSession:
        browser = await self._ensure_browser()
        context = await browser.new_context(
            ignore_https_errors=True,
            user_agent=UA,
            locale="zh-TW",
        )
        try:
            page = await context.new_page()
            page.set_default_timeout(self._options.nav_timeout_ms)
            page.set_default_navigation_timeout(self._options.nav_timeout_ms)
            await page.route("**/*", self._intercept)
        except BaseException:
            await context.close()
            raise
        return PlaywrightSession(context, page, nav_timeout_ms=self._options.nav_timeout_ms)

    async def destroy(self, session: WebSession) -> None:
        await session.close()

    def validate(self, session: WebSession) -> bool:
        return session is not None and not session.is_closed()

    async def close(self) -> None:
        async with self._lock:
            if self._browser is not None:
                await self._browser.close()
                self._browser = None
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None


__all__ = [
    "WebSession",
    "SessionFactory",
    "PlaywrightSession",
    "PlaywrightSessionFactory",
    "should_block_request",
]
