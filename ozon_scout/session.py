"""Browser session: one Chromium process, one context, one page."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from ozon_scout.errors import BrowserLaunchError, NavigationError, NavigationTimeoutError
from ozon_scout.extractors.dom_utils import SleepFn, jitter_mouse, scroll_page
from ozon_scout.logging_config import get_logger
from ozon_scout.playwright_env import (
    WEBDRIVER_INIT_SCRIPT,
    apply_stealth,
    context_kwargs,
    launch_kwargs,
)
from ozon_scout.settings import ClientSettings

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class NavigationResult:
    final_url: str
    title: str
    blocked: bool


class BrowserSession:
    """Owns the browser process behind one browsing identity.

    ``open`` acquires playwright, browser, context and page in that order and
    releases whatever was acquired if a later step fails. ``close`` may be
    called any number of times.
    """

    def __init__(self, settings: ClientSettings, *, sleep_fn: SleepFn = asyncio.sleep) -> None:
        self.settings = settings
        self._sleep = sleep_fn
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self.page: Page | None = None
        self._crash_reason: str | None = None

    @property
    def is_open(self) -> bool:
        return self.page is not None and self._crash_reason is None

    async def open(self) -> None:
        if self.page is not None:
            return

        LOGGER.info("Creating fresh browser instance (headless=%s)", self.settings.headless)
        try:
            self._playwright = await async_playwright().start()
            apply_stealth(self._playwright, self.settings)
            self._browser = await self._playwright.chromium.launch(**launch_kwargs(self.settings))
            self._context = await self._browser.new_context(**context_kwargs(self.settings))
            await self._context.add_init_script(WEBDRIVER_INIT_SCRIPT)
            self.page = await self._context.new_page()
        except (PlaywrightError, OSError) as exc:
            await self.close()
            raise BrowserLaunchError(f"Failed to start browser: {exc}") from exc
        except BaseException:
            await self.close()
            raise

        self._crash_reason = None
        self.page.on("crash", lambda _: self._mark_crash("crash"))
        self.page.on("close", lambda _: self._mark_crash("page_close"))
        LOGGER.info("Browser created")

    def _mark_crash(self, reason: str) -> None:
        # close() clears the page first, so its own page_close event is ignored.
        if self.page is not None and self._crash_reason is None:
            self._crash_reason = reason
            LOGGER.error("Playwright page event=%s", reason)

    def _require_page(self) -> Page:
        if self.page is None:
            raise NavigationError("Browser session is not open")
        if self._crash_reason is not None:
            raise NavigationError(f"Browser page inactive ({self._crash_reason})")
        return self.page

    async def navigate(
        self,
        url: str,
        *,
        settle_ms: int | None = None,
        humanize: bool = False,
    ) -> NavigationResult:
        """Load *url*, let dynamic content settle and report the landing title."""

        page = self._require_page()
        settle_ms = self.settings.target_settle_ms if settle_ms is None else settle_ms

        LOGGER.info("Loading: %s", url)
        try:
            await page.goto(url, wait_until="domcontentloaded", timeout=self.settings.nav_timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise NavigationTimeoutError(url=url, detail=f"{self.settings.nav_timeout_ms} ms") from exc
        except PlaywrightError as exc:
            raise NavigationError(url=url, detail=str(exc).splitlines()[0]) from exc

        if humanize:
            # Interaction happens inside the settle window, not after it.
            await self._sleep(settle_ms / 2000)
            await jitter_mouse(page, sleep_fn=self._sleep)
            await scroll_page(page, sleep_fn=self._sleep)
            await self._sleep(settle_ms / 2000)
        else:
            await self._sleep(settle_ms / 1000)

        try:
            title = await page.title()
        except PlaywrightError:
            title = ""

        LOGGER.info("Page title: %s", title)
        return NavigationResult(
            final_url=page.url,
            title=title,
            blocked=self.settings.is_block_title(title),
        )

    async def warm_up(self, home_url: str | None = None) -> NavigationResult:
        """Visit the homepage and mimic a human before the real target is requested."""

        return await self.navigate(
            home_url or self.settings.home_url,
            settle_ms=self.settings.home_settle_ms,
            humanize=True,
        )

    async def close(self) -> None:
        browser, playwright = self._browser, self._playwright
        self._playwright = None
        self._browser = None
        self._context = None
        self.page = None

        if browser is not None:
            try:
                await browser.close()
            except PlaywrightError as exc:
                LOGGER.warning("Failed to close browser: %s", exc)
        if playwright is not None:
            try:
                await playwright.stop()
            except PlaywrightError as exc:
                LOGGER.warning("Failed to stop playwright: %s", exc)
        if browser is not None or playwright is not None:
            LOGGER.info("Browser closed")

    async def __aenter__(self) -> "BrowserSession":
        await self.open()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
