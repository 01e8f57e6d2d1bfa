from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from telegram_ads_stats.errors import (
    ExtractionError,
    FetchNotFound,
    FetchTimeout,
    NavigationError,
    ProfileSessionError,
)
from telegram_ads_stats.models import DetailRow, SummaryRecord
from telegram_ads_stats.parsing import STATS_TABLE_SELECTOR, parse_detail_rows, parse_summary_table

VIEWPORT = {"width": 1920, "height": 1080}
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
WEBDRIVER_MASK_SCRIPT = "Object.defineProperty(navigator, 'webdriver', { get: () => false });"


class AdsBrowserSession:
    """Playwright session attached to a running AdsPower profile over CDP.

    Serves as both the summary extractor and the per-ad detail fetcher. Each
    call works in its own tab, which is closed on every exit path.
    """

    def __init__(
        self,
        *,
        ws_endpoint: str,
        base_url: str = "https://ads.telegram.org",
        connect_timeout_ms: int = 30000,
        navigation_timeout_ms: int = 60000,
        summary_timeout_ms: int = 120000,
        table_timeout_ms: int = 30000,
        scroll_settle_ms: int = 2000,
    ) -> None:
        self.ws_endpoint = ws_endpoint.strip()
        self.base_url = base_url.rstrip("/")
        self.connect_timeout_ms = connect_timeout_ms
        self.navigation_timeout_ms = navigation_timeout_ms
        self.summary_timeout_ms = summary_timeout_ms
        self.table_timeout_ms = table_timeout_ms
        self.scroll_settle_ms = scroll_settle_ms

        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None

    async def __aenter__(self) -> "AdsBrowserSession":
        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.connect_over_cdp(
                self.ws_endpoint,
                timeout=self.connect_timeout_ms,
            )
        except PlaywrightError as exc:
            await self._playwright.stop()
            self._playwright = None
            raise ProfileSessionError(f"Could not attach to browser profile: {exc}") from exc

        contexts = self._browser.contexts
        if contexts:
            self._context = contexts[0]
        else:
            self._context = await self._browser.new_context()
            await self._context.add_init_script(WEBDRIVER_MASK_SCRIPT)
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        try:
            if self._browser is not None:
                await self._browser.close()
        finally:
            self._browser = None
            self._context = None
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None

    def resolve_url(self, reference: str) -> str:
        value = reference.strip()
        if value.startswith(("http://", "https://")):
            return value
        if not value.startswith("/"):
            value = f"/{value}"
        return f"{self.base_url}{value}"

    @asynccontextmanager
    async def page(self) -> AsyncIterator[Page]:
        if self._context is None:
            raise RuntimeError("Browser session is not open.")
        page = await self._context.new_page()
        try:
            await page.set_viewport_size(VIEWPORT)
            await page.set_extra_http_headers({"User-Agent": USER_AGENT})
            yield page
        finally:
            await page.close()

    async def extract_summary(self, source_key: str) -> list[SummaryRecord]:
        url = f"{self.base_url}/account/stats?month={source_key}#report"
        try:
            async with self.page() as page:
                await page.goto(url, timeout=self.summary_timeout_ms)
                # Lazy rows only render after scrolling.
                await page.evaluate("window.scrollTo(0, document.body.scrollHeight)")
                await page.wait_for_timeout(self.scroll_settle_ms)
                html = await page.content()
        except PlaywrightError as exc:
            raise ExtractionError(f"Summary page unreachable: {url} | {exc}") from exc
        return parse_summary_table(html)

    async def fetch(self, reference: str, timeout_sec: float) -> list[DetailRow]:
        url = self.resolve_url(reference)
        table_timeout_ms = min(self.table_timeout_ms, max(1, int(timeout_sec * 1000)))
        try:
            async with self.page() as page:
                await page.goto(url, timeout=self.navigation_timeout_ms)
                await page.wait_for_load_state("networkidle")
                await page.wait_for_selector(STATS_TABLE_SELECTOR, timeout=table_timeout_ms)
                html = await page.content()
        except PlaywrightTimeoutError as exc:
            raise FetchTimeout(reference, f"Stats table did not load: {exc}") from exc
        except PlaywrightError as exc:
            raise NavigationError(reference, f"Navigation failed: {exc}") from exc

        rows = parse_detail_rows(html)
        if rows is None:
            raise FetchNotFound(reference, "Stats table missing")
        return rows
