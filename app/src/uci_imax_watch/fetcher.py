import logging
from time import perf_counter

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from .errors import FetchError


class PageFetcher:
    async def fetch(self, url: str) -> str:
        raise NotImplementedError


class PlaywrightPageFetcher(PageFetcher):
    """Load the page in headless Chromium and return its markup."""

    def __init__(self, user_agent: str, timeout_ms: int = 60000, locale: str = "it-IT") -> None:
        self._user_agent = user_agent
        self._timeout_ms = timeout_ms
        self._locale = locale

    async def fetch(self, url: str) -> str:
        logger = logging.getLogger(__name__)
        logger.info("page_fetch_start url=%s", url)
        start_ts = perf_counter()
        try:
            async with async_playwright() as p:
                browser = await p.chromium.launch(headless=True)
                try:
                    context = await browser.new_context(
                        user_agent=self._user_agent,
                        locale=self._locale,
                    )
                    page = await context.new_page()
                    response = await page.goto(
                        url, wait_until="domcontentloaded", timeout=self._timeout_ms
                    )
                    if response is not None and not response.ok:
                        raise FetchError(f"GET {url} returned HTTP {response.status}")
                    html = await page.content()
                finally:
                    await browser.close()
        except PlaywrightError as exc:
            raise FetchError(f"GET {url} failed: {exc}") from exc
        logger.info(
            "page_fetch_done url=%s duration_ms=%s chars=%s",
            url,
            int((perf_counter() - start_ts) * 1000),
            len(html),
        )
        return html
