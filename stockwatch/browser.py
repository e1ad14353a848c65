"""Headless browser session built on the Playwright sync API.

Exposes the handful of operations the checker needs (navigate, fill, click,
wait, extract table rows). Playwright timeouts become NavigationTimeout so
every bounded wait fails the same way; other Playwright errors become a
browser-stage WatchError.

Synchronous (not async) since the checker runs as a simple script.
"""

import logging
from contextlib import contextmanager
from pathlib import Path

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeout
from playwright.sync_api import sync_playwright

from .config import HEADLESS, NAVIGATION_TIMEOUT_MS
from .errors import ExtractionError, NavigationTimeout, WatchError

log = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

# Cell text for every row matched by the selector, evaluated in the page
_ROWS_JS = """
rows => rows.map(row =>
    Array.from(row.querySelectorAll('td')).map(td => (td.innerText || '').trim())
)
"""


@contextmanager
def _bounded(action: str):
    """Translate Playwright failures into WatchError subclasses.

    Timeouts become NavigationTimeout; anything else Playwright raises
    (DNS failure, closed target) is a browser-stage WatchError.
    """
    try:
        yield
    except PlaywrightTimeout as e:
        raise NavigationTimeout(f"Timed out during {action}: {e.message}") from e
    except PlaywrightError as e:
        raise WatchError(f"Browser error during {action}: {e.message}", stage="browser") from e


class BrowserSession:
    """One Chromium browser, context and page for the duration of a run.

    Usage:
        with BrowserSession() as browser:
            browser.navigate(url)
        # browser and driver closed on exit, even after an error
    """

    def __init__(self, headless: bool | None = None, timeout_ms: int = NAVIGATION_TIMEOUT_MS):
        self.headless = HEADLESS if headless is None else headless
        self.timeout_ms = timeout_ms
        self._playwright = None
        self._browser = None
        self._context = None
        self.page = None

    def start(self) -> None:
        log.info(f"Starting browser (headless={self.headless})...")
        try:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(headless=self.headless)
            self._context = self._browser.new_context(
                viewport={"width": 1440, "height": 900},
                user_agent=USER_AGENT,
            )
            self.page = self._context.new_page()
        except PlaywrightError as e:
            self.close()
            raise WatchError(f"Could not start browser: {e}", stage="browser") from e
        self.page.set_default_timeout(self.timeout_ms)
        self.page.set_default_navigation_timeout(self.timeout_ms)

    def close(self) -> None:
        """Release page, context, browser and driver. Safe to call twice."""
        for name in ("page", "_context", "_browser"):
            resource = getattr(self, name)
            setattr(self, name, None)
            if resource is None:
                continue
            try:
                resource.close()
            except PlaywrightError as e:
                log.warning(f"Error closing {name.lstrip('_')}: {e}")
        if self._playwright is not None:
            try:
                self._playwright.stop()
            except PlaywrightError as e:
                log.warning(f"Error stopping Playwright: {e}")
            self._playwright = None
            log.info("Browser closed")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *exc):
        self.close()
        return False

    @property
    def current_url(self) -> str:
        return self.page.url

    def navigate(self, url: str, wait_until: str = "domcontentloaded", timeout_ms: int | None = None) -> None:
        with _bounded(f"navigation to {url}"):
            self.page.goto(url, wait_until=wait_until, timeout=timeout_ms or self.timeout_ms)

    def fill(self, selector: str, value: str) -> None:
        with _bounded(f"fill {selector}"):
            self.page.fill(selector, value)

    def click(self, selector: str) -> None:
        with _bounded(f"click {selector}"):
            self.page.click(selector)

    def wait_for_load(self, state: str = "networkidle", timeout_ms: int | None = None) -> None:
        with _bounded(f"wait for {state}"):
            self.page.wait_for_load_state(state, timeout=timeout_ms or self.timeout_ms)

    def wait_for_selector(self, selector: str, timeout_ms: int | None = None) -> None:
        with _bounded(f"wait for {selector}"):
            self.page.wait_for_selector(selector, timeout=timeout_ms or self.timeout_ms)

    def extract(self, row_selector: str) -> list[list[str]]:
        """Return the td texts of every row matching row_selector."""
        try:
            return self.page.eval_on_selector_all(row_selector, _ROWS_JS)
        except PlaywrightError as e:
            raise ExtractionError(f"Could not read rows for {row_selector}: {e}") from e

    def screenshot(self, path) -> str | None:
        """Best-effort full-page screenshot for diagnosing a failed run."""
        if self.page is None:
            return None
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            self.page.screenshot(path=str(path), full_page=True)
        except (PlaywrightError, OSError) as e:
            log.warning(f"Could not take screenshot: {e}")
            return None
        log.info(f"Screenshot saved: {path}")
        return str(path)
