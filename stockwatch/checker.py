"""Back office stock history checker.

Logs in, scrapes the stock history table, compares it against the state
store, emails any events not seen before, then records them as seen. One
strictly sequential pass per invocation; run it on a schedule via cron or a
hosted job runner. A failed run is simply re-run by the scheduler.

Ordering matters for at-least-once delivery: records are appended to the
store only after the email went out. If the append then fails, the next run
re-sends those events rather than losing them.

Exit codes: 0 success (including "no new changes"), otherwise the failing
error class's exit_code (see errors.py), 1 for anything unexpected.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from .browser import BrowserSession
from .config import LOG_LEVEL, SCREENSHOT_DIR, load_settings
from .detector import detect_changes
from .errors import WatchError
from .extractor import fetch_history
from .notifications import notify_changes
from .records import InventoryChangeRecord
from .session import login
from .store import open_store

log = logging.getLogger(__name__)


def _save_failure_screenshot(browser, stage: str) -> None:
    if not SCREENSHOT_DIR:
        return
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    browser.screenshot(Path(SCREENSHOT_DIR) / f"{stage}_fail_{ts}.png")


def scrape_history(settings) -> list[InventoryChangeRecord]:
    """Log in and scrape in one browser session, closed on every exit path."""
    with BrowserSession() as browser:
        try:
            login(browser, settings.loyverse_email, settings.loyverse_password)
            return fetch_history(browser)
        except WatchError as e:
            _save_failure_screenshot(browser, e.stage)
            raise


def check_stock_history(settings) -> list[InventoryChangeRecord]:
    """Run one check. Returns the records that were notified."""
    window = settings.history_window
    log.info(f"Bootstrap policy: {settings.bootstrap_policy.value}, "
             f"window: {window if window is not None else 'unbounded'}")

    extracted = scrape_history(settings)
    if window is not None and len(extracted) > window:
        log.warning(f"Page shows {len(extracted)} rows but the window keeps {window}; "
                    f"older rows will look new on the next run")

    with open_store(settings.store_url, window) as store:
        store.ensure_schema()
        previous = store.load_recent(window)
        detection = detect_changes(extracted, previous, settings.bootstrap_policy)

        if detection.notify:
            log.info(f"Detected {len(detection.notify)} new change(s)")
            notify_changes(detection.notify, settings)
        elif not detection.unseen:
            log.info("No new inventory changes")

        if detection.unseen:
            # History lists newest first; store newest last so it is pruned last
            store.append(list(reversed(detection.unseen)))

    return detection.notify


def main() -> int:
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    log.info("Starting stock history check...")
    try:
        settings = load_settings()
        check_stock_history(settings)
    except WatchError as e:
        log.error(f"Check failed: {e}")
        return e.exit_code
    except Exception:
        log.exception("Check failed with an unexpected error")
        return 1
    log.info("Check complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
