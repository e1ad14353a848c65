"""Stock history scraping.

Opens the back office stock history view, waits until the history table is
in the DOM (never a fixed sleep), and maps each row's cells positionally to
an InventoryChangeRecord. Rows that don't fit the five-column schema are
dropped and counted, never returned half-filled.
"""

import logging

from .config import NAVIGATION_TIMEOUT_MS, RENDER_TIMEOUT_MS, STOCK_HISTORY_URL
from .errors import ExtractionError, NavigationTimeout
from .records import InventoryChangeRecord, record_from_cells

log = logging.getLogger(__name__)

TABLE_SELECTOR = "table"
ROW_SELECTOR = "table tbody tr"


def parse_rows(rows: list) -> list[InventoryChangeRecord]:
    """Convert raw cell lists into records, keeping page order."""
    records = []
    dropped = 0
    for cells in rows:
        record = record_from_cells(cells or [])
        if record is None:
            dropped += 1
            continue
        records.append(record)
    if dropped:
        log.info(f"Dropped {dropped} malformed row(s)")
    return records


def fetch_history(browser) -> list[InventoryChangeRecord]:
    """Scrape the stock history table from an authenticated browser session.

    Raises:
        NavigationTimeout: the history page did not load in time
        ExtractionError: the history table never rendered
    """
    log.info("Opening stock history...")
    browser.navigate(STOCK_HISTORY_URL, wait_until="domcontentloaded", timeout_ms=NAVIGATION_TIMEOUT_MS)
    try:
        browser.wait_for_selector(TABLE_SELECTOR, timeout_ms=RENDER_TIMEOUT_MS)
    except NavigationTimeout as e:
        raise ExtractionError(
            f"Stock history table did not render within {RENDER_TIMEOUT_MS}ms"
        ) from e

    rows = browser.extract(ROW_SELECTOR)
    records = parse_rows(rows)
    log.info(f"Extracted {len(records)} record(s) from {len(rows)} row(s)")
    return records
