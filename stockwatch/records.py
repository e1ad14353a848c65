"""Inventory change records scraped from the stock history table.

A record is identified by (timestamp, item) only. The back office exposes no
finer identity, so two rows sharing that pair are the same event even when
their reason, quantity or location differ.
"""

from dataclasses import asdict, dataclass

from .helpers import clean_cell

# Positional column order of the stock history table
FIELDS = ("timestamp", "item", "reason", "quantity", "location")
CELL_COUNT = len(FIELDS)


@dataclass(frozen=True)
class InventoryChangeRecord:
    timestamp: str
    item: str
    reason: str | None
    quantity: str
    location: str

    @property
    def key(self) -> tuple[str, str]:
        """Identity key used for dedup across runs."""
        return (self.timestamp, self.item)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "InventoryChangeRecord":
        """Rebuild a stored record. Raises KeyError/TypeError on a bad shape."""
        return cls(
            timestamp=str(data["timestamp"]),
            item=str(data["item"]),
            reason=data.get("reason"),
            quantity=str(data.get("quantity", "")),
            location=str(data.get("location", "")),
        )


def record_from_cells(cells: list) -> InventoryChangeRecord | None:
    """Map one table row's cells to a record, or None if the row is malformed.

    Rows with fewer than CELL_COUNT cells or a blank timestamp/item are
    rejected outright instead of producing a half-filled record. Extra
    trailing cells are ignored.
    """
    if len(cells) < CELL_COUNT:
        return None
    timestamp, item, reason, quantity, location = (clean_cell(c) for c in cells[:CELL_COUNT])
    if not timestamp or not item:
        return None
    return InventoryChangeRecord(
        timestamp=timestamp,
        item=item,
        reason=reason or None,
        quantity=quantity,
        location=location,
    )
