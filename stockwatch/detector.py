"""Change detection: which scraped events have not been seen before.

A record is new iff no stored record shares its (timestamp, item) key. The
first run against an empty store is governed by an explicit BootstrapPolicy
because "announce everything" and "seed quietly" are both reasonable.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from .records import InventoryChangeRecord

log = logging.getLogger(__name__)


class BootstrapPolicy(str, Enum):
    NOTIFY_ALL = "notify_all"  # empty store: every scraped event is announced
    SEED_ONLY = "seed_only"    # empty store: remember events, announce nothing


@dataclass
class Detection:
    """Outcome of one comparison.

    unseen: records the store does not know yet, in extraction order
    notify: the subset to announce (empty when seeding)
    """
    unseen: list[InventoryChangeRecord] = field(default_factory=list)
    notify: list[InventoryChangeRecord] = field(default_factory=list)
    bootstrap: bool = False


def detect_changes(
    extracted: list[InventoryChangeRecord],
    previous: list[InventoryChangeRecord],
    policy: BootstrapPolicy = BootstrapPolicy.NOTIFY_ALL,
) -> Detection:
    """Set difference of extracted minus previous, keyed by identity.

    Order of `extracted` is preserved. A key repeated within `extracted` is
    kept once (first occurrence), so a single run never stores it twice.
    """
    policy = BootstrapPolicy(policy)
    seen = {r.key for r in previous}
    unseen = []
    for record in extracted:
        if record.key in seen:
            continue
        seen.add(record.key)
        unseen.append(record)

    bootstrap = not previous
    if bootstrap and policy is BootstrapPolicy.SEED_ONLY:
        log.info(f"Empty store, seeding {len(unseen)} record(s) without notifying")
        return Detection(unseen=unseen, notify=[], bootstrap=True)

    if bootstrap:
        log.info(f"Empty store, treating all {len(unseen)} record(s) as new")
    return Detection(unseen=unseen, notify=list(unseen), bootstrap=bootstrap)
