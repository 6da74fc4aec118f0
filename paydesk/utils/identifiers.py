"""
Identifier generation.

Item ids are the only correlation key between the local payment queue and
the backend results, so a generator never hands out the same id twice.
"""

import itertools
import threading
from datetime import UTC, datetime

from paydesk.config.constants import BULK_REFERENCE_PREFIX, ITEM_ID_PREFIX


def utc_now() -> datetime:
    """
    Get current UTC datetime with timezone info.

    Returns:
        Current datetime in UTC with timezone awareness
    """
    return datetime.now(UTC)


def epoch_millis() -> int:
    """Current UTC time in milliseconds since the epoch."""
    return int(utc_now().timestamp() * 1000)


class ItemIdGenerator:
    """
    Generates `ITEM-<epoch-ms>-<seq>` identifiers.

    The sequence number keeps ids unique when several items are created
    within the same millisecond.
    """

    def __init__(self, prefix: str = ITEM_ID_PREFIX) -> None:
        self.prefix = prefix
        self._counter = itertools.count()
        self._lock = threading.Lock()

    def next_id(self) -> str:
        """Return a fresh item id."""
        with self._lock:
            seq = next(self._counter)
        return f"{self.prefix}-{epoch_millis()}-{seq}"


_default_generator = ItemIdGenerator()


def generate_item_id() -> str:
    """Generate an item id from the process-wide generator."""
    return _default_generator.next_id()


def generate_bulk_reference() -> str:
    """Generate a default bulk reference: BULK-<epoch-ms>."""
    return f"{BULK_REFERENCE_PREFIX}-{epoch_millis()}"
