"""Tracking of notifications that another source may raise a second time."""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

from .const import DEDUP_CAPACITY_DEFAULT, DEDUP_TTL_SECONDS_DEFAULT
from .models import NotificationRecord

_LOGGER = logging.getLogger(__name__)


class NotificationDeduper:
    """Per-device map of local notification ids to their records.

    A record is registered before a conversation lookup so that a duplicate
    raised by another source (for example a mirrored platform notification)
    can be recognized and, when the event ends up in an open conversation,
    suppressed through the cancelled flag.

    Records leave the map when the other source claims them, when the
    notification is withdrawn, when they are older than ``ttl`` seconds, or
    when ``capacity`` is exceeded (oldest first).
    """

    def __init__(
        self,
        ttl: float = DEDUP_TTL_SECONDS_DEFAULT,
        capacity: int = DEDUP_CAPACITY_DEFAULT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self.capacity = capacity
        self._clock = clock
        self._records: OrderedDict[str, NotificationRecord] = OrderedDict()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, local_id: object) -> bool:
        return local_id in self._records

    def mark_duplicate(self, local_id: str, ticker: str, is_cancel: bool = False) -> None:
        """Register *local_id*, or mark it cancelled when *is_cancel* is set."""
        if is_cancel:
            record = self._records.get(local_id)
            if record is None:
                _LOGGER.debug("No pending notification %s to cancel", local_id)
                return
            record.cancelled = True
            record.ticker = ticker
            return

        self._prune()
        self._records.pop(local_id, None)
        self._records[local_id] = NotificationRecord(
            local_id=local_id,
            ticker=ticker,
            created_at=self._clock(),
        )

        while len(self._records) > self.capacity:
            evicted, _ = self._records.popitem(last=False)
            _LOGGER.debug("Evicted notification record %s (capacity)", evicted)

    def get(self, local_id: str) -> NotificationRecord | None:
        return self._records.get(local_id)

    def is_cancelled(self, local_id: str) -> bool:
        record = self._records.get(local_id)
        return record is not None and record.cancelled

    def claim(self, local_id: str) -> NotificationRecord | None:
        """Remove and return the record for *local_id* once acted upon."""
        return self._records.pop(local_id, None)

    def discard(self, local_id: str) -> None:
        self._records.pop(local_id, None)

    def clear(self) -> None:
        self._records.clear()

    def _prune(self) -> None:
        if self.ttl <= 0:
            return
        cutoff = self._clock() - self.ttl
        expired = [
            local_id
            for local_id, record in self._records.items()
            if record.created_at < cutoff
        ]
        for local_id in expired:
            del self._records[local_id]
        if expired:
            _LOGGER.debug("Pruned %d expired notification records", len(expired))

    def as_dict(self) -> dict[str, dict[str, Any]]:
        return {
            local_id: {"ticker": record.ticker, "cancelled": record.cancelled}
            for local_id, record in self._records.items()
        }
