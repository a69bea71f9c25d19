"""Stats & History Aggregator.

``compute_stats`` is a pure function of a repository snapshot.
``OperationHistory`` is the append-only session audit trail; its display
window drops old entries from view without deleting them from the record.
``MarketAggregator`` keeps the latest stats in step with the repository.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from veilmarket.core.repository import ListingRepository
from veilmarket.models.history import HistoryEntry, MarketStats, OperationKind
from veilmarket.models.listing import Listing, ListingStatus

logger = logging.getLogger(__name__)


def compute_stats(listings: Iterable[Listing]) -> MarketStats:
    """Derive marketplace statistics from *listings*.

    Examples
    --------
    >>> compute_stats([]).avg_price
    0.0
    """
    items = list(listings)
    total = len(items)
    if total == 0:
        return MarketStats()
    return MarketStats(
        total=total,
        available=sum(1 for l in items if l.status == ListingStatus.AVAILABLE),
        sold=sum(1 for l in items if l.status == ListingStatus.SOLD),
        avg_price=sum(l.public_price for l in items) / total,
        verified=sum(1 for l in items if l.is_verified),
    )


class OperationHistory:
    """Append-only, session-local record of completed operations.

    Parameters
    ----------
    window:
        How many of the most recent entries ``recent()`` returns by default.
    """

    def __init__(self, window: int = 5) -> None:
        self._window = max(window, 0)
        self._entries: list[HistoryEntry] = []

    def record(
        self,
        kind: OperationKind,
        listing_id: str,
        display_name: str,
        value: int,
    ) -> HistoryEntry:
        """Append a completed operation and return its entry."""
        entry = HistoryEntry(
            kind=kind,
            listing_id=listing_id,
            display_name=display_name,
            value=value,
        )
        self._entries.append(entry)
        logger.debug("History: %s %s (%s).", kind.value, listing_id, display_name)
        return entry

    def all(self) -> list[HistoryEntry]:
        """Every entry in completion order."""
        return list(self._entries)

    def recent(self, limit: int | None = None) -> list[HistoryEntry]:
        """The newest *limit* entries (default: the display window), oldest first."""
        n = self._window if limit is None else max(limit, 0)
        if n == 0:
            return []
        return self._entries[-n:]

    def __len__(self) -> int:
        return len(self._entries)


class MarketAggregator:
    """Recomputes ``MarketStats`` whenever the repository publishes a snapshot."""

    def __init__(self, repository: ListingRepository) -> None:
        self._stats = compute_stats(repository.snapshot().values())
        repository.add_listener(self._on_snapshot)

    @property
    def stats(self) -> MarketStats:
        return self._stats

    def _on_snapshot(self, snapshot: Mapping[str, Listing]) -> None:
        self._stats = compute_stats(snapshot.values())
