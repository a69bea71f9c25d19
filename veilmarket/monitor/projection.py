"""MarketProjection — pure read-only view over a session.

The market monitor is a PROJECTION of the listing repository and the
session history.  It does not compute truth; it displays it.  Every call
re-reads the session, and clear values of unverified listings never reach
the snapshot.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from veilmarket.core.aggregator import compute_stats
from veilmarket.core.notifier import StatusNotice
from veilmarket.core.session import SessionContext
from veilmarket.models.history import HistoryEntry, MarketStats
from veilmarket.models.listing import Listing, ListingStatus


class ListingRow(BaseModel):
    """Display row for one listing.

    ``value`` is ``None`` unless the ledger reports the listing verified.
    """

    model_config = ConfigDict(frozen=True)

    listing_id: str
    name: str
    sensor_type: str
    creator: str
    price: int
    status: ListingStatus
    is_verified: bool
    value: int | None = None
    created_at: datetime

    @classmethod
    def from_listing(cls, listing: Listing) -> ListingRow:
        return cls(
            listing_id=listing.listing_id,
            name=listing.name,
            sensor_type=listing.sensor_type,
            creator=listing.short_creator,
            price=listing.public_price,
            status=listing.status,
            is_verified=listing.is_verified,
            value=listing.clear_value,
            created_at=listing.created_at,
        )


class MarketSnapshot(BaseModel):
    """A frozen, point-in-time snapshot of the marketplace as this session sees it."""

    model_config = ConfigDict(frozen=True)

    contract_address: str = ""
    identity: str | None = None
    listings: list[ListingRow] = []
    stats: MarketStats = MarketStats()
    recent_history: list[HistoryEntry] = []
    notice: StatusNotice | None = None
    repository_version: int = 0
    skipped_ids: list[str] = []
    taken_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def verified_rows(self) -> list[ListingRow]:
        return [row for row in self.listings if row.is_verified]


class MarketProjection:
    """Builds ``MarketSnapshot`` objects from a ``SessionContext``.

    Parameters
    ----------
    session:
        The session to project.
    contract_address:
        Address to show in the header; the session's configured address
        is used when omitted.
    """

    def __init__(self, session: SessionContext, contract_address: str = "") -> None:
        self._session = session
        self._contract_address = contract_address or session.config.contract_address

    def snapshot(self) -> MarketSnapshot:
        """Produce a point-in-time snapshot.  Re-reads the session every call."""
        repository = self._session.repository
        listings = repository.list_all()
        return MarketSnapshot(
            contract_address=self._contract_address,
            identity=self._session.identity,
            listings=[ListingRow.from_listing(l) for l in listings],
            stats=compute_stats(listings),
            recent_history=self._session.history.recent(),
            notice=self._session.notifier.current,
            repository_version=repository.version,
            skipped_ids=repository.skipped_ids,
        )
