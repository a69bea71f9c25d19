"""Listing Repository — session-scoped, read-only mirror of the ledger.

The repository is a PROJECTION of ledger state.  It never creates, edits or
verifies listings itself; every ``refresh()`` re-reads the ledger wholesale
and swaps the whole snapshot in with a single assignment, so readers see
either the previous full snapshot or the new one, never a mix.

A record that fails to load is skipped and logged: one malformed record
must not hide the rest of the marketplace.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from types import MappingProxyType

from veilmarket.core.errors import RefreshError
from veilmarket.core.gateways import LedgerGateway
from veilmarket.models.listing import Listing

logger = logging.getLogger(__name__)

RepositoryListener = Callable[[Mapping[str, Listing]], None]


class ListingRepository:
    """In-memory mapping of listing id to ``Listing``, rebuilt from the ledger.

    Parameters
    ----------
    ledger:
        The ledger gateway to read from.
    """

    def __init__(self, ledger: LedgerGateway) -> None:
        self._ledger = ledger
        self._snapshot: Mapping[str, Listing] = MappingProxyType({})
        self._version = 0
        self._lock = asyncio.Lock()
        self._listeners: list[RepositoryListener] = []
        self._skipped: list[str] = []

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    @property
    def version(self) -> int:
        """Number of successful refreshes so far."""
        return self._version

    @property
    def skipped_ids(self) -> list[str]:
        """Listing ids that failed to load during the last refresh."""
        return list(self._skipped)

    def snapshot(self) -> Mapping[str, Listing]:
        """Return the current read-only snapshot."""
        return self._snapshot

    def get(self, listing_id: str) -> Listing | None:
        return self._snapshot.get(listing_id)

    def list_all(self) -> list[Listing]:
        """Return all listings, newest first."""
        return sorted(
            self._snapshot.values(), key=lambda l: l.created_at, reverse=True
        )

    def __len__(self) -> int:
        return len(self._snapshot)

    def __contains__(self, listing_id: object) -> bool:
        return listing_id in self._snapshot

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------

    def add_listener(self, listener: RepositoryListener) -> None:
        """Register *listener* to be called with each new snapshot."""
        self._listeners.append(listener)

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def refresh(self) -> Mapping[str, Listing]:
        """Re-read every listing from the ledger and swap the snapshot.

        Concurrent calls are serialised; each one performs a full read.

        Raises
        ------
        RefreshError
            If the listing index itself cannot be read.  The previous
            snapshot stays in place.
        """
        async with self._lock:
            try:
                listing_ids = await self._ledger.list_all_listing_ids()
            except Exception as exc:
                logger.error("Failed to read listing index from ledger: %s", exc)
                raise RefreshError(f"Failed to load listings: {exc}") from exc

            fresh: dict[str, Listing] = {}
            skipped: list[str] = []
            for listing_id in listing_ids:
                try:
                    record = await self._ledger.get_listing(listing_id)
                except Exception as exc:
                    logger.warning(
                        "Skipping listing '%s', failed to load: %s", listing_id, exc
                    )
                    skipped.append(listing_id)
                    continue
                self._check_handle_unchanged(record)
                fresh[record.listing_id] = record

            self._snapshot = MappingProxyType(fresh)
            self._skipped = skipped
            self._version += 1
            logger.info(
                "Repository refreshed: %d listing(s), %d skipped (v%d).",
                len(fresh),
                len(skipped),
                self._version,
            )

        snapshot = self._snapshot
        for listener in self._listeners:
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Repository listener %r failed.", listener)
        return snapshot

    def _check_handle_unchanged(self, record: Listing) -> None:
        previous = self._snapshot.get(record.listing_id)
        if previous is None:
            return
        if previous.encrypted_value_handle != record.encrypted_value_handle:
            logger.warning(
                "Ciphertext handle of listing '%s' changed on the ledger "
                "(%s -> %s); showing ledger state.",
                record.listing_id,
                previous.encrypted_value_handle[:18],
                record.encrypted_value_handle[:18],
            )
