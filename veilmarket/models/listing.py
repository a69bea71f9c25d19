"""Listing model — one published sensor-data offer as read from the ledger.

A ``Listing`` is a reflection of ledger truth, never a source of truth.
The clear value is withheld until the ledger reports the listing verified:
an unverified record's ``clear_value`` is normalised to ``None`` at
construction, so no reader can observe a stale or locally computed value.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from veilmarket.core.errors import ValueWithheldError


class ListingStatus(str, Enum):
    """Sale status of a listing."""

    AVAILABLE = "available"
    SOLD = "sold"


class Listing(BaseModel):
    """Immutable snapshot of a listing record.

    Examples
    --------
    >>> listing = Listing(
    ...     listing_id="sensor-1718000000000-a1b2c3",
    ...     name="Temp-01",
    ...     encrypted_value_handle="0xabc",
    ...     public_price=10,
    ...     creator="0x1111111111111111111111111111111111111111",
    ...     clear_value=42,
    ... )
    >>> listing.clear_value is None
    True
    >>> listing.status
    <ListingStatus.AVAILABLE: 'available'>
    """

    model_config = ConfigDict(frozen=True)

    listing_id: str
    name: str
    description: str = ""
    sensor_type: str = "IoT Sensor"
    encrypted_value_handle: str
    public_price: int = 0
    public_secondary_value: int = 0
    creator: str
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    is_verified: bool = False
    # Must follow is_verified: the validator below reads it.
    clear_value: int | None = None
    status: ListingStatus = ListingStatus.AVAILABLE

    @field_validator("clear_value")
    @classmethod
    def _withhold_unverified(cls, value: int | None, info: ValidationInfo) -> int | None:
        if not info.data.get("is_verified", False):
            return None
        return value

    def revealed_value(self) -> int:
        """Return the clear value of a verified listing.

        Raises
        ------
        ValueWithheldError
            If the ledger has not confirmed a verification for this listing.
        """
        if not self.is_verified or self.clear_value is None:
            raise ValueWithheldError(
                f"Listing '{self.listing_id}' is not verified; its value is withheld."
            )
        return self.clear_value

    @property
    def short_creator(self) -> str:
        """Abbreviated creator address for display (``0x1234...abcd``)."""
        if len(self.creator) <= 12:
            return self.creator
        return f"{self.creator[:6]}...{self.creator[-4:]}"
