"""Session-local audit and derived statistics models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class OperationKind(str, Enum):
    """Completed operation recorded in the session history."""

    CREATE = "create"
    DECRYPT = "decrypt"


class HistoryEntry(BaseModel):
    """One completed operation.  Append-only, ordered by completion."""

    model_config = ConfigDict(frozen=True)

    kind: OperationKind
    listing_id: str
    display_name: str
    value: int
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


class MarketStats(BaseModel):
    """Marketplace-wide statistics.

    Derived deterministically from a repository snapshot, never stored
    or mutated independently.
    """

    model_config = ConfigDict(frozen=True)

    total: int = 0
    available: int = 0
    sold: int = 0
    avg_price: float = 0.0
    verified: int = 0
