"""veilmarket data models — all Pydantic v2, frozen where they record state."""

from veilmarket.models.history import HistoryEntry, MarketStats, OperationKind
from veilmarket.models.listing import Listing, ListingStatus
from veilmarket.models.workflow import (
    CREATION_TRANSITIONS,
    VERIFICATION_TRANSITIONS,
    CreateListingRequest,
    CreationState,
    ListingDraft,
    OutcomeKind,
    StateTransition,
    VerificationState,
    WorkflowKind,
    WorkflowOutcome,
)

__all__ = [
    # listing
    "Listing",
    "ListingStatus",
    # history / stats
    "HistoryEntry",
    "MarketStats",
    "OperationKind",
    # workflow
    "WorkflowKind",
    "CreationState",
    "VerificationState",
    "CREATION_TRANSITIONS",
    "VERIFICATION_TRANSITIONS",
    "StateTransition",
    "OutcomeKind",
    "WorkflowOutcome",
    "ListingDraft",
    "CreateListingRequest",
]
