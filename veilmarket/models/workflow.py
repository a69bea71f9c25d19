"""Workflow state and outcome models — deterministic transitions.

Each workflow kind has its own state enum and transition table; the
``WorkflowMachine`` enforces the table structurally.  Every workflow
invocation ends in a ``WorkflowOutcome``, a tagged result that callers
branch on by ``kind`` instead of by error wording.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class WorkflowKind(str, Enum):
    """The two operation kinds a session can run."""

    CREATE = "create"
    VERIFY = "verify"


class CreationState(str, Enum):
    """States of the listing creation workflow."""

    IDLE = "idle"
    ENCRYPTING = "encrypting"
    SUBMITTING = "submitting"
    CONFIRMING = "confirming"
    DONE = "done"
    PENDING_UNCONFIRMED = "pending_unconfirmed"
    ERROR = "error"


class VerificationState(str, Enum):
    """States of the listing verification (decryption) workflow."""

    IDLE = "idle"
    CHECKING_LEDGER = "checking_ledger"
    ALREADY_VERIFIED = "already_verified"
    REQUESTING_PROOF = "requesting_proof"
    SUBMITTING = "submitting"
    CONFIRMING = "confirming"
    DONE = "done"
    PENDING_UNCONFIRMED = "pending_unconfirmed"
    ERROR = "error"


# Terminal states (DONE, ERROR, ALREADY_VERIFIED, PENDING_UNCONFIRMED) only
# lead back to IDLE, which starts a fresh attempt.
CREATION_TRANSITIONS: dict[CreationState, set[CreationState]] = {
    CreationState.IDLE: {CreationState.ENCRYPTING, CreationState.ERROR},
    CreationState.ENCRYPTING: {CreationState.SUBMITTING, CreationState.ERROR},
    CreationState.SUBMITTING: {
        CreationState.CONFIRMING,
        CreationState.IDLE,  # signer declined
        CreationState.ERROR,
    },
    CreationState.CONFIRMING: {
        CreationState.DONE,
        CreationState.PENDING_UNCONFIRMED,
        CreationState.ERROR,
    },
    CreationState.DONE: {CreationState.IDLE},
    CreationState.PENDING_UNCONFIRMED: {CreationState.IDLE},
    CreationState.ERROR: {CreationState.IDLE},
}

VERIFICATION_TRANSITIONS: dict[VerificationState, set[VerificationState]] = {
    VerificationState.IDLE: {VerificationState.CHECKING_LEDGER, VerificationState.ERROR},
    VerificationState.CHECKING_LEDGER: {
        VerificationState.ALREADY_VERIFIED,
        VerificationState.REQUESTING_PROOF,
        VerificationState.ERROR,
    },
    VerificationState.REQUESTING_PROOF: {
        VerificationState.SUBMITTING,
        VerificationState.ALREADY_VERIFIED,  # verified concurrently
        VerificationState.IDLE,  # signer declined
        VerificationState.ERROR,
    },
    VerificationState.SUBMITTING: {
        VerificationState.CONFIRMING,
        VerificationState.ALREADY_VERIFIED,
        VerificationState.IDLE,
        VerificationState.ERROR,
    },
    VerificationState.CONFIRMING: {
        VerificationState.DONE,
        VerificationState.ALREADY_VERIFIED,
        VerificationState.PENDING_UNCONFIRMED,
        VerificationState.ERROR,
    },
    VerificationState.DONE: {VerificationState.IDLE},
    VerificationState.ALREADY_VERIFIED: {VerificationState.IDLE},
    VerificationState.PENDING_UNCONFIRMED: {VerificationState.IDLE},
    VerificationState.ERROR: {VerificationState.IDLE},
}


class StateTransition(BaseModel):
    """Records a single workflow state transition for the session audit trail."""

    model_config = ConfigDict(frozen=True)

    workflow: WorkflowKind
    from_state: str
    to_state: str
    attempt_id: str
    reason: str | None = None
    at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class OutcomeKind(str, Enum):
    """Tag of a ``WorkflowOutcome``."""

    SUCCESS = "success"
    ALREADY_VERIFIED = "already_verified"
    USER_REJECTED = "user_rejected"
    PENDING_UNCONFIRMED = "pending_unconfirmed"
    FAILED = "failed"
    BUSY = "busy"


class WorkflowOutcome(BaseModel):
    """Tagged result of one workflow invocation.

    ``value`` holds the revealed clear value for verification outcomes and
    the submitted plaintext for creation successes.  ``error_code`` is the
    ``code`` of the ``MarketError`` subclass behind a non-success outcome.
    """

    model_config = ConfigDict(frozen=True)

    kind: OutcomeKind
    workflow: WorkflowKind
    listing_id: str | None = None
    value: int | None = None
    tx_hash: str | None = None
    error_code: str | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        """True for outcomes the caller should present as a success."""
        return self.kind in (OutcomeKind.SUCCESS, OutcomeKind.ALREADY_VERIFIED)

    @property
    def is_alarm(self) -> bool:
        """True only for outcomes that warrant error styling."""
        return self.kind is OutcomeKind.FAILED


class ListingDraft(BaseModel):
    """Raw creation-form input, exactly as typed by the user.

    Numeric fields stay unparsed here; the creation workflow validates them
    before any collaborator is contacted.
    """

    name: str = ""
    sensor_type: str = "temperature"
    value: str | int = ""
    price: str | int = ""
    secondary_value: str | int = 0
    description: str = ""


class CreateListingRequest(BaseModel):
    """Validated creation input.  Built only by the creation workflow."""

    model_config = ConfigDict(frozen=True)

    name: str
    sensor_type: str
    value: int
    price: int
    secondary_value: int
    description: str
