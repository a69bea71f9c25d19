"""Creation Workflow — encrypt, submit, confirm a new listing.

State machine::

    idle -> encrypting -> submitting -> confirming -> done
                              |             |
                              +-> idle      +-> pending_unconfirmed
    (error reachable from every non-terminal state)

Guarantees:
- Nothing is contacted without a connected identity and valid input.
- No ciphertext is submitted without an accompanying proof.
- Every attempt uses a freshly issued listing id; ids are never resubmitted.
- Success is reported only after the ledger confirms the transaction.
"""

from __future__ import annotations

import logging
import re

from veilmarket.core.errors import (
    EncryptionFailedError,
    MarketError,
    NotConnectedError,
    PendingUnconfirmedError,
    TransactionFailedError,
    UserRejectedError,
    ValidationError,
)
from veilmarket.core.gateways import EncryptedInput
from veilmarket.core.session import SessionContext
from veilmarket.core.workflow_base import BaseWorkflow
from veilmarket.core.workflow_machine import WorkflowMachine
from veilmarket.models.history import OperationKind
from veilmarket.models.workflow import (
    CREATION_TRANSITIONS,
    CreateListingRequest,
    CreationState,
    ListingDraft,
    OutcomeKind,
    WorkflowKind,
    WorkflowOutcome,
)

logger = logging.getLogger(__name__)

_STRICT_INT = re.compile(r"[+-]?\d+")
_NON_DIGITS = re.compile(r"\D")


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------


def parse_int_field(raw: str | int | float, field: str, *, strict: bool = True) -> int:
    """Parse one numeric form field.

    Strict mode accepts only non-negative whole numbers.  Lenient mode
    mirrors the browser form: every non-digit character is stripped, then
    ``parseInt(x) || 0`` applies, so signs and separators vanish and an
    input with no digits becomes 0.

    Examples
    --------
    >>> parse_int_field("42", "value")
    42
    >>> parse_int_field("4.5", "value", strict=False)
    45
    >>> parse_int_field("-10", "price", strict=False)
    10
    """
    if isinstance(raw, bool):
        raise ValidationError(f"{field} must be an integer, got a boolean.")

    if not strict:
        digits = _NON_DIGITS.sub("", str(raw))
        return int(digits) if digits else 0

    if isinstance(raw, float):
        if not raw.is_integer():
            raise ValidationError(f"{field} must be a whole number, got {raw!r}.")
        raw = int(raw)
    if isinstance(raw, int):
        value = raw
    else:
        text = str(raw).strip()
        if not text:
            raise ValidationError(f"{field} is required.")
        if not _STRICT_INT.fullmatch(text):
            raise ValidationError(f"{field} must be a whole number, got {text!r}.")
        value = int(text)
    if value < 0:
        raise ValidationError(f"{field} must not be negative, got {value}.")
    return value


def validate_draft(draft: ListingDraft, *, strict: bool = True) -> CreateListingRequest:
    """Turn raw form input into a ``CreateListingRequest``.

    Raises
    ------
    ValidationError
        On a missing name or, in strict mode, any non-integer numeric field.
    """
    name = draft.name.strip()
    if not name:
        raise ValidationError("name is required.")
    return CreateListingRequest(
        name=name,
        sensor_type=draft.sensor_type,
        value=parse_int_field(draft.value, "value", strict=strict),
        price=parse_int_field(draft.price, "price", strict=strict),
        secondary_value=parse_int_field(
            draft.secondary_value, "secondary_value", strict=strict
        ),
        description=draft.description,
    )


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------


class CreationWorkflow(BaseWorkflow[CreationState]):
    """Publishes a new encrypted listing.

    Parameters
    ----------
    session:
        The owning session context.
    """

    kind = WorkflowKind.CREATE

    def __init__(self, session: SessionContext) -> None:
        super().__init__(
            session,
            WorkflowMachine(WorkflowKind.CREATE, CREATION_TRANSITIONS, CreationState.IDLE),
            CreationState.ERROR,
        )
        self.form = ListingDraft()
        self.current_listing_id: str | None = None
        self.submitted_ids: list[str] = []

    def update_form(self, **fields: object) -> ListingDraft:
        """Replace individual form fields, keeping the rest."""
        self.form = self.form.model_copy(update=fields)
        return self.form

    def clear_form(self) -> None:
        self.form = ListingDraft()

    async def run(self, draft: ListingDraft | None = None) -> WorkflowOutcome:
        """Run one creation attempt.  Never raises for workflow failures.

        Parameters
        ----------
        draft:
            Form input to publish; defaults to the workflow's own ``form``.
        """
        return await self._guarded(self._run(draft))

    async def _run(self, draft: ListingDraft | None) -> WorkflowOutcome:
        self.machine.begin()
        self.current_listing_id = None
        if draft is not None:
            self.form = draft

        # Local guards: resolved without contacting anything.
        try:
            identity = self.session.require_identity()
            request = validate_draft(
                self.form, strict=self.session.config.strict_numeric_input
            )
        except (NotConnectedError, ValidationError) as exc:
            self.machine.transition(CreationState.ERROR, reason=exc.code)
            return self._failure(exc, "Cannot create listing")

        # Encrypting
        self.machine.transition(CreationState.ENCRYPTING)
        self._notify_pending("Encrypting sensor value with FHE...")
        try:
            encrypted = await self._encrypt(identity, request.value)
        except MarketError as exc:
            self.machine.transition(CreationState.ERROR, reason=exc.code)
            return self._failure(exc, "Encryption failed")

        # Submitting
        listing_id = self.session.new_listing_id()
        self.current_listing_id = listing_id
        self.machine.transition(CreationState.SUBMITTING)
        try:
            tx = await self.session.ledger.create_listing(
                listing_id,
                request.name,
                encrypted.ciphertext,
                encrypted.proof,
                request.price,
                request.secondary_value,
                request.description,
            )
        except UserRejectedError:
            logger.info("Creation of '%s' declined by signer.", listing_id)
            self.machine.transition(CreationState.IDLE, reason="user rejected")
            return self._outcome(
                OutcomeKind.USER_REJECTED,
                "Transaction declined.",
                listing_id=listing_id,
                error_code=UserRejectedError.code,
            )
        except Exception as exc:
            err = TransactionFailedError(str(exc) or type(exc).__name__)
            self.machine.transition(CreationState.ERROR, reason=err.code)
            return self._failure(err, "Submission failed", listing_id)
        self.submitted_ids.append(listing_id)
        logger.info("Submitted listing '%s' in tx %s.", listing_id, tx.tx_hash)

        # Confirming
        self.machine.transition(CreationState.CONFIRMING)
        self._notify_pending("Waiting for transaction confirmation...")
        try:
            await self._await_finality(tx)
        except PendingUnconfirmedError as exc:
            self.machine.transition(CreationState.PENDING_UNCONFIRMED, reason=exc.code)
            return self._outcome(
                OutcomeKind.PENDING_UNCONFIRMED,
                str(exc),
                listing_id=listing_id,
                tx_hash=tx.tx_hash,
                error_code=exc.code,
            )
        except MarketError as exc:
            self.machine.transition(CreationState.ERROR, reason=exc.code)
            return self._failure(exc, "Submission failed", listing_id)

        # Done
        self.machine.transition(CreationState.DONE)
        self.session.history.record(
            OperationKind.CREATE, listing_id, request.name, request.value
        )
        await self._refresh_after_write()
        self.clear_form()
        return self._outcome(
            OutcomeKind.SUCCESS,
            "Listing created.",
            listing_id=listing_id,
            value=request.value,
            tx_hash=tx.tx_hash,
        )

    async def _encrypt(self, identity: str, value: int) -> EncryptedInput:
        await self.session.ensure_compute_ready()
        try:
            contract = await self.session.contract_address()
        except Exception as exc:
            raise TransactionFailedError(
                f"Could not resolve contract address: {exc}"
            ) from exc
        try:
            encrypted = await self.session.compute.encrypt(contract, identity, value)
        except Exception as exc:
            raise EncryptionFailedError(str(exc) or type(exc).__name__) from exc
        if not encrypted.ciphertext or not encrypted.proof:
            raise EncryptionFailedError("Compute service returned no ciphertext or proof.")
        return encrypted
