"""Verification Workflow — reveal a listing's value through an on-ledger proof.

State machine::

    idle -> checking_ledger -> already_verified
                            -> requesting_proof -> submitting -> confirming -> done
    (error reachable from every step; pending_unconfirmed on confirmation
    timeout; idle when the signer declines)

The compute service generates the decryption proof, but only the ledger
consumes it: the workflow hands the compute service a ``submit`` callback
that turns (encoded clear values, proof) into the ledger write.

A listing is reported verified only from ledger truth.  The clear value the
compute service returns locally is cross-checked against the repository
read-back after confirmation and never reported on its own.
"""

from __future__ import annotations

import logging

from veilmarket.core.errors import (
    AlreadyVerifiedError,
    MarketError,
    NotConnectedError,
    PendingUnconfirmedError,
    TransactionFailedError,
    UserRejectedError,
)
from veilmarket.core.gateways import TxHandle
from veilmarket.core.session import SessionContext
from veilmarket.core.workflow_base import BaseWorkflow
from veilmarket.core.workflow_machine import WorkflowMachine
from veilmarket.models.history import OperationKind
from veilmarket.models.listing import Listing
from veilmarket.models.workflow import (
    VERIFICATION_TRANSITIONS,
    OutcomeKind,
    VerificationState,
    WorkflowKind,
    WorkflowOutcome,
)

logger = logging.getLogger(__name__)


class VerificationWorkflow(BaseWorkflow[VerificationState]):
    """Requests a verified decryption of one listing's value.

    Parameters
    ----------
    session:
        The owning session context.
    """

    kind = WorkflowKind.VERIFY

    def __init__(self, session: SessionContext) -> None:
        super().__init__(
            session,
            WorkflowMachine(
                WorkflowKind.VERIFY, VERIFICATION_TRANSITIONS, VerificationState.IDLE
            ),
            VerificationState.ERROR,
        )
        self.target_listing_id: str | None = None
        self.submitted_tx: TxHandle | None = None

    async def run(self, listing_id: str) -> WorkflowOutcome:
        """Run one verification attempt for *listing_id*.

        Never raises for workflow failures; see ``WorkflowOutcome.kind``.
        """
        return await self._guarded(self._run(listing_id))

    async def _run(self, listing_id: str) -> WorkflowOutcome:
        self.machine.begin()
        self.target_listing_id = listing_id
        self.submitted_tx = None

        try:
            self.session.require_identity()
        except NotConnectedError as exc:
            self.machine.transition(VerificationState.ERROR, reason=exc.code)
            return self._failure(exc, "Cannot decrypt", listing_id)

        # Checking ledger
        self.machine.transition(VerificationState.CHECKING_LEDGER)
        try:
            record = await self.session.ledger.get_listing(listing_id)
        except Exception as exc:
            err = TransactionFailedError(f"Could not read listing '{listing_id}': {exc}")
            self.machine.transition(VerificationState.ERROR, reason=err.code)
            return self._failure(err, "Decryption failed", listing_id)

        if record.is_verified:
            self.machine.transition(VerificationState.ALREADY_VERIFIED)
            return self._outcome(
                OutcomeKind.ALREADY_VERIFIED,
                "Value already verified on the ledger.",
                listing_id=listing_id,
                value=record.clear_value,
            )

        # Requesting proof (the compute service calls back into submit)
        self.machine.transition(VerificationState.REQUESTING_PROOF)
        self._notify_pending("Requesting decryption proof...")
        try:
            await self.session.ensure_compute_ready()
            contract = await self.session.contract_address()
            handle = await self.session.ledger.get_encrypted_value(listing_id)
            result = await self.session.compute.verify_decryption(
                [handle], contract, self._submitter(listing_id)
            )
        except UserRejectedError:
            return self._declined(listing_id)
        except AlreadyVerifiedError:
            return await self._verified_concurrently(listing_id)
        except MarketError as exc:
            self.machine.transition(VerificationState.ERROR, reason=exc.code)
            return self._failure(exc, "Decryption failed", listing_id)
        except Exception as exc:
            err = TransactionFailedError(str(exc) or type(exc).__name__)
            self.machine.transition(VerificationState.ERROR, reason=err.code)
            return self._failure(err, "Decryption failed", listing_id)

        tx = self.submitted_tx
        if tx is None or handle not in result.clear_values:
            err = TransactionFailedError(
                "Compute service returned without submitting a verification."
                if tx is None
                else f"No clear value returned for handle {handle}."
            )
            self.machine.transition(VerificationState.ERROR, reason=err.code)
            return self._failure(err, "Decryption failed", listing_id)
        local_value = result.clear_values[handle]

        # Confirming
        self.machine.transition(VerificationState.CONFIRMING)
        self._notify_pending("Verifying decryption on the ledger...")
        try:
            await self._await_finality(tx)
        except AlreadyVerifiedError:
            return await self._verified_concurrently(listing_id)
        except PendingUnconfirmedError as exc:
            self.machine.transition(VerificationState.PENDING_UNCONFIRMED, reason=exc.code)
            return self._outcome(
                OutcomeKind.PENDING_UNCONFIRMED,
                str(exc),
                listing_id=listing_id,
                tx_hash=tx.tx_hash,
                error_code=exc.code,
            )
        except MarketError as exc:
            self.machine.transition(VerificationState.ERROR, reason=exc.code)
            return self._failure(exc, "Decryption failed", listing_id)

        # Ledger read-back decides what is reported.
        confirmed = await self._ledger_truth(listing_id)
        if confirmed is None or not confirmed.is_verified:
            self.machine.transition(
                VerificationState.PENDING_UNCONFIRMED, reason="read-back not verified"
            )
            return self._outcome(
                OutcomeKind.PENDING_UNCONFIRMED,
                "Verification confirmed but not yet visible on the ledger; refresh later.",
                listing_id=listing_id,
                tx_hash=tx.tx_hash,
                error_code=PendingUnconfirmedError.code,
            )
        value = confirmed.clear_value
        if value != local_value:
            logger.warning(
                "Ledger clear value for '%s' (%s) differs from decrypted value (%s); "
                "reporting ledger value.",
                listing_id,
                value,
                local_value,
            )

        self.machine.transition(VerificationState.DONE)
        self.session.history.record(
            OperationKind.DECRYPT, listing_id, confirmed.name, confirmed.revealed_value()
        )
        return self._outcome(
            OutcomeKind.SUCCESS,
            "Value decrypted and verified.",
            listing_id=listing_id,
            value=value,
            tx_hash=tx.tx_hash,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _submitter(self, listing_id: str):
        async def submit(encoded_clear_values: str, proof: str) -> TxHandle:
            if self.submitted_tx is not None:
                raise TransactionFailedError(
                    f"Verification for '{listing_id}' already submitted in this attempt."
                )
            self.machine.transition(VerificationState.SUBMITTING)
            tx = await self.session.ledger.submit_verification(
                listing_id, encoded_clear_values, proof
            )
            self.submitted_tx = tx
            logger.info("Submitted verification of '%s' in tx %s.", listing_id, tx.tx_hash)
            return tx

        return submit

    def _declined(self, listing_id: str) -> WorkflowOutcome:
        logger.info("Verification of '%s' declined by signer.", listing_id)
        self.machine.transition(VerificationState.IDLE, reason="user rejected")
        return self._outcome(
            OutcomeKind.USER_REJECTED,
            "Transaction declined.",
            listing_id=listing_id,
            error_code=UserRejectedError.code,
        )

    async def _verified_concurrently(self, listing_id: str) -> WorkflowOutcome:
        logger.info("Listing '%s' was verified concurrently.", listing_id)
        self.machine.transition(
            VerificationState.ALREADY_VERIFIED, reason="verified concurrently"
        )
        confirmed = await self._ledger_truth(listing_id)
        value = confirmed.clear_value if confirmed is not None else None
        return self._outcome(
            OutcomeKind.ALREADY_VERIFIED,
            "Value already verified on the ledger.",
            listing_id=listing_id,
            value=value,
            error_code=AlreadyVerifiedError.code,
        )

    async def _ledger_truth(self, listing_id: str) -> Listing | None:
        """Refresh and read *listing_id* back; fall back to a direct ledger read."""
        if await self._refresh_after_write():
            listing = self.session.repository.get(listing_id)
            if listing is not None:
                return listing
        try:
            return await self.session.ledger.get_listing(listing_id)
        except Exception as exc:
            logger.warning("Could not read back listing '%s': %s", listing_id, exc)
            return None
