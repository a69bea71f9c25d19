"""Shared plumbing for the creation and verification workflows.

Both workflows follow the same discipline around the ledger: submit, then
await finality under a configurable budget, and only then treat the write
as having happened.  A confirmation that overruns the budget is reported
as pending (the transaction may still land), never as failed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from enum import Enum
from typing import Generic, TypeVar

from veilmarket.core.errors import (
    AlreadyVerifiedError,
    MarketError,
    PendingUnconfirmedError,
    RefreshError,
    TransactionFailedError,
    UserRejectedError,
)
from veilmarket.core.gateways import Receipt, TxHandle
from veilmarket.core.session import SessionContext
from veilmarket.core.workflow_machine import WorkflowMachine
from veilmarket.models.workflow import OutcomeKind, WorkflowKind, WorkflowOutcome

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=Enum)


class BaseWorkflow(Generic[S]):
    """Base class holding the session, the state machine, and notice routing."""

    kind: WorkflowKind

    def __init__(
        self,
        session: SessionContext,
        machine: WorkflowMachine[S],
        error_state: S,
    ) -> None:
        self.session = session
        self.machine = machine
        self.last_outcome: WorkflowOutcome | None = None
        self._error_state = error_state
        self._detached = False

    @property
    def state(self) -> S:
        return self.machine.state

    async def _guarded(self, attempt: Awaitable[WorkflowOutcome]) -> WorkflowOutcome:
        # A cancelled attempt must not leave the machine mid-flight, or the
        # next begin() could not return it to idle.
        try:
            return await attempt
        except asyncio.CancelledError:
            if self._error_state in self.machine.get_available_transitions():
                self.machine.transition(self._error_state, reason="cancelled")
            raise

    # ------------------------------------------------------------------
    # UI surface
    # ------------------------------------------------------------------

    def detach(self) -> None:
        """Stop publishing notices for the current attempt.

        The attempt itself keeps running; a submitted transaction is never
        rolled back and its result shows up on the next refresh.
        """
        self._detached = True

    def attach(self) -> None:
        """Resume publishing notices (called before each new invocation)."""
        self._detached = False

    @property
    def detached(self) -> bool:
        return self._detached

    def _notify_pending(self, message: str) -> None:
        if not self._detached:
            self.session.notifier.pending(message)

    def _notify_outcome(self, outcome: WorkflowOutcome) -> None:
        if self._detached:
            return
        notifier = self.session.notifier
        if outcome.kind is OutcomeKind.FAILED:
            notifier.error(outcome.message)
        elif outcome.kind in (OutcomeKind.USER_REJECTED, OutcomeKind.PENDING_UNCONFIRMED):
            notifier.info(outcome.message)
        else:
            notifier.success(outcome.message)

    # ------------------------------------------------------------------
    # Ledger discipline
    # ------------------------------------------------------------------

    async def _await_finality(self, tx: TxHandle) -> Receipt:
        """Wait for *tx* within the configured budget.

        Raises
        ------
        PendingUnconfirmedError
            The budget expired before the ledger answered.
        UserRejectedError, AlreadyVerifiedError
            Passed through for the caller to handle as distinguished signals.
        TransactionFailedError
            The transaction reverted or the confirmation call failed.
        """
        timeout = self.session.config.confirmation_timeout_seconds
        try:
            receipt = await asyncio.wait_for(
                self.session.ledger.await_confirmation(tx), timeout=timeout
            )
        except asyncio.TimeoutError as exc:
            raise PendingUnconfirmedError(
                f"Transaction {tx.tx_hash} not confirmed within {timeout:g}s; "
                "it may still be included, refresh later to reconcile."
            ) from exc
        except (UserRejectedError, AlreadyVerifiedError):
            raise
        except Exception as exc:
            raise TransactionFailedError(str(exc) or type(exc).__name__) from exc

        if not receipt.succeeded:
            raise TransactionFailedError(f"Transaction {tx.tx_hash} reverted.")
        return receipt

    async def _refresh_after_write(self) -> bool:
        """Refresh the repository after a confirmed write.

        Returns ``False`` when the refresh failed; the write itself stands.
        """
        try:
            await self.session.repository.refresh()
        except RefreshError as exc:
            logger.warning("Post-confirmation refresh failed: %s", exc)
            return False
        return True

    # ------------------------------------------------------------------
    # Outcomes
    # ------------------------------------------------------------------

    def _outcome(self, kind: OutcomeKind, message: str, **fields: object) -> WorkflowOutcome:
        outcome = WorkflowOutcome(kind=kind, workflow=self.kind, message=message, **fields)
        self.last_outcome = outcome
        self._notify_outcome(outcome)
        return outcome

    def _failure(
        self, exc: MarketError, prefix: str, listing_id: str | None = None
    ) -> WorkflowOutcome:
        logger.warning("%s workflow failed (%s): %s", self.kind.value, exc.code, exc)
        return self._outcome(
            OutcomeKind.FAILED,
            f"{prefix}: {exc}",
            listing_id=listing_id,
            error_code=exc.code,
        )
