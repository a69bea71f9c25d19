"""Market orchestrator — the central coordinator for a client session.

Wires the session context, the two workflows, and the read side together,
and enforces the concurrency rules:

- At most one in-flight workflow per kind.  A second invocation of the same
  kind is rejected with a ``busy`` outcome, never interleaved.
- Workflows run as tasks shielded from their caller: abandoning the caller
  (closing the UI surface) stops notices but never the attempt, so a
  submitted transaction still reaches the ledger and the next refresh.
- Repository refreshes may run at any time; they never move workflow state.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from veilmarket.core.creation import CreationWorkflow
from veilmarket.core.errors import RefreshError, WorkflowBusyError
from veilmarket.core.session import SessionContext
from veilmarket.core.verification import VerificationWorkflow
from veilmarket.models.history import HistoryEntry, MarketStats
from veilmarket.models.listing import Listing
from veilmarket.models.workflow import (
    ListingDraft,
    OutcomeKind,
    WorkflowKind,
    WorkflowOutcome,
)

logger = logging.getLogger(__name__)


class MarketOrchestrator:
    """Session-level facade over the creation and verification workflows.

    Parameters
    ----------
    session:
        The owned session context.  Each orchestrator gets its own.
    """

    def __init__(self, session: SessionContext) -> None:
        self.session = session
        self.creation = CreationWorkflow(session)
        self.verification = VerificationWorkflow(session)
        self._locks: dict[WorkflowKind, asyncio.Lock] = {
            kind: asyncio.Lock() for kind in WorkflowKind
        }
        self._tasks: dict[WorkflowKind, asyncio.Task[WorkflowOutcome]] = {}

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def connect(self, identity: str) -> bool:
        """Connect *identity*, prepare the compute runtime, and load listings.

        Returns ``True`` when the session is fully ready.  Failures are
        reported as notices; the session stays usable for a later retry.
        """
        self.session.connect(identity)
        ready = True
        try:
            await self.session.ensure_compute_ready()
        except Exception as exc:
            logger.error("Compute runtime not ready: %s", exc)
            self.session.notifier.error("FHE runtime initialisation failed.")
            ready = False
        if not await self.refresh():
            ready = False
        try:
            await self.session.contract_address()
        except Exception as exc:
            logger.error("Could not resolve contract address: %s", exc)
            ready = False
        return ready

    async def refresh(self) -> bool:
        """Reload listings from the ledger.  Returns ``False`` on failure."""
        try:
            await self.session.repository.refresh()
        except RefreshError as exc:
            self.session.notifier.error(str(exc))
            return False
        return True

    async def check_availability(self) -> bool:
        """Ask the contract whether it is available."""
        try:
            available = await self.session.ledger.is_available()
        except Exception as exc:
            logger.warning("Availability check failed: %s", exc)
            self.session.notifier.error("Contract availability check failed.")
            return False
        if not available:
            self.session.notifier.info("Contract reports itself unavailable.")
            return False
        self.session.notifier.success("Contract availability check succeeded.")
        return True

    # ------------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------------

    async def create_listing(self, draft: ListingDraft | None = None) -> WorkflowOutcome:
        """Publish a listing.  Returns a ``busy`` outcome if one is in flight."""
        return await self._run_exclusive(WorkflowKind.CREATE, lambda: self.creation.run(draft))

    async def verify_listing(self, listing_id: str) -> WorkflowOutcome:
        """Reveal a listing's value.  Returns a ``busy`` outcome if one is in flight."""
        return await self._run_exclusive(
            WorkflowKind.VERIFY, lambda: self.verification.run(listing_id)
        )

    def is_busy(self, kind: WorkflowKind) -> bool:
        return self._locks[kind].locked()

    def abandon(self, kind: WorkflowKind) -> None:
        """Detach the UI from the in-flight workflow of *kind*.

        The workflow keeps running to completion; only its notices stop.
        """
        self._workflow(kind).detach()
        logger.info("%s workflow detached from its caller.", kind.value)

    def _workflow(self, kind: WorkflowKind) -> CreationWorkflow | VerificationWorkflow:
        return self.creation if kind is WorkflowKind.CREATE else self.verification

    async def wait_background(self) -> list[WorkflowOutcome]:
        """Wait for every in-flight workflow task and return their outcomes."""
        tasks = list(self._tasks.values())
        if not tasks:
            return []
        return list(await asyncio.gather(*tasks))

    async def _run_exclusive(
        self,
        kind: WorkflowKind,
        start: Callable[[], Coroutine[Any, Any, WorkflowOutcome]],
    ) -> WorkflowOutcome:
        lock = self._locks[kind]
        if lock.locked():
            err = WorkflowBusyError(f"A {kind.value} operation is already in progress.")
            logger.info("Rejected concurrent %s invocation.", kind.value)
            return WorkflowOutcome(
                kind=OutcomeKind.BUSY,
                workflow=kind,
                error_code=err.code,
                message=str(err),
            )
        await lock.acquire()
        self._workflow(kind).attach()
        task = asyncio.create_task(self._release_after(kind, lock, start()))
        self._tasks[kind] = task
        return await asyncio.shield(task)

    async def _release_after(
        self,
        kind: WorkflowKind,
        lock: asyncio.Lock,
        attempt: Coroutine[Any, Any, WorkflowOutcome],
    ) -> WorkflowOutcome:
        try:
            return await attempt
        finally:
            lock.release()
            self._tasks.pop(kind, None)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def listings(self) -> list[Listing]:
        return self.session.repository.list_all()

    @property
    def stats(self) -> MarketStats:
        return self.session.aggregator.stats

    def recent_history(self, limit: int | None = None) -> list[HistoryEntry]:
        return self.session.history.recent(limit)
