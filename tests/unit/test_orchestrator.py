"""Tests for the MarketOrchestrator — per-kind exclusivity, abandonment, lifecycle."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import pytest

from veilmarket.bridge.local_compute import LocalComputeService
from veilmarket.bridge.local_ledger import LocalLedger
from veilmarket.config import MarketConfig
from veilmarket.core.orchestrator import MarketOrchestrator
from veilmarket.core.session import SessionContext
from veilmarket.models.workflow import ListingDraft, OutcomeKind, WorkflowKind


class TestConnect:
    @pytest.mark.asyncio
    async def test_connect_ready(
        self,
        ledger: LocalLedger,
        compute: LocalComputeService,
        market_config: MarketConfig,
    ):
        session = SessionContext(ledger, compute, config=market_config)
        orchestrator = MarketOrchestrator(session)
        assert await orchestrator.connect("0xabc") is True
        assert session.is_connected
        assert compute.is_initialized
        assert session.repository.version == 1

    @pytest.mark.asyncio
    async def test_connect_compute_failure_reported(
        self, ledger: LocalLedger, market_config: MarketConfig
    ):
        session = SessionContext(
            ledger, LocalComputeService(fail_initialize=True), config=market_config
        )
        orchestrator = MarketOrchestrator(session)
        assert await orchestrator.connect("0xabc") is False
        assert session.notifier.current.level.value == "error"
        # Listings still load.
        assert session.repository.version == 1

    @pytest.mark.asyncio
    async def test_refresh_failure_reported(
        self, orchestrator: MarketOrchestrator, ledger: LocalLedger
    ):
        ledger.fail_index("node unreachable")
        assert await orchestrator.refresh() is False
        assert "node unreachable" in orchestrator.session.notifier.current.message
        ledger.fail_index(None)
        assert await orchestrator.refresh() is True

    @pytest.mark.asyncio
    async def test_check_availability(
        self, orchestrator: MarketOrchestrator, ledger: LocalLedger
    ):
        assert await orchestrator.check_availability() is True
        assert orchestrator.session.notifier.current.level.value == "success"
        ledger.available = False
        assert await orchestrator.check_availability() is False


class TestExclusivity:
    @pytest.mark.asyncio
    async def test_second_create_rejected_while_in_flight(
        self,
        orchestrator: MarketOrchestrator,
        ledger: LocalLedger,
        make_draft: Callable[..., ListingDraft],
    ):
        ledger.hold_confirmations()
        first = asyncio.create_task(orchestrator.create_listing(make_draft()))
        await asyncio.sleep(0)
        assert orchestrator.is_busy(WorkflowKind.CREATE)

        second = await orchestrator.create_listing(make_draft(name="Temp-02"))
        assert second.kind is OutcomeKind.BUSY
        assert second.error_code == "workflow_busy"

        ledger.release_pending()
        outcome = await first
        assert outcome.kind is OutcomeKind.SUCCESS
        assert not orchestrator.is_busy(WorkflowKind.CREATE)
        assert [w for w in ledger.writes if w[0] == "createListing"] == [
            ("createListing", outcome.listing_id)
        ]

    @pytest.mark.asyncio
    async def test_different_kinds_run_concurrently(
        self,
        orchestrator: MarketOrchestrator,
        make_draft: Callable[..., ListingDraft],
    ):
        created = await orchestrator.create_listing(make_draft())
        verify, create = await asyncio.gather(
            orchestrator.verify_listing(created.listing_id),
            orchestrator.create_listing(make_draft(name="Temp-02")),
        )
        assert verify.kind is OutcomeKind.SUCCESS
        assert create.kind is OutcomeKind.SUCCESS
        assert len(orchestrator.listings) == 2

    @pytest.mark.asyncio
    async def test_lock_released_after_failure(
        self,
        orchestrator: MarketOrchestrator,
        ledger: LocalLedger,
        make_draft: Callable[..., ListingDraft],
    ):
        ledger.fail_next_write("boom")
        assert (await orchestrator.create_listing(make_draft())).kind is OutcomeKind.FAILED
        assert (await orchestrator.create_listing(make_draft())).kind is OutcomeKind.SUCCESS


class TestAbandonment:
    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_stop_workflow(
        self,
        orchestrator: MarketOrchestrator,
        ledger: LocalLedger,
        make_draft: Callable[..., ListingDraft],
    ):
        ledger.hold_confirmations()
        caller = asyncio.create_task(orchestrator.create_listing(make_draft()))
        await asyncio.sleep(0)
        orchestrator.abandon(WorkflowKind.CREATE)
        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller
        assert orchestrator.is_busy(WorkflowKind.CREATE)

        background = asyncio.create_task(orchestrator.wait_background())
        await asyncio.sleep(0.05)
        ledger.release_pending()
        (outcome,) = await background
        assert outcome.kind is OutcomeKind.SUCCESS
        assert outcome.listing_id in orchestrator.session.repository
        assert not orchestrator.is_busy(WorkflowKind.CREATE)

    @pytest.mark.asyncio
    async def test_detached_workflow_publishes_no_notices(
        self,
        orchestrator: MarketOrchestrator,
        make_draft: Callable[..., ListingDraft],
    ):
        caller = asyncio.create_task(orchestrator.create_listing(make_draft()))
        await asyncio.sleep(0)
        orchestrator.abandon(WorkflowKind.CREATE)
        await orchestrator.wait_background()
        await caller
        assert orchestrator.session.notifier.current is None

    @pytest.mark.asyncio
    async def test_next_invocation_reattaches(
        self,
        orchestrator: MarketOrchestrator,
        make_draft: Callable[..., ListingDraft],
    ):
        orchestrator.abandon(WorkflowKind.CREATE)
        await orchestrator.create_listing(make_draft())
        assert orchestrator.session.notifier.current.message == "Listing created."

    @pytest.mark.asyncio
    async def test_wait_background_idle(self, orchestrator: MarketOrchestrator):
        assert await orchestrator.wait_background() == []


class TestReadSide:
    @pytest.mark.asyncio
    async def test_stats_and_history(
        self,
        orchestrator: MarketOrchestrator,
        make_draft: Callable[..., ListingDraft],
    ):
        await orchestrator.create_listing(make_draft(price="10"))
        await orchestrator.create_listing(make_draft(name="Temp-02", price="30"))
        assert orchestrator.stats.total == 2
        assert orchestrator.stats.avg_price == 20.0
        assert [e.display_name for e in orchestrator.recent_history()] == [
            "Temp-01",
            "Temp-02",
        ]
        assert len(orchestrator.recent_history(1)) == 1
