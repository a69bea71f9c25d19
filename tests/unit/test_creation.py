"""Tests for the Creation Workflow — input validation, state path, outcomes."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from veilmarket.bridge.local_compute import LocalComputeService
from veilmarket.bridge.local_ledger import LocalLedger
from veilmarket.config import MarketConfig
from veilmarket.core.creation import CreationWorkflow, parse_int_field, validate_draft
from veilmarket.core.errors import ValidationError
from veilmarket.core.session import SessionContext
from veilmarket.models.history import OperationKind
from veilmarket.models.workflow import CreationState, ListingDraft, OutcomeKind


class TestParseIntField:
    @pytest.mark.parametrize("raw,expected", [("42", 42), (" 7 ", 7), (0, 0), (3.0, 3), ("+5", 5)])
    def test_strict_accepts_whole_numbers(self, raw, expected):
        assert parse_int_field(raw, "value") == expected

    @pytest.mark.parametrize("raw", ["4.5", "abc", "", "12abc", "-1", -3, 2.5, True])
    def test_strict_rejects(self, raw):
        with pytest.raises(ValidationError):
            parse_int_field(raw, "value")

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("42", 42),
            ("4.5", 45),
            ("1,000", 1000),
            ("12abc", 12),
            ("-10", 10),
            ("abc", 0),
            ("", 0),
            (7, 7),
            (-3, 3),
            (2.5, 25),
        ],
    )
    def test_lenient_strips_non_digits(self, raw, expected):
        assert parse_int_field(raw, "value", strict=False) == expected

    def test_validation_error_is_value_error(self):
        with pytest.raises(ValueError):
            parse_int_field("x", "price")


class TestValidateDraft:
    def test_valid(self, make_draft: Callable[..., ListingDraft]):
        request = validate_draft(make_draft())
        assert request.name == "Temp-01"
        assert request.value == 42
        assert request.price == 10
        assert request.secondary_value == 0

    def test_name_required(self, make_draft: Callable[..., ListingDraft]):
        with pytest.raises(ValidationError, match="name"):
            validate_draft(make_draft(name="   "))

    def test_missing_price_strict(self, make_draft: Callable[..., ListingDraft]):
        with pytest.raises(ValidationError, match="price"):
            validate_draft(make_draft(price=""))

    def test_missing_price_lenient_defaults_to_zero(
        self, make_draft: Callable[..., ListingDraft]
    ):
        assert validate_draft(make_draft(price=""), strict=False).price == 0


class TestCreationWorkflow:
    @pytest.mark.asyncio
    async def test_success(
        self,
        session: SessionContext,
        ledger: LocalLedger,
        compute: LocalComputeService,
        make_draft: Callable[..., ListingDraft],
    ):
        workflow = CreationWorkflow(session)
        outcome = await workflow.run(make_draft())

        assert outcome.kind is OutcomeKind.SUCCESS
        assert outcome.value == 42
        assert outcome.tx_hash
        assert workflow.state is CreationState.DONE
        assert compute.encrypt_calls == 1
        assert ledger.writes == [("createListing", outcome.listing_id)]

        listing = session.repository.get(outcome.listing_id)
        assert listing is not None
        assert listing.encrypted_value_handle
        assert listing.is_verified is False
        assert listing.clear_value is None

    @pytest.mark.asyncio
    async def test_state_path(
        self, session: SessionContext, make_draft: Callable[..., ListingDraft]
    ):
        workflow = CreationWorkflow(session)
        await workflow.run(make_draft())
        assert [t.to_state for t in workflow.machine.transitions] == [
            "encrypting",
            "submitting",
            "confirming",
            "done",
        ]

    @pytest.mark.asyncio
    async def test_success_records_history_and_clears_form(
        self, session: SessionContext, make_draft: Callable[..., ListingDraft]
    ):
        workflow = CreationWorkflow(session)
        workflow.update_form(name="Temp-01", value="42", price="10")
        outcome = await workflow.run()
        assert outcome.ok
        assert workflow.form == ListingDraft()
        (entry,) = session.history.all()
        assert entry.kind is OperationKind.CREATE
        assert entry.display_name == "Temp-01"
        assert entry.value == 42

    @pytest.mark.asyncio
    async def test_not_connected_contacts_nothing(
        self,
        session: SessionContext,
        ledger: LocalLedger,
        compute: LocalComputeService,
        make_draft: Callable[..., ListingDraft],
    ):
        session.disconnect()
        workflow = CreationWorkflow(session)
        outcome = await workflow.run(make_draft())
        assert outcome.kind is OutcomeKind.FAILED
        assert outcome.error_code == "not_connected"
        assert workflow.state is CreationState.ERROR
        assert compute.encrypt_calls == 0
        assert ledger.writes == []

    @pytest.mark.asyncio
    async def test_invalid_value_contacts_nothing(
        self,
        session: SessionContext,
        ledger: LocalLedger,
        compute: LocalComputeService,
        make_draft: Callable[..., ListingDraft],
    ):
        workflow = CreationWorkflow(session)
        outcome = await workflow.run(make_draft(value="4.5"))
        assert outcome.kind is OutcomeKind.FAILED
        assert outcome.error_code == "validation_error"
        assert compute.encrypt_calls == 0
        assert ledger.writes == []
        assert len(session.history) == 0

    @pytest.mark.asyncio
    async def test_lenient_mode_coerces(
        self,
        ledger: LocalLedger,
        compute: LocalComputeService,
        account: str,
        make_draft: Callable[..., ListingDraft],
    ):
        session = SessionContext(
            ledger,
            compute,
            account,
            config=MarketConfig(strict_numeric_input=False, success_notice_seconds=0),
        )
        outcome = await CreationWorkflow(session).run(make_draft(value="4.5", price=""))
        assert outcome.kind is OutcomeKind.SUCCESS
        assert outcome.value == 45
        assert session.repository.get(outcome.listing_id).public_price == 0

    @pytest.mark.asyncio
    async def test_lenient_mode_never_writes_negative_price(
        self,
        ledger: LocalLedger,
        compute: LocalComputeService,
        account: str,
        make_draft: Callable[..., ListingDraft],
    ):
        session = SessionContext(
            ledger,
            compute,
            account,
            config=MarketConfig(strict_numeric_input=False, success_notice_seconds=0),
        )
        outcome = await CreationWorkflow(session).run(make_draft(price="-10"))
        assert outcome.kind is OutcomeKind.SUCCESS
        assert session.repository.get(outcome.listing_id).public_price == 10

    @pytest.mark.asyncio
    async def test_current_listing_id_tracks_attempt(
        self,
        session: SessionContext,
        ledger: LocalLedger,
        make_draft: Callable[..., ListingDraft],
    ):
        workflow = CreationWorkflow(session)
        ledger.hold_confirmations()
        pending = await workflow.run(make_draft())
        assert pending.kind is OutcomeKind.PENDING_UNCONFIRMED
        assert workflow.current_listing_id == pending.listing_id

        failed = await workflow.run(make_draft(name=""))
        assert failed.kind is OutcomeKind.FAILED
        assert workflow.current_listing_id is None

    @pytest.mark.asyncio
    async def test_encryption_failure(
        self,
        session: SessionContext,
        ledger: LocalLedger,
        compute: LocalComputeService,
        make_draft: Callable[..., ListingDraft],
    ):
        await session.ensure_compute_ready()
        compute.fail_next_call("relayer unreachable")
        workflow = CreationWorkflow(session)
        outcome = await workflow.run(make_draft())
        assert outcome.kind is OutcomeKind.FAILED
        assert outcome.error_code == "encryption_failed"
        assert "relayer unreachable" in outcome.message
        assert workflow.state is CreationState.ERROR
        assert ledger.writes == []

    @pytest.mark.asyncio
    async def test_value_out_of_range_is_encryption_failure(
        self, session: SessionContext, make_draft: Callable[..., ListingDraft]
    ):
        outcome = await CreationWorkflow(session).run(make_draft(value=str(2**32)))
        assert outcome.error_code == "encryption_failed"

    @pytest.mark.asyncio
    async def test_compute_initialise_failure(
        self, ledger: LocalLedger, account: str, make_draft: Callable[..., ListingDraft]
    ):
        session = SessionContext(
            ledger, LocalComputeService(fail_initialize=True), account, config=MarketConfig()
        )
        outcome = await CreationWorkflow(session).run(make_draft())
        assert outcome.error_code == "encryption_failed"
        assert ledger.writes == []

    @pytest.mark.asyncio
    async def test_user_rejected_returns_to_idle(
        self,
        session: SessionContext,
        ledger: LocalLedger,
        make_draft: Callable[..., ListingDraft],
    ):
        ledger.reject_next_signature()
        workflow = CreationWorkflow(session)
        outcome = await workflow.run(make_draft())
        assert outcome.kind is OutcomeKind.USER_REJECTED
        assert outcome.is_alarm is False
        assert workflow.state is CreationState.IDLE
        assert session.notifier.current.level.value == "info"

    @pytest.mark.asyncio
    async def test_submission_failure(
        self,
        session: SessionContext,
        ledger: LocalLedger,
        make_draft: Callable[..., ListingDraft],
    ):
        ledger.fail_next_write("insufficient funds for gas")
        workflow = CreationWorkflow(session)
        outcome = await workflow.run(make_draft())
        assert outcome.kind is OutcomeKind.FAILED
        assert outcome.error_code == "transaction_failed"
        assert "insufficient funds" in outcome.message
        assert workflow.state is CreationState.ERROR
        assert session.notifier.current.level.value == "error"

    @pytest.mark.asyncio
    async def test_confirmation_timeout_is_pending(
        self,
        session: SessionContext,
        ledger: LocalLedger,
        make_draft: Callable[..., ListingDraft],
    ):
        ledger.hold_confirmations()
        workflow = CreationWorkflow(session)
        outcome = await workflow.run(make_draft())
        assert outcome.kind is OutcomeKind.PENDING_UNCONFIRMED
        assert outcome.tx_hash
        assert workflow.state is CreationState.PENDING_UNCONFIRMED
        assert len(session.history) == 0

        # The transaction still lands; a later refresh reconciles.
        ledger.release_pending()
        await session.repository.refresh()
        assert outcome.listing_id in session.repository

    @pytest.mark.asyncio
    async def test_retry_after_failure_uses_fresh_id(
        self,
        session: SessionContext,
        ledger: LocalLedger,
        make_draft: Callable[..., ListingDraft],
    ):
        workflow = CreationWorkflow(session)
        ledger.fail_next_write("nonce too low")
        failed = await workflow.run(make_draft())
        succeeded = await workflow.run(make_draft())
        assert succeeded.ok
        assert failed.listing_id != succeeded.listing_id
        assert workflow.submitted_ids == [succeeded.listing_id]
