"""Adversarial tests — collaborators that lie, skip steps, or repeat them.

The workflows must report only what the ledger confirms, never submit
ciphertext without a proof, and never issue more than one verification
write per attempt.
"""

from __future__ import annotations

import logging

import pytest

from veilmarket.bridge.codec import encode_clear_values
from veilmarket.bridge.local_compute import LocalComputeService
from veilmarket.bridge.local_ledger import LocalLedger
from veilmarket.config import MarketConfig
from veilmarket.core.creation import CreationWorkflow
from veilmarket.core.errors import GatewayError
from veilmarket.core.gateways import DecryptionResult, EncryptedInput, Receipt, TxHandle
from veilmarket.core.session import SessionContext
from veilmarket.core.verification import VerificationWorkflow
from veilmarket.models.workflow import (
    CreationState,
    ListingDraft,
    OutcomeKind,
    VerificationState,
)

ACCOUNT = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
DRAFT = ListingDraft(name="Temp-01", value="42", price="10")


def _session(compute: LocalComputeService, ledger: LocalLedger | None = None) -> SessionContext:
    ledger = ledger or LocalLedger(ACCOUNT, verifier=compute)
    return SessionContext(
        ledger,
        compute,
        ACCOUNT,
        config=MarketConfig(
            confirmation_timeout_seconds=0.5,
            success_notice_seconds=0,
            error_notice_seconds=0,
        ),
    )


class LyingCompute(LocalComputeService):
    """Submits the true value to the ledger but reports another locally."""

    async def verify_decryption(self, handles, contract_address, submit):
        result = await super().verify_decryption(handles, contract_address, submit)
        return DecryptionResult(clear_values={h: 9999 for h in result.clear_values})


class SilentCompute(LocalComputeService):
    """Returns clear values without ever submitting them."""

    async def verify_decryption(self, handles, contract_address, submit):
        self.decrypt_calls += 1
        return DecryptionResult(clear_values={h: 42 for h in handles})


class DoubleSubmitCompute(LocalComputeService):
    """Calls the submit callback twice."""

    async def verify_decryption(self, handles, contract_address, submit):
        result = await super().verify_decryption(handles, contract_address, submit)
        await submit(encode_clear_values([42]), "00" * 64)
        return result


class ProoflessCompute(LocalComputeService):
    """Produces ciphertext without an input proof."""

    async def encrypt(self, contract_address, account, plaintext):
        encrypted = await super().encrypt(contract_address, account, plaintext)
        return EncryptedInput(ciphertext=encrypted.ciphertext, proof="")


class PrematureReceiptLedger(LocalLedger):
    """Confirms immediately while the transaction is still unmined."""

    async def await_confirmation(self, tx: TxHandle) -> Receipt:
        return Receipt(tx_hash=tx.tx_hash, block_number=0)


class RevertedReceiptLedger(LocalLedger):
    """Returns a receipt flagged as reverted."""

    async def await_confirmation(self, tx: TxHandle) -> Receipt:
        receipt = await super().await_confirmation(tx)
        return receipt.model_copy(update={"succeeded": False})


async def _create(session: SessionContext) -> str:
    outcome = await CreationWorkflow(session).run(DRAFT)
    assert outcome.kind is OutcomeKind.SUCCESS
    return outcome.listing_id


class TestLyingCollaborators:
    @pytest.mark.asyncio
    async def test_local_value_never_reported_over_ledger(
        self, caplog: pytest.LogCaptureFixture
    ):
        session = _session(LyingCompute())
        listing_id = await _create(session)
        with caplog.at_level(logging.WARNING, logger="veilmarket.core.verification"):
            outcome = await VerificationWorkflow(session).run(listing_id)
        assert outcome.kind is OutcomeKind.SUCCESS
        assert outcome.value == 42
        assert session.history.all()[-1].value == 42
        assert "differs from decrypted value" in caplog.text

    @pytest.mark.asyncio
    async def test_silent_compute_is_failure(self):
        compute = SilentCompute()
        session = _session(compute)
        listing_id = await _create(session)
        workflow = VerificationWorkflow(session)
        outcome = await workflow.run(listing_id)
        assert outcome.kind is OutcomeKind.FAILED
        assert workflow.state is VerificationState.ERROR
        assert session.repository.get(listing_id).is_verified is False

    @pytest.mark.asyncio
    async def test_double_submit_blocked(self):
        compute = DoubleSubmitCompute()
        ledger = LocalLedger(ACCOUNT, verifier=compute)
        session = _session(compute, ledger)
        listing_id = await _create(session)
        outcome = await VerificationWorkflow(session).run(listing_id)
        assert outcome.kind is OutcomeKind.FAILED
        assert "already submitted" in outcome.message
        assert ledger.writes.count(("verifyDecryption", listing_id)) == 1

    @pytest.mark.asyncio
    async def test_proofless_ciphertext_never_submitted(self):
        compute = ProoflessCompute()
        ledger = LocalLedger(ACCOUNT, verifier=compute)
        session = _session(compute, ledger)
        workflow = CreationWorkflow(session)
        outcome = await workflow.run(DRAFT)
        assert outcome.error_code == "encryption_failed"
        assert workflow.state is CreationState.ERROR
        assert ledger.writes == []

    @pytest.mark.asyncio
    async def test_premature_receipt_is_pending_not_success(self):
        compute = LocalComputeService()
        ledger = PrematureReceiptLedger(ACCOUNT, verifier=compute)
        session = _session(compute, ledger)
        listing_id = await _create(session)
        await session.repository.refresh()

        ledger.hold_confirmations()
        workflow = VerificationWorkflow(session)
        outcome = await workflow.run(listing_id)
        assert outcome.kind is OutcomeKind.PENDING_UNCONFIRMED
        assert outcome.value is None
        assert workflow.state is VerificationState.PENDING_UNCONFIRMED
        assert len(session.history) == 1

    @pytest.mark.asyncio
    async def test_reverted_receipt_is_failure(self):
        compute = LocalComputeService()
        ledger = RevertedReceiptLedger(ACCOUNT, verifier=compute)
        session = _session(compute, ledger)
        workflow = CreationWorkflow(session)
        outcome = await workflow.run(DRAFT)
        assert outcome.kind is OutcomeKind.FAILED
        assert outcome.error_code == "transaction_failed"
        assert len(session.history) == 0


class TestForgedProofs:
    @pytest.mark.asyncio
    async def test_forged_decryption_proof_rejected(self):
        compute = LocalComputeService()
        session = _session(compute)
        listing_id = await _create(session)
        with pytest.raises(GatewayError, match="Invalid decryption proof"):
            await session.ledger.submit_verification(
                listing_id, encode_clear_values([1]), "00" * 64
            )

    @pytest.mark.asyncio
    async def test_proof_from_other_service_rejected(self):
        compute = LocalComputeService()
        impostor = LocalComputeService()
        await impostor.initialize()
        ledger = LocalLedger(ACCOUNT, verifier=compute)
        encrypted = await impostor.encrypt(await ledger.get_contract_address(), ACCOUNT, 42)
        with pytest.raises(GatewayError, match="Invalid input proof"):
            await ledger.create_listing(
                "sensor-x", "Temp-01", encrypted.ciphertext, encrypted.proof, 10, 0, ""
            )
