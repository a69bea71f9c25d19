"""In-process marketplace ledger.

Implements the ``LedgerGateway`` contract with the semantics of the
on-chain marketplace contract:

- ``createListing`` reverts on a duplicate id or an invalid input proof.
- ``verifyDecryption`` reverts with "Data already verified" once a value is
  revealed, and on an invalid decryption proof; otherwise it stores the
  decoded clear value and marks the listing verified.

Transactions are mined independently of whoever waits for them: a
submitted transaction is applied after ``confirmation_delay`` seconds even
if nobody calls ``await_confirmation``.  ``hold_confirmations()`` keeps
transactions pending until ``release_pending()``, to exercise timeouts.
Writes are pre-checked at submission, as a node's gas estimation would,
so reverts can surface either at submit time or at confirmation.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timezone

from veilmarket.bridge.codec import decode_clear_values
from veilmarket.bridge.local_compute import LocalComputeService
from veilmarket.core.errors import AlreadyVerifiedError, GatewayError, UserRejectedError
from veilmarket.core.gateways import Receipt, TxHandle
from veilmarket.models.listing import Listing

logger = logging.getLogger(__name__)

DEFAULT_CONTRACT_ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"


class LocalLedger:
    """``LedgerGateway`` implementation holding contract state in memory.

    Parameters
    ----------
    account:
        The signer whose wallet authorises writes.
    verifier:
        Compute service whose proofs the contract accepts.  Proof checks
        are skipped when ``None``.
    contract_address:
        Address reported by ``get_contract_address()``.
    confirmation_delay:
        Seconds between submission and mining.
    """

    def __init__(
        self,
        account: str = "",
        *,
        verifier: LocalComputeService | None = None,
        contract_address: str = DEFAULT_CONTRACT_ADDRESS,
        confirmation_delay: float = 0.0,
    ) -> None:
        self.account = account
        self._verifier = verifier
        self._contract_address = contract_address
        self._delay = confirmation_delay
        self._listings: dict[str, Listing] = {}
        self._order: list[str] = []
        self._pending: dict[str, Callable[[], None]] = {}
        self._futures: dict[str, asyncio.Future[Receipt]] = {}
        self._block = 0
        self._hold = False
        self._reject_next = False
        self._fail_next_write: str | None = None
        self._broken_ids: set[str] = set()
        self._index_error: str | None = None
        self.available = True
        self.writes: list[tuple[str, str]] = []  # (method, listing_id)

    # ------------------------------------------------------------------
    # Test controls
    # ------------------------------------------------------------------

    def reject_next_signature(self) -> None:
        """The signer declines the next write."""
        self._reject_next = True

    def fail_next_write(self, message: str) -> None:
        """The next write fails at submission with *message*."""
        self._fail_next_write = message

    def hold_confirmations(self) -> None:
        """Stop mining; submitted transactions stay pending."""
        self._hold = True

    def release_pending(self) -> None:
        """Resume mining and mine everything held so far."""
        self._hold = False
        for tx_hash in list(self._pending):
            self._mine(tx_hash)

    def break_record(self, listing_id: str) -> None:
        """Make ``get_listing(listing_id)`` fail, as a malformed record would."""
        self._broken_ids.add(listing_id)

    def fail_index(self, message: str | None) -> None:
        """Make ``list_all_listing_ids()`` fail (``None`` restores it)."""
        self._index_error = message

    def force_verify(self, listing_id: str, clear_value: int) -> None:
        """Mark *listing_id* verified directly, as another buyer's tx would."""
        self._listings[listing_id] = self._listings[listing_id].model_copy(
            update={"is_verified": True, "clear_value": clear_value}
        )

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    async def get_contract_address(self) -> str:
        await asyncio.sleep(0)
        return self._contract_address

    async def is_available(self) -> bool:
        await asyncio.sleep(0)
        return self.available

    async def list_all_listing_ids(self) -> list[str]:
        await asyncio.sleep(0)
        if self._index_error is not None:
            raise GatewayError(self._index_error)
        return list(self._order)

    async def get_listing(self, listing_id: str) -> Listing:
        await asyncio.sleep(0)
        if listing_id in self._broken_ids:
            raise GatewayError(f"Could not decode record '{listing_id}'.")
        try:
            return self._listings[listing_id]
        except KeyError:
            raise GatewayError(f"Listing does not exist: {listing_id}") from None

    async def get_encrypted_value(self, listing_id: str) -> str:
        return (await self.get_listing(listing_id)).encrypted_value_handle

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    async def create_listing(
        self,
        listing_id: str,
        name: str,
        ciphertext: str,
        proof: str,
        price: int,
        secondary_value: int,
        description: str,
    ) -> TxHandle:
        def check() -> None:
            if listing_id in self._listings:
                raise GatewayError(f"Listing already exists: {listing_id}")
            if self._verifier is not None and not self._verifier.check_input_proof(
                ciphertext, proof, self._contract_address, self.account
            ):
                raise GatewayError("Invalid input proof.")

        def apply() -> None:
            check()
            self._listings[listing_id] = Listing(
                listing_id=listing_id,
                name=name,
                description=description,
                encrypted_value_handle=ciphertext,
                public_price=price,
                public_secondary_value=secondary_value,
                creator=self.account,
                created_at=datetime.now(timezone.utc),
            )
            self._order.append(listing_id)

        return await self._submit("createListing", listing_id, check, apply)

    async def submit_verification(
        self, listing_id: str, encoded_clear_values: str, proof: str
    ) -> TxHandle:
        def check() -> int:
            listing = self._listings.get(listing_id)
            if listing is None:
                raise GatewayError(f"Listing does not exist: {listing_id}")
            if listing.is_verified:
                raise AlreadyVerifiedError("Data already verified")
            handle = listing.encrypted_value_handle
            if self._verifier is not None and not self._verifier.check_decryption_proof(
                [handle], encoded_clear_values, proof, self._contract_address
            ):
                raise GatewayError("Invalid decryption proof.")
            try:
                (value,) = decode_clear_values(encoded_clear_values)
            except ValueError as exc:
                raise GatewayError(f"Malformed clear values: {exc}") from exc
            return value

        def apply() -> None:
            value = check()
            self._listings[listing_id] = self._listings[listing_id].model_copy(
                update={"is_verified": True, "clear_value": value}
            )

        return await self._submit("verifyDecryption", listing_id, check, apply)

    async def await_confirmation(self, tx: TxHandle) -> Receipt:
        try:
            future = self._futures[tx.tx_hash]
        except KeyError:
            raise GatewayError(f"Unknown transaction {tx.tx_hash}") from None
        # Shielded: a caller's timeout must not cancel the transaction itself.
        return await asyncio.shield(future)

    # ------------------------------------------------------------------
    # Mining
    # ------------------------------------------------------------------

    async def _submit(
        self,
        method: str,
        listing_id: str,
        check: Callable[[], object],
        apply: Callable[[], None],
    ) -> TxHandle:
        await asyncio.sleep(0)
        if self._reject_next:
            self._reject_next = False
            raise UserRejectedError("user rejected transaction")
        if self._fail_next_write is not None:
            message, self._fail_next_write = self._fail_next_write, None
            raise GatewayError(message)
        check()

        tx_hash = "0x" + uuid.uuid4().hex * 2
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Receipt] = loop.create_future()
        # Mark exceptions retrieved so unobserved reverts are not reported at GC.
        future.add_done_callback(lambda f: f.cancelled() or f.exception())
        self._futures[tx_hash] = future
        self._pending[tx_hash] = apply
        self.writes.append((method, listing_id))
        logger.debug("%s(%s) submitted as %s.", method, listing_id, tx_hash[:18])

        if not self._hold:
            loop.call_later(self._delay, self._mine, tx_hash)
        return TxHandle(tx_hash=tx_hash, sender=self.account)

    def _mine(self, tx_hash: str) -> None:
        if self._hold:
            return
        apply = self._pending.pop(tx_hash, None)
        if apply is None:
            return
        future = self._futures[tx_hash]
        self._block += 1
        try:
            apply()
        except Exception as exc:
            logger.info("Transaction %s reverted: %s", tx_hash[:18], exc)
            future.set_exception(exc)
            return
        future.set_result(Receipt(tx_hash=tx_hash, block_number=self._block))
