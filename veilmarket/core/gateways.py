"""Collaborator contracts — the ledger gateway and the confidential compute service.

Both collaborators are external to veilmarket and are consumed only through
the Protocols below.  Any object with matching async methods satisfies
them; the in-process implementations in ``veilmarket.bridge`` are the
defaults used by the demo and the test-suite.

Error signals
-------------
Implementations must raise ``UserRejectedError`` when the signer declines a
transaction and ``AlreadyVerifiedError`` when the ledger refuses a
verification for an already revealed value.  Any other failure should be a
``GatewayError`` (other exception types are tolerated and treated the same).
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

from veilmarket.models.listing import Listing


class TxHandle(BaseModel):
    """Reference to a submitted, not yet confirmed, ledger transaction."""

    model_config = ConfigDict(frozen=True)

    tx_hash: str
    sender: str = ""


class Receipt(BaseModel):
    """Confirmation of a ledger transaction."""

    model_config = ConfigDict(frozen=True)

    tx_hash: str
    block_number: int = 0
    succeeded: bool = True


class EncryptedInput(BaseModel):
    """Ciphertext handle and input proof produced by the compute service."""

    model_config = ConfigDict(frozen=True)

    ciphertext: str
    proof: str


class DecryptionResult(BaseModel):
    """Clear values revealed by the compute service, keyed by ciphertext handle."""

    model_config = ConfigDict(frozen=True)

    clear_values: dict[str, int]


# Given (encoded_clear_values, decryption_proof), issue the ledger write.
SubmitVerification = Callable[[str, str], Awaitable[TxHandle]]


@runtime_checkable
class LedgerGateway(Protocol):
    """Read and authenticated-write access to listing records."""

    async def get_contract_address(self) -> str:
        """Return the address of the marketplace contract."""
        ...

    async def is_available(self) -> bool:
        """Return the contract's availability flag."""
        ...

    async def list_all_listing_ids(self) -> list[str]:
        """Return every listing id known to the ledger."""
        ...

    async def get_listing(self, listing_id: str) -> Listing:
        """Return the ledger record for *listing_id*."""
        ...

    async def get_encrypted_value(self, listing_id: str) -> str:
        """Return the ciphertext handle stored for *listing_id*."""
        ...

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
        """Submit the listing creation transaction."""
        ...

    async def submit_verification(
        self, listing_id: str, encoded_clear_values: str, proof: str
    ) -> TxHandle:
        """Submit a decryption verification transaction."""
        ...

    async def await_confirmation(self, tx: TxHandle) -> Receipt:
        """Wait for *tx* to be final.  Raises on revert."""
        ...


@runtime_checkable
class ComputeService(Protocol):
    """Confidential compute (FHE) engine: encryption and verified decryption."""

    @property
    def is_initialized(self) -> bool:
        """Whether the runtime has been initialised for this session."""
        ...

    async def initialize(self) -> None:
        """Prepare the runtime (key material, WASM, ...).  Idempotent."""
        ...

    async def encrypt(
        self, contract_address: str, account: str, plaintext: int
    ) -> EncryptedInput:
        """Encrypt *plaintext* for *contract_address*, bound to *account*."""
        ...

    async def verify_decryption(
        self,
        handles: list[str],
        contract_address: str,
        submit: SubmitVerification,
    ) -> DecryptionResult:
        """Decrypt *handles* and hand the clear values plus proof to *submit*."""
        ...
