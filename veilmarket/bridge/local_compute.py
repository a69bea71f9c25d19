"""In-process confidential compute service.

Stands in for the FHE coprocessor and key-management service when no
external runtime is wired in (demo, tests).  It does not implement FHE:
"ciphertexts" are opaque handles whose plaintexts the service keeps to
itself, and its proofs are Ed25519 signatures a ledger can check with
the service's public key.

Signed payloads
---------------
input proof      canonical JSON of ``{"kind": "input", handle, contract, account}``
decryption proof canonical JSON of ``{"kind": "decrypt", handles, contract, encoded}``
"""

from __future__ import annotations

import asyncio
import logging
import uuid

from veilmarket.bridge.codec import canonical_json_bytes, encode_clear_values, sha256_hex
from veilmarket.bridge.crypto import (
    generate_keypair,
    key_fingerprint,
    public_key_for,
    sign_data,
    verify_data,
)
from veilmarket.core.errors import GatewayError
from veilmarket.core.gateways import DecryptionResult, EncryptedInput, SubmitVerification

logger = logging.getLogger(__name__)

# Plaintexts are 32-bit unsigned integers (euint32).
MAX_PLAINTEXT = 2**32 - 1


def input_proof_payload(handle: str, contract: str, account: str) -> bytes:
    return canonical_json_bytes(
        {"kind": "input", "handle": handle, "contract": contract.lower(), "account": account.lower()}
    )


def decryption_proof_payload(handles: list[str], contract: str, encoded: str) -> bytes:
    return canonical_json_bytes(
        {"kind": "decrypt", "handles": handles, "contract": contract.lower(), "encoded": encoded}
    )


class LocalComputeService:
    """``ComputeService`` implementation backed by an in-memory handle table.

    Parameters
    ----------
    private_key:
        Hex Ed25519 seed used to sign proofs.  Generated when omitted.
    latency_seconds:
        Artificial delay applied to every call, to exercise suspension.
    fail_initialize:
        Make ``initialize()`` raise, for failure-path testing.
    """

    def __init__(
        self,
        private_key: str | None = None,
        *,
        latency_seconds: float = 0.0,
        fail_initialize: bool = False,
    ) -> None:
        if private_key is None:
            private_key, _ = generate_keypair()
        self._private_key = private_key
        self.public_key = public_key_for(private_key)
        self._latency = latency_seconds
        self._fail_initialize = fail_initialize
        self._initialized = False
        self._plaintexts: dict[str, int] = {}
        self._fail_next: str | None = None
        self.encrypt_calls = 0
        self.decrypt_calls = 0
        logger.info("Compute service signing key %s.", key_fingerprint(self.public_key))

    # ------------------------------------------------------------------
    # Test controls
    # ------------------------------------------------------------------

    def fail_next_call(self, message: str) -> None:
        """Make the next ``encrypt`` or ``verify_decryption`` raise *message*."""
        self._fail_next = message

    # ------------------------------------------------------------------
    # ComputeService
    # ------------------------------------------------------------------

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        await self._pause()
        if self._fail_initialize:
            raise GatewayError("FHE runtime unavailable.")
        self._initialized = True

    async def encrypt(self, contract_address: str, account: str, plaintext: int) -> EncryptedInput:
        self.encrypt_calls += 1
        await self._pause()
        self._check_ready()
        if not 0 <= plaintext <= MAX_PLAINTEXT:
            raise GatewayError(f"Plaintext {plaintext} does not fit in euint32.")

        seed = f"{contract_address}:{account}:{uuid.uuid4().hex}".encode("utf-8")
        handle = "0x" + sha256_hex(seed)
        self._plaintexts[handle] = plaintext
        proof = sign_data(
            input_proof_payload(handle, contract_address, account), self._private_key
        )
        logger.debug("Encrypted value for %s into handle %s.", account, handle[:18])
        return EncryptedInput(ciphertext=handle, proof=proof)

    async def verify_decryption(
        self,
        handles: list[str],
        contract_address: str,
        submit: SubmitVerification,
    ) -> DecryptionResult:
        self.decrypt_calls += 1
        await self._pause()
        self._check_ready()
        try:
            values = [self._plaintexts[h] for h in handles]
        except KeyError as exc:
            raise GatewayError(f"Unknown ciphertext handle {exc.args[0]}.") from exc

        encoded = encode_clear_values(values)
        proof = sign_data(
            decryption_proof_payload(handles, contract_address, encoded), self._private_key
        )
        await submit(encoded, proof)
        return DecryptionResult(clear_values=dict(zip(handles, values)))

    # ------------------------------------------------------------------
    # Proof checks (used by the ledger side)
    # ------------------------------------------------------------------

    def check_input_proof(self, handle: str, proof: str, contract: str, account: str) -> bool:
        return verify_data(input_proof_payload(handle, contract, account), proof, self.public_key)

    def check_decryption_proof(
        self, handles: list[str], encoded: str, proof: str, contract: str
    ) -> bool:
        return verify_data(
            decryption_proof_payload(handles, contract, encoded), proof, self.public_key
        )

    # ------------------------------------------------------------------

    def _check_ready(self) -> None:
        if self._fail_next is not None:
            message, self._fail_next = self._fail_next, None
            raise GatewayError(message)
        if not self._initialized:
            raise GatewayError("FHE runtime not initialised.")

    async def _pause(self) -> None:
        # Always yield, so callers really suspend at this boundary.
        await asyncio.sleep(self._latency)
