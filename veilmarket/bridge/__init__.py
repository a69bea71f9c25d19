"""In-process collaborators for veilmarket.

Modules
-------
local_ledger
    ``LocalLedger`` — ``LedgerGateway`` with the marketplace contract's
    semantics, mining transactions in the background.
local_compute
    ``LocalComputeService`` — ``ComputeService`` keeping plaintexts behind
    opaque handles and signing its proofs.
crypto
    Ed25519 signing and verification via PyNaCl.
codec
    Canonical JSON and clear-value word encoding.

Used by the demo command and the test-suite; production sessions plug in
their own gateway and compute service objects.
"""

from veilmarket.bridge.local_compute import LocalComputeService
from veilmarket.bridge.local_ledger import DEFAULT_CONTRACT_ADDRESS, LocalLedger

__all__ = ["LocalComputeService", "LocalLedger", "DEFAULT_CONTRACT_ADDRESS"]
