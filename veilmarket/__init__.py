"""veilmarket: client orchestrator for a confidential IoT sensor-data marketplace.

Sensor readings are encrypted client-side, published to a ledger as opaque
ciphertext handles with public metadata, and revealed only through a
decryption whose proof the ledger itself verifies.

  - Async creation and verification workflows with explicit state machines
  - Tagged ``WorkflowOutcome`` results instead of string-matched errors
  - Ledger-truth listing repository with atomic snapshot refresh
  - Session-scoped history, derived stats, and cancellable status notices
  - Pluggable ``LedgerGateway`` / ``ComputeService`` Protocols, with
    in-process implementations (Ed25519 proofs via PyNaCl)
  - Rich market monitor and Typer CLI
"""

__version__ = "0.1.0"
__description__ = "Confidential IoT sensor-data marketplace client orchestrator"

from veilmarket.core.orchestrator import MarketOrchestrator
from veilmarket.core.session import SessionContext
from veilmarket.models.listing import Listing
from veilmarket.models.workflow import ListingDraft, OutcomeKind, WorkflowOutcome
from veilmarket.monitor.projection import MarketProjection as MarketMonitor
from veilmarket.cli.app import app as cli

__all__ = [
    "MarketOrchestrator",
    "SessionContext",
    "Listing",
    "ListingDraft",
    "OutcomeKind",
    "WorkflowOutcome",
    "MarketMonitor",
    "cli",
    "__version__",
]
