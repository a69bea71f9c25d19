"""Error taxonomy for the marketplace client.

Two families live here:

- **Gateway signals** raised by ``LedgerGateway`` / ``ComputeService``
  implementations.  ``UserRejectedError`` and ``AlreadyVerifiedError`` are
  distinguished conditions the workflows branch on by type, never by the
  wording of an external message.
- **Workflow errors** that the workflows convert into a tagged
  ``WorkflowOutcome``.  Each carries a stable ``code`` used in that outcome.
"""

from __future__ import annotations


class MarketError(RuntimeError):
    """Base class for every error raised by veilmarket."""

    code = "market_error"


# ---------------------------------------------------------------------------
# Gateway signals
# ---------------------------------------------------------------------------


class GatewayError(MarketError):
    """A ledger or compute collaborator failed."""

    code = "gateway_error"


class UserRejectedError(GatewayError):
    """The signer explicitly declined the transaction.  Not an alarm condition."""

    code = "user_rejected"


class AlreadyVerifiedError(GatewayError):
    """The ledger refused a verification because the value is already revealed."""

    code = "already_verified"


# ---------------------------------------------------------------------------
# Workflow errors
# ---------------------------------------------------------------------------


class ValidationError(MarketError, ValueError):
    """Bad local input.  Raised before any collaborator is contacted."""

    code = "validation_error"


class NotConnectedError(MarketError):
    """No authenticated identity is available in the session."""

    code = "not_connected"


class EncryptionFailedError(MarketError):
    """The compute service failed to produce ciphertext and proof."""

    code = "encryption_failed"


class TransactionFailedError(MarketError):
    """A ledger write or its confirmation failed for a reason other than rejection."""

    code = "transaction_failed"


class PendingUnconfirmedError(MarketError):
    """The confirmation wait exceeded its budget; the transaction may still land."""

    code = "pending_unconfirmed"


class WorkflowBusyError(MarketError):
    """A workflow of the same kind is already in flight for this session."""

    code = "workflow_busy"


class InvalidTransitionError(MarketError):
    """Raised when a requested workflow state transition is not valid."""

    code = "invalid_transition"


class RefreshError(MarketError):
    """The listing index could not be read from the ledger."""

    code = "refresh_failed"


class ValueWithheldError(MarketError):
    """A clear value was requested for a listing that is not verified."""

    code = "value_withheld"
