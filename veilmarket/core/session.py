"""Session context — the explicitly owned state of one connected client.

Everything a workflow needs (identity, collaborators, listing cache,
history, notices, configuration) is reachable from a ``SessionContext``
passed into it.  There is no ambient global session; tests build isolated
contexts.
"""

from __future__ import annotations

import logging
import time
import uuid

from veilmarket.config import MarketConfig
from veilmarket.core.aggregator import MarketAggregator, OperationHistory
from veilmarket.core.errors import EncryptionFailedError, NotConnectedError
from veilmarket.core.gateways import ComputeService, LedgerGateway
from veilmarket.core.notifier import StatusNotifier
from veilmarket.core.repository import ListingRepository

logger = logging.getLogger(__name__)


class SessionContext:
    """Owned, session-scoped state shared by the workflows.

    Parameters
    ----------
    ledger:
        Ledger gateway for reads and authenticated writes.
    compute:
        Confidential compute service.
    identity:
        Connected account, or ``None`` when no wallet is connected.
    config:
        Settings; a fresh ``MarketConfig`` is loaded when omitted.
    """

    def __init__(
        self,
        ledger: LedgerGateway,
        compute: ComputeService,
        identity: str | None = None,
        *,
        config: MarketConfig | None = None,
    ) -> None:
        self.config = config or MarketConfig()
        self.ledger = ledger
        self.compute = compute
        self.identity = identity
        self.repository = ListingRepository(ledger)
        self.history = OperationHistory(window=self.config.history_window)
        self.aggregator = MarketAggregator(self.repository)
        self.notifier = StatusNotifier(
            success_seconds=self.config.success_notice_seconds,
            error_seconds=self.config.error_notice_seconds,
        )
        self._contract_address = self.config.contract_address
        self._issued_ids: set[str] = set()

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def is_connected(self) -> bool:
        return bool(self.identity)

    def connect(self, identity: str) -> None:
        self.identity = identity
        logger.info("Session connected as %s.", identity)

    def disconnect(self) -> None:
        self.identity = None
        logger.info("Session disconnected.")

    def require_identity(self) -> str:
        """Return the connected identity or raise ``NotConnectedError``."""
        if not self.identity:
            raise NotConnectedError("Connect a wallet first.")
        return self.identity

    # ------------------------------------------------------------------
    # Collaborator readiness
    # ------------------------------------------------------------------

    async def contract_address(self) -> str:
        """The bound contract address, asked of the ledger once if unset."""
        if not self._contract_address:
            self._contract_address = await self.ledger.get_contract_address()
            logger.info("Bound to marketplace contract %s.", self._contract_address)
        return self._contract_address

    async def ensure_compute_ready(self) -> None:
        """Initialise the compute runtime once, before its first use.

        Raises
        ------
        EncryptionFailedError
            If the runtime cannot be initialised.
        """
        if self.compute.is_initialized:
            return
        try:
            await self.compute.initialize()
        except Exception as exc:
            raise EncryptionFailedError(
                f"FHE runtime initialisation failed: {exc}"
            ) from exc
        logger.info("Confidential compute runtime initialised.")

    # ------------------------------------------------------------------
    # Listing ids
    # ------------------------------------------------------------------

    def new_listing_id(self) -> str:
        """Issue a listing id never issued before in this session."""
        while True:
            millis = int(time.time() * 1000)
            candidate = f"{self.config.listing_id_prefix}-{millis}-{uuid.uuid4().hex[:6]}"
            if candidate not in self._issued_ids:
                self._issued_ids.add(candidate)
                return candidate

    def was_issued(self, listing_id: str) -> bool:
        return listing_id in self._issued_ids
