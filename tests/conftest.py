"""Shared test fixtures for veilmarket."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from veilmarket.bridge.local_compute import LocalComputeService
from veilmarket.bridge.local_ledger import LocalLedger
from veilmarket.config import MarketConfig
from veilmarket.core.orchestrator import MarketOrchestrator
from veilmarket.core.session import SessionContext
from veilmarket.models.workflow import ListingDraft

ACCOUNT = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
OTHER_ACCOUNT = "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC"


@pytest.fixture
def account() -> str:
    """The identity the test session connects as."""
    return ACCOUNT


@pytest.fixture
def market_config() -> MarketConfig:
    """Settings with short timeouts and no notice timers."""
    return MarketConfig(
        confirmation_timeout_seconds=0.5,
        success_notice_seconds=0.0,
        error_notice_seconds=0.0,
        contract_address="",
    )


@pytest.fixture
def compute() -> LocalComputeService:
    """A fresh in-process compute service."""
    return LocalComputeService()


@pytest.fixture
def ledger(compute: LocalComputeService, account: str) -> LocalLedger:
    """A fresh in-process ledger that checks the compute service's proofs."""
    return LocalLedger(account, verifier=compute)


@pytest.fixture
def session(
    ledger: LocalLedger,
    compute: LocalComputeService,
    account: str,
    market_config: MarketConfig,
) -> SessionContext:
    """A connected session over the local collaborators."""
    return SessionContext(ledger, compute, account, config=market_config)


@pytest.fixture
def orchestrator(session: SessionContext) -> MarketOrchestrator:
    """An orchestrator owning the test session."""
    return MarketOrchestrator(session)


# ---------------------------------------------------------------------------
# Draft factory — shared across test modules
# ---------------------------------------------------------------------------


@pytest.fixture
def make_draft() -> Callable[..., ListingDraft]:
    """Factory fixture: build a ListingDraft with sensible defaults."""

    def _factory(
        name: str = "Temp-01",
        value: str | int = "42",
        price: str | int = "10",
        **overrides: Any,
    ) -> ListingDraft:
        defaults: dict[str, Any] = {
            "name": name,
            "value": value,
            "price": price,
        }
        defaults.update(overrides)
        return ListingDraft(**defaults)

    return _factory
