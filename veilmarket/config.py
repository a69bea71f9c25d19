"""Session configuration — env-driven via pydantic-settings.

Reads from a .env file and VEILMARKET_* environment variables.
"""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class MarketConfig(BaseSettings):
    """Marketplace client configuration with environment variable overrides.

    Examples
    --------
    Override via environment::

        export VEILMARKET_LOG_LEVEL=DEBUG
        export VEILMARKET_CONTRACT_ADDRESS=0x5FbDB2315678afecb367f032d93F642f64180aa3
        export VEILMARKET_CONFIRMATION_TIMEOUT_SECONDS=30

    Or via .env file::

        VEILMARKET_STRICT_NUMERIC_INPUT=false
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="VEILMARKET_",
        env_file_encoding="utf-8",
    )

    # Runtime environment
    environment: str = "development"
    log_level: str = "INFO"
    debug: bool = False

    # Ledger contract the session is bound to.  Empty means "ask the gateway".
    contract_address: str = ""

    # Workflow behaviour
    confirmation_timeout_seconds: float = 120.0
    strict_numeric_input: bool = True
    listing_id_prefix: str = "sensor"

    # Read side
    history_window: int = 5

    # Status notices
    success_notice_seconds: float = 2.0
    error_notice_seconds: float = 3.0

    # Local (in-process) collaborators used by the demo and tests
    local_confirmation_delay_seconds: float = 0.0

    @property
    def is_production(self) -> bool:
        """Whether running in production mode."""
        return self.environment == "production"


# Module-level singleton: import as `from veilmarket.config import config`
config = MarketConfig()
