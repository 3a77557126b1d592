from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    log_level: str = Field(default="INFO", description="Logging level")

    # Ledger (JSON-RPC node)
    rpc_url: str = Field(default="https://mainnet.infura.io", description="JSON-RPC endpoint of the Ethereum node")
    rpc_timeout_seconds: float = Field(default=30.0, description="Per-request HTTP timeout for node calls")
    ledger_retry_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="How long a single ledger read keeps retrying transport errors when no deadline is given",
    )

    # Gas price oracle
    gas_oracle_url: str = Field(
        default="https://ethgasstation.info/json/ethgasAPI.json",
        description="Gas price recommendation service (ethgasstation-shaped JSON)",
    )
    gas_oracle_timeout_seconds: float = Field(default=10.0, description="HTTP timeout for the gas oracle")
    gas_price_tier: str = Field(default="fast", description="Oracle tier used before each submission")

    # Transactions
    default_gas_limit: int = Field(default=21000, ge=21000, description="Gas limit for native transfers")
    transact_timeout_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Default overall deadline for a transact call",
    )
    inclusion_timeout_seconds: float = Field(
        default=180.0,
        gt=0,
        description="Max seconds to wait for a broadcast transaction to be mined before resubmitting",
    )
    confirmation_poll_seconds: float = Field(
        default=0.5,
        gt=0,
        description="Fixed delay between block height reads while waiting for confirmations",
    )

    # Backoff shared by submission retries, post-condition polling and ledger retries
    backoff_initial_seconds: float = Field(default=1.0, gt=0, description="First retry delay")
    backoff_multiplier: float = Field(default=1.6, ge=1.0, description="Growth factor between retries")
    backoff_max_seconds: float = Field(default=30.0, gt=0, description="Retry delay ceiling")

    # Nonce error handling
    nonce_retry_attempts: int = Field(
        default=60,
        ge=1,
        description="Max nonce-error retries within a single submission attempt",
    )
    nonce_retry_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Delay before re-reading the pending nonce after an unclassified nonce error",
    )

    address_book_path: Optional[Path] = Field(
        default=None,
        description="JSON file with per-network default address book entries",
    )


# Global settings instance
settings = Settings()
