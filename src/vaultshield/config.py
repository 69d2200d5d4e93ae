"""Application configuration using pydantic-settings.

Holds the chain connection, the VaultShield contract address book and the
key material used by the encryption adapter.
"""

import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from vaultshield.errors import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=False, description="Enable debug logging")

    # ======================
    # Chain
    # ======================
    rpc_url: str = Field(
        default="https://rpc.sepolia.org", description="JSON-RPC endpoint of the ledger"
    )
    chain_id: int = Field(default=11155111, description="Chain id the client binds to")
    contract_addresses: dict[int, str] = Field(
        default_factory=dict,
        description="VaultShield contract address per chain id (JSON object)",
    )

    # ======================
    # Receipts and events
    # ======================
    receipt_timeout: float = Field(
        default=120.0, description="Seconds to wait for a transaction receipt"
    )
    receipt_poll_interval: float = Field(
        default=1.0, description="Seconds between receipt polls"
    )
    event_poll_interval: float = Field(
        default=2.0, description="Seconds between event subscription polls"
    )

    # ======================
    # Encryption
    # ======================
    encryption_backend: str = Field(
        default="sealed", description="Encryption adapter backend name"
    )
    fhe_public_key: Optional[str] = Field(
        default=None, description="Encryption public key (hex)"
    )
    fhe_secret_key: Optional[str] = Field(
        default=None, description="Encryption secret key (hex), only needed to decrypt"
    )
    proof_signing_key: Optional[str] = Field(
        default=None, description="secp256k1 key used to attest proofs (hex)"
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    def get_contract_address(self, chain_id: int) -> str:
        """Get the VaultShield address deployed on a chain.

        Raises:
            ConfigurationError: If the chain has no registered deployment
        """
        address = self.contract_addresses.get(chain_id)
        if not address:
            raise ConfigurationError(f"Contract not deployed on chain {chain_id}")
        return address

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "rpc_url": self.rpc_url,
            "chain_id": self.chain_id,
            "contract_addresses": {str(k): v for k, v in self.contract_addresses.items()},
            "receipt_timeout": self.receipt_timeout,
            "encryption": {
                "backend": self.encryption_backend,
                "public_key": self.fhe_public_key or "(not set)",
                "secret_key": "***" if self.fhe_secret_key else "(not set)",
                "proof_signing_key": "***" if self.proof_signing_key else "(not set)",
            },
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Configure root logging from settings."""
    settings = settings or get_settings()
    log_level = logging.DEBUG if settings.debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
