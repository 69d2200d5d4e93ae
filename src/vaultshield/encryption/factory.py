"""Encryption adapter factory.

Creates the encryption backend named in configuration and loads the
key set the orchestrator needs.
"""

import logging
from typing import Callable, Optional

from vaultshield.config import Settings, get_settings
from vaultshield.encryption.base import EncryptionAdapter, EncryptionKeys
from vaultshield.errors import ConfigurationError

logger = logging.getLogger(__name__)


def _sealed() -> EncryptionAdapter:
    from vaultshield.encryption.sealed import SealedBoxAdapter
    return SealedBoxAdapter()


_BACKENDS: dict[str, Callable[[], EncryptionAdapter]] = {
    "sealed": _sealed,
}


def register_backend(name: str, factory: Callable[[], EncryptionAdapter]) -> None:
    """Register an encryption backend under a configuration name."""
    _BACKENDS[name.lower()] = factory


def get_encryption_adapter(settings: Optional[Settings] = None) -> EncryptionAdapter:
    """Create the configured encryption adapter.

    Raises:
        ConfigurationError: If the backend name is unknown
    """
    settings = settings or get_settings()
    backend = settings.encryption_backend.lower()

    factory = _BACKENDS.get(backend)
    if factory is None:
        raise ConfigurationError(
            f"Unknown encryption backend '{settings.encryption_backend}' "
            f"(available: {', '.join(sorted(_BACKENDS))})"
        )

    logger.info(f"Initializing {backend} encryption adapter")
    return factory()


def load_keys(settings: Optional[Settings] = None) -> EncryptionKeys:
    """Load encryption keys from settings.

    Raises:
        ConfigurationError: If the public key or proof key is missing
    """
    settings = settings or get_settings()

    missing = [
        name
        for name, value in (
            ("FHE_PUBLIC_KEY", settings.fhe_public_key),
            ("PROOF_SIGNING_KEY", settings.proof_signing_key),
        )
        if not value
    ]
    if missing:
        raise ConfigurationError(f"Missing encryption key material: {', '.join(missing)}")

    return EncryptionKeys(
        public_key=settings.fhe_public_key,
        proof_key=settings.proof_signing_key,
        secret_key=settings.fhe_secret_key,
    )
