"""Encryption adapters for values destined for the ledger."""

from vaultshield.encryption.base import (
    Ciphertext,
    EncryptionAdapter,
    EncryptionKeys,
    Proof,
)
from vaultshield.encryption.factory import (
    get_encryption_adapter,
    load_keys,
    register_backend,
)
from vaultshield.encryption.sealed import SealedBoxAdapter, generate_keys

__all__ = [
    "Ciphertext",
    "EncryptionAdapter",
    "EncryptionKeys",
    "Proof",
    "SealedBoxAdapter",
    "generate_keys",
    "get_encryption_adapter",
    "load_keys",
    "register_backend",
]
