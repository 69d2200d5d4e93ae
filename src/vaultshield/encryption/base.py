"""Base interface for encryption adapters.

Encryption flow for a ledger value:
1. Encrypt the plaintext under the ledger public key
2. Attest the ciphertext with a proof
3. Submit ciphertext and proof to the ledger gateway

Adapters hold no state. Key material is always passed in by the caller.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Union

logger = logging.getLogger(__name__)

Ciphertext = bytes
Proof = bytes
KeyMaterial = Union[str, bytes]


@dataclass(frozen=True)
class EncryptionKeys:
    """Key set used by the orchestrator.

    Attributes:
        public_key: Key values are encrypted under (hex)
        proof_key: Private key used to attest ciphertexts (hex)
        secret_key: Key able to decrypt ciphertexts (hex), optional
    """
    public_key: str
    proof_key: str
    secret_key: Optional[str] = None


class EncryptionAdapter(ABC):
    """Abstract base class for encryption/proof backends.

    A homomorphic encryption library plugs in by implementing this
    interface and registering a backend name in the factory.
    """

    name: str = "abstract"

    @abstractmethod
    async def encrypt(self, value: int, public_key: KeyMaterial) -> Ciphertext:
        """Encrypt a plaintext value.

        Two calls with the same value must not yield the same ciphertext.

        Args:
            value: Non-negative integer below 2**256
            public_key: Recipient public key

        Returns:
            Opaque ciphertext

        Raises:
            EncryptionError: If the value or key is invalid
        """
        pass

    @abstractmethod
    async def generate_proof(self, ciphertext: Ciphertext, private_key: KeyMaterial) -> Proof:
        """Produce a proof that the ciphertext is well formed.

        Raises:
            ProofError: If the ciphertext or key is malformed
        """
        pass

    @abstractmethod
    async def verify_proof(self, proof: Proof, ciphertext: Ciphertext) -> bool:
        """Check a proof against a ciphertext.

        Returns False for any well-formed but invalid pair.

        Raises:
            ProofError: Only if the proof or ciphertext has a malformed shape
        """
        pass

    @abstractmethod
    async def decrypt(self, ciphertext: Ciphertext, secret_key: KeyMaterial) -> int:
        """Recover the plaintext value.

        Raises:
            EncryptionError: If the ciphertext does not open under the key
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(backend={self.name})"
