"""Sealed-box encryption adapter.

Ciphertexts are X25519 + HKDF-SHA256 + AES-GCM sealed boxes:

    version (1) | ephemeral public key (32) | nonce (12) | sealed value (32 + 16 tag)

Proofs are secp256k1 attestations over the SHA-256 digest of the
ciphertext (or of several concatenated ciphertexts):

    version (1) | signer address (20) | digest (32) | signature (65)

This backend is not homomorphic. It satisfies the adapter contract so the
orchestrator can run end to end until an FHE backend is registered.
"""

import hashlib
import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric.x25519 import (
    X25519PrivateKey,
    X25519PublicKey,
)
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_keys.exceptions import BadSignature
from eth_keys.exceptions import ValidationError as KeyValidationError

from vaultshield.encryption.base import (
    Ciphertext,
    EncryptionAdapter,
    EncryptionKeys,
    KeyMaterial,
    Proof,
)
from vaultshield.errors import EncryptionError, ProofError

logger = logging.getLogger(__name__)

VERSION = 0x01
KEY_SIZE = 32
NONCE_SIZE = 12
VALUE_SIZE = 32
TAG_SIZE = 16
HEADER_SIZE = 1 + KEY_SIZE
CIPHERTEXT_SIZE = HEADER_SIZE + NONCE_SIZE + VALUE_SIZE + TAG_SIZE

ADDRESS_SIZE = 20
DIGEST_SIZE = 32
SIGNATURE_SIZE = 65
PROOF_SIZE = 1 + ADDRESS_SIZE + DIGEST_SIZE + SIGNATURE_SIZE

MAX_VALUE = 2**256

HKDF_INFO = b"vaultshield/sealed-value/v1"


def _key_bytes(key: KeyMaterial) -> bytes:
    """Accept raw bytes or a hex string (with or without 0x)."""
    if isinstance(key, (bytes, bytearray)):
        return bytes(key)
    if isinstance(key, str):
        return bytes.fromhex(key.removeprefix("0x"))
    raise TypeError(f"Unsupported key type: {type(key).__name__}")


def _raw_public(key: X25519PublicKey) -> bytes:
    return key.public_bytes(serialization.Encoding.Raw, serialization.PublicFormat.Raw)


def _derive_key(shared_secret: bytes, header: bytes) -> bytes:
    return HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=header,
        info=HKDF_INFO,
    ).derive(shared_secret)


def is_well_formed(ciphertext: Ciphertext) -> bool:
    """Check that a value is one or more sealed boxes of this backend."""
    if not isinstance(ciphertext, (bytes, bytearray)) or not ciphertext:
        return False
    if len(ciphertext) % CIPHERTEXT_SIZE:
        return False
    return all(
        ciphertext[offset] == VERSION
        for offset in range(0, len(ciphertext), CIPHERTEXT_SIZE)
    )


def generate_keys() -> EncryptionKeys:
    """Generate a fresh encryption key pair and proof signing key."""
    secret = X25519PrivateKey.generate()
    secret_raw = secret.private_bytes(
        serialization.Encoding.Raw,
        serialization.PrivateFormat.Raw,
        serialization.NoEncryption(),
    )
    attester = Account.create()
    return EncryptionKeys(
        public_key=_raw_public(secret.public_key()).hex(),
        proof_key="0x" + bytes(attester.key).hex(),
        secret_key=secret_raw.hex(),
    )


class SealedBoxAdapter(EncryptionAdapter):
    """Public-key sealed boxes with secp256k1 ciphertext attestations."""

    name = "sealed"

    async def encrypt(self, value: int, public_key: KeyMaterial) -> Ciphertext:
        if isinstance(value, bool) or not isinstance(value, int):
            raise EncryptionError(f"Expected an integer value, got {type(value).__name__}")
        if not 0 <= value < MAX_VALUE:
            raise EncryptionError("Value outside the uint256 range")

        try:
            recipient = X25519PublicKey.from_public_bytes(_key_bytes(public_key))
        except (TypeError, ValueError) as e:
            raise EncryptionError(f"Invalid public key: {e}") from e

        ephemeral = X25519PrivateKey.generate()
        header = bytes([VERSION]) + _raw_public(ephemeral.public_key())
        key = _derive_key(ephemeral.exchange(recipient), header)
        nonce = os.urandom(NONCE_SIZE)
        sealed = AESGCM(key).encrypt(nonce, value.to_bytes(VALUE_SIZE, "big"), header)

        return header + nonce + sealed

    async def decrypt(self, ciphertext: Ciphertext, secret_key: KeyMaterial) -> int:
        if not is_well_formed(ciphertext) or len(ciphertext) != CIPHERTEXT_SIZE:
            raise EncryptionError("Malformed ciphertext")

        try:
            secret = X25519PrivateKey.from_private_bytes(_key_bytes(secret_key))
        except (TypeError, ValueError) as e:
            raise EncryptionError(f"Invalid secret key: {e}") from e

        header = bytes(ciphertext[:HEADER_SIZE])
        nonce = bytes(ciphertext[HEADER_SIZE:HEADER_SIZE + NONCE_SIZE])
        ephemeral = X25519PublicKey.from_public_bytes(header[1:])
        key = _derive_key(secret.exchange(ephemeral), header)

        try:
            plaintext = AESGCM(key).decrypt(nonce, bytes(ciphertext[HEADER_SIZE + NONCE_SIZE:]), header)
        except InvalidTag as e:
            raise EncryptionError("Ciphertext does not open under this key") from e

        return int.from_bytes(plaintext, "big")

    async def generate_proof(self, ciphertext: Ciphertext, private_key: KeyMaterial) -> Proof:
        if not is_well_formed(ciphertext):
            raise ProofError("Cannot prove a malformed ciphertext")

        try:
            attester = Account.from_key(_key_bytes(private_key))
        except (TypeError, ValueError, KeyValidationError) as e:
            raise ProofError(f"Invalid proof signing key: {e}") from e

        digest = hashlib.sha256(ciphertext).digest()
        signed = attester.sign_message(encode_defunct(primitive=digest))
        signer = bytes.fromhex(attester.address[2:])

        return bytes([VERSION]) + signer + digest + bytes(signed.signature)

    async def verify_proof(self, proof: Proof, ciphertext: Ciphertext) -> bool:
        if not isinstance(proof, (bytes, bytearray)):
            raise ProofError(f"Proof must be bytes, got {type(proof).__name__}")
        if len(proof) != PROOF_SIZE or proof[0] != VERSION:
            raise ProofError("Malformed proof")
        if not isinstance(ciphertext, (bytes, bytearray)):
            raise ProofError(f"Ciphertext must be bytes, got {type(ciphertext).__name__}")

        signer = bytes(proof[1:1 + ADDRESS_SIZE])
        digest = bytes(proof[1 + ADDRESS_SIZE:1 + ADDRESS_SIZE + DIGEST_SIZE])
        signature = bytes(proof[1 + ADDRESS_SIZE + DIGEST_SIZE:])

        if digest != hashlib.sha256(ciphertext).digest():
            return False

        try:
            recovered = Account.recover_message(
                encode_defunct(primitive=digest), signature=signature
            )
        except (BadSignature, KeyValidationError, ValueError) as e:
            logger.debug(f"Proof signature rejected: {e}")
            return False

        return recovered.lower() == "0x" + signer.hex()
