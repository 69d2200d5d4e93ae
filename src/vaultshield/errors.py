"""Error taxonomy for the settlement client.

Lower layers (encryption, ledger gateway) raise narrow errors.
The orchestrator wraps any of them in OperationFailedError, keeping
the original error kind so callers can branch without parsing messages.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Category of a failure, preserved across the orchestrator boundary."""
    CONFIGURATION = "configuration"
    VALIDATION = "validation"
    ENCRYPTION = "encryption"
    PROOF = "proof"
    LEDGER = "ledger"
    REVERTED = "reverted"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    EVENT_NOT_FOUND = "event_not_found"
    OVERFLOW = "overflow"
    UNKNOWN = "unknown"


class VaultShieldError(Exception):
    """Base class for all settlement client errors."""
    kind: ErrorKind = ErrorKind.UNKNOWN


class ConfigurationError(VaultShieldError):
    """Raised when required configuration (contract address, keys) is missing."""
    kind = ErrorKind.CONFIGURATION


class ValidationError(VaultShieldError):
    """Raised when operation input is rejected before any network call."""
    kind = ErrorKind.VALIDATION


class EncryptionError(VaultShieldError):
    """Raised when a value cannot be encrypted or decrypted."""
    kind = ErrorKind.ENCRYPTION


class ProofError(VaultShieldError):
    """Raised when proof generation fails or a proof has a malformed shape."""
    kind = ErrorKind.PROOF


class LedgerError(VaultShieldError):
    """Base class for failures at the ledger boundary."""
    kind = ErrorKind.LEDGER

    def __init__(self, message: str, tx_hash: Optional[str] = None):
        super().__init__(message)
        self.tx_hash = tx_hash


class TransactionRevertedError(LedgerError):
    """Raised when a submitted call was included but reverted."""
    kind = ErrorKind.REVERTED


class ReceiptTimeoutError(LedgerError):
    """Raised when no receipt arrived within the configured timeout."""
    kind = ErrorKind.TIMEOUT


class SubmissionCancelledError(LedgerError):
    """Raised when the caller stopped waiting for a broadcast transaction.

    The transaction itself may still be mined.
    """
    kind = ErrorKind.CANCELLED


class EventNotFoundError(LedgerError):
    """Raised when a confirmed receipt carries no event for the operation.

    Chain state may have changed; reconcile through the view calls.
    """
    kind = ErrorKind.EVENT_NOT_FOUND


class IdOverflowError(LedgerError, OverflowError):
    """Raised when a ledger id or timestamp falls outside the supported range."""
    kind = ErrorKind.OVERFLOW


class OperationFailedError(VaultShieldError):
    """Single error type surfaced by the settlement orchestrator.

    Attributes:
        operation: Human readable operation name
        kind: ErrorKind of the underlying cause
        cause: The original exception
        tx_hash: Transaction hash when the failure happened after broadcast
    """

    def __init__(self, operation: str, cause: BaseException):
        self.operation = operation
        self.cause = cause
        self.kind = getattr(cause, "kind", ErrorKind.UNKNOWN)
        self.tx_hash: Optional[str] = getattr(cause, "tx_hash", None)
        super().__init__(f"Failed to {operation} ({self.kind.value}): {cause}")
