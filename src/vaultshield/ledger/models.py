"""Ledger data types.

Identifiers are always assigned by the ledger and decoded from the event
emitted by the call that created the record.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Optional, Union


class LedgerEvent(str, Enum):
    """Events emitted by the VaultShield contract."""
    ACCOUNT_CREATED = "EncryptedAccountCreated"
    TRANSACTION_INITIATED = "EncryptedTransactionInitiated"
    TRANSACTION_PROCESSED = "EncryptedTransactionProcessed"
    SETTLEMENT_CREATED = "EncryptedSettlementCreated"
    SETTLEMENT_COMPLETED = "EncryptedSettlementCompleted"


class LedgerOperation(Enum):
    """State-changing calls, each tied to the event that carries its id."""
    CREATE_ACCOUNT = ("createEncryptedAccount", LedgerEvent.ACCOUNT_CREATED, "accountId")
    INITIATE_TRANSACTION = (
        "initiateEncryptedTransaction",
        LedgerEvent.TRANSACTION_INITIATED,
        "transactionId",
    )
    CREATE_SETTLEMENT = (
        "createEncryptedSettlement",
        LedgerEvent.SETTLEMENT_CREATED,
        "settlementId",
    )

    def __init__(self, method: str, event: LedgerEvent, id_field: str):
        self.method = method
        self.event = event
        self.id_field = id_field


class TransactionType(IntEnum):
    """Transaction type codes understood by the contract."""
    OTHER = 0
    DEPOSIT = 1
    WITHDRAWAL = 2
    TRANSFER = 3


@dataclass
class SubmitResult:
    """Outcome of a confirmed state-changing call."""
    operation: LedgerOperation
    tx_hash: str
    event_fields: dict[str, Any]
    block_number: Optional[int] = None

    @property
    def identifier(self) -> int:
        """Ledger-assigned id decoded from the operation's event."""
        return self.event_fields[self.operation.id_field]


@dataclass
class EventRecord:
    """A decoded contract event delivered to subscribers."""
    event: LedgerEvent
    args: dict[str, Any]
    tx_hash: str
    block_number: int
    log_index: int


@dataclass
class AccountInfo:
    """Encrypted account state as reported by the ledger."""
    account_id: int
    owner: str
    is_active: bool
    is_verified: bool
    created_at: Optional[datetime]
    last_activity: Optional[datetime]


@dataclass
class TransactionInfo:
    """Encrypted transaction state as reported by the ledger."""
    transaction_id: int
    from_account: int
    to_account: int
    encrypted_amount: bytes
    transaction_type: Union[TransactionType, int]
    is_processed: bool
    initiator: str
    timestamp: Optional[datetime]
    encrypted_metadata: bytes = b""


@dataclass
class SettlementInfo:
    """Encrypted settlement state as reported by the ledger."""
    settlement_id: int
    participants: list[int]
    encrypted_total_amount: bytes
    is_completed: bool
    initiator: str
    created_at: Optional[datetime]
    completed_at: Optional[datetime]
    settlement_hash: bytes = field(default=b"")

    @property
    def is_pending(self) -> bool:
        return not self.is_completed
