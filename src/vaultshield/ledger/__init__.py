"""Ledger module for the VaultShield contract boundary."""

from vaultshield.ledger.contracts import VAULT_SHIELD_ABI
from vaultshield.ledger.events import EventFeed
from vaultshield.ledger.gateway import MAX_SAFE_ID, LedgerGateway
from vaultshield.ledger.models import (
    AccountInfo,
    EventRecord,
    LedgerEvent,
    LedgerOperation,
    SettlementInfo,
    SubmitResult,
    TransactionInfo,
    TransactionType,
)

__all__ = [
    # Gateway
    "LedgerGateway",
    "EventFeed",
    "VAULT_SHIELD_ABI",
    "MAX_SAFE_ID",
    # Models
    "AccountInfo",
    "EventRecord",
    "SettlementInfo",
    "SubmitResult",
    "TransactionInfo",
    # Enums
    "LedgerEvent",
    "LedgerOperation",
    "TransactionType",
]
