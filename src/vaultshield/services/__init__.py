"""Services composing encryption and ledger access."""

from vaultshield.services.settlement import (
    AccountCreated,
    SettlementCreated,
    SettlementOrchestrator,
    TransactionCreated,
    create_settlement_orchestrator,
)

__all__ = [
    "AccountCreated",
    "SettlementCreated",
    "SettlementOrchestrator",
    "TransactionCreated",
    "create_settlement_orchestrator",
]
