"""VaultShield contract interface.

ABI of the deployed settlement contract and helpers derived from it.
Ciphertexts and proofs travel as dynamic `bytes`.
"""

from typing import Optional

from web3 import Web3

from vaultshield.ledger.models import LedgerEvent


def _param(name: str, abi_type: str, indexed: Optional[bool] = None) -> dict:
    param = {"name": name, "type": abi_type, "internalType": abi_type}
    if indexed is not None:
        param["indexed"] = indexed
    return param


def _function(name: str, inputs: list, outputs: list, mutability: str) -> dict:
    return {
        "type": "function",
        "name": name,
        "inputs": inputs,
        "outputs": outputs,
        "stateMutability": mutability,
    }


def _event(name: str, inputs: list) -> dict:
    return {"type": "event", "name": name, "inputs": inputs, "anonymous": False}


VAULT_SHIELD_ABI: list[dict] = [
    # State-changing calls
    _function(
        "createEncryptedAccount",
        [
            _param("encryptedBalance", "bytes"),
            _param("encryptedCreditScore", "bytes"),
            _param("fheProof", "bytes"),
        ],
        [_param("accountId", "uint256")],
        "nonpayable",
    ),
    _function(
        "initiateEncryptedTransaction",
        [
            _param("fromAccount", "uint256"),
            _param("toAccount", "uint256"),
            _param("encryptedAmount", "bytes"),
            _param("transactionType", "uint8"),
            _param("fheProof", "bytes"),
        ],
        [_param("transactionId", "uint256")],
        "nonpayable",
    ),
    _function(
        "createEncryptedSettlement",
        [
            _param("participantAccounts", "uint256[]"),
            _param("encryptedTotalAmount", "bytes"),
            _param("fheProof", "bytes"),
        ],
        [_param("settlementId", "uint256")],
        "nonpayable",
    ),
    # Views
    _function(
        "getEncryptedAccountInfo",
        [_param("accountId", "uint256")],
        [
            _param("owner", "address"),
            _param("isActive", "bool"),
            _param("isVerified", "bool"),
            _param("createdAt", "uint256"),
            _param("lastActivity", "uint256"),
        ],
        "view",
    ),
    _function(
        "getEncryptedTransactionInfo",
        [_param("transactionId", "uint256")],
        [
            _param("fromAccount", "uint256"),
            _param("toAccount", "uint256"),
            _param("encryptedAmount", "bytes"),
            _param("transactionType", "uint8"),
            _param("isProcessed", "bool"),
            _param("initiator", "address"),
            _param("timestamp", "uint256"),
            _param("encryptedMetadata", "bytes"),
        ],
        "view",
    ),
    _function(
        "getEncryptedSettlementInfo",
        [_param("settlementId", "uint256")],
        [
            _param("participantAccounts", "uint256[]"),
            _param("encryptedTotalAmount", "bytes"),
            _param("isCompleted", "bool"),
            _param("initiator", "address"),
            _param("createdAt", "uint256"),
            _param("completedAt", "uint256"),
            _param("settlementHash", "bytes32"),
        ],
        "view",
    ),
    _function(
        "getUserEncryptedAccountIds",
        [_param("user", "address")],
        [_param("", "uint256[]")],
        "view",
    ),
    _function(
        "getUserEncryptedTransactionIds",
        [_param("user", "address")],
        [_param("", "uint256[]")],
        "view",
    ),
    # Events
    _event(
        LedgerEvent.ACCOUNT_CREATED.value,
        [_param("accountId", "uint256", True), _param("owner", "address", True)],
    ),
    _event(
        LedgerEvent.TRANSACTION_INITIATED.value,
        [_param("transactionId", "uint256", True), _param("initiator", "address", True)],
    ),
    _event(
        LedgerEvent.TRANSACTION_PROCESSED.value,
        [_param("transactionId", "uint256", True)],
    ),
    _event(
        LedgerEvent.SETTLEMENT_CREATED.value,
        [_param("settlementId", "uint256", True), _param("initiator", "address", True)],
    ),
    _event(
        LedgerEvent.SETTLEMENT_COMPLETED.value,
        [_param("settlementId", "uint256", True)],
    ),
]


def _abi_entry(entry_type: str, name: str) -> dict:
    for entry in VAULT_SHIELD_ABI:
        if entry["type"] == entry_type and entry["name"] == name:
            return entry
    raise ValueError(f"VaultShield ABI has no {entry_type} named {name}")


def view_output_names(method: str) -> list[str]:
    """Output field names of a view function, in ABI order."""
    entry = _abi_entry("function", method)
    if entry["stateMutability"] != "view":
        raise ValueError(f"{method} is not a view function")
    return [output["name"] for output in entry["outputs"]]


def event_signature(event: LedgerEvent) -> str:
    """Canonical signature, e.g. EncryptedAccountCreated(uint256,address)."""
    entry = _abi_entry("event", event.value)
    return f"{entry['name']}({','.join(i['type'] for i in entry['inputs'])})"


def event_topic(event: LedgerEvent) -> str:
    """Hex topic0 used to filter logs of an event."""
    return Web3.to_hex(Web3.keccak(text=event_signature(event)))
