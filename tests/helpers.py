"""Shared chain test data: addresses, raw logs and receipts."""

from hexbytes import HexBytes
from web3 import Web3

from vaultshield.ledger.contracts import event_signature
from vaultshield.ledger.models import LedgerEvent

CHAIN_ID = 31337
CONTRACT_ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
SIGNER_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
OTHER_ADDRESS = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
TX_HASH = "0x" + "12" * 32


def uint_topic(value: int) -> HexBytes:
    return HexBytes(value.to_bytes(32, "big"))


def address_topic(address: str) -> HexBytes:
    return HexBytes(bytes(12) + bytes.fromhex(address[2:]))


def event_log(
    event: LedgerEvent,
    *topics: HexBytes,
    address: str = CONTRACT_ADDRESS,
    block_number: int = 100,
    log_index: int = 0,
) -> dict:
    """Build a raw log as returned by eth_getLogs and in receipts."""
    return {
        "address": address,
        "topics": [HexBytes(Web3.keccak(text=event_signature(event))), *topics],
        "data": HexBytes(b""),
        "blockNumber": block_number,
        "blockHash": HexBytes(b"\x01" * 32),
        "transactionHash": HexBytes(bytes([block_number % 256, log_index + 1]) * 16),
        "transactionIndex": 0,
        "logIndex": log_index,
        "removed": False,
    }


def account_created(account_id: int, **kwargs) -> dict:
    return event_log(
        LedgerEvent.ACCOUNT_CREATED, uint_topic(account_id), address_topic(SIGNER_ADDRESS), **kwargs
    )


def transaction_initiated(transaction_id: int, **kwargs) -> dict:
    return event_log(
        LedgerEvent.TRANSACTION_INITIATED,
        uint_topic(transaction_id),
        address_topic(SIGNER_ADDRESS),
        **kwargs,
    )


def settlement_created(settlement_id: int, **kwargs) -> dict:
    return event_log(
        LedgerEvent.SETTLEMENT_CREATED,
        uint_topic(settlement_id),
        address_topic(SIGNER_ADDRESS),
        **kwargs,
    )


def receipt(*logs: dict, status: int = 1) -> dict:
    return {
        "status": status,
        "blockNumber": 100,
        "transactionHash": HexBytes(TX_HASH),
        "logs": list(logs),
    }
