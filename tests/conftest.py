"""Pytest configuration and fixtures."""

import os
from typing import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
from hexbytes import HexBytes
from web3 import Web3

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "true"
os.environ["CONTRACT_ADDRESSES"] = "{}"

from helpers import CHAIN_ID, CONTRACT_ADDRESS, SIGNER_ADDRESS, TX_HASH, receipt
from vaultshield.encryption import EncryptionKeys, SealedBoxAdapter, generate_keys
from vaultshield.ledger.contracts import VAULT_SHIELD_ABI
from vaultshield.ledger.gateway import LedgerGateway


@pytest.fixture
def keys() -> EncryptionKeys:
    """Fresh encryption key set."""
    return generate_keys()


@pytest.fixture
def adapter() -> SealedBoxAdapter:
    return SealedBoxAdapter()


@pytest.fixture
def chain_contract():
    """Offline contract used for real ABI decoding of logs."""
    return Web3().eth.contract(address=CONTRACT_ADDRESS, abi=VAULT_SHIELD_ABI)


@pytest.fixture
def contract(chain_contract) -> MagicMock:
    """Contract whose calls are mocked but whose events decode for real."""
    mock = MagicMock()
    mock.address = CONTRACT_ADDRESS
    mock.events = chain_contract.events
    return mock


@pytest.fixture
def fake_web3(contract) -> MagicMock:
    """AsyncWeb3 stand-in; receipts are confirmed with no logs by default."""
    mock = MagicMock()
    mock.eth.contract.return_value = contract
    mock.eth.get_transaction_count = AsyncMock(return_value=7)
    mock.eth.send_raw_transaction = AsyncMock(return_value=HexBytes(TX_HASH))
    mock.eth.wait_for_transaction_receipt = AsyncMock(return_value=receipt())
    return mock


@pytest.fixture
def signer() -> MagicMock:
    mock = MagicMock()
    mock.address = SIGNER_ADDRESS
    mock.sign_transaction.return_value = MagicMock(raw_transaction=b"signed-raw")
    return mock


@pytest.fixture
def stub_call(contract) -> Callable:
    """Configure build_transaction/call results for a contract method."""

    def _stub(method: str, call_result=None) -> MagicMock:
        function = getattr(contract.functions, method).return_value
        function.build_transaction = AsyncMock(
            side_effect=lambda params: {**params, "to": CONTRACT_ADDRESS, "data": "0x"}
        )
        function.call = AsyncMock(return_value=call_result)
        return function

    return _stub


@pytest.fixture
def gateway(fake_web3, signer) -> LedgerGateway:
    return LedgerGateway(
        fake_web3,
        signer,
        CHAIN_ID,
        addresses={CHAIN_ID: CONTRACT_ADDRESS},
        receipt_timeout=5.0,
        receipt_poll_interval=0.01,
        event_poll_interval=0.01,
    )
