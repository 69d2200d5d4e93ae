"""Tests for the settlement orchestrator."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from helpers import CHAIN_ID, CONTRACT_ADDRESS, TX_HASH, account_created, receipt, settlement_created
from vaultshield.config import Settings
from vaultshield.encryption import EncryptionKeys
from vaultshield.encryption.sealed import CIPHERTEXT_SIZE
from vaultshield.errors import (
    ConfigurationError,
    EncryptionError,
    ErrorKind,
    EventNotFoundError,
    OperationFailedError,
    ProofError,
    ReceiptTimeoutError,
    SubmissionCancelledError,
    TransactionRevertedError,
)
from vaultshield.ledger.models import LedgerOperation, SubmitResult, TransactionType
from vaultshield.services import (
    SettlementOrchestrator,
    create_settlement_orchestrator,
)


def _submitted(operation: LedgerOperation, identifier: int) -> SubmitResult:
    return SubmitResult(
        operation=operation,
        tx_hash=TX_HASH,
        event_fields={operation.id_field: identifier},
        block_number=100,
    )


@pytest.fixture
def mock_adapter() -> MagicMock:
    """Adapter returning fixed ciphertexts and proof."""
    adapter = MagicMock()
    adapter.encrypt = AsyncMock(side_effect=lambda value, key: f"ct:{value}".encode())
    adapter.generate_proof = AsyncMock(return_value=b"proof")
    return adapter


@pytest.fixture
def mock_gateway() -> MagicMock:
    gateway = MagicMock()
    gateway.submit_call = AsyncMock()
    return gateway


@pytest.fixture
def orchestrator(mock_gateway, mock_adapter) -> SettlementOrchestrator:
    keys = EncryptionKeys(public_key="pk", proof_key="sk")
    return SettlementOrchestrator(mock_gateway, mock_adapter, keys)


class TestCreateTransaction:
    """Tests for initiating encrypted transactions."""

    @pytest.mark.asyncio
    async def test_encrypts_once_and_returns_event_id(self, orchestrator, mock_gateway, mock_adapter):
        mock_gateway.submit_call.return_value = _submitted(LedgerOperation.INITIATE_TRANSACTION, 17)

        result = await orchestrator.create_transaction(1, 2, 100, TransactionType.TRANSFER)

        assert result.transaction_id == 17
        assert result.tx_hash == TX_HASH
        mock_adapter.encrypt.assert_awaited_once_with(100, "pk")
        mock_adapter.generate_proof.assert_awaited_once_with(b"ct:100", "sk")
        mock_gateway.submit_call.assert_awaited_once_with(
            LedgerOperation.INITIATE_TRANSACTION, 1, 2, b"ct:100", 3, b"proof", cancel=None
        )

    @pytest.mark.asyncio
    async def test_accepts_raw_type_code(self, orchestrator, mock_gateway):
        mock_gateway.submit_call.return_value = _submitted(LedgerOperation.INITIATE_TRANSACTION, 1)

        await orchestrator.create_transaction(1, 2, 5, 1)

        assert mock_gateway.submit_call.await_args.args[4] == int(TransactionType.DEPOSIT)

    @pytest.mark.asyncio
    async def test_unknown_type_is_validation_failure(self, orchestrator, mock_gateway, mock_adapter):
        with pytest.raises(OperationFailedError) as exc_info:
            await orchestrator.create_transaction(1, 2, 5, 9)

        assert exc_info.value.kind == ErrorKind.VALIDATION
        mock_adapter.encrypt.assert_not_awaited()
        mock_gateway.submit_call.assert_not_awaited()


class TestCreateAccount:
    """Tests for encrypted account creation."""

    @pytest.mark.asyncio
    async def test_single_proof_covers_both_ciphertexts(self, orchestrator, mock_gateway, mock_adapter):
        mock_gateway.submit_call.return_value = _submitted(LedgerOperation.CREATE_ACCOUNT, 3)

        result = await orchestrator.create_account(1000, 750)

        assert result.account_id == 3
        assert mock_adapter.encrypt.await_count == 2
        mock_adapter.generate_proof.assert_awaited_once_with(b"ct:1000ct:750", "sk")
        mock_gateway.submit_call.assert_awaited_once_with(
            LedgerOperation.CREATE_ACCOUNT, b"ct:1000", b"ct:750", b"proof", cancel=None
        )

    @pytest.mark.asyncio
    async def test_cancel_token_reaches_gateway(self, orchestrator, mock_gateway):
        mock_gateway.submit_call.return_value = _submitted(LedgerOperation.CREATE_ACCOUNT, 3)
        cancel = asyncio.Event()

        await orchestrator.create_account(1, 2, cancel=cancel)

        assert mock_gateway.submit_call.await_args.kwargs["cancel"] is cancel


class TestCreateSettlement:
    """Tests for encrypted settlement creation."""

    @pytest.mark.asyncio
    async def test_returns_settlement_id(self, orchestrator, mock_gateway):
        mock_gateway.submit_call.return_value = _submitted(LedgerOperation.CREATE_SETTLEMENT, 4)

        result = await orchestrator.create_settlement((1, 2, 3), 600)

        assert result.settlement_id == 4
        mock_gateway.submit_call.assert_awaited_once_with(
            LedgerOperation.CREATE_SETTLEMENT, [1, 2, 3], b"ct:600", b"proof", cancel=None
        )

    @pytest.mark.asyncio
    async def test_empty_participants_rejected_before_any_call(
        self, orchestrator, mock_gateway, mock_adapter
    ):
        with pytest.raises(OperationFailedError) as exc_info:
            await orchestrator.create_settlement([], 600)

        assert exc_info.value.kind == ErrorKind.VALIDATION
        assert exc_info.value.tx_hash is None
        mock_adapter.encrypt.assert_not_awaited()
        mock_gateway.submit_call.assert_not_awaited()


class TestErrorPropagation:
    """Lower-layer failures keep their kind and transaction hash."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error,kind",
        [
            (TransactionRevertedError("reverted", tx_hash=TX_HASH), ErrorKind.REVERTED),
            (ReceiptTimeoutError("timeout", tx_hash=TX_HASH), ErrorKind.TIMEOUT),
            (SubmissionCancelledError("cancelled", tx_hash=TX_HASH), ErrorKind.CANCELLED),
            (EventNotFoundError("missing", tx_hash=TX_HASH), ErrorKind.EVENT_NOT_FOUND),
        ],
    )
    async def test_ledger_errors_keep_kind_and_hash(self, orchestrator, mock_gateway, error, kind):
        mock_gateway.submit_call.side_effect = error

        with pytest.raises(OperationFailedError) as exc_info:
            await orchestrator.create_settlement([1], 10)

        assert exc_info.value.kind == kind
        assert exc_info.value.tx_hash == TX_HASH
        assert exc_info.value.cause is error
        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_encryption_error_skips_ledger(self, orchestrator, mock_gateway, mock_adapter):
        mock_adapter.encrypt.side_effect = EncryptionError("bad value")

        with pytest.raises(OperationFailedError) as exc_info:
            await orchestrator.create_account(1, 2)

        assert exc_info.value.kind == ErrorKind.ENCRYPTION
        mock_gateway.submit_call.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_proof_error_skips_ledger(self, orchestrator, mock_gateway, mock_adapter):
        mock_adapter.generate_proof.side_effect = ProofError("no key")

        with pytest.raises(OperationFailedError) as exc_info:
            await orchestrator.create_transaction(1, 2, 3)

        assert exc_info.value.kind == ErrorKind.PROOF
        mock_gateway.submit_call.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unexpected_error_is_unknown_kind(self, orchestrator, mock_gateway):
        mock_gateway.submit_call.side_effect = ConnectionError("rpc down")

        with pytest.raises(OperationFailedError) as exc_info:
            await orchestrator.create_account(1, 2)

        assert exc_info.value.kind == ErrorKind.UNKNOWN
        assert "create encrypted account" in str(exc_info.value)


class TestEndToEnd:
    """Real adapter and gateway against a mocked chain."""

    @pytest.mark.asyncio
    async def test_account_id_comes_from_ledger_event(
        self, gateway, adapter, keys, fake_web3, contract, stub_call
    ):
        stub_call("createEncryptedAccount")
        fake_web3.eth.wait_for_transaction_receipt.return_value = receipt(account_created(42))
        orchestrator = SettlementOrchestrator(gateway, adapter, keys)

        result = await orchestrator.create_account(1000, 750)

        assert result.account_id == 42
        assert result.tx_hash == TX_HASH

        encrypted_balance, encrypted_score, proof = contract.functions.createEncryptedAccount.call_args.args
        assert len(encrypted_balance) == len(encrypted_score) == CIPHERTEXT_SIZE
        assert await adapter.verify_proof(proof, encrypted_balance + encrypted_score) is True
        assert await adapter.decrypt(encrypted_balance, keys.secret_key) == 1000
        assert await adapter.decrypt(encrypted_score, keys.secret_key) == 750

    @pytest.mark.asyncio
    async def test_settlement_without_event_reports_hash(
        self, gateway, adapter, keys, fake_web3, stub_call
    ):
        stub_call("createEncryptedSettlement")
        fake_web3.eth.wait_for_transaction_receipt.return_value = receipt(account_created(1))
        orchestrator = SettlementOrchestrator(gateway, adapter, keys)

        with pytest.raises(OperationFailedError) as exc_info:
            await orchestrator.create_settlement([1, 2], 500)

        assert exc_info.value.kind == ErrorKind.EVENT_NOT_FOUND
        assert exc_info.value.tx_hash == TX_HASH

    @pytest.mark.asyncio
    async def test_settlement_id_from_event(self, gateway, adapter, keys, fake_web3, stub_call):
        stub_call("createEncryptedSettlement")
        fake_web3.eth.wait_for_transaction_receipt.return_value = receipt(settlement_created(9))
        orchestrator = SettlementOrchestrator(gateway, adapter, keys)

        result = await orchestrator.create_settlement([1, 2], 500)

        assert result.settlement_id == 9


class TestFactory:
    """Tests for building an orchestrator from settings."""

    def test_wires_components_from_settings(self, fake_web3, signer, keys):
        settings = Settings(
            contract_addresses={CHAIN_ID: CONTRACT_ADDRESS},
            fhe_public_key=keys.public_key,
            proof_signing_key=keys.proof_key,
        )

        orchestrator = create_settlement_orchestrator(fake_web3, signer, CHAIN_ID, settings)

        assert orchestrator.gateway.contract_address == CONTRACT_ADDRESS
        assert orchestrator.keys.public_key == keys.public_key
        assert orchestrator.adapter.name == "sealed"

    def test_missing_keys_is_configuration_error(self, fake_web3, signer):
        settings = Settings(contract_addresses={CHAIN_ID: CONTRACT_ADDRESS})

        with pytest.raises(ConfigurationError):
            create_settlement_orchestrator(fake_web3, signer, CHAIN_ID, settings)

    def test_unknown_chain_is_configuration_error(self, fake_web3, signer, keys):
        settings = Settings(
            fhe_public_key=keys.public_key,
            proof_signing_key=keys.proof_key,
        )

        with pytest.raises(ConfigurationError):
            create_settlement_orchestrator(fake_web3, signer, 1, settings)
