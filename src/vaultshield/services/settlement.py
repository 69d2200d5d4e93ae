"""Privacy-preserving settlement orchestration.

Each operation is a two-step pipeline:
1. Encrypt the plaintext inputs and attest them with a single proof
2. Submit ciphertexts and proof to the ledger and return the id it assigned

Any failure aborts the operation and surfaces as OperationFailedError,
which keeps the kind of the underlying error. Nothing is retried.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Union

from vaultshield.config import Settings, get_settings
from vaultshield.encryption.base import Ciphertext, EncryptionAdapter, EncryptionKeys, Proof
from vaultshield.encryption.factory import get_encryption_adapter, load_keys
from vaultshield.errors import OperationFailedError, ValidationError
from vaultshield.ledger.gateway import LedgerGateway
from vaultshield.ledger.models import LedgerOperation, TransactionType

logger = logging.getLogger(__name__)


@dataclass
class AccountCreated:
    """Result of a confirmed account creation."""
    tx_hash: str
    account_id: int


@dataclass
class TransactionCreated:
    """Result of a confirmed transaction initiation."""
    tx_hash: str
    transaction_id: int


@dataclass
class SettlementCreated:
    """Result of a confirmed settlement creation."""
    tx_hash: str
    settlement_id: int


class SettlementOrchestrator:
    """Composes the encryption adapter and the ledger gateway."""

    def __init__(
        self,
        gateway: LedgerGateway,
        adapter: EncryptionAdapter,
        keys: EncryptionKeys,
    ):
        self.gateway = gateway
        self.adapter = adapter
        self.keys = keys

    async def _seal(self, *values: int) -> tuple[list[Ciphertext], Proof]:
        """Encrypt values and prove the concatenated ciphertexts."""
        ciphertexts = [await self.adapter.encrypt(value, self.keys.public_key) for value in values]
        proof = await self.adapter.generate_proof(b"".join(ciphertexts), self.keys.proof_key)
        return ciphertexts, proof

    async def create_account(
        self,
        balance: int,
        credit_score: int,
        cancel: Optional[asyncio.Event] = None,
    ) -> AccountCreated:
        """Create an encrypted account holding balance and credit score.

        Raises:
            OperationFailedError: On any encryption, proof or ledger failure
        """
        try:
            (encrypted_balance, encrypted_score), proof = await self._seal(balance, credit_score)
            result = await self.gateway.submit_call(
                LedgerOperation.CREATE_ACCOUNT,
                encrypted_balance,
                encrypted_score,
                proof,
                cancel=cancel,
            )
        except Exception as e:
            logger.error(f"Error creating encrypted account: {e}")
            raise OperationFailedError("create encrypted account", e) from e

        logger.info(f"Encrypted account {result.identifier} created in {result.tx_hash}")
        return AccountCreated(tx_hash=result.tx_hash, account_id=result.identifier)

    async def create_transaction(
        self,
        from_account: int,
        to_account: int,
        amount: int,
        transaction_type: Union[TransactionType, int] = TransactionType.TRANSFER,
        cancel: Optional[asyncio.Event] = None,
    ) -> TransactionCreated:
        """Initiate an encrypted transaction between two accounts.

        Raises:
            OperationFailedError: On invalid type or any lower-layer failure
        """
        try:
            try:
                transaction_type = TransactionType(transaction_type)
            except ValueError as e:
                raise ValidationError(f"Unknown transaction type {transaction_type}") from e

            (encrypted_amount,), proof = await self._seal(amount)
            result = await self.gateway.submit_call(
                LedgerOperation.INITIATE_TRANSACTION,
                from_account,
                to_account,
                encrypted_amount,
                int(transaction_type),
                proof,
                cancel=cancel,
            )
        except Exception as e:
            logger.error(f"Error initiating encrypted transaction: {e}")
            raise OperationFailedError("initiate encrypted transaction", e) from e

        logger.info(
            f"Encrypted {transaction_type.name.lower()} {result.identifier} "
            f"({from_account} -> {to_account}) initiated in {result.tx_hash}"
        )
        return TransactionCreated(tx_hash=result.tx_hash, transaction_id=result.identifier)

    async def create_settlement(
        self,
        participants: Iterable[int],
        total_amount: int,
        cancel: Optional[asyncio.Event] = None,
    ) -> SettlementCreated:
        """Create an encrypted settlement across participant accounts.

        An empty participant list is rejected before anything is encrypted
        or sent.

        Raises:
            OperationFailedError: On validation or any lower-layer failure
        """
        try:
            participants = list(participants)
            if not participants:
                raise ValidationError("Settlement needs at least one participant")

            (encrypted_total,), proof = await self._seal(total_amount)
            result = await self.gateway.submit_call(
                LedgerOperation.CREATE_SETTLEMENT,
                participants,
                encrypted_total,
                proof,
                cancel=cancel,
            )
        except Exception as e:
            logger.error(f"Error creating encrypted settlement: {e}")
            raise OperationFailedError("create encrypted settlement", e) from e

        logger.info(
            f"Encrypted settlement {result.identifier} for {len(participants)} "
            f"participants created in {result.tx_hash}"
        )
        return SettlementCreated(tx_hash=result.tx_hash, settlement_id=result.identifier)


def create_settlement_orchestrator(
    web3: Any,
    signer: Any,
    chain_id: int,
    settings: Optional[Settings] = None,
) -> SettlementOrchestrator:
    """Wire gateway, encryption adapter and keys from settings.

    Raises:
        ConfigurationError: If the chain, backend or keys are not configured
    """
    settings = settings or get_settings()

    gateway = LedgerGateway(
        web3,
        signer,
        chain_id,
        addresses=settings.contract_addresses,
        receipt_timeout=settings.receipt_timeout,
        receipt_poll_interval=settings.receipt_poll_interval,
        event_poll_interval=settings.event_poll_interval,
    )
    return SettlementOrchestrator(
        gateway,
        get_encryption_adapter(settings),
        load_keys(settings),
    )
