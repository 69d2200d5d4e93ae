"""Ledger gateway for the VaultShield contract.

Submission flow:
1. Build the contract call and assign a nonce
2. Sign locally with the supplied account and broadcast
3. Wait for the receipt (optionally cancellable)
4. Decode the event tied to the operation to obtain the ledger-assigned id

No call is retried. A broadcast transaction cannot be retracted, so every
error raised after step 2 carries the transaction hash for reconciliation.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional, Union

from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import TimeExhausted
from web3.logs import DISCARD

from vaultshield.config import Settings, get_settings
from vaultshield.errors import (
    ConfigurationError,
    EventNotFoundError,
    IdOverflowError,
    ReceiptTimeoutError,
    SubmissionCancelledError,
    TransactionRevertedError,
)
from vaultshield.ledger.contracts import VAULT_SHIELD_ABI, view_output_names
from vaultshield.ledger.events import EventFeed, EventHandler
from vaultshield.ledger.models import (
    AccountInfo,
    LedgerEvent,
    LedgerOperation,
    SettlementInfo,
    SubmitResult,
    TransactionInfo,
    TransactionType,
)

logger = logging.getLogger(__name__)

# Largest id that survives a round trip through JSON/JS clients
MAX_SAFE_ID = 2**53 - 1

TIMESTAMP_FIELDS = frozenset({"createdAt", "lastActivity", "timestamp", "completedAt"})


def to_timestamp(value: int) -> Optional[datetime]:
    """Convert on-chain seconds to a UTC datetime; 0 means not set.

    Raises:
        IdOverflowError: If the value is beyond what datetime can hold
    """
    seconds = int(value)
    if seconds == 0:
        return None
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as e:
        raise IdOverflowError(f"Ledger timestamp {seconds} is out of range") from e


def to_native_ids(values: Iterable[int]) -> list[int]:
    """Convert uint256 ids to ints, refusing anything outside the safe range."""
    ids = []
    for value in values:
        native = int(value)
        if native < 0 or native > MAX_SAFE_ID:
            raise IdOverflowError(f"Ledger id {native} exceeds the safe integer range")
        ids.append(native)
    return ids


def decode_operation_event(
    contract: Any, operation: LedgerOperation, receipt: Mapping
) -> Optional[dict]:
    """Find the event of an operation in a receipt.

    Only logs emitted by the bound contract count. Logs that do not decode
    against the expected event are skipped.

    Returns:
        Decoded event arguments, or None if no log matched
    """
    decoder = getattr(contract.events, operation.event.value)()
    for entry in decoder.process_receipt(receipt, errors=DISCARD):
        if str(entry["address"]).lower() != str(contract.address).lower():
            continue
        fields = dict(entry["args"])
        fields[operation.id_field] = to_native_ids([fields[operation.id_field]])[0]
        return fields
    return None


def _transaction_type(code: int) -> Union[TransactionType, int]:
    try:
        return TransactionType(code)
    except ValueError:
        logger.debug(f"Unknown transaction type code {code}")
        return code


class LedgerGateway:
    """Typed boundary to the VaultShield contract on a single chain."""

    def __init__(
        self,
        web3: Any,
        signer: Any,
        chain_id: int,
        addresses: Optional[Mapping[int, str]] = None,
        receipt_timeout: float = 120.0,
        receipt_poll_interval: float = 1.0,
        event_poll_interval: float = 2.0,
    ):
        """Bind the gateway to the contract deployed on chain_id.

        Args:
            web3: AsyncWeb3 instance (read provider)
            signer: eth_account LocalAccount used to sign submissions
            chain_id: Chain the contract lives on
            addresses: Contract address per chain id (defaults to settings)
            receipt_timeout: Seconds to wait for a receipt
            receipt_poll_interval: Seconds between receipt polls
            event_poll_interval: Seconds between event subscription polls

        Raises:
            ConfigurationError: If no contract is registered for chain_id
        """
        if addresses is None:
            addresses = get_settings().contract_addresses

        address = addresses.get(chain_id)
        if not address:
            raise ConfigurationError(f"Contract not deployed on chain {chain_id}")

        try:
            checksum_address = Web3.to_checksum_address(address)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid contract address for chain {chain_id}: {address}") from e

        self.web3 = web3
        self.signer = signer
        self.chain_id = chain_id
        self.receipt_timeout = receipt_timeout
        self.receipt_poll_interval = receipt_poll_interval
        self.contract = web3.eth.contract(address=checksum_address, abi=VAULT_SHIELD_ABI)
        self.events = EventFeed(web3, self.contract, poll_interval=event_poll_interval)
        self._next_nonce: Optional[int] = None

    @classmethod
    def from_settings(cls, signer: Any, settings: Optional[Settings] = None) -> "LedgerGateway":
        """Create a gateway with an HTTP provider built from settings."""
        settings = settings or get_settings()
        settings.get_contract_address(settings.chain_id)

        web3 = AsyncWeb3(AsyncHTTPProvider(settings.rpc_url))
        return cls(
            web3,
            signer,
            settings.chain_id,
            addresses=settings.contract_addresses,
            receipt_timeout=settings.receipt_timeout,
            receipt_poll_interval=settings.receipt_poll_interval,
            event_poll_interval=settings.event_poll_interval,
        )

    @property
    def contract_address(self) -> str:
        return self.contract.address

    # ======================
    # Submissions
    # ======================

    async def submit_call(
        self,
        operation: LedgerOperation,
        *args: Any,
        cancel: Optional[asyncio.Event] = None,
    ) -> SubmitResult:
        """Send a state-changing call and decode its event.

        Args:
            operation: Contract call to make
            *args: Call arguments in ABI order
            cancel: Event that, once set, stops waiting for the receipt

        Returns:
            SubmitResult with the transaction hash and decoded event fields

        Raises:
            TransactionRevertedError: Receipt status is 0
            ReceiptTimeoutError: No receipt within receipt_timeout
            SubmissionCancelledError: cancel was set before the receipt arrived
            EventNotFoundError: Receipt has no event for the operation
        """
        function = getattr(self.contract.functions, operation.method)(*args)
        nonce = await self._reserve_nonce()

        try:
            tx = await function.build_transaction({
                "from": self.signer.address,
                "nonce": nonce,
                "chainId": self.chain_id,
            })
            signed = self.signer.sign_transaction(tx)
            tx_hash = Web3.to_hex(await self.web3.eth.send_raw_transaction(signed.raw_transaction))
        except Exception:
            self._next_nonce = None
            raise

        logger.info(f"Broadcast {operation.method} (nonce {nonce}): {tx_hash}")

        receipt = await self._wait_for_receipt(tx_hash, cancel)

        if receipt["status"] == 0:
            raise TransactionRevertedError(f"{operation.method} reverted", tx_hash=tx_hash)

        fields = decode_operation_event(self.contract, operation, receipt)
        if fields is None:
            logger.warning(f"{operation.event.value} not found in receipt of {tx_hash}")
            raise EventNotFoundError(
                f"{operation.event.value} event not found in receipt", tx_hash=tx_hash
            )

        logger.debug(f"{operation.event.value} decoded from {tx_hash}: {fields}")
        return SubmitResult(
            operation=operation,
            tx_hash=tx_hash,
            event_fields=fields,
            block_number=receipt.get("blockNumber"),
        )

    async def _reserve_nonce(self) -> int:
        """Next nonce for the signer.

        Reading and bumping the cached value happens without an await in
        between, so concurrent submissions on one loop never share a nonce.
        """
        pending = await self.web3.eth.get_transaction_count(self.signer.address, "pending")
        nonce = pending if self._next_nonce is None else max(pending, self._next_nonce)
        self._next_nonce = nonce + 1
        return nonce

    async def _wait_for_receipt(self, tx_hash: str, cancel: Optional[asyncio.Event]) -> Mapping:
        waiter = asyncio.ensure_future(
            self.web3.eth.wait_for_transaction_receipt(
                tx_hash,
                timeout=self.receipt_timeout,
                poll_latency=self.receipt_poll_interval,
            )
        )
        waiting = {waiter}
        if cancel is not None:
            waiting.add(asyncio.ensure_future(cancel.wait()))

        try:
            done, _ = await asyncio.wait(waiting, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in waiting:
                if not task.done():
                    task.cancel()

        if waiter not in done:
            logger.warning(f"Stopped waiting for {tx_hash}; transaction may still be mined")
            raise SubmissionCancelledError(f"Stopped waiting for {tx_hash}", tx_hash=tx_hash)

        try:
            return waiter.result()
        except TimeExhausted as e:
            raise ReceiptTimeoutError(
                f"No receipt for {tx_hash} after {self.receipt_timeout}s", tx_hash=tx_hash
            ) from e

    # ======================
    # Reads
    # ======================

    async def read_view(self, method: str, *args: Any) -> dict:
        """Call a view function and return its outputs by name.

        Timestamp outputs become UTC datetimes, or None when unset.
        """
        names = view_output_names(method)
        raw = await getattr(self.contract.functions, method)(*args).call()
        if len(names) == 1:
            raw = [raw]

        return {
            name: to_timestamp(value) if name in TIMESTAMP_FIELDS else value
            for name, value in zip(names, raw)
        }

    async def list_ids(self, method: str, address: str) -> list[int]:
        """Call an id-listing view for an address.

        Raises:
            IdOverflowError: If an id exceeds MAX_SAFE_ID
        """
        raw = await getattr(self.contract.functions, method)(
            Web3.to_checksum_address(address)
        ).call()
        return to_native_ids(raw)

    async def get_account_info(self, account_id: int) -> AccountInfo:
        data = await self.read_view("getEncryptedAccountInfo", account_id)
        return AccountInfo(
            account_id=account_id,
            owner=data["owner"],
            is_active=data["isActive"],
            is_verified=data["isVerified"],
            created_at=data["createdAt"],
            last_activity=data["lastActivity"],
        )

    async def get_transaction_info(self, transaction_id: int) -> TransactionInfo:
        data = await self.read_view("getEncryptedTransactionInfo", transaction_id)
        return TransactionInfo(
            transaction_id=transaction_id,
            from_account=int(data["fromAccount"]),
            to_account=int(data["toAccount"]),
            encrypted_amount=bytes(data["encryptedAmount"]),
            transaction_type=_transaction_type(data["transactionType"]),
            is_processed=data["isProcessed"],
            initiator=data["initiator"],
            timestamp=data["timestamp"],
            encrypted_metadata=bytes(data["encryptedMetadata"]),
        )

    async def get_settlement_info(self, settlement_id: int) -> SettlementInfo:
        data = await self.read_view("getEncryptedSettlementInfo", settlement_id)
        return SettlementInfo(
            settlement_id=settlement_id,
            participants=to_native_ids(data["participantAccounts"]),
            encrypted_total_amount=bytes(data["encryptedTotalAmount"]),
            is_completed=data["isCompleted"],
            initiator=data["initiator"],
            created_at=data["createdAt"],
            completed_at=data["completedAt"],
            settlement_hash=bytes(data["settlementHash"]),
        )

    async def get_user_account_ids(self, user_address: str) -> list[int]:
        return await self.list_ids("getUserEncryptedAccountIds", user_address)

    async def get_user_transaction_ids(self, user_address: str) -> list[int]:
        return await self.list_ids("getUserEncryptedTransactionIds", user_address)

    # ======================
    # Events
    # ======================

    async def subscribe(self, event: Union[LedgerEvent, str], handler: EventHandler) -> None:
        """Invoke handler once per new on-chain log of event."""
        await self.events.subscribe(event, handler)

    async def unsubscribe(self, event: Union[LedgerEvent, str]) -> None:
        await self.events.unsubscribe(event)

    async def close(self) -> None:
        await self.events.close()
