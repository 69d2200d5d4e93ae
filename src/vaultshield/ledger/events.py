"""Live contract event feed.

Polls the ledger for new logs of subscribed events and hands each decoded
log to the registered handlers. Delivery is best effort and at most once:
a subscription starts after the current head block and never replays
older logs.
"""

import asyncio
import contextlib
import inspect
import logging
from typing import Any, Awaitable, Callable, Union

from web3 import Web3
from web3.exceptions import MismatchedABI

from vaultshield.ledger.contracts import event_topic
from vaultshield.ledger.models import EventRecord, LedgerEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[EventRecord], Union[None, Awaitable[None]]]


class EventFeed:
    """Polling subscription manager for one contract."""

    def __init__(self, web3: Any, contract: Any, poll_interval: float = 2.0):
        """Initialize the feed.

        Args:
            web3: AsyncWeb3 instance
            contract: Bound VaultShield contract
            poll_interval: Seconds between polls
        """
        self.web3 = web3
        self.contract = contract
        self.poll_interval = poll_interval
        # Each handler only sees logs from its own start block onward
        self._handlers: dict[LedgerEvent, list[tuple[EventHandler, int]]] = {}
        self._tasks: dict[LedgerEvent, asyncio.Task] = {}

    @property
    def subscribed(self) -> list[LedgerEvent]:
        return list(self._handlers)

    async def subscribe(self, event: Union[LedgerEvent, str], handler: EventHandler) -> None:
        """Register a handler for logs mined after the current head.

        The first handler for an event starts its poller at head + 1.
        """
        event = LedgerEvent(event)
        head = await self.web3.eth.block_number

        # No await from here on: concurrent subscribers share one poller
        self._handlers.setdefault(event, []).append((handler, head + 1))
        if event in self._tasks:
            return

        self._tasks[event] = asyncio.create_task(
            self._poll(event, head + 1), name=f"vaultshield-{event.value}"
        )
        logger.info(f"Subscribed to {event.value} from block {head + 1}")

    async def unsubscribe(self, event: Union[LedgerEvent, str]) -> None:
        """Remove all handlers for an event and stop its poller."""
        event = LedgerEvent(event)
        self._handlers.pop(event, None)

        task = self._tasks.pop(event, None)
        if task is None:
            return

        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info(f"Unsubscribed from {event.value}")

    async def close(self) -> None:
        """Stop every poller."""
        for event in list(self._tasks):
            await self.unsubscribe(event)

    async def poll_once(self, event: LedgerEvent, from_block: int) -> int:
        """Deliver logs between from_block and the current head.

        Returns:
            The next block to poll from
        """
        head = await self.web3.eth.block_number
        if head < from_block:
            return from_block

        logs = await self.web3.eth.get_logs({
            "address": self.contract.address,
            "fromBlock": from_block,
            "toBlock": head,
            "topics": [event_topic(event)],
        })

        decoder = getattr(self.contract.events, event.value)()
        for log in sorted(logs, key=lambda entry: (entry["blockNumber"], entry["logIndex"])):
            try:
                decoded = decoder.process_log(log)
            except MismatchedABI as e:
                logger.debug(f"Skipping undecodable {event.value} log: {e}")
                continue

            await self._dispatch(EventRecord(
                event=event,
                args=dict(decoded["args"]),
                tx_hash=Web3.to_hex(decoded["transactionHash"]),
                block_number=decoded["blockNumber"],
                log_index=decoded["logIndex"],
            ))

        return head + 1

    async def _poll(self, event: LedgerEvent, from_block: int) -> None:
        next_block = from_block
        while True:
            await asyncio.sleep(self.poll_interval)
            try:
                next_block = await self.poll_once(event, next_block)
            except Exception as e:
                logger.error(f"Event poll for {event.value} failed: {e}")

    async def _dispatch(self, record: EventRecord) -> None:
        for handler, start_block in list(self._handlers.get(record.event, [])):
            if record.block_number < start_block:
                continue
            try:
                result = handler(record)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Handler for {record.event.value} failed: {e}")
