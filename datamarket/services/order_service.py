"""
Order workflow: quote, reuse a still valid payment or pay for a service.

The previous-order check and the payment are two separate ledger calls. With
``serialize_orders`` off (the default) two concurrent orders for the same
(did, service index, consumer) can both miss the previous order and both pay.
Turning it on serializes them inside this process only.
"""

from web3 import Web3
import asyncio
import contextlib
import logging
from decimal import Decimal
from typing import Dict, Optional, Tuple

from ..errors import LedgerTransactionError
from ..models.order_models import OrderQuote, OrderReceipt
from ..models.result_models import ErrorKind, Outcome
from . import document_service
from .interfaces import Ledger, MetadataIndex, Provider

logger = logging.getLogger(__name__)


class OrderService:
    def __init__(
        self,
        ledger: Ledger,
        provider: Provider,
        index: MetadataIndex,
        serialize_orders: bool = False,
    ):
        self.ledger = ledger
        self.provider = provider
        self.index = index
        self.serialize_orders = serialize_orders
        self._locks: Dict[Tuple[str, int, str], asyncio.Lock] = {}
        # Tasks holding or waiting on each lock; the entry goes away at zero
        self._lock_users: Dict[Tuple[str, int, str], int] = {}

    @contextlib.asynccontextmanager
    async def _order_lock(self, did: str, service_index: int, consumer: str):
        if not self.serialize_orders:
            yield
            return
        key = (did, service_index, consumer.lower())
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    async def initialize(
        self, did: str, service_type: str, consumer: str, service_index: int = -1
    ) -> Optional[OrderQuote]:
        """Asks the provider for the price of consuming a service."""
        quote = await self.provider.initialize(did, service_index, service_type, consumer)
        if quote is None:
            logger.warning(f"Provider returned no quote for {did} service {service_type}#{service_index}")
        return quote

    async def order(
        self,
        did: str,
        consumer: str,
        service_type: Optional[str] = None,
        service_index: Optional[int] = None,
        fee_collector: Optional[str] = None,
    ) -> Outcome[OrderReceipt]:
        """
        Orders and pays for a service of an asset.

        Exactly one of ``service_type`` and ``service_index`` must be given.
        A previous order that is still valid is returned as is, with
        ``reused=True``, and nothing is paid.

        Raises:
            LedgerTransactionError: If the payment transaction fails.
        """
        if (service_type is None) == (service_index is None):
            return Outcome.failure(ErrorKind.VALIDATION, "Pass exactly one of service_type or service_index.")

        # --- 1. Resolve service ---
        document = await self.index.resolve(did)
        if document is None:
            logger.error(f"Cannot order: asset {did} not found in metadata index.")
            return Outcome.failure(ErrorKind.NOT_FOUND, f"Asset {did} not found")

        if service_index is None:
            service = document.find_service_by_type(service_type)
        else:
            service = document.find_service_by_index(service_index)
        if service is None:
            wanted = service_type if service_index is None else f"#{service_index}"
            logger.error(f"Cannot order: asset {did} has no service {wanted}.")
            return Outcome.failure(ErrorKind.SERVICE_NOT_FOUND, f"Service {wanted} not found in {did}")

        service_type, service_index = service.type, service.index
        timeout = int(service.attributes.get("main", {}).get("timeout", 0) or 0)

        # --- 2. Quote ---
        quote = await self.initialize(did, service_type, consumer, service_index)
        if not quote:
            return Outcome.failure(ErrorKind.QUOTE_UNAVAILABLE, f"No quote for {did} service #{service_index}")

        async with self._order_lock(did, service_index, consumer):
            # --- 3. Reuse previous order ---
            previous = await self.ledger.get_previous_valid_order(
                quote.tokenAddress,
                quote.numTokens,
                document_service.did_zero_x(did),
                service_index,
                timeout,
                consumer,
            )
            if previous:
                logger.info(f"Reusing valid order {previous.transactionHash} for {did} service #{service_index}")
                return Outcome.success(previous.model_copy(update={"reused": True, "did": did}))

            # --- 4. Balance ---
            balance = Decimal(str(await self.ledger.balance_of(quote.tokenAddress, consumer)))
            total_cost = Decimal(str(Web3.from_wei(quote.numTokens, "ether")))
            if balance <= total_cost:
                logger.error(f"Not enough funds. Needed {total_cost} but balance is {balance}")
                return Outcome.failure(
                    ErrorKind.INSUFFICIENT_BALANCE,
                    f"Balance {balance} does not exceed cost {total_cost}",
                )

            # --- 5. Pay ---
            try:
                receipt = await self.ledger.start_order(
                    quote.tokenAddress,
                    total_cost,
                    document_service.did_zero_x(did),
                    service_index,
                    fee_collector,
                    consumer,
                )
            except LedgerTransactionError:
                raise
            except Exception as e:
                logger.error(f"startOrder failed for {did} service #{service_index}: {e}", exc_info=True)
                raise LedgerTransactionError(f"startOrder failed for {did}: {e}") from e

            if not receipt or not receipt.transactionHash:
                raise LedgerTransactionError(f"startOrder for {did} returned no transaction hash")

        logger.info(f"Order placed for {did} service #{service_index}: {receipt.transactionHash}")
        return Outcome.success(
            receipt.model_copy(update={"did": did, "serviceIndex": service_index, "timeout": timeout})
        )
