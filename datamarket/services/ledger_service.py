from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted
from hexbytes import HexBytes
import asyncio
import json
import logging
import time
from decimal import Decimal
from typing import Any, Dict, List, Optional

from ..errors import LedgerTransactionError
from ..models.order_models import OrderReceipt

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
RECEIPT_TIMEOUT_SECONDS = 120


def load_abi(artifact_path: str) -> List[Dict[str, Any]] | None:
    """Loads the ``abi`` entry of a compiled contract artifact."""
    try:
        with open(artifact_path, 'r') as f:
            # Compiler output contains more than just the ABI, extract it.
            artifact = json.load(f)
    except FileNotFoundError:
        logger.error(f"CRITICAL: Contract artifact not found at: {artifact_path}. Ledger interactions will fail.")
        return None
    except json.JSONDecodeError as e:
        logger.error(f"CRITICAL: Failed to parse artifact JSON file {artifact_path}: {e}")
        return None

    abi = artifact.get('abi') if isinstance(artifact, dict) else artifact
    if not abi:
        logger.error(f"'abi' key not found in artifact file: {artifact_path}")
        return None
    logger.info(f"Successfully loaded contract ABI from: {artifact_path}")
    return abi


class Web3Ledger:
    """
    Datatoken ledger backed by a JSON-RPC node.

    Transactions are built, signed with the backend wallet and awaited
    synchronously; the async methods run that work in a worker thread.
    """

    def __init__(self, w3: Web3, factory_address: str, factory_abi, datatoken_abi, private_key: str | None = None, default_cap: str = "1000"):
        self.w3 = w3
        self.default_cap = default_cap
        self.factory = w3.eth.contract(address=Web3.to_checksum_address(factory_address), abi=factory_abi)
        self.datatoken_abi = datatoken_abi
        self.account = w3.eth.account.from_key(private_key) if private_key else None
        if self.account:
            logger.info(f"Backend wallet loaded successfully. Address: {self.account.address}")
        else:
            logger.warning("No backend wallet configured. Cannot sign ledger transactions.")

    def _datatoken(self, token_address: str):
        return self.w3.eth.contract(address=Web3.to_checksum_address(token_address), abi=self.datatoken_abi)

    def _transact(self, function) -> Any:
        """Builds, signs and sends a contract call; returns the mined receipt."""
        if not self.account:
            raise LedgerTransactionError("Backend wallet not configured or loaded.")
        try:
            nonce = self.w3.eth.get_transaction_count(self.account.address)
            logger.info(f"Using nonce {nonce} for transaction from {self.account.address}")
            tx_data = function.build_transaction({
                'chainId': self.w3.eth.chain_id,
                'gasPrice': self.w3.eth.gas_price,
                'nonce': nonce,
                'from': self.account.address,
            })
            signed_tx = self.w3.eth.account.sign_transaction(tx_data, private_key=self.account.key)
            tx_hash = self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
            logger.info(f"Transaction sent! Hash: {Web3.to_hex(tx_hash)}")
            tx_receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=RECEIPT_TIMEOUT_SECONDS)
        except (ContractLogicError, TimeExhausted, ValueError) as e:
            logger.error(f"Ledger transaction failed: {e}", exc_info=True)
            raise LedgerTransactionError(str(e)) from e

        if tx_receipt.status != 1:
            logger.error(f"Transaction failed! Receipt: {tx_receipt}")
            raise LedgerTransactionError(f"Transaction {Web3.to_hex(tx_hash)} reverted")
        return tx_receipt

    # --- Token creation ---

    def _create_token(self, blob: str, creator: str, cap: Optional[str], name: Optional[str], symbol: Optional[str]) -> Optional[str]:
        cap_wei = Web3.to_wei(Decimal(cap or self.default_cap), "ether")
        name = name or "Datatoken"
        symbol = symbol or "DT"
        logger.info(f"Creating datatoken {name} ({symbol}) for {creator} with cap {cap_wei} wei")
        receipt = self._transact(self.factory.functions.createToken(blob, name, symbol, cap_wei))

        events = self.factory.events.TokenRegistered().process_receipt(receipt)
        if not events:
            tx_hash = Web3.to_hex(receipt.transactionHash)
            logger.error(f"No TokenRegistered event in receipt {tx_hash}")
            raise LedgerTransactionError(f"createToken transaction {tx_hash} registered no token")
        return events[0].args.get('tokenAddress')

    async def create_token(self, blob, creator, cap=None, name=None, symbol=None) -> Optional[str]:
        return await asyncio.to_thread(self._create_token, blob, creator, cap, name, symbol)

    # --- Balances ---

    def _balance_of(self, token_address: str, address: str) -> Decimal:
        raw = self._datatoken(token_address).functions.balanceOf(Web3.to_checksum_address(address)).call()
        return Decimal(str(Web3.from_wei(raw, "ether")))

    async def balance_of(self, token_address: str, address: str) -> Decimal:
        return await asyncio.to_thread(self._balance_of, token_address, address)

    # --- Orders ---

    def _first_block_since(self, timestamp: int) -> int:
        """Lowest block mined at or after ``timestamp``, found by bisecting block timestamps."""
        low, high = 0, self.w3.eth.block_number
        while low < high:
            middle = (low + high) // 2
            if self.w3.eth.get_block(middle).timestamp < timestamp:
                low = middle + 1
            else:
                high = middle
        return low

    def _get_previous_valid_order(
        self, token_address: str, amount: int, did: str, service_index: int, timeout: int, consumer: str
    ) -> Optional[OrderReceipt]:
        datatoken = self._datatoken(token_address)
        from_block = 0
        if timeout > 0:
            from_block = self._first_block_since(int(time.time()) - timeout)

        event_logs = datatoken.events.OrderStarted.get_logs(
            from_block=from_block,
            to_block='latest',
            argument_filters={'consumer': Web3.to_checksum_address(consumer)},
        )
        logger.debug(f"Found {len(event_logs)} OrderStarted events for {consumer} on {token_address}")

        for event in event_logs:
            args = event.args
            if int(args.get('amount', -1)) != int(amount) or int(args.get('serviceId', -1)) != int(service_index):
                continue
            if event.address.lower() != token_address.lower():
                continue
            tx_hash_bytes: HexBytes = event.transactionHash
            tx_hash_hex = Web3.to_hex(tx_hash_bytes)
            if timeout == 0:
                return OrderReceipt(transactionHash=tx_hash_hex, serviceIndex=service_index, did=did, timeout=timeout)
            block = self.w3.eth.get_block(event.blockNumber)
            if int(time.time()) < block.timestamp + timeout:
                return OrderReceipt(transactionHash=tx_hash_hex, serviceIndex=service_index, did=did, timeout=timeout)
        return None

    async def get_previous_valid_order(self, token_address, amount, did, service_index, timeout, consumer) -> Optional[OrderReceipt]:
        return await asyncio.to_thread(
            self._get_previous_valid_order, token_address, amount, did, service_index, timeout, consumer
        )

    def _start_order(
        self, token_address: str, amount: Decimal, did: str, service_index: int, fee_collector: Optional[str], consumer: str
    ) -> OrderReceipt:
        logger.info(f"Starting order on {token_address}: {amount} tokens for {did} service #{service_index}")
        function = self._datatoken(token_address).functions.startOrder(
            Web3.to_checksum_address(consumer),
            Web3.to_wei(amount, "ether"),
            int(service_index),
            Web3.to_checksum_address(fee_collector or ZERO_ADDRESS),
        )
        receipt = self._transact(function)
        return OrderReceipt(
            transactionHash=Web3.to_hex(receipt.transactionHash),
            serviceIndex=service_index,
            did=did,
        )

    async def start_order(self, token_address, amount, did, service_index, fee_collector, consumer) -> OrderReceipt:
        return await asyncio.to_thread(
            self._start_order, token_address, amount, did, service_index, fee_collector, consumer
        )
