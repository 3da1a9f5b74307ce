import asyncio
import time
from decimal import Decimal

import pytest
from eth_account import Account
from web3 import Web3

from datamarket.models.asset_models import Publisher, QueryResult, ServiceDescriptor
from datamarket.models.order_models import OrderQuote, OrderReceipt
from datamarket.services.signature_service import EthSigner

PUBLISHER_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
OTHER_KEY = "0x" + "11" * 32
TOKEN_ADDRESS = "0x5e3b6d0a9b4a2b1c7f2bd8d4f3e1c2a1b0c9d8e7"
CONSUMER = "0x00000000000000000000000000000000000000c0"
CONSUME_ENDPOINT = "http://provider.test/api/v1/services/consume"


class FakeLedger:
    def __init__(self, token_address=TOKEN_ADDRESS, yield_control=False):
        self.token_address = token_address
        self.yield_control = yield_control
        self.balances = {}
        self.orders = []  # (token, amount_wei, service_index, consumer, timestamp, receipt)
        self.created = []
        self.start_order_calls = []
        self.start_order_error = None

    async def _pause(self):
        if self.yield_control:
            await asyncio.sleep(0)

    async def create_token(self, blob, creator, cap, name, symbol):
        self.created.append({"blob": blob, "creator": creator, "cap": cap, "name": name, "symbol": symbol})
        return self.token_address

    async def balance_of(self, token_address, address):
        await self._pause()
        return self.balances.get(address.lower(), Decimal(0))

    async def get_previous_valid_order(self, token_address, amount, did, service_index, timeout, consumer):
        await self._pause()
        for token, amount_wei, index, buyer, timestamp, receipt in self.orders:
            if (token, amount_wei, index, buyer) != (token_address, int(amount), service_index, consumer.lower()):
                continue
            if timeout == 0 or time.time() < timestamp + timeout:
                return receipt
        return None

    async def start_order(self, token_address, amount, did, service_index, fee_collector, consumer):
        self.start_order_calls.append((token_address, amount, did, service_index, fee_collector, consumer))
        if self.start_order_error:
            raise self.start_order_error
        await self._pause()
        receipt = OrderReceipt(
            transactionHash="0x" + f"{len(self.start_order_calls):064x}",
            serviceIndex=service_index,
            did=did,
        )
        amount_wei = Web3.to_wei(amount, "ether")
        self.orders.append((token_address, amount_wei, service_index, consumer.lower(), time.time(), receipt))
        return receipt


class FakeProvider:
    def __init__(self):
        self.encrypt_calls = []
        self.initialize_calls = []
        self.download_calls = []
        self.download_file_calls = []
        self.quote_tokens = Web3.to_wei(1, "ether")
        self.quote_available = True
        self.download_error = None

    async def encrypt(self, did, files, publisher):
        self.encrypt_calls.append((did, files, publisher))
        return "0xencrypted" + did[-8:]

    async def initialize(self, did, service_index, service_type, consumer):
        self.initialize_calls.append((did, service_index, service_type, consumer))
        if not self.quote_available:
            return None
        return OrderQuote(dataToken=TOKEN_ADDRESS, numTokens=self.quote_tokens, serviceIndex=service_index)

    async def download(self, did, tx_id, token_address, service_type, service_index, destination, consumer, files):
        self.download_calls.append({
            "did": did,
            "tx_id": tx_id,
            "token_address": token_address,
            "service_type": service_type,
            "service_index": service_index,
            "destination": destination,
            "consumer": consumer,
            "files": files,
        })
        if self.download_error:
            raise self.download_error
        return [destination]

    async def download_file(self, url, destination=None):
        self.download_file_calls.append((url, destination))
        if self.download_error:
            raise self.download_error
        return b"content"

    def get_consume_endpoint(self):
        return CONSUME_ENDPOINT


class FakeIndex:
    def __init__(self):
        self.documents = {}
        self.publish_calls = []
        self.update_calls = []
        self.queries = []
        self.publish_result = True
        self.publish_error = None
        self.update_result = True

    def get_uri(self):
        return "http://index.test"

    async def publish(self, did, document, owner):
        self.publish_calls.append((did, owner))
        if self.publish_error:
            raise self.publish_error
        if self.publish_result:
            self.documents[did] = document.model_copy(deep=True)
        return self.publish_result

    async def update(self, did, document, owner):
        self.update_calls.append((did, owner))
        if self.update_result:
            self.documents[did] = document.model_copy(deep=True)
        return self.update_result

    async def resolve(self, did):
        document = self.documents.get(did)
        return document.model_copy(deep=True) if document else None

    async def query(self, search_query):
        self.queries.append(search_query)
        results = list(self.documents.values())
        return QueryResult(results=results, page=1, totalPages=1, totalResults=len(results))


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def index():
    return FakeIndex()


@pytest.fixture
def signer():
    return EthSigner()


@pytest.fixture
def publisher():
    return Publisher(address=Account.from_key(PUBLISHER_KEY).address, credential=PUBLISHER_KEY)


@pytest.fixture
def metadata():
    return {
        "main": {
            "type": "dataset",
            "name": "Weather observations",
            "dateCreated": "2020-07-13T09:47:27Z",
            "author": "Met Office",
            "license": "CC-BY",
            "files": [
                {"url": "https://example.com/obs.csv", "checksum": "efb2c764", "contentType": "text/csv"},
                {"url": "https://example.com/readme.txt", "contentType": "text/plain"},
            ],
        },
        "additionalInformation": {"description": "Hourly observations"},
    }


@pytest.fixture
def access_service():
    return ServiceDescriptor(
        type="access",
        serviceEndpoint=CONSUME_ENDPOINT,
        attributes={"main": {"name": "dataAssetAccess", "cost": "1", "timeout": 3600, "datePublished": "2020-07-13T09:47:27Z"}},
    )


@pytest.fixture
def published(ledger, provider, index, signer, publisher, metadata, access_service):
    """An asset with an access service already stored in the fake index."""
    from datamarket.services.publish_service import PublishService

    compute = ServiceDescriptor(
        type="compute",
        serviceEndpoint="http://provider.test/api/v1/services/compute",
        attributes={"main": {"name": "dataAssetComputingService", "cost": "2", "timeout": 0, "privacy": {}}},
    )
    outcome = run(PublishService(ledger, provider, index, signer).publish(metadata, publisher, [access_service, compute]))
    assert outcome.ok
    return outcome.value
