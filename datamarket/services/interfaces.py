"""Contracts of the external collaborators the workflows depend on.

The workflows only talk to these protocols; concrete adapters live next to
them (``ledger_service``, ``provider_service``, ``metadata_service`` and
``signature_service``) and tests substitute in-memory fakes.
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional, Protocol

from ..models.asset_models import AssetRecord, QueryResult, SearchQuery
from ..models.order_models import OrderQuote, OrderReceipt


class Ledger(Protocol):
    async def create_token(
        self, blob: str, creator: str, cap: Optional[str], name: Optional[str], symbol: Optional[str]
    ) -> Optional[str]:
        """Deploys a datatoken and returns its address (or an invalid sentinel)."""

    async def balance_of(self, token_address: str, address: str) -> Decimal:
        """Balance in token units."""

    async def get_previous_valid_order(
        self,
        token_address: str,
        amount: int,
        did: str,
        service_index: int,
        timeout: int,
        consumer: str,
    ) -> Optional[OrderReceipt]:
        ...

    async def start_order(
        self,
        token_address: str,
        amount: Decimal,
        did: str,
        service_index: int,
        fee_collector: Optional[str],
        consumer: str,
    ) -> OrderReceipt:
        ...


class Provider(Protocol):
    async def encrypt(self, did: str, files: List[Dict[str, Any]], publisher: str) -> str:
        ...

    async def initialize(
        self, did: str, service_index: int, service_type: str, consumer: str
    ) -> Optional[OrderQuote]:
        ...

    async def download(
        self,
        did: str,
        tx_id: str,
        token_address: str,
        service_type: str,
        service_index: int,
        destination: Optional[str],
        consumer: str,
        files: List[Dict[str, Any]],
    ) -> List[str]:
        ...

    async def download_file(self, url: str, destination: Optional[str] = None) -> Any:
        ...

    def get_consume_endpoint(self) -> str:
        ...


class MetadataIndex(Protocol):
    def get_uri(self) -> str:
        ...

    async def publish(self, did: str, document: AssetRecord, owner: str) -> bool:
        ...

    async def update(self, did: str, document: AssetRecord, owner: str) -> bool:
        ...

    async def resolve(self, did: str) -> Optional[AssetRecord]:
        ...

    async def query(self, search_query: SearchQuery) -> QueryResult:
        ...


class Signer(Protocol):
    def sign(self, checksum: str, credential: str) -> str:
        """Raises ``SigningError`` when the credential cannot sign."""

    def verify(self, checksum: str, signature: str) -> str:
        """Returns the address that produced ``signature``."""
