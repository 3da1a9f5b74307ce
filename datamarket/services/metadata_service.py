import requests
import asyncio
import logging
from typing import Optional

from pydantic import ValidationError as ModelValidationError

from ..errors import TransportError
from ..models.asset_models import AssetRecord, QueryResult, SearchQuery

logger = logging.getLogger(__name__)

DDO_PATH = "/api/v1/aquarius/assets/ddo"


class MetadataIndexClient:
    """HTTP client of the metadata index storing asset documents."""

    def __init__(self, base_url: str, timeout: int = 60):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()

    def get_uri(self) -> str:
        return self.base_url

    def _ddo_url(self, did: str | None = None) -> str:
        url = f"{self.base_url}{DDO_PATH}"
        return f"{url}/{did}" if did else url

    def _store(self, method: str, url: str, did: str, document: AssetRecord, owner: str) -> bool:
        payload = document.to_document()
        try:
            response = self.session.request(
                method, url, json=payload, headers={"X-Owner-Address": owner}, timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Metadata index unreachable while storing {did}: {e}")
            return False
        if response.status_code not in (200, 201):
            logger.error(f"Metadata index refused {did}: HTTP {response.status_code} {response.text}")
            return False
        return True

    async def publish(self, did: str, document: AssetRecord, owner: str) -> bool:
        return await asyncio.to_thread(self._store, "POST", self._ddo_url(), did, document, owner)

    async def update(self, did: str, document: AssetRecord, owner: str) -> bool:
        return await asyncio.to_thread(self._store, "PUT", self._ddo_url(did), did, document, owner)

    def _resolve(self, did: str) -> Optional[AssetRecord]:
        try:
            response = self.session.get(self._ddo_url(did), timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Metadata index unreachable while resolving {did}: {e}") from e
        if response.status_code == 404:
            logger.info(f"No asset found for {did}")
            return None
        if response.status_code != 200:
            raise TransportError(f"Metadata index returned HTTP {response.status_code} for {did}")
        try:
            return AssetRecord.model_validate(response.json())
        except (ValueError, ModelValidationError) as e:
            logger.error(f"Metadata index returned an invalid document for {did}: {e}")
            return None

    async def resolve(self, did: str) -> Optional[AssetRecord]:
        return await asyncio.to_thread(self._resolve, did)

    def _query(self, search_query: SearchQuery) -> QueryResult:
        try:
            response = self.session.post(
                f"{self._ddo_url()}/query", json=search_query.model_dump(exclude_none=True), timeout=self.timeout
            )
            response.raise_for_status()
            return QueryResult.model_validate(response.json())
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Metadata index query failed: {e}") from e
        except (ValueError, ModelValidationError) as e:
            raise TransportError(f"Metadata index returned an invalid query result: {e}") from e

    async def query(self, search_query: SearchQuery) -> QueryResult:
        return await asyncio.to_thread(self._query, search_query)
