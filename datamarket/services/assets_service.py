from web3 import Web3
import logging
from typing import List, Optional

from ..errors import SigningError
from ..models.asset_models import (
    AssetRecord,
    ComputePrivacy,
    EditableMetadata,
    QueryResult,
    SearchQuery,
    ServiceDescriptor,
)
from ..models.result_models import ErrorKind, Outcome
from . import document_service
from .interfaces import MetadataIndex, Provider, Signer

logger = logging.getLogger(__name__)


class AssetsService:
    """Lookup and edit operations on published assets."""

    def __init__(self, index: MetadataIndex, provider: Provider, signer: Signer, strict_proofs: bool = False):
        self.index = index
        self.provider = provider
        self.signer = signer
        self.strict_proofs = strict_proofs

    # --- Lookup ---

    async def resolve(self, did: str) -> Optional[AssetRecord]:
        return await self.index.resolve(did)

    async def query(self, search_query: SearchQuery) -> QueryResult:
        return await self.index.query(search_query)

    async def search(self, text: str) -> QueryResult:
        return await self.index.query(SearchQuery(text=text, query={"value": 1}))

    async def resolve_by_token_address(
        self, token_address: str, offset: int = 100, page: int = 1, sort: int = 1
    ) -> List[AssetRecord]:
        search_query = SearchQuery(
            text=token_address,
            query={"dtAddress": [token_address]},
            sort={"value": sort},
            offset=offset,
            page=page,
        )
        return (await self.index.query(search_query)).results

    async def owner_assets(self, owner: str) -> List[AssetRecord]:
        return (await self.index.query(SearchQuery(query={"proof.creator": [owner]}))).results

    async def get_service_by_type(self, did: str, service_type: str) -> Optional[ServiceDescriptor]:
        document = await self.resolve(did)
        return document.find_service_by_type(service_type) if document else None

    async def get_service_by_index(self, did: str, service_index: int) -> Optional[ServiceDescriptor]:
        document = await self.resolve(did)
        return document.find_service_by_index(service_index) if document else None

    # --- Proof ---

    async def creator(self, did: str) -> Outcome[str]:
        """
        Returns the declared creator of an asset after checking its proof.

        A signer mismatch is only logged unless ``strict_proofs`` is set.
        """
        document = await self.resolve(did)
        if document is None:
            return Outcome.failure(ErrorKind.NOT_FOUND, f"Asset {did} not found")
        if document.proof is None:
            return Outcome.failure(ErrorKind.PROOF_MISMATCH, f"Asset {did} carries no proof")

        creator = document.proof.creator
        try:
            signer = document_service.recover_proof_signer(document, self.signer)
        except SigningError as e:
            logger.warning(f"Proof of {did} could not be verified: {e}")
            signer = None

        if not signer or signer.lower() != creator.lower():
            logger.warning(f"Owner of {did} doesn't match. Expected {creator} instead of {signer}.")
            if self.strict_proofs:
                return Outcome.failure(
                    ErrorKind.PROOF_MISMATCH, f"Proof of {did} was signed by {signer}, not {creator}"
                )
        return Outcome.success(creator)

    # --- Edits ---

    async def edit_metadata(self, did: str, new_metadata: EditableMetadata, owner: str) -> Outcome[AssetRecord]:
        document = await self.resolve(did)
        if document is None:
            return Outcome.failure(ErrorKind.NOT_FOUND, f"Asset {did} not found")

        for service in document.service:
            if service.type != "metadata":
                continue
            if new_metadata.title:
                service.attributes.setdefault("main", {})["name"] = new_metadata.title
            additional = service.attributes.setdefault("additionalInformation", {})
            if new_metadata.description:
                additional["description"] = new_metadata.description
            if new_metadata.links:
                additional["links"] = new_metadata.links

        for price in new_metadata.servicePrices or []:
            service = document.find_service_by_index(price.serviceIndex)
            if service is None:
                logger.warning(f"Ignoring price for unknown service #{price.serviceIndex} of {did}")
                continue
            service.attributes.setdefault("main", {})["cost"] = price.cost

        return await self._store_update(document, owner)

    async def update_compute_privacy(
        self, did: str, service_index: int, compute_privacy: ComputePrivacy, owner: str
    ) -> Outcome[AssetRecord]:
        document = await self.resolve(did)
        if document is None:
            return Outcome.failure(ErrorKind.NOT_FOUND, f"Asset {did} not found")

        service = document.find_service_by_index(service_index)
        if service is None or service.type != "compute":
            return Outcome.failure(ErrorKind.VALIDATION, f"Service #{service_index} of {did} is not a compute service")

        privacy = service.attributes.setdefault("main", {}).setdefault("privacy", {})
        privacy.update(compute_privacy.model_dump())
        return await self._store_update(document, owner)

    async def _store_update(self, document: AssetRecord, owner: str) -> Outcome[AssetRecord]:
        try:
            stored = await self.index.update(document.id, document, owner)
        except Exception as e:
            logger.error(f"Metadata index failed to update {document.id}: {e}", exc_info=True)
            stored = False
        if not stored:
            return Outcome.failure(ErrorKind.INDEX_UPDATE_FAILED, f"Metadata index did not update {document.id}")
        logger.info(f"DDO updated {document.id}")
        return Outcome.success(document)

    # --- Factories ---

    def create_access_service_attributes(
        self, creator: str, cost: str, date_published: str, timeout: int = 0
    ) -> ServiceDescriptor:
        """Access service paid with ``cost`` datatokens, consumed at the provider."""
        return ServiceDescriptor(
            type="access",
            index=2,
            serviceEndpoint=self.provider.get_consume_endpoint(),
            attributes={
                "main": {
                    "creator": Web3.to_checksum_address(creator),
                    "datePublished": date_published,
                    "cost": cost,
                    "timeout": timeout,
                    "name": "dataAssetAccess",
                }
            },
        )
