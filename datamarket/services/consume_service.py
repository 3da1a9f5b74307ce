from urllib.parse import urlencode
import logging
import os
from typing import Optional

from ..errors import MissingEndpointError
from ..models.result_models import ErrorKind, Outcome
from . import document_service
from .interfaces import MetadataIndex, Provider

logger = logging.getLogger(__name__)


class ConsumeService:
    """Hands a paid order over to the provider for file retrieval."""

    def __init__(self, provider: Provider, index: MetadataIndex):
        self.provider = provider
        self.index = index

    async def download(
        self,
        did: str,
        tx_id: str,
        token_address: str,
        consumer: str,
        destination: Optional[str] = None,
    ) -> Outcome[Optional[str]]:
        """
        Downloads the files of an asset's access service.

        Files land in ``<destination>/datafile.<id>.<service index>/``; without
        a destination the provider decides what to do with the content.

        Raises:
            MissingEndpointError: The access service has no ``serviceEndpoint``.
            TransportError: The provider transfer failed.
        """
        document = await self.index.resolve(did)
        if document is None:
            logger.error(f"Cannot consume: asset {did} not found in metadata index.")
            return Outcome.failure(ErrorKind.NOT_FOUND, f"Asset {did} not found")

        metadata = document.find_service_by_type("metadata")
        service = document.find_service_by_type("access")
        if service is None:
            logger.error(f"Cannot consume: asset {did} has no access service.")
            return Outcome.failure(ErrorKind.SERVICE_NOT_FOUND, f"Asset {did} has no access service")

        if not service.serviceEndpoint:
            raise MissingEndpointError(
                "Consume asset failed, service definition is missing the `serviceEndpoint`."
            )

        files = (metadata.attributes.get("main", {}).get("files") if metadata else None) or []

        if destination:
            destination = os.path.join(
                destination, f"datafile.{document_service.short_id(did)}.{service.index}", ""
            )

        logger.info(f"Consuming files of {did} (service #{service.index}) into {destination}")
        await self.provider.download(
            did,
            tx_id,
            token_address,
            service.type,
            service.index,
            destination,
            consumer,
            files,
        )
        return Outcome.success(destination)

    async def simple_download(
        self,
        token_address: str,
        service_endpoint: str,
        tx_id: str,
        consumer: str,
        destination: Optional[str] = None,
    ) -> str:
        """Consumes straight from a known endpoint, without resolving the asset."""
        query = urlencode({
            "consumerAddress": consumer,
            "tokenAddress": token_address,
            "transferTxId": tx_id,
        })
        consume_url = f"{service_endpoint}?{query}"
        logger.info(f"Consuming from {consume_url}")
        try:
            await self.provider.download_file(consume_url, destination)
        except Exception as e:
            logger.error(f"Error consuming asset from {service_endpoint}: {e}")
            raise
        return service_endpoint
