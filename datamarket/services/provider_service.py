import requests
from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3
import asyncio
import json
import logging
import os
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from pydantic import ValidationError as ModelValidationError

from ..errors import TransportError
from ..models.order_models import OrderQuote

logger = logging.getLogger(__name__)

SERVICES_PATH = "/api/v1/services"
CHUNK_SIZE = 8192


class ProviderClient:
    """HTTP client of the off-chain provider (encryption, quotes, file transfer)."""

    def __init__(self, base_url: str, timeout: int = 60, private_key: str | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        # Used to prove ownership of the consumer address on consume requests
        self.account = Account.from_key(private_key) if private_key else None
        self.session = requests.Session()

    def get_encrypt_endpoint(self) -> str:
        return f"{self.base_url}{SERVICES_PATH}/encrypt"

    def get_initialize_endpoint(self) -> str:
        return f"{self.base_url}{SERVICES_PATH}/initialize"

    def get_consume_endpoint(self) -> str:
        return f"{self.base_url}{SERVICES_PATH}/consume"

    def _sign(self, text: str) -> str:
        if not self.account:
            return ""
        return Web3.to_hex(self.account.sign_message(encode_defunct(text=text)).signature)

    # --- Encryption ---

    def _encrypt(self, did: str, files: List[Dict[str, Any]], publisher: str) -> str:
        payload = {
            "documentId": did,
            "document": json.dumps(files),
            "publisherAddress": publisher,
        }
        try:
            response = self.session.post(self.get_encrypt_endpoint(), json=payload, timeout=self.timeout)
            response.raise_for_status()
            return response.json()["encryptedDocument"]
        except requests.exceptions.RequestException as e:
            logger.error(f"Provider failed to encrypt files of {did}: {e}", exc_info=True)
            raise TransportError(f"Encrypt request for {did} failed: {e}") from e
        except (KeyError, ValueError) as e:
            logger.error(f"Provider returned unexpected encrypt response for {did}: {e}")
            raise TransportError(f"Unexpected encrypt response for {did}") from e

    async def encrypt(self, did: str, files: List[Dict[str, Any]], publisher: str) -> str:
        return await asyncio.to_thread(self._encrypt, did, files, publisher)

    # --- Quotes ---

    def _initialize(self, did: str, service_index: int, service_type: str, consumer: str) -> Optional[OrderQuote]:
        params = {
            "documentId": did,
            "serviceId": service_index,
            "serviceType": service_type,
            "consumerAddress": consumer,
        }
        try:
            response = self.session.get(self.get_initialize_endpoint(), params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            logger.error(f"Provider initialize failed for {did} service #{service_index}: {e}")
            return None
        except ValueError as e:
            logger.error(f"Provider returned non-JSON initialize response for {did}: {e}")
            return None

        if not data:
            return None
        if not isinstance(data, dict):
            logger.error(f"Provider returned a malformed quote for {did}: {data!r}")
            return None
        data.setdefault("serviceIndex", service_index)
        try:
            return OrderQuote.model_validate(data)
        except ModelValidationError as e:
            logger.error(f"Provider returned an incomplete quote for {did} service #{service_index}: {e}")
            return None

    async def initialize(self, did: str, service_index: int, service_type: str, consumer: str) -> Optional[OrderQuote]:
        return await asyncio.to_thread(self._initialize, did, service_index, service_type, consumer)

    # --- Transfers ---

    def _stream_to(
        self, url: str, params: Optional[Dict[str, Any]], destination: Optional[str], file_index: Optional[int] = None
    ) -> Any:
        """
        Streams ``url`` into ``destination`` (a directory); returns bytes when there is none.

        Files of a multi-file service are told apart by ``file_index``, which
        prefixes the saved name.
        """
        try:
            response = self.session.get(url, params=params, stream=True, timeout=self.timeout)
            response.raise_for_status()

            if not destination:
                return response.content

            os.makedirs(destination, exist_ok=True)
            filename = _filename_from(response, url, file_index)
            output_path = os.path.join(destination, filename)
            with open(output_path, 'wb') as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    f.write(chunk)
            logger.info(f"Download successful! Saved to {output_path}")
            return output_path
        except requests.exceptions.RequestException as e:
            logger.error(f"Network or request error downloading from {url}: {type(e).__name__} - {e}")
            raise TransportError(f"Download from {url} failed: {e}") from e
        except IOError as e:
            logger.error(f"Error writing downloaded file to {destination}: {e}", exc_info=True)
            raise TransportError(f"Could not write download to {destination}: {e}") from e

    def _download(
        self, did, tx_id, token_address, service_type, service_index, destination, consumer, files
    ) -> List[Any]:
        results = []
        for i, _file in enumerate(files):
            file_index = _file.get("index", i)
            params = {
                "documentId": did,
                "serviceId": service_index,
                "serviceType": service_type,
                "dataToken": token_address,
                "transferTxId": tx_id,
                "consumerAddress": consumer,
                "fileIndex": file_index,
                "signature": self._sign(did),
            }
            logger.info(f"Downloading file #{file_index} of {did}")
            results.append(self._stream_to(self.get_consume_endpoint(), params, destination, file_index))
        return results

    async def download(
        self, did, tx_id, token_address, service_type, service_index, destination, consumer, files
    ) -> List[Any]:
        return await asyncio.to_thread(
            self._download, did, tx_id, token_address, service_type, service_index, destination, consumer, files
        )

    async def download_file(self, url: str, destination: Optional[str] = None) -> Any:
        return await asyncio.to_thread(self._stream_to, url, None, destination)


def _safe_name(raw: str) -> str:
    """Bare file name without any directory part; empty if nothing usable is left."""
    name = os.path.basename(raw.replace("\\", "/").strip())
    return "" if name in (".", "..") else name


def _filename_from(response: requests.Response, url: str, file_index: Optional[int] = None) -> str:
    # The provider picks the name, so it is reduced to a bare name inside the destination
    disposition = response.headers.get("content-disposition", "")
    name = ""
    if "filename=" in disposition:
        name = _safe_name(disposition.split("filename=")[-1].strip('"; '))

    if file_index is None:
        return name or _safe_name(urlparse(url).path) or "datafile"
    return f"{file_index}_{name}" if name else f"file{file_index}"
