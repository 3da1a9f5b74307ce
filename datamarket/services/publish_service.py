"""
Publish workflow.

Creates (or reuses) a datatoken, encrypts the file references through the
provider, assembles and signs the asset document and stores it in the
metadata index. Progress is reported through an optional callback that
receives each ``PublishStep`` once, in declaration order.

There is no compensation: when the index refuses the document after the
token was created, the token stays deployed and the caller gets a failed
``Outcome``. Re-publishing with ``data_token_address`` reuses it.
"""

from web3 import Web3
import json
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..models.asset_models import AssetRecord, Authentication, PublicKey, Publisher, ServiceDescriptor
from ..models.result_models import ErrorKind, Outcome
from . import document_service
from .interfaces import Ledger, MetadataIndex, Provider, Signer

logger = logging.getLogger(__name__)


class PublishStep(str, Enum):
    CREATING_DATA_TOKEN = "CREATING_DATA_TOKEN"
    DATA_TOKEN_CREATED = "DATA_TOKEN_CREATED"
    ENCRYPTING_FILES = "ENCRYPTING_FILES"
    FILES_ENCRYPTED = "FILES_ENCRYPTED"
    GENERATING_PROOF = "GENERATING_PROOF"
    PROOF_GENERATED = "PROOF_GENERATED"
    STORING_DDO = "STORING_DDO"
    DDO_STORED = "DDO_STORED"


ProgressCallback = Callable[[PublishStep], None]


class PublishService:
    def __init__(self, ledger: Ledger, provider: Provider, index: MetadataIndex, signer: Signer):
        self.ledger = ledger
        self.provider = provider
        self.index = index
        self.signer = signer

    async def publish(
        self,
        metadata: Dict[str, Any],
        publisher: Publisher,
        services: Sequence[ServiceDescriptor] = (),
        data_token_address: Optional[str] = None,
        cap: Optional[str] = None,
        name: Optional[str] = None,
        symbol: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Outcome[AssetRecord]:
        """
        Publishes a new asset.

        Args:
            metadata: Asset metadata; ``metadata["main"]["files"]`` holds the
                cleartext file references that get encrypted.
            publisher: Account that owns the token and signs the document.
            services: Extra services (access, compute...) to attach.
            data_token_address: Existing datatoken; skips token creation.
            cap, name, symbol: Token economics used when a token is created.
            on_progress: Receives each ``PublishStep`` as it is reached.

        Returns:
            Outcome carrying the stored ``AssetRecord``, or a failure when the
            token address is invalid or the index did not store the document.

        Raises:
            LedgerTransactionError: If the datatoken could not be created.
            SigningError: If the proof could not be generated.
        """
        def emit(step: PublishStep):
            if on_progress:
                on_progress(step)

        if data_token_address is not None and not Web3.is_address(data_token_address):
            logger.error(f"Passed datatoken address {data_token_address} is not valid. Aborting publishing.")
            return Outcome.failure(ErrorKind.VALIDATION, f"Invalid datatoken address: {data_token_address}")

        logger.info(f"Creating asset for publisher {publisher.address}")
        if not services:
            logger.warning("Publishing an asset without services besides metadata.")

        # --- (a) Datatoken ---
        if not data_token_address:
            logger.info("Creating datatoken")
            emit(PublishStep.CREATING_DATA_TOKEN)
            blob = json.dumps({"t": 1, "url": self.index.get_uri()})
            data_token_address = await self.ledger.create_token(blob, publisher.address, cap, name, symbol)

            if not isinstance(data_token_address, str) or not Web3.is_address(data_token_address):
                logger.error(f"Created datatoken address {data_token_address} is not valid. Aborting publishing.")
                return Outcome.failure(ErrorKind.VALIDATION, f"Ledger returned invalid token address: {data_token_address}")

            logger.info(f"Datatoken {data_token_address} created")
            emit(PublishStep.DATA_TOKEN_CREATED)

        # --- (b) Identifier ---
        did = document_service.derive_did(data_token_address)

        # --- (c) Encryption ---
        logger.info(f"Encrypting files for {did}")
        emit(PublishStep.ENCRYPTING_FILES)
        files: List[Dict[str, Any]] = (metadata.get("main") or {}).get("files") or []
        encrypted_files = await self.provider.encrypt(did, files, publisher.address)
        logger.info("Files encrypted")
        emit(PublishStep.FILES_ENCRYPTED)

        # --- (d) Document ---
        metadata_service = document_service.build_metadata_service(metadata, encrypted_files)
        document = AssetRecord(
            id=did,
            dataToken=data_token_address,
            created=document_service.utc_now_iso(),
            authentication=[Authentication(publicKey=did)],
            publicKey=[PublicKey(id=did, owner=publisher.address)],
            service=document_service.build_services(metadata_service, services),
        )

        # --- (e) Proof ---
        logger.info("Generating proof")
        emit(PublishStep.GENERATING_PROOF)
        document_service.attach_proof(document, publisher.address, publisher.credential, self.signer)
        logger.info("Proof generated")
        emit(PublishStep.PROOF_GENERATED)

        # --- (f) Index ---
        logger.info(f"Storing DDO {did}")
        emit(PublishStep.STORING_DDO)
        try:
            stored = await self.index.publish(did, document, publisher.address)
        except Exception as e:
            logger.error(f"Metadata index failed to store {did}: {e}", exc_info=True)
            stored = False

        if not stored:
            logger.error(
                f"DDO {did} was not stored. Datatoken {data_token_address} remains deployed; "
                f"re-publish with data_token_address to reuse it."
            )
            return Outcome.failure(ErrorKind.INDEX_PUBLISH_FAILED, f"Metadata index did not store {did}")

        logger.info(f"DDO stored {did}")
        emit(PublishStep.DDO_STORED)
        return Outcome.success(document)
