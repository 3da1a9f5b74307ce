"""Asset document model helpers: DID derivation, service list assembly and proofs.

Nothing in here performs network or ledger I/O. The only collaborator is the
``Signer`` used to sign and recover proofs.
"""

from web3 import Web3
import copy
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Sequence

from ..errors import SigningError, ValidationError
from ..models.asset_models import AssetRecord, ProofRecord, ServiceDescriptor
from .interfaces import Signer

logger = logging.getLogger(__name__)

DID_PREFIX = "did:op:"

# Defaults every metadata service starts from; caller metadata overwrites them
DEFAULT_CURATION = {"rating": 0, "numVotes": 0}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


# --- Identifiers ---

def derive_did(token_address: str) -> str:
    """Maps a datatoken address to its DID (``did:op:<hex address>``)."""
    if not isinstance(token_address, str) or not Web3.is_address(token_address):
        raise ValidationError(f"Cannot derive DID from invalid token address: {token_address!r}")
    return DID_PREFIX + token_address.lower().replace("0x", "", 1)


def short_id(did: str) -> str:
    if not did.startswith(DID_PREFIX):
        raise ValidationError(f"Not a datatoken DID: {did!r}")
    return did[len(DID_PREFIX):]


def did_zero_x(did: str) -> str:
    """DID in the ``0x`` form the ledger expects."""
    return "0x" + short_id(did)


# --- Service list ---

def build_metadata_service(metadata: Dict[str, Any], encrypted_files: str) -> ServiceDescriptor:
    """
    Builds the metadata service from caller metadata.

    File URLs are stripped and every file gets its position as ``index``; the
    encrypted file list from the provider is the only place the URLs survive.
    """
    main = dict(metadata.get("main") or {})
    main["files"] = [
        {key: value for key, value in {**file, "index": i}.items() if key != "url"}
        for i, file in enumerate(main.get("files") or [])
    ]
    attributes = {
        "curation": dict(DEFAULT_CURATION),
        **copy.deepcopy(metadata),
        "encryptedFiles": encrypted_files,
        "main": main,
    }
    return ServiceDescriptor(type="metadata", attributes=attributes)


def build_services(
    metadata_service: ServiceDescriptor, services: Sequence[ServiceDescriptor] = ()
) -> List[ServiceDescriptor]:
    """
    Assembles the ordered service list of an asset.

    Services sharing a type are collapsed into one: the content comes from the
    last declared entry, the position from the first. Surviving services are
    then numbered densely from 0.
    """
    survivors: List[ServiceDescriptor] = []
    positions: Dict[str, int] = {}
    for service in [metadata_service, *services]:
        if service.type in positions:
            survivors[positions[service.type]] = service
        else:
            positions[service.type] = len(survivors)
            survivors.append(service)

    return [service.model_copy(update={"index": i}, deep=True) for i, service in enumerate(survivors)]


# --- Proofs ---

def compute_checksum(document: AssetRecord) -> str:
    """
    Keccak-256 over the identifying content of the document: file checksums,
    name, author and license of the metadata service, followed by the DID.
    """
    metadata = document.find_service_by_type("metadata")
    main = metadata.attributes.get("main", {}) if metadata else {}
    values = [file.get("checksum") for file in main.get("files") or [] if file.get("checksum")]
    values += [main.get("name"), main.get("author"), main.get("license"), document.id]
    return Web3.to_hex(Web3.keccak(text="".join("" if v is None else str(v) for v in values)))


def attach_proof(document: AssetRecord, creator: str, credential: str, signer: Signer) -> ProofRecord:
    """Signs the document checksum and stores the resulting proof on the document."""
    checksum = compute_checksum(document)
    try:
        signature = signer.sign(checksum, credential)
    except SigningError:
        raise
    except Exception as e:
        raise SigningError(f"Could not sign checksum of {document.id}: {e}") from e
    if not signature:
        raise SigningError(f"Signer returned an empty signature for {document.id}")

    document.proof = ProofRecord(
        checksum=checksum,
        creator=creator,
        signatureValue=signature,
        created=utc_now_iso(),
    )
    logger.debug(f"Proof attached to {document.id}: checksum={checksum}")
    return document.proof


def recover_proof_signer(document: AssetRecord, signer: Signer) -> str | None:
    """Address that actually signed the current content of the document, if it has a proof."""
    if not document.proof:
        return None
    return signer.verify(compute_checksum(document), document.proof.signatureValue)
