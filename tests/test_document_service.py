import pytest
from eth_account import Account

from conftest import OTHER_KEY, PUBLISHER_KEY, TOKEN_ADDRESS
from datamarket.errors import SigningError, ValidationError
from datamarket.models.asset_models import AssetRecord, ServiceDescriptor
from datamarket.services import document_service


def _document(metadata):
    did = document_service.derive_did(TOKEN_ADDRESS)
    metadata_service = document_service.build_metadata_service(metadata, "0xencrypted")
    return AssetRecord(id=did, dataToken=TOKEN_ADDRESS, service=document_service.build_services(metadata_service))


def test_dedup_keeps_last_payload_at_first_position():
    services = [
        ServiceDescriptor(type="metadata", attributes={"payload": "first"}),
        ServiceDescriptor(type="access", attributes={"payload": "access"}),
        ServiceDescriptor(type="metadata", attributes={"payload": "last"}),
    ]
    result = document_service.build_services(services[0], services[1:])

    assert [s.type for s in result] == ["metadata", "access"]
    assert [s.index for s in result] == [0, 1]
    assert result[0].attributes == {"payload": "last"}


def test_default_metadata_service_is_always_present():
    default = ServiceDescriptor(type="metadata", attributes={"main": {"name": "x"}})
    result = document_service.build_services(default)
    assert len(result) == 1
    assert result[0].type == "metadata" and result[0].index == 0


def test_indices_are_dense_and_ignore_caller_indices():
    default = ServiceDescriptor(type="metadata")
    callers = [
        ServiceDescriptor(type="access", index=7),
        ServiceDescriptor(type="compute", index=2),
        ServiceDescriptor(type="access", index=9, attributes={"v": 2}),
    ]
    result = document_service.build_services(default, callers)
    assert [(s.type, s.index) for s in result] == [("metadata", 0), ("access", 1), ("compute", 2)]
    assert result[1].attributes == {"v": 2}
    # inputs are not mutated
    assert callers[0].index == 7


def test_did_is_deterministic_and_distinct():
    assert document_service.derive_did(TOKEN_ADDRESS) == document_service.derive_did(TOKEN_ADDRESS.upper().replace("0X", "0x"))
    addresses = [Account.create().address for _ in range(50)]
    dids = {document_service.derive_did(a) for a in addresses}
    assert len(dids) == len(addresses)


def test_did_helpers():
    did = document_service.derive_did(TOKEN_ADDRESS)
    assert did == "did:op:" + TOKEN_ADDRESS[2:]
    assert document_service.short_id(did) == TOKEN_ADDRESS[2:]
    assert document_service.did_zero_x(did) == TOKEN_ADDRESS


def test_did_rejects_invalid_address():
    with pytest.raises(ValidationError):
        document_service.derive_did("0x1234")
    with pytest.raises(ValidationError):
        document_service.short_id("did:web:example.com")


def test_metadata_service_strips_file_urls(metadata):
    service = document_service.build_metadata_service(metadata, "0xencrypted")

    files = service.attributes["main"]["files"]
    assert [f["index"] for f in files] == [0, 1]
    assert all("url" not in f for f in files)
    assert service.attributes["encryptedFiles"] == "0xencrypted"
    assert service.attributes["curation"] == {"rating": 0, "numVotes": 0}
    assert service.attributes["additionalInformation"] == {"description": "Hourly observations"}
    # caller metadata keeps its urls
    assert metadata["main"]["files"][0]["url"] == "https://example.com/obs.csv"


def test_caller_curation_overrides_defaults(metadata):
    metadata["curation"] = {"rating": 5, "numVotes": 3, "isListed": True}
    service = document_service.build_metadata_service(metadata, "0xencrypted")
    assert service.attributes["curation"] == {"rating": 5, "numVotes": 3, "isListed": True}


def test_checksum_ignores_description_but_not_name(metadata):
    document = _document(metadata)
    checksum = document_service.compute_checksum(document)
    assert checksum.startswith("0x") and len(checksum) == 66

    document.service[0].attributes["additionalInformation"]["description"] = "changed"
    assert document_service.compute_checksum(document) == checksum

    document.service[0].attributes["main"]["name"] = "Renamed"
    assert document_service.compute_checksum(document) != checksum


def test_attach_proof_recovers_creator(metadata, signer):
    document = _document(metadata)
    creator = Account.from_key(PUBLISHER_KEY).address

    proof = document_service.attach_proof(document, creator, PUBLISHER_KEY, signer)

    assert document.proof is proof
    assert proof.checksum == document_service.compute_checksum(document)
    assert proof.type == "DDOIntegritySignature"
    assert document_service.recover_proof_signer(document, signer) == creator


def test_proof_signed_by_other_key_does_not_recover_creator(metadata, signer):
    document = _document(metadata)
    creator = Account.from_key(PUBLISHER_KEY).address
    document_service.attach_proof(document, creator, OTHER_KEY, signer)
    assert document_service.recover_proof_signer(document, signer) != creator


def test_attach_proof_fails_with_invalid_credential(metadata, signer):
    document = _document(metadata)
    with pytest.raises(SigningError):
        document_service.attach_proof(document, "0xabc", "not-a-key", signer)
    assert document.proof is None


def test_attach_proof_wraps_unexpected_signer_errors(metadata):
    class BrokenSigner:
        def sign(self, checksum, credential):
            raise RuntimeError("hsm offline")

    with pytest.raises(SigningError):
        document_service.attach_proof(_document(metadata), "0xabc", PUBLISHER_KEY, BrokenSigner())
