import os
from urllib.parse import parse_qs, urlparse

import pytest

from conftest import CONSUME_ENDPOINT, CONSUMER, TOKEN_ADDRESS, run
from datamarket.errors import MissingEndpointError, TransportError
from datamarket.models.result_models import ErrorKind
from datamarket.services import document_service
from datamarket.services.consume_service import ConsumeService


@pytest.fixture
def consume(provider, index):
    return ConsumeService(provider, index)


def test_download_delegates_to_provider(consume, provider, published, tmp_path):
    outcome = run(consume.download(published.id, "0xtx", TOKEN_ADDRESS, CONSUMER, str(tmp_path)))

    expected = os.path.join(str(tmp_path), f"datafile.{document_service.short_id(published.id)}.1", "")
    assert outcome.ok
    assert outcome.value == expected
    call = provider.download_calls[0]
    assert call["did"] == published.id
    assert call["tx_id"] == "0xtx"
    assert (call["service_type"], call["service_index"]) == ("access", 1)
    assert call["destination"] == expected
    assert [f["index"] for f in call["files"]] == [0, 1]


def test_download_without_destination(consume, provider, published):
    outcome = run(consume.download(published.id, "0xtx", TOKEN_ADDRESS, CONSUMER))
    assert outcome.ok
    assert provider.download_calls[0]["destination"] is None


def test_missing_endpoint_raises_before_provider_call(consume, provider, index, published):
    index.documents[published.id].service[1].serviceEndpoint = None

    with pytest.raises(MissingEndpointError):
        run(consume.download(published.id, "0xtx", TOKEN_ADDRESS, CONSUMER, "/tmp"))
    assert provider.download_calls == []


def test_download_reports_missing_asset_and_access_service(consume, provider, index, published):
    missing = run(consume.download("did:op:" + "0" * 40, "0xtx", TOKEN_ADDRESS, CONSUMER))
    assert missing.error == ErrorKind.NOT_FOUND

    index.documents[published.id].service = index.documents[published.id].service[:1]
    no_access = run(consume.download(published.id, "0xtx", TOKEN_ADDRESS, CONSUMER))
    assert no_access.error == ErrorKind.SERVICE_NOT_FOUND
    assert provider.download_calls == []


def test_download_propagates_transport_errors(consume, provider, published):
    provider.download_error = TransportError("connection reset")
    with pytest.raises(TransportError):
        run(consume.download(published.id, "0xtx", TOKEN_ADDRESS, CONSUMER))


def test_simple_download_builds_consume_url(consume, provider):
    endpoint = run(consume.simple_download(TOKEN_ADDRESS, CONSUME_ENDPOINT, "0xtx", CONSUMER))

    assert endpoint == CONSUME_ENDPOINT
    url, destination = provider.download_file_calls[0]
    parsed = urlparse(url)
    assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == CONSUME_ENDPOINT
    assert parse_qs(parsed.query) == {
        "consumerAddress": [CONSUMER],
        "tokenAddress": [TOKEN_ADDRESS],
        "transferTxId": ["0xtx"],
    }
    assert destination is None


def test_simple_download_propagates_errors(consume, provider):
    provider.download_error = TransportError("HTTP 401")
    with pytest.raises(TransportError):
        run(consume.simple_download(TOKEN_ADDRESS, CONSUME_ENDPOINT, "0xtx", CONSUMER))
