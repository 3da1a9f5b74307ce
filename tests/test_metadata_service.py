import pytest
import requests

from conftest import run
from datamarket.errors import TransportError
from datamarket.models.asset_models import SearchQuery
from datamarket.services.metadata_service import MetadataIndexClient

DDO_URL = "http://index.test/api/v1/aquarius/assets/ddo"


class FakeResponse:
    def __init__(self, status_code=200, json_data=None, text=""):
        self.status_code = status_code
        self._json = json_data
        self.text = text

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"HTTP {self.status_code}")

    def json(self):
        if self._json is None:
            raise ValueError("No JSON body")
        return self._json


@pytest.fixture
def client():
    return MetadataIndexClient("http://index.test/", timeout=5)


def _answer(client, monkeypatch, method, response):
    calls = []

    def fake(*args, **kwargs):
        calls.append((args, kwargs))
        if isinstance(response, Exception):
            raise response
        return response

    monkeypatch.setattr(client.session, method, fake)
    return calls


def test_publish_posts_document_with_owner(client, monkeypatch, published):
    calls = _answer(client, monkeypatch, "request", FakeResponse(status_code=201))

    assert run(client.publish(published.id, published, "0xowner")) is True

    (method, url), kwargs = calls[0]
    assert (method, url) == ("POST", DDO_URL)
    assert kwargs["json"]["@context"] == "https://w3id.org/did/v1"
    assert kwargs["json"]["id"] == published.id
    assert kwargs["headers"] == {"X-Owner-Address": "0xowner"}


def test_update_puts_document_at_its_did(client, monkeypatch, published):
    calls = _answer(client, monkeypatch, "request", FakeResponse())

    assert run(client.update(published.id, published, "0xowner")) is True
    assert calls[0][0] == ("PUT", f"{DDO_URL}/{published.id}")


@pytest.mark.parametrize("response", [
    FakeResponse(status_code=400, text="bad document"),
    requests.exceptions.ConnectionError("refused"),
])
def test_refused_store_returns_false(client, monkeypatch, published, response):
    _answer(client, monkeypatch, "request", response)
    assert run(client.publish(published.id, published, "0xowner")) is False


def test_resolve_parses_stored_document(client, monkeypatch, published):
    calls = _answer(client, monkeypatch, "get", FakeResponse(json_data=published.to_document()))

    document = run(client.resolve(published.id))

    assert document.to_document() == published.to_document()
    assert calls[0][0] == (f"{DDO_URL}/{published.id}",)


def test_resolve_unknown_did_returns_none(client, monkeypatch):
    _answer(client, monkeypatch, "get", FakeResponse(status_code=404))
    assert run(client.resolve("did:op:" + "0" * 40)) is None


@pytest.mark.parametrize("response", [
    FakeResponse(status_code=500),
    requests.exceptions.Timeout("slow"),
])
def test_resolve_failures_raise_transport_error(client, monkeypatch, response):
    _answer(client, monkeypatch, "get", response)
    with pytest.raises(TransportError):
        run(client.resolve("did:op:" + "0" * 40))


def test_resolve_invalid_document_returns_none(client, monkeypatch):
    _answer(client, monkeypatch, "get", FakeResponse(json_data={"service": "not a list"}))
    assert run(client.resolve("did:op:" + "0" * 40)) is None


def test_query_posts_search_and_parses_results(client, monkeypatch, published):
    calls = _answer(client, monkeypatch, "post", FakeResponse(json_data={
        "results": [published.to_document()], "page": 1, "totalPages": 1, "totalResults": 1,
    }))

    result = run(client.query(SearchQuery(text="weather")))

    assert [r.id for r in result.results] == [published.id]
    args, kwargs = calls[0]
    assert args == (f"{DDO_URL}/query",)
    assert kwargs["json"]["text"] == "weather"


@pytest.mark.parametrize("response", [
    FakeResponse(status_code=502),
    FakeResponse(json_data={"results": "nope"}),
])
def test_query_failures_raise_transport_error(client, monkeypatch, response):
    _answer(client, monkeypatch, "post", response)
    with pytest.raises(TransportError):
        run(client.query(SearchQuery(text="weather")))
