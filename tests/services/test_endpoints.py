import pytest
import requests

from nodesmith.errors import SyncQueryError
from nodesmith.services.endpoints import EndpointClient


class FakeResponse:
    def __init__(self, body=None, status_code=200, invalid_json=False):
        self.body = body
        self.status_code = status_code
        self.invalid_json = invalid_json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if self.invalid_json:
            raise ValueError("not json")
        return self.body


class FakeRequestsModule:
    RequestException = requests.RequestException

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def _answer(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response

    def post(self, url, **kwargs):
        return self._answer("POST", url, **kwargs)

    def get(self, url, **kwargs):
        return self._answer("GET", url, **kwargs)


def test_execution_synced_when_eth_syncing_is_false():
    fake_requests = FakeRequestsModule(FakeResponse({"jsonrpc": "2.0", "id": 1, "result": False}))
    client = EndpointClient(timeout=2.0, requests_module=fake_requests)

    assert client.execution_synced("http://localhost:8545") is True

    method, url, kwargs = fake_requests.calls[0]
    assert method == "POST"
    assert url == "http://localhost:8545"
    assert kwargs["json"]["method"] == "eth_syncing"
    assert kwargs["timeout"] == 2.0


def test_execution_syncing_when_progress_object_is_returned():
    body = {"result": {"currentBlock": "0x10", "highestBlock": "0x20"}}
    client = EndpointClient(requests_module=FakeRequestsModule(FakeResponse(body)))

    assert client.execution_synced("http://localhost:8545") is False


def test_consensus_synced_reads_beacon_node_syncing():
    fake_requests = FakeRequestsModule(FakeResponse({"data": {"is_syncing": False, "head_slot": "1"}}))
    client = EndpointClient(requests_module=fake_requests)

    assert client.consensus_synced("http://localhost:5052/") is True
    assert fake_requests.calls[0][1] == "http://localhost:5052/eth/v1/node/syncing"


def test_connection_errors_become_query_errors():
    fake_requests = FakeRequestsModule(error=requests.ConnectionError("refused"))
    client = EndpointClient(requests_module=fake_requests)

    with pytest.raises(SyncQueryError, match="did not answer"):
        client.execution_synced("http://localhost:8545")
    with pytest.raises(SyncQueryError, match="did not answer"):
        client.consensus_synced("http://localhost:5052")


def test_http_errors_and_malformed_bodies_become_query_errors():
    client = EndpointClient(requests_module=FakeRequestsModule(FakeResponse(status_code=503)))
    with pytest.raises(SyncQueryError):
        client.consensus_synced("http://localhost:5052")

    client = EndpointClient(requests_module=FakeRequestsModule(FakeResponse(invalid_json=True)))
    with pytest.raises(SyncQueryError, match="invalid JSON"):
        client.execution_synced("http://localhost:8545")

    client = EndpointClient(requests_module=FakeRequestsModule(FakeResponse({"data": {}})))
    with pytest.raises(SyncQueryError, match="no sync data"):
        client.consensus_synced("http://localhost:5052")
