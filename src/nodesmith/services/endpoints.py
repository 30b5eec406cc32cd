"""Sync status queries against execution (JSON-RPC) and consensus (Beacon API) endpoints."""

import requests

from nodesmith.errors import SyncQueryError


class EndpointClient:
    """Answers "is this client synced?" for one endpoint at a time."""

    def __init__(self, timeout: float = 5.0, requests_module=requests):
        self.timeout = timeout
        self.requests = requests_module

    def execution_synced(self, url: str) -> bool:
        payload = {"jsonrpc": "2.0", "method": "eth_syncing", "params": [], "id": 1}
        try:
            response = self.requests.post(url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except self.requests.RequestException as exc:
            raise SyncQueryError(f"Execution endpoint {url} did not answer: {exc}") from exc
        except ValueError as exc:
            raise SyncQueryError(f"Execution endpoint {url} returned invalid JSON.") from exc

        if not isinstance(body, dict) or "result" not in body:
            raise SyncQueryError(f"Execution endpoint {url} returned no eth_syncing result.")
        # eth_syncing returns false once synced and a progress object while syncing.
        return body["result"] is False

    def consensus_synced(self, url: str) -> bool:
        try:
            response = self.requests.get(f"{url.rstrip('/')}/eth/v1/node/syncing", timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except self.requests.RequestException as exc:
            raise SyncQueryError(f"Consensus endpoint {url} did not answer: {exc}") from exc
        except ValueError as exc:
            raise SyncQueryError(f"Consensus endpoint {url} returned invalid JSON.") from exc

        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict) or "is_syncing" not in data:
            raise SyncQueryError(f"Consensus endpoint {url} returned no sync data.")
        return data["is_syncing"] is False
