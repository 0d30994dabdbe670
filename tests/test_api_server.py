import sys
from pathlib import Path
from typing import Dict, Optional

import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from waitlist.api.server import _client_ip, create_app
from waitlist.errors import StoreUnavailable
from waitlist.registry import RegistryStore
from waitlist.registry.json_store import JsonRegistryStore
from waitlist.registry.models import Registry
from waitlist.registry.service import SubscriptionService


class BrokenStore(RegistryStore):
    def __init__(self) -> None:
        super().__init__()
        self.loads = 0

    def load(self) -> Registry:
        self.loads += 1
        raise StoreUnavailable()

    def save(self, registry: Registry) -> None:
        raise StoreUnavailable()


@pytest.fixture
def store(tmp_path: Path) -> JsonRegistryStore:
    return JsonRegistryStore(tmp_path / "subscribers.json")


@pytest.fixture
def client(store: JsonRegistryStore) -> TestClient:
    return TestClient(create_app(SubscriptionService(store)))


def make_request(headers: Dict[str, str], client: Optional[tuple]) -> Request:
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/api/subscribe",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": client,
        "query_string": b"",
    }
    return Request(scope)


def test_subscribe_then_duplicate(client: TestClient) -> None:
    first = client.post("/api/subscribe", json={"email": "New@Example.com"})
    assert first.status_code == 200
    assert first.json() == {
        "success": True,
        "message": "Thanks for subscribing! We'll notify you when we launch.",
    }

    second = client.post("/api/subscribe", json={"email": " new@example.com"})
    assert second.status_code == 400
    assert second.json() == {
        "success": False,
        "message": "This email is already subscribed!",
    }


@pytest.mark.parametrize("body", [{"email": "nope"}, {"email": ""}, {}, {"email": 12}])
def test_subscribe_rejects_invalid_input(client: TestClient, body: dict) -> None:
    response = client.post("/api/subscribe", json=body)
    assert response.status_code == 400
    payload = response.json()
    assert payload["success"] is False
    assert payload["message"] == "Please provide a valid email address"
    assert client.get("/api/subscribers/count").json() == {"count": 0}


def test_subscribe_rejects_non_json_body(client: TestClient) -> None:
    response = client.post(
        "/api/subscribe",
        content=b"email=a@b.com",
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_count_reflects_successful_subscriptions(client: TestClient) -> None:
    for email in ["a@x.com", "b@x.com", "A@X.com", "broken"]:
        client.post("/api/subscribe", json={"email": email})
    response = client.get("/api/subscribers/count")
    assert response.status_code == 200
    assert response.json() == {"count": 2}


def test_subscribe_records_client_ip(client: TestClient, store: JsonRegistryStore) -> None:
    client.post("/api/subscribe", json={"email": "ip@x.com"})
    assert store.load().subscribers[0].ip == "testclient"


def test_store_failure_returns_generic_errors() -> None:
    client = TestClient(create_app(SubscriptionService(BrokenStore())))

    response = client.post("/api/subscribe", json={"email": "a@x.com"})
    assert response.status_code == 500
    assert response.json() == {
        "success": False,
        "message": "Something went wrong. Please try again.",
    }

    response = client.get("/api/subscribers/count")
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to get subscriber count"}


def test_health_does_not_touch_store() -> None:
    store = BrokenStore()
    client = TestClient(create_app(SubscriptionService(store)))
    response = client.get("/api/health")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["timestamp"].endswith("Z")
    assert store.loads == 0


def test_cors_allows_any_origin(client: TestClient) -> None:
    response = client.get("/api/health", headers={"Origin": "https://landing.example"})
    assert response.headers["access-control-allow-origin"] == "*"


def test_client_ip_prefers_peer_address() -> None:
    req = make_request({"X-Forwarded-For": "9.8.7.6"}, ("1.2.3.4", 1234))
    assert _client_ip(req) == "1.2.3.4"


def test_client_ip_falls_back_to_forwarded_header() -> None:
    req = make_request({"X-Forwarded-For": "9.8.7.6, 10.0.0.1"}, None)
    assert _client_ip(req) == "9.8.7.6"


def test_client_ip_unknown_without_any_source() -> None:
    assert _client_ip(make_request({}, None)) == "unknown"
