from typing import Dict, Iterator

import pytest
from fastapi.testclient import TestClient

import app.api as api_module
from app.main import create_app
from datastore.mock_store import MockDocumentStore, build_default_store
from push.mock_push import MockPushService
from services.alert_policy import AlertPolicy
from services.dispatcher import FanOutDispatcher
from services.errors import StorageError
from services.ingestion import IngestionCoordinator, build_default_coordinator
from services.readings import ReadingStore
from services.registry import TokenRegistry
from settings import get_settings


def _install_factory(monkeypatch, factory) -> None:
    monkeypatch.setattr("app.main.build_default_coordinator", factory)
    monkeypatch.setattr("app.api.build_default_coordinator", factory)
    monkeypatch.setattr("services.ingestion.build_default_coordinator", factory)


@pytest.fixture
def push() -> MockPushService:
    return MockPushService()


@pytest.fixture
def api_client(tmp_path, monkeypatch, push: MockPushService) -> Iterator[TestClient]:
    coordinators: Dict[int, IngestionCoordinator] = {}

    def build_test_coordinator(workers: int | None = None) -> IngestionCoordinator:
        worker_count = workers or 2
        coordinator = coordinators.get(worker_count)
        if coordinator is None:
            store = MockDocumentStore(root_path=tmp_path / "store")
            coordinator = IngestionCoordinator(
                readings=ReadingStore(store),
                policy=AlertPolicy(),
                dispatcher=FanOutDispatcher(
                    registry=TokenRegistry(store), push_service=push, workers=worker_count
                ),
            )
            coordinators[worker_count] = coordinator
        return coordinator

    def cache_clear() -> None:
        while coordinators:
            _, coordinator = coordinators.popitem()
            coordinator.shutdown()

    build_test_coordinator.cache_clear = cache_clear  # type: ignore[attr-defined]
    _install_factory(monkeypatch, build_test_coordinator)

    app = create_app()
    with TestClient(app) as client:
        yield client

    cache_clear()


def test_lifespan_shuts_down_coordinator_and_clears_cache(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("STORE_ROOT_PATH", str(tmp_path / "store"))
    monkeypatch.setenv("PUSH_PROVIDER", "mock")
    get_settings.cache_clear()
    build_default_store.cache_clear()
    build_default_coordinator.cache_clear()
    app = create_app()

    try:
        with TestClient(app):
            during = build_default_coordinator()
            assert during.dispatcher.executor._shutdown is False

        assert during.dispatcher.executor._shutdown is True
        after = build_default_coordinator()
        assert after is not during
        after.shutdown()
    finally:
        build_default_coordinator.cache_clear()
        build_default_store.cache_clear()
        get_settings.cache_clear()


def test_register_and_alert_round_trip(api_client: TestClient, push: MockPushService) -> None:
    for token, experience in [("tok1", "app1"), ("tok2", "app1"), ("tok3", "app2")]:
        response = api_client.post(
            "/register-token",
            json={"token": f"ExponentPushToken[{token}]", "experienceId": experience},
        )
        assert response.status_code == 200
        assert response.json()["experience_id"] == experience

    response = api_client.post("/send-distance", json={"distance": 150})

    assert response.status_code == 200
    payload = response.json()
    assert payload["stored"]["distance"] == 150
    assert [(o["tenant_id"], o["status"]) for o in payload["dispatch"]] == [
        ("app1", "sent"),
        ("app2", "sent"),
    ]
    assert [len(batch) for batch in push.sent_batches] in ([2, 1], [1, 2])


def test_send_distance_below_threshold(api_client: TestClient, push: MockPushService) -> None:
    response = api_client.post("/send-distance", json={"distance": 50})

    assert response.status_code == 200
    assert response.json()["stored"]["distance"] == 50
    assert response.json()["dispatch"] is None
    assert push.sent_batches == []


@pytest.mark.parametrize(
    "body",
    [
        {},
        {"distance": "150"},
        {"distance": None},
        {"distance": True},
        {"dist": 10},
        {"distance": 10**400},
    ],
)
def test_send_distance_rejects_bad_body(api_client: TestClient, body) -> None:
    response = api_client.post("/send-distance", json=body)

    assert response.status_code == 400
    latest = api_client.get("/latest-distance").json()
    assert latest == {"distance": None, "created_at": None}


@pytest.mark.parametrize(
    "body",
    [{"token": "tok"}, {"experienceId": "app1"}, {"token": "", "experienceId": "app1"}],
)
def test_register_rejects_missing_fields(api_client: TestClient, body) -> None:
    response = api_client.post("/register-token", json=body)

    assert response.status_code == 400


def test_latest_distance_returns_most_recent(api_client: TestClient) -> None:
    for distance in (10, 20, 30):
        api_client.post("/send-distance", json={"distance": distance})

    response = api_client.get("/latest-distance")

    assert response.status_code == 200
    assert response.json()["distance"] == 30
    assert response.json()["created_at"] is not None


def test_storage_failure_returns_server_error(api_client: TestClient, monkeypatch) -> None:
    coordinator = api_module.build_default_coordinator()

    def broken_insert(distance_cm, created_at):
        raise StorageError("disk unavailable")

    monkeypatch.setattr(coordinator.readings.store, "insert_reading", broken_insert)

    response = api_client.post("/send-distance", json={"distance": 120})

    assert response.status_code == 500
    assert response.json()["detail"] == "Error storing distance"


def test_unknown_route_returns_not_found(api_client: TestClient) -> None:
    response = api_client.get("/no-such-route")

    assert response.status_code == 404
    assert response.json()["detail"] == "Route not found: /no-such-route"


@pytest.mark.parametrize(
    ("method", "path"),
    [("GET", "/register-token"), ("POST", "/latest-distance"), ("DELETE", "/send-distance")],
)
def test_wrong_method_returns_not_found(api_client: TestClient, method: str, path: str) -> None:
    response = api_client.request(method, path)

    assert response.status_code == 404
    assert response.json()["detail"] == f"Route not found: {path}"


def test_health(api_client: TestClient) -> None:
    assert api_client.get("/health").json() == {"status": "ok"}


def test_storage_not_initialized_returns_service_unavailable(monkeypatch) -> None:
    def failing_factory(workers: int | None = None) -> IngestionCoordinator:
        raise StorageError("cannot open store")

    failing_factory.cache_clear = lambda: None  # type: ignore[attr-defined]
    _install_factory(monkeypatch, failing_factory)

    with TestClient(create_app()) as client:
        response = client.post("/send-distance", json={"distance": 150})
        missing = client.get("/no-such-route")

    assert response.status_code == 503
    assert response.json()["detail"] == "Service unavailable: storage not initialized"
    assert missing.status_code == 503

