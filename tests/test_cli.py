from __future__ import annotations

from typing import Any, Dict, List

import httpx
import pytest
import typer
from typer.testing import CliRunner

from cli.app import app
from cli.client import ApiClient
from cli.config import load_config


class StubClient:
    def __init__(self, config, dispatch: List[Dict[str, Any]] | None = None) -> None:
        self.config = config
        self.registered: List[tuple[str, str]] = []
        self.sent: List[float] = []
        self.dispatch = dispatch
        self.latest_payload: Dict[str, Any] = {
            "distance": 30.0,
            "created_at": "2024-01-01T00:00:00Z",
        }
        self.closed = False

    def register_token(self, token: str, experience_id: str) -> Dict[str, Any]:
        self.registered.append((token, experience_id))
        return {
            "status": "registered",
            "token": token,
            "experience_id": experience_id,
            "registered_at": "2024-01-01T00:00:00Z",
        }

    def send_distance(self, distance: float) -> Dict[str, Any]:
        self.sent.append(distance)
        return {
            "stored": {"distance": distance, "created_at": "2024-01-01T00:00:00Z"},
            "dispatch": self.dispatch,
        }

    def latest_distance(self) -> Dict[str, Any]:
        return self.latest_payload

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


def _install_stub(monkeypatch, stub: StubClient) -> None:
    def factory(config):
        stub.config = config
        return stub

    monkeypatch.setattr("cli.app.ApiClient", factory)


def test_register_command(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["register", "ExponentPushToken[abc]", "app1"])

    assert result.exit_code == 0
    assert "Token Registered" in result.stdout
    assert "experience_id: app1" in result.stdout
    assert stub.registered == [("ExponentPushToken[abc]", "app1")]
    assert stub.closed is True


def test_send_below_threshold(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["--base-url", "http://sensor.local:9000/", "send", "42.5"])

    assert result.exit_code == 0
    assert stub.sent == [42.5]
    assert stub.config.base_url == "http://sensor.local:9000"
    assert "Below threshold" in result.stdout


def test_send_reports_batch_outcomes(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(
        config=None,
        dispatch=[
            {"tenant_id": "app1", "batch_index": 0, "status": "sent", "token_count": 2, "error": None},
            {
                "tenant_id": "app2",
                "batch_index": 0,
                "status": "failed",
                "token_count": 1,
                "error": "provider rejected batch",
            },
        ],
    )
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["send", "150"])

    assert result.exit_code == 0
    assert "app1 batch 0: sent (2 tokens)" in result.stdout
    assert "provider rejected batch" in result.stdout


def test_latest_command(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["latest"])

    assert result.exit_code == 0
    assert "distance: 30.0" in result.stdout
    assert stub.closed is True


def test_latest_command_without_readings(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    stub.latest_payload = {"distance": None, "created_at": None}
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["latest"])

    assert result.exit_code == 0
    assert "No readings stored yet." in result.stdout


def test_api_client_surfaces_server_detail(capsys) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"detail": "Missing token or experienceId"})

    client = ApiClient(load_config(base_url="http://testserver"))
    client._client.close()
    client._client = httpx.Client(
        base_url="http://testserver", transport=httpx.MockTransport(handler)
    )

    with pytest.raises(typer.Exit) as excinfo:
        client.register_token("", "app1")
    client.close()

    assert excinfo.value.exit_code == 1
    assert "Missing token or experienceId" in capsys.readouterr().err
