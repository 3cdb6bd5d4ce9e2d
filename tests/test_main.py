import json

import httpx
import pytest

import cli
from auth.token_store import FileCredentialStore, MemoryCredentialStore
from shopclient.client import ApiClient
from shopclient.constants import APP_VERSION
from shopclient.gateway import AuthenticatedGateway
from tests.backend_helpers import BASE_URL, FakeShopBackend


def test_create_gateway_reads_environment(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(cli, "load_env", lambda: None)
    monkeypatch.setattr(cli, "setup_logging", lambda: False)
    monkeypatch.setattr(cli, "get_api_base_url", lambda: "http://shop.test")
    monkeypatch.setenv("SHOP_API_TIMEOUT", "3.5")
    monkeypatch.setenv("SHOP_CREDENTIALS_PATH", str(tmp_path / "creds.json"))

    gateway = cli.create_gateway()

    assert isinstance(gateway, AuthenticatedGateway)
    assert gateway.client.base_url.scheme == "http"
    assert gateway.client.base_url.host == "shop.test"
    assert gateway.client.headers["user-agent"] == f"shopclient/{APP_VERSION}"
    assert gateway.client.timeout.read == 3.5


def test_create_gateway_rejects_invalid_base_url(monkeypatch) -> None:
    monkeypatch.setattr(cli, "load_env", lambda: None)
    monkeypatch.setattr(cli, "setup_logging", lambda: False)
    monkeypatch.setattr(cli, "get_api_base_url", lambda: "not a url")

    with pytest.raises(RuntimeError, match="valid http"):
        cli.create_gateway()


def _fake_api_client(backend: FakeShopBackend, store) -> ApiClient:
    client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.ASGITransport(app=backend.app()))
    return ApiClient(AuthenticatedGateway(client, store))


def test_main_login_then_get(monkeypatch, tmp_path, capsys) -> None:
    backend = FakeShopBackend(permissions=["order.read"])
    path = tmp_path / "creds.json"
    monkeypatch.setattr(
        cli, "create_api_client", lambda: _fake_api_client(backend, FileCredentialStore(path))
    )

    cli.main(["login", "admin@shop.test", "secret", "--admin"])
    login_output = json.loads(capsys.readouterr().out)

    cli.main(["get", "/api/users/me"])
    get_output = json.loads(capsys.readouterr().out)

    assert login_output == {
        "user": "admin@shop.test",
        "role": "admin",
        "permissions": ["order.read"],
    }
    assert get_output["status"] == 200
    assert get_output["data"]["id"] == "user-1"


def test_main_logout(monkeypatch, capsys) -> None:
    backend = FakeShopBackend()
    monkeypatch.setattr(
        cli, "create_api_client", lambda: _fake_api_client(backend, MemoryCredentialStore())
    )

    cli.main(["logout"])

    assert json.loads(capsys.readouterr().out) == {"status": "logged_out"}
    assert len(backend.logout_calls) == 1
