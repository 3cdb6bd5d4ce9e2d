from __future__ import annotations

import argparse
import asyncio
import json
import os

import httpx

from auth.token_store import FileCredentialStore
from shopclient.client import ApiClient
from shopclient.constants import (
    APP_VERSION,
    DEFAULT_CREDENTIALS_PATH,
    DEFAULT_TIMEOUT_SECONDS,
    LOGGER,
)
from shopclient.env import (
    _get_env_float,
    get_api_base_url,
    load_env,
    setup_logging,
    validate_api_base_url,
)
from shopclient.gateway import AuthenticatedGateway
from shopclient.http import build_logging_hooks


def create_gateway() -> AuthenticatedGateway:
    load_env()
    debug_enabled = setup_logging()

    base_url = validate_api_base_url(get_api_base_url())
    timeout = _get_env_float("SHOP_API_TIMEOUT", DEFAULT_TIMEOUT_SECONDS)
    store = FileCredentialStore(os.getenv("SHOP_CREDENTIALS_PATH", DEFAULT_CREDENTIALS_PATH))

    client = httpx.AsyncClient(
        base_url=base_url,
        headers={"Content-Type": "application/json", "User-Agent": f"shopclient/{APP_VERSION}"},
        timeout=timeout,
        event_hooks=build_logging_hooks(debug_enabled),
    )

    def _on_session_expired(error) -> None:
        LOGGER.warning("Session ended, log in again: %s", error)

    return AuthenticatedGateway(client, store, on_session_expired=_on_session_expired)


def create_api_client() -> ApiClient:
    return ApiClient(create_gateway())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="shopclient")
    commands = parser.add_subparsers(dest="command", required=True)

    login = commands.add_parser("login")
    login.add_argument("email")
    login.add_argument("password")
    login.add_argument("--admin", action="store_true")

    get = commands.add_parser("get")
    get.add_argument("path")

    commands.add_parser("logout")
    return parser


async def run(args: argparse.Namespace, api: ApiClient) -> dict:
    try:
        if args.command == "login":
            session = await api.login(args.password, email=args.email, admin=args.admin)
            return {
                "user": session.user.email,
                "role": session.user.role,
                "permissions": session.permissions,
            }
        if args.command == "get":
            response = await api.get(args.path)
            return {"status": response.status_code, "data": response.data}
        await api.logout()
        return {"status": "logged_out"}
    finally:
        await api.gateway.client.aclose()


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    result = asyncio.run(run(args, create_api_client()))
    print(json.dumps(result, indent=2, default=str))


if __name__ == "__main__":
    main()
