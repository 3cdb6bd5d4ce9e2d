import asyncio
import base64
import itertools
import json
from datetime import datetime, timezone

import httpx
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from auth.token_store import MemoryCredentialStore
from shopclient.client import ApiClient
from shopclient.gateway import AuthenticatedGateway
from shopclient.http import ErrorNotifier

BASE_URL = "http://shop.test"


def _b64(data: dict) -> str:
    raw = json.dumps(data, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def make_jwt(claims: dict) -> str:
    return f"{_b64({'alg': 'HS256', 'typ': 'JWT'})}.{_b64(claims)}.signature"


def envelope(request: Request, data, *, status_code: int = 200, message: str = "OK", meta=None):
    return JSONResponse(
        {
            "success": status_code < 400,
            "statusCode": status_code,
            "message": message,
            "path": request.url.path,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "data": data,
            "meta": meta,
        },
        status_code=status_code,
    )


class FakeShopBackend:
    """In-memory stand-in for the platform backend's auth and user routes."""

    def __init__(self, *, permissions: list[str] | None = None) -> None:
        self.permissions = permissions or ["order.read", "product.read"]
        self.access_tokens: set[str] = set()
        self.refresh_tokens: set[str] = set()
        self.refresh_calls = 0
        self.logout_calls: list[dict] = []
        self.refresh_gate: asyncio.Event | None = None
        self._counter = itertools.count(1)
        self.user = {
            "id": "user-1",
            "email": "admin@shop.test",
            "fullName": "Shop Admin",
            "isActive": True,
            "isEmailVerified": True,
        }

    def issue_tokens(self, roles: list[str]) -> dict[str, str]:
        serial = next(self._counter)
        access = make_jwt({"sub": self.user["id"], "roles": roles, "n": serial})
        refresh = f"refresh-{serial}"
        self.access_tokens.add(access)
        self.refresh_tokens.add(refresh)
        return {"accessToken": access, "refreshToken": refresh}

    def expire_access_tokens(self) -> None:
        self.access_tokens.clear()

    def _authorized(self, request: Request) -> bool:
        header = request.headers.get("authorization", "")
        scheme, _, token = header.partition(" ")
        return scheme.lower() == "bearer" and token in self.access_tokens

    def _unauthorized(self, request: Request) -> JSONResponse:
        return envelope(request, None, status_code=401, message="Unauthorized")

    async def login(self, request: Request) -> JSONResponse:
        body = await request.json()
        if body.get("password") != "secret":
            return envelope(request, None, status_code=401, message="Invalid credentials")
        roles = ["admin"] if request.url.path.startswith("/api/admin") else ["customer"]
        tokens = self.issue_tokens(roles)
        return envelope(request, {"user": self.user, "tokens": tokens}, status_code=201)

    async def refresh(self, request: Request) -> JSONResponse:
        self.refresh_calls += 1
        if self.refresh_gate is not None:
            await self.refresh_gate.wait()
        body = await request.json()
        refresh_token = body.get("refreshToken")
        if refresh_token not in self.refresh_tokens:
            return envelope(request, None, status_code=403, message="Invalid refresh token")
        self.refresh_tokens.discard(refresh_token)
        tokens = self.issue_tokens(["admin"])
        return envelope(request, {"user": self.user, "tokens": tokens}, status_code=201)

    async def permissions_route(self, request: Request) -> JSONResponse:
        if not self._authorized(request):
            return self._unauthorized(request)
        return envelope(request, self.permissions)

    async def me(self, request: Request) -> JSONResponse:
        if not self._authorized(request):
            return self._unauthorized(request)
        return envelope(request, self.user)

    async def products(self, request: Request) -> JSONResponse:
        if not self._authorized(request):
            return self._unauthorized(request)
        return envelope(
            request,
            [{"id": "p-1", "name": "Mug"}],
            meta={
                "page": 1,
                "limit": 20,
                "total": 1,
                "totalPages": 1,
                "hasNext": False,
                "hasPrev": False,
            },
        )

    async def reports(self, request: Request) -> JSONResponse:
        if not self._authorized(request):
            return self._unauthorized(request)
        return envelope(request, None, status_code=403, message="Forbidden resource")

    async def broken(self, request: Request) -> JSONResponse:
        return envelope(request, None, status_code=500, message="Database unavailable")

    async def logout(self, request: Request) -> JSONResponse:
        self.logout_calls.append(
            {
                "authorization": request.headers.get("authorization"),
                "body": (await request.body()).decode(),
            }
        )
        if not self._authorized(request):
            return self._unauthorized(request)
        return envelope(request, {"message": "Logged out successfully"}, status_code=201)

    def app(self) -> Starlette:
        return Starlette(
            routes=[
                Route("/api/auth/login", self.login, methods=["POST"]),
                Route("/api/admin/auth/login", self.login, methods=["POST"]),
                Route("/api/auth/refresh", self.refresh, methods=["POST"]),
                Route("/api/auth/logout", self.logout, methods=["POST"]),
                Route("/api/auth/permissions", self.permissions_route, methods=["GET"]),
                Route("/api/users/me", self.me, methods=["GET"]),
                Route("/api/products", self.products, methods=["GET"]),
                Route("/api/admin/reports", self.reports, methods=["GET"]),
                Route("/api/broken", self.broken, methods=["GET"]),
            ]
        )


def build_api_client(backend: FakeShopBackend, *, store=None, on_session_expired=None):
    client = httpx.AsyncClient(
        base_url=BASE_URL,
        transport=httpx.ASGITransport(app=backend.app()),
    )
    gateway = AuthenticatedGateway(
        client,
        store or MemoryCredentialStore(),
        on_session_expired=on_session_expired,
    )
    messages: list[str] = []
    notifier = ErrorNotifier(messages.append, window_seconds=0)
    return ApiClient(gateway, notifier=notifier), messages


async def wait_until(predicate, *, attempts: int = 200) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0.005)
    raise AssertionError("Condition was not reached in time.")
