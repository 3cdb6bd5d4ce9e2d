from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from auth.claims import decode_claims, role_from_claims
from auth.models import AuthSession, AuthUser, CredentialPair

from .constants import (
    ADMIN_AUTH_LOGIN,
    AUTH_LOGIN,
    AUTH_LOGOUT,
    AUTH_PERMISSIONS,
    AUTH_REGISTER,
    LOGGER,
    USERS_ME,
)
from .errors import (
    ApiClientError,
    AuthorizationRejectedError,
    GatewayError,
    PermissionDeniedError,
    RenewalFailedError,
)
from .gateway import AuthenticatedGateway
from .http import (
    NETWORK_ERROR_MESSAGE,
    SESSION_EXPIRED_MESSAGE,
    ErrorNotifier,
    friendly_error_message,
)


@dataclass
class PaginationMeta:
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def from_payload(cls, payload: dict) -> "PaginationMeta":
        return cls(
            page=int(payload.get("page", 1)),
            limit=int(payload.get("limit", 0)),
            total=int(payload.get("total", 0)),
            total_pages=int(payload.get("totalPages", 0)),
            has_next=bool(payload.get("hasNext", False)),
            has_prev=bool(payload.get("hasPrev", False)),
        )


@dataclass
class ApiResponse:
    success: bool
    status_code: int
    message: str
    path: str
    timestamp: str | None
    data: Any
    meta: PaginationMeta | None = None

    @classmethod
    def from_payload(cls, payload: dict, *, status_code: int, path: str) -> "ApiResponse":
        if "success" not in payload:
            # Endpoints outside the response interceptor answer with bare JSON.
            return cls(
                success=True,
                status_code=status_code,
                message="OK",
                path=path,
                timestamp=None,
                data=payload,
            )

        meta = payload.get("meta")
        return cls(
            success=bool(payload.get("success")),
            status_code=int(payload.get("statusCode", status_code)),
            message=str(payload.get("message", "OK")),
            path=str(payload.get("path", path)),
            timestamp=payload.get("timestamp"),
            data=payload.get("data"),
            meta=PaginationMeta.from_payload(meta) if isinstance(meta, dict) else None,
        )


def _json_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {}


class ApiClient:
    """Typed helpers over the gateway for the platform's REST endpoints."""

    def __init__(
        self,
        gateway: AuthenticatedGateway,
        *,
        notifier: ErrorNotifier | None = None,
    ) -> None:
        self.gateway = gateway
        self.notifier = notifier or ErrorNotifier()
        self.session: AuthSession | None = None

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: object | None = None,
        params: dict | None = None,
        headers: dict[str, str] | None = None,
        skip_auth: bool = False,
    ) -> ApiResponse:
        try:
            response = await self.gateway.request(
                method,
                path,
                json=json,
                params=params,
                headers=headers,
                skip_auth=skip_auth,
            )
        except RenewalFailedError:
            self.session = None
            self.notifier.notify(SESSION_EXPIRED_MESSAGE)
            raise
        except httpx.TransportError:
            self.notifier.notify(NETWORK_ERROR_MESSAGE)
            raise

        return self._handle_response(response)

    def _handle_response(self, response: httpx.Response) -> ApiResponse:
        body = _json_body(response)
        payload = body if isinstance(body, dict) else {"success": True, "data": body}

        if response.status_code >= 400:
            backend_message = payload.get("message")
            if not isinstance(backend_message, str):
                backend_message = None
            errors = payload.get("errors")

            if response.status_code == 401:
                # Only skip-auth endpoints reach here with a 401.
                raise AuthorizationRejectedError(backend_message or "Unauthorized request.")

            self.notifier.notify(friendly_error_message(response.status_code, backend_message))
            if response.status_code == 403:
                raise PermissionDeniedError(
                    backend_message or "You do not have permission to perform this action.",
                    errors,
                )
            raise ApiClientError(
                response.status_code,
                backend_message or "An error occurred",
                errors,
            )

        return ApiResponse.from_payload(
            payload,
            status_code=response.status_code,
            path=response.request.url.path,
        )

    async def get(self, path: str, *, params: dict | None = None) -> ApiResponse:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, body: object | None = None) -> ApiResponse:
        return await self.request("POST", path, json=body)

    async def put(self, path: str, body: object | None = None) -> ApiResponse:
        return await self.request("PUT", path, json=body)

    async def patch(self, path: str, body: object | None = None) -> ApiResponse:
        return await self.request("PATCH", path, json=body)

    async def delete(self, path: str) -> ApiResponse:
        return await self.request("DELETE", path)

    # -- auth ------------------------------------------------------------------

    async def login(
        self,
        password: str,
        *,
        email: str | None = None,
        phone: str | None = None,
        admin: bool = False,
    ) -> AuthSession:
        if not email and not phone:
            raise ValueError("Either email or phone is required to log in.")

        body: dict[str, str] = {"password": password}
        if email:
            body["email"] = email
        if phone:
            body["phone"] = phone

        response = await self.request(
            "POST", ADMIN_AUTH_LOGIN if admin else AUTH_LOGIN, json=body, skip_auth=True
        )
        return await self._open_session(response)

    async def register(
        self,
        email: str,
        password: str,
        full_name: str,
        *,
        phone: str | None = None,
    ) -> AuthSession:
        body = {"email": email, "password": password, "fullName": full_name}
        if phone:
            body["phone"] = phone
        response = await self.request("POST", AUTH_REGISTER, json=body, skip_auth=True)
        return await self._open_session(response)

    async def _open_session(self, response: ApiResponse) -> AuthSession:
        data = response.data if isinstance(response.data, dict) else {}
        credentials = CredentialPair.from_payload(data)
        user_payload = data.get("user")
        if not isinstance(user_payload, dict):
            raise RuntimeError("Login response missing user.")

        self.gateway.start_session(credentials)
        role = role_from_claims(decode_claims(credentials.access_token))
        user = AuthUser.from_payload(user_payload, role=role)
        permissions = await self.fetch_permissions()

        self.session = AuthSession(user=user, credentials=credentials, permissions=permissions)
        LOGGER.info("Logged in as %s (%s)", user.email, user.role)
        return self.session

    async def fetch_permissions(self) -> list[str]:
        response = await self.get(AUTH_PERMISSIONS)
        data = response.data
        if not isinstance(data, list):
            return []
        return [code for code in data if isinstance(code, str)]

    async def current_user(self) -> dict:
        response = await self.get(USERS_ME)
        return response.data if isinstance(response.data, dict) else {}

    async def logout(self) -> None:
        """End the session on the backend and always drop it locally.

        Sent with the current bearer token. A 401 here does not trigger
        renewal or the session-expired hook.
        """
        credentials = self.gateway.current_credentials()
        headers = None
        if credentials is not None and credentials.access_token:
            headers = {"Authorization": f"Bearer {credentials.access_token}"}
        try:
            response = await self.gateway.request(
                "POST", AUTH_LOGOUT, headers=headers, skip_auth=True
            )
            if response.is_error:
                LOGGER.warning(
                    "Logout returned status %s; clearing local session anyway",
                    response.status_code,
                )
        except (GatewayError, httpx.HTTPError) as error:
            LOGGER.warning("Logout request failed; clearing local session anyway: %s", error)
        finally:
            self.gateway.clear_session()
            self.session = None
