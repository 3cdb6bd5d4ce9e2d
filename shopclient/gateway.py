from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Awaitable, Callable

import httpx

from auth.models import CredentialPair
from auth.renewal import refresh_credentials
from auth.token_store import CredentialStore

from .constants import AUTH_REFRESH, LOGGER, RETRIED_EXTENSION, SKIP_AUTH_PATHS
from .errors import RenewalFailedError, RetryExhaustedError

RenewFn = Callable[[str], Awaitable[CredentialPair]]
SessionExpiredHook = Callable[[RenewalFailedError], None]


@dataclass
class RenewalState:
    is_renewing: bool = False
    pending: deque[asyncio.Future[str]] = field(default_factory=deque)
    # Bumped whenever the session is started or cleared, so a renewal
    # that outlives its session does not write stale credentials.
    generation: int = 0


class AuthenticatedGateway:
    """Attach the current access token to requests and renew it on 401.

    At most one renewal call is in flight per gateway. Requests rejected
    while it runs wait on a future and are re-sent once with the renewed
    token, or fail with ``RenewalFailedError`` together with it.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        credential_store: CredentialStore,
        *,
        refresh_path: str = AUTH_REFRESH,
        skip_auth_paths: tuple[str, ...] = SKIP_AUTH_PATHS,
        renew_fn: RenewFn | None = None,
        on_session_expired: SessionExpiredHook | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._client = client
        self._store = credential_store
        self._refresh_path = refresh_path
        self._skip_auth_paths = tuple(skip_auth_paths)
        self._renew_fn = renew_fn or self._default_renew
        self._on_session_expired = on_session_expired
        self._logger = logger or LOGGER
        self.state = RenewalState()

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    @property
    def is_renewing(self) -> bool:
        return self.state.is_renewing

    @property
    def pending_count(self) -> int:
        return len(self.state.pending)

    # -- session ---------------------------------------------------------------

    def start_session(self, pair: CredentialPair) -> None:
        self.state.generation += 1
        self._store.set(pair)

    def clear_session(self) -> None:
        self.state.generation += 1
        self._store.clear()

    def current_credentials(self) -> CredentialPair | None:
        return self._store.get()

    # -- requests --------------------------------------------------------------

    def is_skip_auth(self, request: httpx.Request) -> bool:
        return any(request.url.path.endswith(path) for path in self._skip_auth_paths)

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: object | None = None,
        params: dict | None = None,
        headers: dict[str, str] | None = None,
        skip_auth: bool = False,
    ) -> httpx.Response:
        request = self._client.build_request(
            method, path, json=json, params=params, headers=headers
        )
        if skip_auth or self.is_skip_auth(request):
            return await self._client.send(request)

        credentials = self._store.get()
        sent_token = credentials.access_token if credentials is not None else None
        if sent_token:
            request.headers["Authorization"] = f"Bearer {sent_token}"

        response = await self._client.send(request)
        if response.status_code != 401:
            return response

        await response.aclose()
        access_token = await self._wait_for_renewal(request, sent_token)

        retry = httpx.Request(
            method=request.method,
            url=request.url,
            headers=request.headers,
            content=request.content,
            extensions={**request.extensions, RETRIED_EXTENSION: True},
        )
        retry.headers["Authorization"] = f"Bearer {access_token}"
        response = await self._client.send(retry)
        if response.status_code == 401:
            await response.aclose()
            self._logger.warning(
                "Renewed credential rejected (%s %s); not retrying again",
                retry.method,
                retry.url,
            )
            raise RetryExhaustedError()
        return response

    # -- renewal ---------------------------------------------------------------

    async def _wait_for_renewal(self, request: httpx.Request, sent_token: str | None) -> str:
        state = self.state
        # Check-and-set must stay free of awaits.
        current = self._store.get()
        if current is not None and current.access_token and current.access_token != sent_token:
            # Rejected token was already replaced by an earlier renewal.
            self._logger.debug(
                "Retrying %s %s with the already renewed access token", request.method, request.url
            )
            return current.access_token

        if state.is_renewing:
            waiter: asyncio.Future[str] = asyncio.get_running_loop().create_future()
            state.pending.append(waiter)
            self._logger.debug(
                "Queued %s %s behind in-flight renewal (%s waiting)",
                request.method,
                request.url,
                len(state.pending),
            )
            return await waiter

        state.is_renewing = True
        generation = state.generation
        try:
            return await self._renew(generation)
        finally:
            if state.pending:
                self._settle_pending(error=RenewalFailedError("Credential renewal was interrupted."))
            state.is_renewing = False

    async def _renew(self, generation: int) -> str:
        credentials = self._store.get()
        self._logger.info("Access token rejected; renewing credentials")
        try:
            if credentials is None or not credentials.refresh_token:
                raise RenewalFailedError("No refresh token available.")
            pair = await self._renew_fn(credentials.refresh_token)
        except Exception as error:
            if isinstance(error, RenewalFailedError):
                failure = error
            else:
                failure = RenewalFailedError(f"Credential renewal failed: {error}")
            self._fail_renewal(failure, generation)
            if failure is error:
                raise
            raise failure from error

        if self.state.generation != generation:
            failure = RenewalFailedError("Session changed during credential renewal.")
            self._logger.warning("Discarding renewed credentials: %s", failure)
            self._settle_pending(error=failure)
            raise failure

        try:
            self._store.set(pair)
        except Exception as error:
            failure = RenewalFailedError(f"Could not store renewed credentials: {error}")
            self._fail_renewal(failure, generation)
            raise failure from error

        self._logger.info(
            "Credentials renewed; releasing %s queued request(s)", len(self.state.pending)
        )
        self._settle_pending(token=pair.access_token)
        return pair.access_token

    def _fail_renewal(self, failure: RenewalFailedError, generation: int) -> None:
        self._logger.warning("Credential renewal failed: %s", failure)
        # A session started or cleared meanwhile is not ours to clear.
        session_unchanged = self.state.generation == generation
        if session_unchanged:
            self._store.clear()
        self._settle_pending(error=failure)
        if session_unchanged and self._on_session_expired is not None:
            self._on_session_expired(failure)

    def _settle_pending(
        self,
        *,
        token: str | None = None,
        error: RenewalFailedError | None = None,
    ) -> None:
        pending = self.state.pending
        while pending:
            waiter = pending.popleft()
            if waiter.done():
                continue
            if error is not None:
                waiter.set_exception(error)
            else:
                waiter.set_result(token)

    async def _default_renew(self, refresh_token: str) -> CredentialPair:
        return await refresh_credentials(
            refresh_token, client=self._client, url=self._refresh_path
        )
