from __future__ import annotations

import logging
import time
from typing import Callable

import httpx

from .constants import LOGGER

SESSION_EXPIRED_MESSAGE = "Session expired. Please login again."
NETWORK_ERROR_MESSAGE = "Network Error. Please check your connection."


def friendly_error_message(status_code: int, backend_message: str | None = None) -> str:
    if status_code == 403:
        return "You do not have permission to perform this action."
    if status_code >= 500:
        return "Internal Server Error. Please try again later."
    return backend_message or "Something went wrong"


class ErrorNotifier:
    """Forward user-facing error messages, at most one per window."""

    def __init__(
        self,
        sink: Callable[[str], None] | None = None,
        *,
        window_seconds: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sink = sink or LOGGER.warning
        self._window_seconds = window_seconds
        self._clock = clock
        self._last_shown: float | None = None

    def notify(self, message: str) -> bool:
        now = self._clock()
        if self._last_shown is not None and now - self._last_shown < self._window_seconds:
            return False
        self._last_shown = now
        self._sink(message)
        return True


def build_logging_hooks(
    debug_enabled: bool, logger: logging.Logger | None = None
) -> dict[str, list]:
    log = logger or LOGGER

    async def log_request(request: httpx.Request) -> None:
        if not debug_enabled:
            return
        log.info("API request %s %s", request.method, request.url)

    async def log_response(response: httpx.Response) -> None:
        if not debug_enabled:
            return
        log.info(
            "API response %s %s -> %s",
            response.request.method,
            response.request.url,
            response.status_code,
        )
        if response.status_code >= 400:
            body = await response.aread()
            text = body.decode("utf-8", errors="replace")
            if len(text) > 1000:
                text = text[:1000] + "...<truncated>"
            log.warning("API error body: %s", text)

    return {"request": [log_request], "response": [log_response]}
