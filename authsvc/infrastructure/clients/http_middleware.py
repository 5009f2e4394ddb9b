from __future__ import annotations

import logging
import time
from typing import Protocol

import httpx


logger = logging.getLogger(__name__)


class ProviderHttpMiddleware(Protocol):
    def before_send(self, request: httpx.Request) -> None:
        ...

    def after_receive(self, request: httpx.Request, response: httpx.Response) -> None:
        ...

    def on_error(self, request: httpx.Request, error: Exception) -> None:
        ...


class LoggingMiddleware:
    """Logs outbound provider calls. Bodies are never logged on success."""

    def __init__(self) -> None:
        self._started: dict[int, float] = {}

    def before_send(self, request: httpx.Request) -> None:
        self._started[id(request)] = time.monotonic()
        logger.debug("provider_http: send method=%s url=%s", request.method, request.url)

    def after_receive(self, request: httpx.Request, response: httpx.Response) -> None:
        logger.info(
            "provider_http: received method=%s url=%s status=%s elapsed_ms=%s",
            request.method,
            request.url,
            response.status_code,
            self._elapsed_ms(request),
        )

    def on_error(self, request: httpx.Request, error: Exception) -> None:
        logger.warning(
            "provider_http: failed method=%s url=%s error=%s elapsed_ms=%s",
            request.method,
            request.url,
            type(error).__name__,
            self._elapsed_ms(request),
        )

    def _elapsed_ms(self, request: httpx.Request) -> int | None:
        started = self._started.pop(id(request), None)
        if started is None:
            return None
        return int((time.monotonic() - started) * 1000)
