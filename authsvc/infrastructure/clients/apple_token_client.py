from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

import httpx

from authsvc.application.dto.auth import ProviderTokens
from authsvc.application.ports.credential_exchange_port import CredentialExchangePort
from authsvc.domain.exceptions import ExternalProviderError

from .http_middleware import LoggingMiddleware, ProviderHttpMiddleware


logger = logging.getLogger(__name__)

APPLE_TOKEN_URL = "https://appleid.apple.com/auth/token"
APPLE_REVOKE_URL = "https://appleid.apple.com/auth/revoke"


@dataclass(frozen=True)
class AppleTokenClientSettings:
    client_id: str
    client_secret: str
    token_url: str = APPLE_TOKEN_URL
    revoke_url: str = APPLE_REVOKE_URL
    timeout_seconds: float = 10


class AppleTokenClient(CredentialExchangePort):
    def __init__(
        self,
        settings: AppleTokenClientSettings,
        *,
        middlewares: Sequence[ProviderHttpMiddleware] | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self._settings = settings
        self._middlewares = list(middlewares) if middlewares is not None else [LoggingMiddleware()]
        self._transport = transport

    def exchange(self, *, authorization_code: str) -> ProviderTokens:
        response = self._post_form(
            url=self._settings.token_url,
            data={
                "grant_type": "authorization_code",
                "code": authorization_code,
                "client_id": self._settings.client_id,
                "client_secret": self._settings.client_secret,
            },
            action="exchange",
        )
        try:
            payload = response.json()
            return ProviderTokens(
                access_token=_require_str(payload, "access_token"),
                refresh_token=_require_str(payload, "refresh_token"),
                id_token=_require_str(payload, "id_token"),
                expires_in=int(payload["expires_in"]),
            )
        except (ValueError, KeyError, TypeError) as exc:
            logger.error("apple_token_client: malformed_exchange_response error=%s", exc)
            raise ExternalProviderError(
                "Apple token endpoint returned an unexpected payload.",
                status_code=response.status_code,
            ) from exc

    def revoke(self, *, refresh_token: str) -> None:
        self._post_form(
            url=self._settings.revoke_url,
            data={
                "client_id": self._settings.client_id,
                "client_secret": self._settings.client_secret,
                "token": refresh_token,
                "token_type_hint": "refresh_token",
            },
            action="revoke",
        )

    def _post_form(self, *, url: str, data: dict[str, str], action: str) -> httpx.Response:
        with httpx.Client(timeout=self._settings.timeout_seconds, transport=self._transport) as client:
            request = client.build_request("POST", url, data=data)
            for middleware in self._middlewares:
                middleware.before_send(request)
            try:
                response = client.send(request)
            except httpx.HTTPError as exc:
                for middleware in self._middlewares:
                    middleware.on_error(request, exc)
                logger.error("apple_token_client: %s_transport_error error=%s", action, type(exc).__name__)
                raise ExternalProviderError(f"Apple {action} request failed.") from exc
            for middleware in self._middlewares:
                middleware.after_receive(request, response)

        if not response.is_success:
            logger.error(
                "apple_token_client: %s_failed status=%s body=%s",
                action,
                response.status_code,
                response.text,
            )
            raise ExternalProviderError(
                f"Apple {action} request failed.",
                status_code=response.status_code,
                body=response.text,
            )
        return response


def _require_str(payload: dict, key: str) -> str:
    value = payload[key]
    if not isinstance(value, str) or not value:
        raise ValueError(f"{key} must be a non-empty string.")
    return value
