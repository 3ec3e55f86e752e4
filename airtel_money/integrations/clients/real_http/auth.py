"""
Airtel OAuth2 bearer token manager.

One instance per process (or per AirtelPaymentService) holds the only shared
mutable state in the client: the cached Credential.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Dict, Optional

import httpx

from airtel_money.error_handler import AuthError
from airtel_money.integrations.contracts.interfaces import Credential
from airtel_money.integrations.policy.response_wrappers import (
    IntegrationResponseError,
    log_http_error,
    normalize_token_response,
    parse_json_body,
)
from airtel_money.utils.config_loader import AirtelConfig

logger = logging.getLogger(__name__)

TOKEN_PATH = "/auth/oauth2/token"


def gateway_headers(config: AirtelConfig, token: Optional[str] = None) -> Dict[str, str]:
    headers = {
        "Accept": "*/*",
        "Content-Type": "application/json",
        "X-Country": config.country,
        "X-Currency": config.currency,
    }
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


class TokenManager:
    def __init__(
        self,
        config: AirtelConfig,
        client: httpx.AsyncClient,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self._client = client
        self._clock = clock
        self._credential: Optional[Credential] = None
        self._refresh: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()

    @property
    def current_credential(self) -> Optional[Credential]:
        return self._credential

    async def get_token(self) -> str:
        """
        Return a valid bearer token, refreshing it when expired.

        Concurrent callers that miss the cache share one refresh task and all
        receive its credential or its AuthError.
        """
        async with self._lock:
            credential = self._credential
            if credential is not None and credential.is_valid(self._clock()):
                return credential.access_token
            if self._refresh is None:
                self._refresh = asyncio.ensure_future(self._fetch_credential())
                self._refresh.add_done_callback(self._refresh_finished)
            refresh = self._refresh

        # shield: a cancelled waiter must not cancel the refresh other waiters depend on
        credential = await asyncio.shield(refresh)
        return credential.access_token

    def invalidate(self) -> None:
        """Drop the cached credential, e.g. after the gateway answered 401."""
        self._credential = None

    def _refresh_finished(self, task: asyncio.Task) -> None:
        if self._refresh is task:
            self._refresh = None
        if not task.cancelled():
            # marks a failure as retrieved even when every waiter was cancelled
            task.exception()

    async def _fetch_credential(self) -> Credential:
        logger.info("Fetching new Airtel bearer token")
        body = {
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "grant_type": self.config.grant_type,
        }
        try:
            response = await self._client.post(
                TOKEN_PATH,
                json=body,
                headers={"Content-Type": "application/json", "Accept": "*/*"},
            )
            response.raise_for_status()
            token = normalize_token_response(parse_json_body(response))
        except httpx.HTTPStatusError as exc:
            log_http_error("get_token", exc)
            raise AuthError(
                f"Token endpoint returned HTTP {exc.response.status_code}",
                status=str(exc.response.status_code),
                attempts=1,
            ) from exc
        except httpx.HTTPError as exc:
            log_http_error("get_token", exc)
            raise AuthError(f"Token endpoint unreachable: {exc}", attempts=1) from exc
        except IntegrationResponseError as exc:
            logger.error("Malformed token response: %s", exc)
            raise AuthError(f"Malformed token response: {exc}", attempts=1, payload=exc.payload) from exc

        credential = Credential(
            access_token=token.access_token,
            expires_at=self._clock() + token.expires_in,
        )
        self._credential = credential
        logger.info("New Airtel bearer token cached (expires in %ss)", int(token.expires_in))
        return credential
