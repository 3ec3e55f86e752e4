"""
Airtel Money transaction status polling.

Attempts are strictly sequential. After a pending or unknown answer the poller
waits ``base_interval_ms * (attempt_index + 1)`` before the next attempt; a
failed call consumes an attempt from the same budget without waiting.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from airtel_money.error_handler import AuthError, GatewayTransactionFailure, PollTimeoutError
from airtel_money.integrations.clients.real_http.auth import TokenManager, gateway_headers
from airtel_money.integrations.contracts.interfaces import (
    GatewayStatus,
    PollResult,
    Transaction,
    TransactionStatus,
)
from airtel_money.integrations.contracts.payments import classify_gateway_status
from airtel_money.integrations.policy.response_wrappers import (
    IntegrationResponseError,
    extract_transaction,
    log_http_error,
    parse_json_body,
)

logger = logging.getLogger(__name__)

STATUS_PATH = "/standard/v1/payments/{lookup_id}"

Sleep = Callable[[float], Awaitable[Any]]


class StatusPoller:
    def __init__(
        self,
        token_manager: TokenManager,
        client: httpx.AsyncClient,
        max_attempts: int,
        base_interval_ms: int,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.token_manager = token_manager
        self.max_attempts = max_attempts
        self.base_interval_ms = base_interval_ms
        self._client = client
        self._sleep = sleep

    def backoff_ms(self, attempt_index: int) -> int:
        return self.base_interval_ms * (attempt_index + 1)

    async def fetch_status(self, lookup_id: str) -> Dict[str, Any]:
        token = await self.token_manager.get_token()
        logger.info("Requesting status for %s", lookup_id)
        response = await self._client.get(
            STATUS_PATH.format(lookup_id=lookup_id),
            headers=gateway_headers(self.token_manager.config, token),
        )
        if response.status_code == 401:
            self.token_manager.invalidate()
        response.raise_for_status()
        data = parse_json_body(response)
        logger.debug("Status response for %s: %s", lookup_id, data)
        return data

    async def poll(self, lookup_id: str, transaction: Optional[Transaction] = None) -> PollResult:
        """
        Poll until the gateway reports a terminal status.

        Returns the PollResult on ``TS``. Raises GatewayTransactionFailure on
        ``TF`` and PollTimeoutError once ``max_attempts`` calls were spent.
        """
        logger.info("Starting polling for transaction %s", lookup_id)
        last_status = GatewayStatus.PENDING
        last_code: Optional[str] = None
        last_message: Optional[str] = None
        last_payload: Dict[str, Any] = {}

        for attempt_index in range(self.max_attempts):
            attempt = attempt_index + 1
            logger.info("Polling attempt %s/%s for %s", attempt, self.max_attempts, lookup_id)
            try:
                data = await self.fetch_status(lookup_id)
                gateway_txn = extract_transaction(data)
            except (httpx.HTTPError, AuthError) as exc:
                log_http_error("poll_status", exc)
                last_message = str(exc)
                continue
            except IntegrationResponseError as exc:
                # unparseable body counts as UNKNOWN
                logger.warning("Unparseable status response for %s: %s", lookup_id, exc)
                data = exc.payload
                gateway_txn = None

            last_payload = data
            last_code = gateway_txn.status if gateway_txn else None
            last_message = gateway_txn.message if gateway_txn else last_message
            last_status = classify_gateway_status(last_code)
            if transaction is not None:
                transaction.gateway_message = last_message

            if last_status is GatewayStatus.SUCCESS:
                logger.info("Final status: transaction %s successful", lookup_id)
                if transaction is not None:
                    transaction.status = TransactionStatus.SUCCESS
                return PollResult(status=last_status, raw_payload=data, attempt_count=attempt, message=last_message)

            if last_status is GatewayStatus.FAILURE:
                logger.error("Final status: transaction %s failed: %s", lookup_id, last_message)
                if transaction is not None:
                    transaction.status = TransactionStatus.FAILED
                raise GatewayTransactionFailure(
                    f"Transaction failed: {last_message}",
                    status=last_code,
                    attempts=attempt,
                    payload=data,
                )

            if transaction is not None:
                transaction.status = TransactionStatus.PENDING
            if attempt < self.max_attempts:
                wait_ms = self.backoff_ms(attempt_index)
                logger.info(
                    "Status is pending (%s). Waiting %sms before next poll", last_code or last_status.value, wait_ms
                )
                await self._sleep(wait_ms / 1000.0)

        logger.error("Polling timed out for %s. Last known status: %s", lookup_id, last_code or last_status.value)
        if transaction is not None:
            transaction.status = TransactionStatus.TIMEOUT
        raise PollTimeoutError(
            f"Polling timed out after {self.max_attempts} attempts "
            f"(last status={last_code or last_status.value}, last message={last_message})",
            status=last_code or last_status.value,
            attempts=self.max_attempts,
            payload=last_payload,
        )
