"""
Airtel Money payment initiation (collection) clients.

V1 posts the plain JSON payload; V2 posts the same payload together with a
freshly sealed encryption envelope on every attempt. Both share one bounded,
immediate retry loop.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Type

import httpx

from airtel_money.error_handler import GatewayTransactionFailure, SubmissionError
from airtel_money.integrations.clients.real_http.auth import TokenManager, gateway_headers
from airtel_money.integrations.clients.real_http.encryption import EnvelopeBuilder
from airtel_money.integrations.contracts.interfaces import ApiVersion, Transaction, TransactionStatus
from airtel_money.integrations.contracts.payments import (
    STATUS_FAILED,
    build_payment_payload,
    canonical_json,
)
from airtel_money.integrations.policy.response_wrappers import (
    IntegrationResponseError,
    extract_transaction,
    log_http_error,
    parse_json_body,
)

logger = logging.getLogger(__name__)


class PaymentSubmitter(ABC):
    """Shared retry skeleton; subclasses supply the path and per-attempt headers."""

    version: ApiVersion
    path: str
    requires_transaction_body = True

    def __init__(self, token_manager: TokenManager, client: httpx.AsyncClient, max_retries: int) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.token_manager = token_manager
        self.config = token_manager.config
        self.max_retries = max_retries
        self._client = client

    @abstractmethod
    async def _attempt_headers(self, payload: Dict[str, Any], token: str) -> Dict[str, str]:
        """Headers for one attempt."""

    async def submit(self, transaction: Transaction) -> Dict[str, Any]:
        """
        Send the initiation request, retrying transport and gateway errors.

        The transaction id is never regenerated between attempts. An explicit
        ``TF`` status raises GatewayTransactionFailure without retrying.
        """
        payload = build_payment_payload(transaction)
        body = canonical_json(payload).encode("utf-8")
        logger.debug("Payment request (V%s): %s", self.version.value, payload)

        last_error: Optional[Exception] = None
        last_status: Optional[str] = None
        for attempt in range(1, self.max_retries + 1):
            if attempt > 1:
                logger.warning(
                    "Retrying payment request (V%s): attempt %s/%s",
                    self.version.value,
                    attempt,
                    self.max_retries,
                )
            token = await self.token_manager.get_token()
            headers = await self._attempt_headers(payload, token)
            try:
                response = await self._client.post(self.path, content=body, headers=headers)
                response.raise_for_status()
                data = parse_json_body(response)
                gateway_txn = extract_transaction(data, required=self.requires_transaction_body)
            except httpx.HTTPStatusError as exc:
                last_error = exc
                last_status = str(exc.response.status_code)
                if exc.response.status_code == 401:
                    self.token_manager.invalidate()
                log_http_error(f"submit_v{self.version.value}", exc)
                continue
            except (httpx.HTTPError, IntegrationResponseError) as exc:
                last_error = exc
                last_status = None
                log_http_error(f"submit_v{self.version.value}", exc)
                continue

            logger.debug("Payment response (V%s): %s", self.version.value, data)
            if gateway_txn is not None:
                transaction.gateway_message = gateway_txn.message
                if (gateway_txn.status or "").upper() == STATUS_FAILED:
                    transaction.status = TransactionStatus.FAILED
                    logger.error("Transaction %s failed at initiation: %s", transaction.id, gateway_txn.message)
                    raise GatewayTransactionFailure(
                        f"Transaction failed: {gateway_txn.message}",
                        status=gateway_txn.status,
                        attempts=attempt,
                        payload=data,
                    )
            transaction.status = TransactionStatus.SUBMITTED
            logger.info("Payment request accepted (V%s) id=%s attempt=%s", self.version.value, transaction.id, attempt)
            return data

        raise SubmissionError(
            f"Payment initiation failed after {self.max_retries} attempts: {last_error}",
            last_error=last_error,
            status=last_status,
            attempts=self.max_retries,
        )


class V1PaymentSubmitter(PaymentSubmitter):
    version = ApiVersion.V1
    path = "/merchant/v1/payments/"

    async def _attempt_headers(self, payload: Dict[str, Any], token: str) -> Dict[str, str]:
        return gateway_headers(self.config, token)


class V2PaymentSubmitter(PaymentSubmitter):
    version = ApiVersion.V2
    path = "/merchant/v2/payments/"
    requires_transaction_body = False

    def __init__(
        self,
        token_manager: TokenManager,
        client: httpx.AsyncClient,
        max_retries: int,
        envelope_builder: Optional[EnvelopeBuilder] = None,
    ) -> None:
        super().__init__(token_manager, client, max_retries)
        self.envelope_builder = envelope_builder or EnvelopeBuilder(token_manager, client)

    async def _attempt_headers(self, payload: Dict[str, Any], token: str) -> Dict[str, str]:
        # New key, IV and RSA key fetch per attempt; retries are never byte-identical.
        envelope = await self.envelope_builder.seal(payload)
        return {**gateway_headers(self.config, token), **envelope.headers()}


SUBMITTERS: Dict[ApiVersion, Type[PaymentSubmitter]] = {
    ApiVersion.V1: V1PaymentSubmitter,
    ApiVersion.V2: V2PaymentSubmitter,
}


def build_submitter(
    version: ApiVersion,
    token_manager: TokenManager,
    client: httpx.AsyncClient,
    max_retries: int,
) -> PaymentSubmitter:
    return SUBMITTERS[ApiVersion(version)](token_manager, client, max_retries)
