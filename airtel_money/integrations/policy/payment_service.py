"""
Airtel Money payment service.

Sequences token acquisition, payment initiation and status polling for one
collection request:
- TokenManager (shared, cached bearer token)
- V1/V2 PaymentSubmitter (selected by AIRTEL_API_VERSION)
- StatusPoller (by transaction id for V1, by caller reference for V2)

Calls are not deduplicated: invoking initiate_payment twice with the same
reference creates two gateway transactions.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import Callable, Optional

import httpx

from airtel_money.error_handler import PaymentValidationError
from airtel_money.integrations.clients.real_http.auth import TokenManager
from airtel_money.integrations.clients.real_http.payments import PaymentSubmitter, build_submitter
from airtel_money.integrations.clients.real_http.status import Sleep, StatusPoller
from airtel_money.integrations.contracts.interfaces import ApiVersion, PollResult, Transaction
from airtel_money.integrations.contracts.payments import validate_payment_request
from airtel_money.utils.config_loader import AirtelConfig, load_airtel_config

logger = logging.getLogger(__name__)


class AirtelPaymentService:
    def __init__(
        self,
        config: AirtelConfig,
        client: Optional[httpx.AsyncClient] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.time,
        token_manager: Optional[TokenManager] = None,
    ) -> None:
        self.config = config
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.request_timeout_seconds,
            transport=transport,
        )
        self.token_manager = token_manager or TokenManager(config, self.client, clock=clock)
        self.submitter: PaymentSubmitter = build_submitter(
            config.api_version, self.token_manager, self.client, config.max_retries
        )
        self.poller = StatusPoller(
            self.token_manager,
            self.client,
            max_attempts=config.poll_attempts,
            base_interval_ms=config.poll_interval_ms,
            sleep=sleep,
        )

    async def __aenter__(self) -> "AirtelPaymentService":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def initiate_payment(
        self,
        amount: float,
        msisdn: str,
        reference: str,
        *,
        deadline: Optional[float] = None,
    ) -> PollResult:
        """
        Run one collection end to end and return the terminal poll result.

        ``deadline`` (seconds) bounds the whole call; on expiry the in-flight
        request or poll wait is cancelled and asyncio.TimeoutError is raised.
        """
        errors = validate_payment_request(amount, msisdn, reference)
        if errors:
            raise PaymentValidationError(errors)

        flow = self._run(amount, str(msisdn).strip().lstrip("+"), str(reference).strip())
        if deadline is None:
            return await flow
        return await asyncio.wait_for(flow, timeout=deadline)

    async def _run(self, amount: float, msisdn: str, reference: str) -> PollResult:
        version = self.config.api_version
        logger.info(
            "Initiating Airtel payment amount=%s msisdn=%s reference=%s version=%s",
            amount,
            msisdn,
            reference,
            version.value,
        )
        await self.token_manager.get_token()
        logger.info("Bearer token acquired")

        transaction = Transaction(
            id=str(uuid.uuid4()),
            reference=reference,
            amount=amount,
            msisdn=msisdn,
            country=self.config.country,
            currency=self.config.currency,
        )
        await self.submitter.submit(transaction)

        lookup_id = transaction.id if version is ApiVersion.V1 else transaction.reference
        logger.info("Payment request complete. Polling status for %s", lookup_id)
        try:
            return await self.poller.poll(lookup_id, transaction)
        finally:
            logger.info("Airtel payment %s finished with status %s", transaction.id, transaction.status.value)


async def initiate_airtel_payment(
    amount: float,
    msisdn: str,
    reference: str,
    *,
    config: Optional[AirtelConfig] = None,
    deadline: Optional[float] = None,
) -> PollResult:
    """Convenience entry point: configuration comes from the environment when not given."""
    async with AirtelPaymentService(config or load_airtel_config()) as service:
        return await service.initiate_payment(amount, msisdn, reference, deadline=deadline)
