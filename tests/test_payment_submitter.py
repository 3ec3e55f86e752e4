import json

import httpx
import pytest

from conftest import token_response

from airtel_money.error_handler import GatewayTransactionFailure, SubmissionError
from airtel_money.integrations.clients.mocks.airtel import AirtelMockGateway
from airtel_money.integrations.clients.real_http.auth import TokenManager
from airtel_money.integrations.clients.real_http.encryption import EnvelopeBuilder
from airtel_money.integrations.clients.real_http.payments import (
    V1PaymentSubmitter,
    V2PaymentSubmitter,
    build_submitter,
)
from airtel_money.integrations.contracts.interfaces import ApiVersion, Transaction, TransactionStatus


def make_transaction(**overrides) -> Transaction:
    values = dict(
        id="0f7d1c2e-aaaa-bbbb-cccc-000000000001",
        reference="INV-1001",
        amount=2500,
        msisdn="752123456",
        country="UG",
        currency="UGX",
    )
    values.update(overrides)
    return Transaction(**values)


def accepted(status="Success.", message="Request accepted"):
    return httpx.Response(200, json={"data": {"transaction": {"id": "x", "status": status, "message": message}}})


class PaymentGateway:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.payments = []
        self.token_calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/auth/oauth2/token":
            self.token_calls += 1
            return token_response(f"tok-{self.token_calls}")
        self.payments.append(request)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def v1_submitter(config, clock, make_client, gateway, max_retries=3):
    client = make_client(gateway)
    return V1PaymentSubmitter(TokenManager(config, client, clock=clock), client, max_retries)


@pytest.mark.asyncio
async def test_v1_posts_plain_json_with_gateway_headers(config, clock, make_client):
    gateway = PaymentGateway(accepted())
    transaction = make_transaction()

    data = await v1_submitter(config, clock, make_client, gateway).submit(transaction)

    request = gateway.payments[0]
    assert request.url.path == "/merchant/v1/payments/"
    assert request.headers["Authorization"] == "Bearer tok-1"
    assert request.headers["X-Country"] == "UG"
    assert request.headers["X-Currency"] == "UGX"
    assert "x-signature" not in request.headers
    assert json.loads(request.content) == {
        "reference": "INV-1001",
        "subscriber": {"country": "UG", "currency": "UGX", "msisdn": "752123456"},
        "transaction": {"amount": 2500, "country": "UG", "currency": "UGX", "id": transaction.id},
    }
    assert data["data"]["transaction"]["status"] == "Success."
    assert transaction.status is TransactionStatus.SUBMITTED


@pytest.mark.asyncio
async def test_v1_failure_status_surfaces_gateway_message(config, clock, make_client):
    gateway = PaymentGateway(accepted(status="TF", message="Insufficient funds"))
    transaction = make_transaction()

    with pytest.raises(GatewayTransactionFailure) as excinfo:
        await v1_submitter(config, clock, make_client, gateway).submit(transaction)

    assert "Insufficient funds" in excinfo.value.message
    assert excinfo.value.status == "TF"
    assert len(gateway.payments) == 1
    assert transaction.status is TransactionStatus.FAILED


@pytest.mark.asyncio
async def test_retries_reuse_the_same_transaction_id(config, clock, make_client):
    gateway = PaymentGateway(
        httpx.Response(500),
        httpx.ConnectError("reset"),
        accepted(),
    )
    transaction = make_transaction()

    await v1_submitter(config, clock, make_client, gateway).submit(transaction)

    ids = {json.loads(r.content)["transaction"]["id"] for r in gateway.payments}
    assert len(gateway.payments) == 3
    assert ids == {transaction.id}


@pytest.mark.asyncio
async def test_exhausted_retries_raise_submission_error(config, clock, make_client):
    gateway = PaymentGateway(*(httpx.Response(502) for _ in range(3)))

    with pytest.raises(SubmissionError) as excinfo:
        await v1_submitter(config, clock, make_client, gateway).submit(make_transaction())

    error = excinfo.value
    assert error.attempts == 3
    assert error.status == "502"
    assert isinstance(error.last_error, httpx.HTTPStatusError)
    assert len(gateway.payments) == 3


@pytest.mark.asyncio
async def test_submission_error_describes_the_last_attempt(config, clock, make_client):
    gateway = PaymentGateway(
        httpx.Response(500),
        httpx.ConnectError("unreachable"),
        httpx.ConnectError("unreachable"),
    )

    with pytest.raises(SubmissionError) as excinfo:
        await v1_submitter(config, clock, make_client, gateway).submit(make_transaction())

    assert excinfo.value.status is None
    assert isinstance(excinfo.value.last_error, httpx.ConnectError)


@pytest.mark.asyncio
async def test_v1_malformed_body_consumes_an_attempt(config, clock, make_client):
    gateway = PaymentGateway(httpx.Response(200, json={"status": {"success": True}}), accepted())

    await v1_submitter(config, clock, make_client, gateway).submit(make_transaction())

    assert len(gateway.payments) == 2


@pytest.mark.asyncio
async def test_unauthorised_response_refreshes_token(config, clock, make_client):
    gateway = PaymentGateway(httpx.Response(401), accepted())

    await v1_submitter(config, clock, make_client, gateway).submit(make_transaction())

    assert gateway.token_calls == 2
    assert gateway.payments[1].headers["Authorization"] == "Bearer tok-2"


class RecordingEnvelopeBuilder(EnvelopeBuilder):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.envelopes = []

    async def seal(self, payload):
        envelope = await super().seal(payload)
        self.envelopes.append(envelope)
        return envelope


@pytest.mark.asyncio
async def test_v2_regenerates_envelope_on_every_attempt(config, clock):
    gateway = AirtelMockGateway(payment_success_rate=1.0, fail_next_payments=2)
    client = httpx.AsyncClient(base_url=config.base_url, transport=gateway.transport())
    token_manager = TokenManager(config, client, clock=clock)
    builder = RecordingEnvelopeBuilder(token_manager, client)
    submitter = V2PaymentSubmitter(token_manager, client, max_retries=3, envelope_builder=builder)
    transaction = make_transaction()

    await submitter.submit(transaction)

    assert gateway.count("payment_v2") == 3
    assert gateway.count("keys") == 3
    assert len({e.symmetric_key for e in builder.envelopes}) == 3
    assert len({r["headers"]["x-key"] for r in gateway.payment_requests}) == 3
    assert {r["payload"]["transaction"]["id"] for r in gateway.payment_requests} == {transaction.id}
    # the accepted attempt carried a signature matching its body
    assert len(gateway.unwrapped_keys) == 1
    await client.aclose()


def test_build_submitter_selects_variant(config, clock, make_client):
    client = make_client(PaymentGateway())
    manager = TokenManager(config, client, clock=clock)

    assert isinstance(build_submitter(ApiVersion.V1, manager, client, 2), V1PaymentSubmitter)
    assert isinstance(build_submitter("2", manager, client, 2), V2PaymentSubmitter)


def test_submitter_requires_positive_budget(config, clock, make_client):
    client = make_client(PaymentGateway())

    with pytest.raises(ValueError):
        V1PaymentSubmitter(TokenManager(config, client, clock=clock), client, 0)
