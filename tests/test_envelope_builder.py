import base64

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from conftest import token_response

from airtel_money.error_handler import EncryptionError
from airtel_money.integrations.clients.real_http.auth import TokenManager
from airtel_money.integrations.clients.real_http.encryption import EnvelopeBuilder, load_rsa_public_key
from airtel_money.integrations.contracts.payments import canonical_json

PAYLOAD = {
    "reference": "Order 42",
    "subscriber": {"country": "UG", "currency": "UGX", "msisdn": "752000000"},
    "transaction": {"amount": 1500, "country": "UG", "currency": "UGX", "id": "5b1c6c1e"},
}


@pytest.fixture(scope="module")
def private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def der_b64(private_key) -> str:
    der = private_key.public_key().public_bytes(
        serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
    )
    return base64.b64encode(der).decode("ascii")


class KeyGateway:
    def __init__(self, key_text=None, key_response=None):
        self.key_text = key_text
        self.key_response = key_response
        self.key_requests = []
        self.token_requests = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/auth/oauth2/token":
            self.token_requests += 1
            return token_response()
        self.key_requests.append(request)
        if self.key_response is not None:
            return self.key_response
        return httpx.Response(200, json={"data": {"key": self.key_text}})


def make_builder(config, clock, make_client, gateway):
    client = make_client(gateway)
    return EnvelopeBuilder(TokenManager(config, client, clock=clock), client)


@pytest.mark.asyncio
async def test_ciphertext_decrypts_to_canonical_json(config, clock, make_client, private_key):
    builder = make_builder(config, clock, make_client, KeyGateway(der_b64(private_key)))

    envelope = await builder.seal(PAYLOAD)

    assert len(envelope.symmetric_key) == 32
    assert len(envelope.iv) == 16
    assert EnvelopeBuilder.open(envelope) == canonical_json(PAYLOAD).encode("utf-8")


@pytest.mark.asyncio
async def test_wrapped_key_unwraps_to_key_and_iv(config, clock, make_client, private_key):
    builder = make_builder(config, clock, make_client, KeyGateway(der_b64(private_key)))

    envelope = await builder.seal(PAYLOAD)

    unwrapped = private_key.decrypt(base64.b64decode(envelope.wrapped_key), padding.PKCS1v15())
    expected = "{}:{}".format(
        base64.b64encode(envelope.symmetric_key).decode("ascii"),
        base64.b64encode(envelope.iv).decode("ascii"),
    )
    assert unwrapped.decode("utf-8") == expected
    assert envelope.headers() == {"x-signature": envelope.ciphertext, "x-key": envelope.wrapped_key}


@pytest.mark.asyncio
async def test_public_key_fetched_on_every_seal(config, clock, make_client, private_key):
    gateway = KeyGateway(der_b64(private_key))
    builder = make_builder(config, clock, make_client, gateway)

    first = await builder.seal(PAYLOAD)
    second = await builder.seal(PAYLOAD)

    assert len(gateway.key_requests) == 2
    assert gateway.token_requests == 1
    assert first.symmetric_key != second.symmetric_key
    assert first.iv != second.iv
    assert gateway.key_requests[0].headers["Authorization"] == "Bearer tok-1"
    assert gateway.key_requests[0].headers["X-Country"] == "UG"


@pytest.mark.asyncio
async def test_pem_public_key_is_accepted(config, clock, make_client, private_key):
    pem = private_key.public_key().public_bytes(
        serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo
    ).decode("ascii")
    builder = make_builder(config, clock, make_client, KeyGateway(pem))

    envelope = await builder.seal(PAYLOAD)

    assert private_key.decrypt(base64.b64decode(envelope.wrapped_key), padding.PKCS1v15())


@pytest.mark.asyncio
async def test_key_endpoint_failure_raises_encryption_error(config, clock, make_client):
    gateway = KeyGateway(key_response=httpx.Response(503, json={"error": "unavailable"}))
    builder = make_builder(config, clock, make_client, gateway)

    with pytest.raises(EncryptionError) as excinfo:
        await builder.seal(PAYLOAD)
    assert excinfo.value.status == "503"


@pytest.mark.asyncio
async def test_unusable_key_raises_encryption_error(config, clock, make_client):
    builder = make_builder(config, clock, make_client, KeyGateway("not-a-key"))

    with pytest.raises(EncryptionError, match="unusable RSA key"):
        await builder.seal(PAYLOAD)


def test_envelope_repr_hides_key_material():
    from airtel_money.integrations.contracts.interfaces import EncryptionEnvelope

    envelope = EncryptionEnvelope(symmetric_key=b"k" * 32, iv=b"i" * 16, ciphertext="c", wrapped_key="w")

    assert "kkkk" not in repr(envelope)


def test_load_rsa_public_key_rejects_garbage():
    with pytest.raises(ValueError):
        load_rsa_public_key("bm90IGEga2V5")
