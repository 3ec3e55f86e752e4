"""
V2 hybrid encryption envelope.

The payload is AES-256-CBC encrypted under a fresh key/IV, and "key:iv" is
wrapped with the gateway's current RSA public key (PKCS#1 v1.5). Header names
and padding are fixed by the gateway.
"""

from __future__ import annotations

import base64
import logging
import secrets
from typing import Any, Dict

import httpx
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import padding as sym_padding
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import padding as asym_padding
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from airtel_money.error_handler import AuthError, EncryptionError
from airtel_money.integrations.clients.real_http.auth import TokenManager, gateway_headers
from airtel_money.integrations.contracts.interfaces import EncryptionEnvelope
from airtel_money.integrations.contracts.payments import canonical_json
from airtel_money.integrations.policy.response_wrappers import (
    IntegrationResponseError,
    log_http_error,
    normalize_encryption_key_response,
    parse_json_body,
)

logger = logging.getLogger(__name__)

ENCRYPTION_KEYS_PATH = "/v1/rsa/encryption-keys"
AES_KEY_BYTES = 32
AES_IV_BYTES = 16


def load_rsa_public_key(key_text: str) -> RSAPublicKey:
    """Accept either a PEM document or the bare base64 DER the gateway usually returns."""
    text = key_text.strip()
    if text.startswith("-----BEGIN"):
        key = serialization.load_pem_public_key(text.encode("ascii"))
    else:
        key = serialization.load_der_public_key(base64.b64decode(text))
    if not isinstance(key, RSAPublicKey):
        raise ValueError(f"Expected an RSA public key, got {type(key).__name__}")
    return key


def aes_cbc_encrypt(plaintext: bytes, key: bytes, iv: bytes) -> bytes:
    padder = sym_padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    return encryptor.update(padded) + encryptor.finalize()


def aes_cbc_decrypt(ciphertext: bytes, key: bytes, iv: bytes) -> bytes:
    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()
    unpadder = sym_padding.PKCS7(algorithms.AES.block_size).unpadder()
    return unpadder.update(padded) + unpadder.finalize()


class EnvelopeBuilder:
    def __init__(self, token_manager: TokenManager, client: httpx.AsyncClient) -> None:
        self.token_manager = token_manager
        self._client = client

    async def seal(self, payload: Dict[str, Any]) -> EncryptionEnvelope:
        """Encrypt ``payload`` for a single V2 submission attempt."""
        key = secrets.token_bytes(AES_KEY_BYTES)
        iv = secrets.token_bytes(AES_IV_BYTES)
        b64_key = base64.b64encode(key).decode("ascii")
        b64_iv = base64.b64encode(iv).decode("ascii")

        try:
            ciphertext = aes_cbc_encrypt(canonical_json(payload).encode("utf-8"), key, iv)
        except (TypeError, ValueError) as exc:
            raise EncryptionError(f"Payload encryption failed: {exc}") from exc

        public_key = await self.fetch_public_key()
        try:
            wrapped = public_key.encrypt(f"{b64_key}:{b64_iv}".encode("utf-8"), asym_padding.PKCS1v15())
        except ValueError as exc:
            raise EncryptionError(f"RSA key wrapping failed: {exc}") from exc

        return EncryptionEnvelope(
            symmetric_key=key,
            iv=iv,
            ciphertext=base64.b64encode(ciphertext).decode("ascii"),
            wrapped_key=base64.b64encode(wrapped).decode("ascii"),
        )

    @staticmethod
    def open(envelope: EncryptionEnvelope) -> bytes:
        """Decrypt an envelope's ciphertext with its own key material."""
        return aes_cbc_decrypt(base64.b64decode(envelope.ciphertext), envelope.symmetric_key, envelope.iv)

    async def fetch_public_key(self) -> RSAPublicKey:
        # Fetched on every seal: the gateway may rotate its key at any time.
        logger.info("Fetching Airtel RSA public key for V2 encryption")
        try:
            token = await self.token_manager.get_token()
        except AuthError as exc:
            raise EncryptionError(f"Cannot fetch RSA public key: {exc.message}", status=exc.status) from exc

        try:
            response = await self._client.get(
                ENCRYPTION_KEYS_PATH,
                headers=gateway_headers(self.token_manager.config, token),
            )
            response.raise_for_status()
            key_text = normalize_encryption_key_response(parse_json_body(response)).data.key
        except httpx.HTTPStatusError as exc:
            log_http_error("fetch_public_key", exc)
            raise EncryptionError(
                f"RSA key endpoint returned HTTP {exc.response.status_code}",
                status=str(exc.response.status_code),
            ) from exc
        except httpx.HTTPError as exc:
            log_http_error("fetch_public_key", exc)
            raise EncryptionError(f"RSA key endpoint unreachable: {exc}") from exc
        except IntegrationResponseError as exc:
            raise EncryptionError(f"Malformed RSA key response: {exc}", payload=exc.payload) from exc

        try:
            public_key = load_rsa_public_key(key_text)
        except (ValueError, UnsupportedAlgorithm) as exc:
            raise EncryptionError(f"Gateway returned an unusable RSA key: {exc}") from exc
        logger.info("RSA public key fetched (%s bits)", public_key.key_size)
        return public_key
