"""
Airtel Money MOCK gateway.

⚠️  This is an in-process fake of the Airtel Money HTTP API for development
    and testing. It is plugged into the real clients as an httpx transport,
    so TokenManager, the V1/V2 submitters and StatusPoller run unchanged:

        gateway = AirtelMockGateway()
        AirtelPaymentService(config, transport=gateway.transport())
"""

import base64
import json
import logging
import random
import time
import uuid
from typing import Any, Dict, List, Optional

import httpx
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import padding as asym_padding
from cryptography.hazmat.primitives.asymmetric import rsa

from airtel_money.integrations.clients.real_http.encryption import aes_cbc_decrypt
from airtel_money.integrations.contracts.payments import (
    STATUS_FAILED,
    STATUS_IN_PROGRESS,
    STATUS_SUCCESS,
)

logger = logging.getLogger(__name__)


class AirtelMockGateway:
    """
    Mock Airtel Money gateway.

    Parameters
    ----------
    payment_success_rate : float
        Probability (0–1) that a payment ends in TS. Default 0.93.
    pending_polls : int
        Number of status queries answered with TIP before the final status.
    token_expires_in : int
        ``expires_in`` (seconds) returned by the token endpoint.
    fail_next_payments : int
        Number of upcoming payment POSTs answered with HTTP 500.
    """

    def __init__(
        self,
        payment_success_rate: float = 0.93,
        pending_polls: int = 1,
        token_expires_in: int = 3600,
        fail_next_payments: int = 0,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
    ):
        self._success_rate = payment_success_rate
        self.pending_polls = pending_polls
        self.token_expires_in = token_expires_in
        self.fail_next_payments = fail_next_payments
        self._client_id = client_id
        self._client_secret = client_secret
        self._private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)

        # In-memory stores (reset on restart)
        self._tokens: Dict[str, float] = {}
        self._payments: Dict[str, Dict[str, Any]] = {}
        self._polls: Dict[str, int] = {}

        # Observability for tests and demos
        self.calls: List[str] = []
        self.payment_requests: List[Dict[str, Any]] = []
        self.unwrapped_keys: List[str] = []
        self.status_lookups: List[str] = []

        logger.info("[AIRTEL MOCK] Gateway initialised (success_rate=%.0f%%)", payment_success_rate * 100)

    # ------------------------------------------------------------------
    # Transport wiring
    # ------------------------------------------------------------------

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def count(self, route: str) -> int:
        return sum(1 for c in self.calls if c == route)

    @property
    def public_key_b64(self) -> str:
        der = self._private_key.public_key().public_bytes(
            serialization.Encoding.DER,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        return base64.b64encode(der).decode("ascii")

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if request.method == "POST" and path == "/auth/oauth2/token":
            return self._token(request)
        if request.method == "GET" and path == "/v1/rsa/encryption-keys":
            return self._encryption_keys(request)
        if request.method == "POST" and path in ("/merchant/v1/payments/", "/merchant/v2/payments/"):
            return self._payment(request, encrypted=path.startswith("/merchant/v2"))
        if request.method == "GET" and path.startswith("/standard/v1/payments/"):
            return self._status(request, path.rsplit("/", 1)[-1])
        return httpx.Response(404, json={"status": {"message": f"Unknown route {request.method} {path}"}})

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _should_succeed(self) -> bool:
        return random.random() < self._success_rate

    def _new_airtel_money_id(self) -> str:
        return f"MP{uuid.uuid4().hex[:12].upper()}"

    def _authorised(self, request: httpx.Request) -> bool:
        header = request.headers.get("Authorization", "")
        token = header[len("Bearer "):] if header.startswith("Bearer ") else ""
        return self._tokens.get(token, 0.0) > time.time()

    def _unauthorised(self) -> httpx.Response:
        return httpx.Response(401, json={"error": "invalid_token"})

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    def _token(self, request: httpx.Request) -> httpx.Response:
        self.calls.append("token")
        body = json.loads(request.content or b"{}")
        if self._client_id is not None and (
            body.get("client_id") != self._client_id or body.get("client_secret") != self._client_secret
        ):
            return httpx.Response(401, json={"error": "invalid_client"})

        token = uuid.uuid4().hex
        self._tokens[token] = time.time() + self.token_expires_in
        logger.info("[AIRTEL MOCK] Issued token (expires_in=%s)", self.token_expires_in)
        return httpx.Response(
            200,
            json={"access_token": token, "expires_in": self.token_expires_in, "token_type": "bearer"},
        )

    def _encryption_keys(self, request: httpx.Request) -> httpx.Response:
        self.calls.append("keys")
        if not self._authorised(request):
            return self._unauthorised()
        return httpx.Response(200, json={"data": {"key": self.public_key_b64, "key_id": "mock-key"}})

    def _payment(self, request: httpx.Request, encrypted: bool) -> httpx.Response:
        self.calls.append("payment_v2" if encrypted else "payment_v1")
        if not self._authorised(request):
            return self._unauthorised()
        payload = json.loads(request.content)
        self.payment_requests.append({"headers": dict(request.headers), "payload": payload})

        if self.fail_next_payments > 0:
            self.fail_next_payments -= 1
            return httpx.Response(500, json={"status": {"message": "Internal error", "success": False}})

        if encrypted:
            problem = self._verify_envelope(request)
            if problem:
                return httpx.Response(400, json={"status": {"message": problem, "success": False}})

        txn = payload["transaction"]
        final_status = STATUS_SUCCESS if self._should_succeed() else STATUS_FAILED
        record = {
            "id": txn["id"],
            "reference": payload["reference"],
            "final_status": final_status,
            "airtel_money_id": self._new_airtel_money_id(),
        }
        self._payments[txn["id"]] = record
        self._payments[payload["reference"]] = record
        logger.info("[AIRTEL MOCK] Payment %s accepted, will end %s", txn["id"], final_status)
        return httpx.Response(
            200,
            json={
                "data": {"transaction": {"id": txn["id"], "status": "Success."}},
                "status": {"code": "200", "message": "SUCCESS", "success": True},
            },
        )

    def _verify_envelope(self, request: httpx.Request) -> Optional[str]:
        signature = request.headers.get("x-signature")
        wrapped = request.headers.get("x-key")
        if not signature or not wrapped:
            return "Missing x-signature or x-key"
        try:
            key_iv = self._private_key.decrypt(base64.b64decode(wrapped), asym_padding.PKCS1v15()).decode("utf-8")
            self.unwrapped_keys.append(key_iv)
            b64_key, b64_iv = key_iv.split(":", 1)
            plaintext = aes_cbc_decrypt(
                base64.b64decode(signature), base64.b64decode(b64_key), base64.b64decode(b64_iv)
            )
        except ValueError as exc:
            logger.warning("[AIRTEL MOCK] Could not open payment envelope: %s", exc)
            return "Invalid x-key or x-signature"
        if plaintext != request.content:
            return "x-signature does not match request body"
        return None

    def _status(self, request: httpx.Request, lookup_id: str) -> httpx.Response:
        self.calls.append("status")
        self.status_lookups.append(lookup_id)
        if not self._authorised(request):
            return self._unauthorised()
        record = self._payments.get(lookup_id)
        if record is None:
            return httpx.Response(404, json={"status": {"message": "Transaction not found", "success": False}})

        seen = self._polls.get(lookup_id, 0)
        self._polls[lookup_id] = seen + 1
        if seen < self.pending_polls:
            status, message = STATUS_IN_PROGRESS, "Transaction in progress"
        elif record["final_status"] == STATUS_SUCCESS:
            status, message = STATUS_SUCCESS, "Transaction Success"
        else:
            status, message = STATUS_FAILED, "Transaction failed: subscriber account limit exceeded."
        return httpx.Response(
            200,
            json={
                "data": {
                    "transaction": {
                        "id": record["id"],
                        "status": status,
                        "message": message,
                        "airtel_money_id": record["airtel_money_id"],
                    }
                },
                "status": {"code": "200", "message": "SUCCESS", "success": True},
            },
        )
