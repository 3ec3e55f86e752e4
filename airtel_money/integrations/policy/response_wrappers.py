from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)


class IntegrationResponseError(ValueError):
    def __init__(self, message: str, *, payload: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.payload = payload or {}


class TokenResponseModel(BaseModel):
    access_token: str = Field(min_length=1)
    expires_in: float = Field(gt=0)
    token_type: Optional[str] = None


class EncryptionKeyModel(BaseModel):
    key: str = Field(min_length=1)
    key_id: Optional[str] = None
    valid_upto: Optional[str] = None


class EncryptionKeyResponseModel(BaseModel):
    data: EncryptionKeyModel


class GatewayTransactionModel(BaseModel):
    id: Optional[str] = None
    status: Optional[str] = None
    message: Optional[str] = None
    airtel_money_id: Optional[str] = None


def normalize_token_response(raw: Any) -> TokenResponseModel:
    return _build_model(TokenResponseModel, raw)


def normalize_encryption_key_response(raw: Any) -> EncryptionKeyResponseModel:
    return _build_model(EncryptionKeyResponseModel, raw)


def extract_transaction(raw: Any, *, required: bool = True) -> Optional[GatewayTransactionModel]:
    """Return the ``data.transaction`` block of a gateway response."""
    data = raw.get("data") if isinstance(raw, dict) else None
    block = data.get("transaction") if isinstance(data, dict) else None
    if not isinstance(block, dict):
        if required:
            raise IntegrationResponseError(
                "Invalid response structure: missing data.transaction",
                payload=raw if isinstance(raw, dict) else {},
            )
        return None
    return _build_model(GatewayTransactionModel, block, raw)


def parse_json_body(response: httpx.Response) -> Dict[str, Any]:
    if not response.content:
        return {}
    try:
        body = response.json()
    except ValueError as exc:
        raise IntegrationResponseError(f"Gateway returned a non-JSON body (HTTP {response.status_code})") from exc
    if not isinstance(body, dict):
        raise IntegrationResponseError(f"Gateway returned unexpected JSON type {type(body).__name__}")
    return body


def log_http_error(fn_name: str, error: Exception) -> None:
    """Centralised logging for gateway call failures."""
    logger.error("Error in %s: %s", fn_name, error)
    if isinstance(error, httpx.HTTPStatusError):
        logger.error("  Status code : %s", error.response.status_code)
        logger.error("  Response data: %s", error.response.text)
    elif isinstance(error, httpx.RequestError):
        logger.error("  No response received (%s)", type(error).__name__)


def _build_model(model_type, payload: Any, raw: Any = None):
    raw = payload if raw is None else raw
    if not isinstance(payload, dict):
        raise IntegrationResponseError(f"Expected a JSON object, got {type(payload).__name__}")
    try:
        return model_type(**payload)
    except ValidationError as exc:
        raise IntegrationResponseError(
            f"Response validation failed: {exc}",
            payload=raw if isinstance(raw, dict) else {},
        ) from exc
