from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TransactionStatus(str, Enum):
    INITIATED = "INITIATED"
    SUBMITTED = "SUBMITTED"
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    TIMEOUT = "TIMEOUT"


class GatewayStatus(str, Enum):
    """Internal classification of the gateway's transaction status codes."""

    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    UNKNOWN = "UNKNOWN"


class ApiVersion(str, Enum):
    V1 = "1"
    V2 = "2"


# ---------------------------------------------------------------------------
# Shared data models
# ---------------------------------------------------------------------------

TOKEN_SAFETY_BUFFER_SECONDS = 60.0


@dataclass(frozen=True)
class Credential:
    access_token: str = field(repr=False)
    expires_at: float                    # epoch seconds as reported by the gateway

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at - TOKEN_SAFETY_BUFFER_SECONDS


@dataclass
class Transaction:
    id: str
    reference: str
    amount: float
    msisdn: str
    country: str
    currency: str
    status: TransactionStatus = TransactionStatus.INITIATED
    gateway_message: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.status in {TransactionStatus.SUCCESS, TransactionStatus.FAILED, TransactionStatus.TIMEOUT}


@dataclass(frozen=True)
class EncryptionEnvelope:
    symmetric_key: bytes = field(repr=False)   # 32 bytes, AES-256
    iv: bytes = field(repr=False)              # 16 bytes
    ciphertext: str                            # base64 AES-CBC output
    wrapped_key: str                           # base64 RSA output of "key:iv"

    def headers(self) -> Dict[str, str]:
        return {"x-signature": self.ciphertext, "x-key": self.wrapped_key}


@dataclass
class PollResult:
    status: GatewayStatus
    raw_payload: Dict[str, Any]
    attempt_count: int
    message: Optional[str] = None
