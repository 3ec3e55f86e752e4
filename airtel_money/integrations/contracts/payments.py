"""
Payment contract: request payload shape, validation helpers and gateway
status mapping specific to the Airtel Money collection flow.

Used by both:
- clients/real_http/* (real gateway calls)
- clients/mocks/airtel.py (in-process fake gateway)
"""

import json
from typing import Any, Dict, List, Optional

from .interfaces import GatewayStatus, Transaction

# Gateway status literals (external contract).
STATUS_SUCCESS = "TS"
STATUS_FAILED = "TF"
STATUS_AMBIGUOUS = "TA"
STATUS_IN_PROGRESS = "TIP"

_STATUS_MAP = {
    STATUS_SUCCESS: GatewayStatus.SUCCESS,
    STATUS_FAILED: GatewayStatus.FAILURE,
    STATUS_AMBIGUOUS: GatewayStatus.PENDING,
    STATUS_IN_PROGRESS: GatewayStatus.PENDING,
}


# ---------------------------------------------------------------------------
# Payload helpers
# ---------------------------------------------------------------------------

def build_payment_payload(transaction: Transaction) -> Dict[str, Any]:
    return {
        "reference": transaction.reference,
        "subscriber": {
            "country": transaction.country,
            "currency": transaction.currency,
            "msisdn": transaction.msisdn,
        },
        "transaction": {
            "amount": transaction.amount,
            "country": transaction.country,
            "currency": transaction.currency,
            "id": transaction.id,
        },
    }


def canonical_json(payload: Dict[str, Any]) -> str:
    """Compact JSON text; the encrypted signature and the request body use the same bytes."""
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def validate_payment_request(amount: Any, msisdn: Any, reference: Any) -> List[str]:
    """
    Return a list of validation errors.
    Empty list means the request is valid.
    """
    errors: List[str] = []

    if not reference or not str(reference).strip():
        errors.append("reference is required")

    try:
        if float(amount) <= 0:
            errors.append("amount must be greater than zero")
    except (TypeError, ValueError):
        errors.append(f"amount '{amount}' is not a number")

    phone = str(msisdn or "").strip().lstrip("+")
    if not phone:
        errors.append("msisdn is required")
    elif not phone.isdigit() or len(phone) not in range(7, 16):
        errors.append(f"msisdn '{msisdn}' does not look valid")

    return errors


# ---------------------------------------------------------------------------
# Status mapping
# ---------------------------------------------------------------------------

def classify_gateway_status(raw_status: Optional[Any]) -> GatewayStatus:
    value = str(raw_status or "").strip().upper()
    return _STATUS_MAP.get(value, GatewayStatus.UNKNOWN)


def is_terminal_status(status: GatewayStatus) -> bool:
    """Return True if the gateway has reached a final, non-changeable state."""
    return status in {GatewayStatus.SUCCESS, GatewayStatus.FAILURE}
