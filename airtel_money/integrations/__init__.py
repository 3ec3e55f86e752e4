"""
Integrations layer.
This package contains all code used to communicate with the Airtel Money
gateway:
- contracts: data models, payload shape and status mapping
- clients/real_http: token manager, envelope builder, submitters, poller
- clients/mocks: in-process fake gateway
- policy: orchestration (AirtelPaymentService) and response validation

Key rule:
- Callers MUST NOT call the gateway directly; use AirtelPaymentService.
"""

from .contracts.interfaces import (
    ApiVersion,
    Credential,
    EncryptionEnvelope,
    GatewayStatus,
    PollResult,
    Transaction,
    TransactionStatus,
)
from .contracts.payments import (
    build_payment_payload,
    classify_gateway_status,
    is_terminal_status,
    validate_payment_request,
)

__all__ = [
    # interfaces
    "ApiVersion", "Credential", "EncryptionEnvelope", "GatewayStatus",
    "PollResult", "Transaction", "TransactionStatus",
    # payments
    "build_payment_payload", "classify_gateway_status",
    "is_terminal_status", "validate_payment_request",
]
