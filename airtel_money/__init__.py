"""Airtel Money collection client (V1 plain JSON and V2 encrypted APIs)."""

from airtel_money.error_handler import (
    AirtelPaymentError,
    AuthError,
    EncryptionError,
    GatewayTransactionFailure,
    PaymentValidationError,
    PollTimeoutError,
    SubmissionError,
)
from airtel_money.integrations.contracts.interfaces import GatewayStatus, PollResult
from airtel_money.integrations.policy.payment_service import AirtelPaymentService, initiate_airtel_payment
from airtel_money.utils.config_loader import AirtelConfig, ConfigError, load_airtel_config

__all__ = [
    "AirtelConfig",
    "AirtelPaymentError",
    "AirtelPaymentService",
    "AuthError",
    "ConfigError",
    "EncryptionError",
    "GatewayStatus",
    "GatewayTransactionFailure",
    "PaymentValidationError",
    "PollResult",
    "PollTimeoutError",
    "SubmissionError",
    "initiate_airtel_payment",
    "load_airtel_config",
]
