"""Error taxonomy for the Airtel Money client and helpers to render it for callers."""
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)


class AirtelPaymentError(Exception):
    """Base class: every surfaced error carries the last known status, message and attempt count."""

    http_status = 502

    def __init__(
        self,
        message: str,
        *,
        status: Optional[str] = None,
        attempts: int = 0,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.attempts = attempts
        self.payload = payload or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "status": self.status,
            "attempts": self.attempts,
        }


class AuthError(AirtelPaymentError):
    """Bearer credential could not be acquired."""


class EncryptionError(AirtelPaymentError):
    """V2 public key fetch or envelope encryption failed."""


class SubmissionError(AirtelPaymentError):
    """Payment initiation retries were exhausted."""

    def __init__(self, message: str, *, last_error: Optional[BaseException] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.last_error = last_error


class PollTimeoutError(AirtelPaymentError):
    """No terminal status within the poll attempt budget."""

    http_status = 504


class GatewayTransactionFailure(AirtelPaymentError):
    """The gateway explicitly reported the transaction as failed."""

    http_status = 402


class PaymentValidationError(ValueError):
    def __init__(self, errors) -> None:
        super().__init__("; ".join(errors))
        self.errors = list(errors)


class ErrorHandler:
    def handle_exception(self, exc: Exception, context: Dict[str, Any] = None) -> Dict[str, Any]:
        if isinstance(exc, AirtelPaymentError):
            logger.warning("Airtel payment ended with %s: %s", type(exc).__name__, exc.message)
            return {
                "http_status": exc.http_status,
                "message": exc.message,
                "fallback": False,
                "metadata": {**exc.to_dict(), "context": context or {}},
            }
        if isinstance(exc, PaymentValidationError):
            return {
                "http_status": 422,
                "message": str(exc),
                "fallback": False,
                "metadata": {"errors": exc.errors, "context": context or {}},
            }

        logger.error("Unhandled exception in Airtel payment flow: %s", exc, exc_info=True)
        return {
            "http_status": 500,
            "message": "An internal error occurred while processing your payment. Please try again later.",
            "fallback": True,
            "metadata": {"error": str(exc), "context": context or {}},
        }
