import asyncio
import os
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from airtel_money.error_handler import AirtelPaymentError, ErrorHandler, PaymentValidationError
from airtel_money.integrations.clients.mocks.airtel import AirtelMockGateway
from airtel_money.integrations.policy.payment_service import AirtelPaymentService
from airtel_money.utils.config_loader import AirtelConfig, load_airtel_config

api = APIRouter()
payments_api = api

error_handler = ErrorHandler()


class AirtelPaymentInitiateRequest(BaseModel):
    amount: float = Field(..., gt=0, description="Amount to collect, in the configured currency")
    msisdn: str = Field(..., description="Subscriber number without country code")
    reference: str = Field(..., min_length=1, description="Caller reference shown to the subscriber")
    deadline_seconds: Optional[float] = Field(default=None, gt=0)


def _should_use_real_integrations() -> bool:
    mode = os.getenv("INTEGRATIONS_MODE", "").strip().lower()
    if mode in {"real", "live"}:
        return True
    if mode in {"mock", "test"}:
        return False
    return bool(os.getenv("AIRTEL_API_BASE_URL"))


def build_payment_service() -> AirtelPaymentService:
    """Build the long-lived service; the mock gateway is used unless real integrations are enabled."""
    if _should_use_real_integrations():
        return AirtelPaymentService(load_airtel_config())

    config = AirtelConfig(
        base_url="https://airtel-mock.local",
        client_id="mock-client",
        client_secret="mock-secret",
        api_version=os.getenv("AIRTEL_API_VERSION", "1"),
        poll_interval_ms=int(os.getenv("DEFAULT_POLLING_INTERVAL_MS", "500")),
    )
    return AirtelPaymentService(config, transport=AirtelMockGateway().transport())


def get_payment_service(request: Request) -> AirtelPaymentService:
    return request.app.state.airtel_service


def _payment_result_to_dict(result) -> Dict[str, Any]:
    return {
        "status": result.status.value,
        "attempts": result.attempt_count,
        "message": result.message,
        "payload": result.raw_payload,
    }


@api.post("/airtel/initiate", tags=["Payments"])
async def initiate_airtel_payment(
    request: AirtelPaymentInitiateRequest,
    service: AirtelPaymentService = Depends(get_payment_service),
):
    try:
        result = await service.initiate_payment(
            request.amount,
            request.msisdn,
            request.reference,
            deadline=request.deadline_seconds,
        )
    except (AirtelPaymentError, PaymentValidationError) as exc:
        rendered = error_handler.handle_exception(exc, context={"reference": request.reference})
        return JSONResponse(
            status_code=rendered["http_status"],
            content={"message": rendered["message"], "detail": rendered["metadata"]},
        )
    except asyncio.TimeoutError:
        return JSONResponse(
            status_code=504,
            content={"message": f"Payment {request.reference} did not finish within {request.deadline_seconds}s"},
        )
    return _payment_result_to_dict(result)
