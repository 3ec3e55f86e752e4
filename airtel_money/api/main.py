"""
FastAPI application - Main entry point
"""

from dotenv import load_dotenv

load_dotenv()

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from airtel_money.api.endpoints.payments import build_payment_service, payments_api

# Setup logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # One service per process so the bearer token cache is shared by all requests.
    service = build_payment_service()
    app.state.airtel_service = service
    logger.info("Airtel payment service ready (version=%s)", service.config.api_version.value)
    try:
        yield
    finally:
        await service.aclose()


# Initialize FastAPI app
app = FastAPI(
    title="Airtel Money Collections API",
    description="Initiates Airtel Money collections and waits for their final status",
    version="1.0.0",
    lifespan=lifespan,
)

# Register payments API router
app.include_router(payments_api, prefix="/api/v1/payments", tags=["Payments"])


@app.get("/health")
async def health():
    return {"status": "ok"}
