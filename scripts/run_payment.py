#!/usr/bin/env python3
"""
Initiate one Airtel Money collection and wait for its final status.

Uses the gateway configured in the environment (.env supported), or the
in-process mock gateway with --mock.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

load_dotenv()

from airtel_money.error_handler import AirtelPaymentError, PaymentValidationError
from airtel_money.integrations.clients.mocks.airtel import AirtelMockGateway
from airtel_money.integrations.policy.payment_service import AirtelPaymentService
from airtel_money.utils.config_loader import AirtelConfig, ConfigError, load_airtel_config


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")


def build_service(use_mock: bool, api_version: str) -> AirtelPaymentService:
    if not use_mock:
        return AirtelPaymentService(load_airtel_config())
    config = AirtelConfig(
        base_url="https://airtel-mock.local",
        client_id="mock-client",
        client_secret="mock-secret",
        api_version=api_version,
        poll_interval_ms=200,
    )
    return AirtelPaymentService(config, transport=AirtelMockGateway(payment_success_rate=1.0).transport())


async def run(args: argparse.Namespace) -> int:
    async with build_service(args.mock, args.api_version) as service:
        try:
            result = await service.initiate_payment(
                args.amount, args.msisdn, args.reference, deadline=args.deadline
            )
        except (AirtelPaymentError, PaymentValidationError) as exc:
            print(f"Payment failed: {exc}", file=sys.stderr)
            if isinstance(exc, AirtelPaymentError):
                print(json.dumps(exc.to_dict(), indent=2), file=sys.stderr)
            return 1
        except asyncio.TimeoutError:
            print(f"Payment did not finish within {args.deadline}s", file=sys.stderr)
            return 1

    print(json.dumps({"status": result.status.value, "attempts": result.attempt_count,
                      "payload": result.raw_payload}, indent=2))
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Initiate an Airtel Money collection")
    parser.add_argument("--amount", type=float, required=True, help="Amount to collect")
    parser.add_argument("--msisdn", required=True, help="Subscriber number without country code")
    parser.add_argument("--reference", required=True, help="Payment reference")
    parser.add_argument("--deadline", type=float, default=None, help="Overall deadline in seconds")
    parser.add_argument("--mock", action="store_true", help="Use the in-process mock gateway")
    parser.add_argument("--api-version", choices=["1", "2"], default="1", help="API version for --mock")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = parser.parse_args()

    setup_logging(args.verbose)
    try:
        return asyncio.run(run(args))
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
