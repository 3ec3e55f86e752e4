"""
Mock integration clients.

These return fake (but realistic) gateway responses without calling any
external API. They are used when:
- Airtel sandbox credentials are not available
- We want to run the payment flow end-to-end without external dependencies

Important:
- Mocks sit at the transport layer, so the real HTTP clients are exercised
  unchanged against them.

Switching to real:
Set INTEGRATIONS_MODE=real (or configure AIRTEL_API_BASE_URL); the selection
happens in airtel_money/api/endpoints/payments.py only.
"""
