"""
Real HTTP integration clients for the Airtel Money gateway.

- auth.py        OAuth2 bearer token cache (single-flight refresh)
- encryption.py  V2 AES-256-CBC + RSA envelope
- payments.py    V1/V2 payment initiation with bounded retries
- status.py      transaction status polling

Important:
- These are the ONLY places where gateway HTTP calls are made.
- Responses are validated by integrations/policy/response_wrappers.py.
"""
