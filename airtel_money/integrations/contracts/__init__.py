"""
Contracts (data models).

This folder defines the request/response shapes for the Airtel Money gateway:
- Credential, Transaction, EncryptionEnvelope and PollResult records
- the collection request payload
- the mapping from gateway status literals to internal states

Both the real HTTP clients and the in-process mock gateway use these contracts.
"""
