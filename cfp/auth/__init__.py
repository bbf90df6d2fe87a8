"""
Authentication helpers for the talk review API.

Design goals:
- Stateless bearer tokens carrying subject id, email and role.
- Signing key loaded once at startup and injected into the verifier.
- Password accounts hashed with bcrypt; no federated login in this service.
"""
