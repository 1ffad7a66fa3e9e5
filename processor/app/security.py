from __future__ import annotations

import hashlib
import hmac
from typing import Mapping, Protocol

AUTHORIZATION_HEADER = "authorization"
SIGNATURE_HEADER = "x-isolator-signature"


def sign_payload(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def _constant_time_equals(provided: str, expected: str) -> bool:
    try:
        return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))
    except (UnicodeError, TypeError):
        return False


class CredentialVerifier(Protocol):
    header: str

    def verify(self, header_value: str, raw_body: bytes) -> bool: ...


class BearerTokenVerifier:
    """Accepts ``Authorization: Bearer <secret>``."""

    header = AUTHORIZATION_HEADER

    def __init__(self, secret: str):
        self._secret = secret

    def verify(self, header_value: str, raw_body: bytes) -> bool:
        scheme, _, token = header_value.partition(" ")
        if scheme.lower() != "bearer":
            return False
        return _constant_time_equals(token.strip(), self._secret)


class SignatureVerifier:
    """Accepts a hex HMAC-SHA256 of the exact request body bytes."""

    header = SIGNATURE_HEADER

    def __init__(self, secret: str):
        self._secret = secret

    def verify(self, header_value: str, raw_body: bytes) -> bool:
        expected = sign_payload(self._secret, raw_body)
        return _constant_time_equals(header_value.strip().lower(), expected)


class Authenticator:
    def __init__(self, secret: str | None):
        self._secret = secret or ""
        self._verifiers: tuple[CredentialVerifier, ...] = (
            BearerTokenVerifier(self._secret),
            SignatureVerifier(self._secret),
        )

    def is_authorized(self, raw_body: bytes, headers: Mapping[str, str]) -> bool:
        """Never raises; any malformed input is a rejection."""
        if not self._secret:
            return False

        try:
            lowered = {str(name).lower(): value for name, value in headers.items()}
            for verifier in self._verifiers:
                value = lowered.get(verifier.header)
                if value and isinstance(value, str) and verifier.verify(value, raw_body or b""):
                    return True
        except Exception:
            return False
        return False
