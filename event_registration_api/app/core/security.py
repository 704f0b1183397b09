"""
Identity collaborator: bearer tokens and request authentication.

This module implements a lightweight JSON Web Token (JWT) mechanism
using HMAC-SHA256 signatures and base64url encoding.  Tokens embed
the caller's user id (``sub``), role (``role``) and an expiration
timestamp (``exp``).  A secret key from the application settings
signs and verifies every token.

The registration core never parses tokens itself.  It depends on the
``Authenticator`` protocol, whose ``authenticate(request)`` yields a
verified ``Identity`` or raises ``AuthRequired``.  The FastAPI
dependencies at the bottom of the module fetch the configured
authenticator from ``app.state`` so tests can swap in their own.
"""

import base64
import binascii
import enum
import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from fastapi import Request

from .config import settings
from .errors import AuthRequired


class Role(str, enum.Enum):
    ATTENDEE = "attendee"
    ADMIN = "admin"


@dataclass(frozen=True)
class Identity:
    """Verified caller identity attached to every request."""

    user_id: str
    role: Role = Role.ATTENDEE

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


def _b64_url_encode(data: bytes) -> str:
    """Base64-url encode bytes without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("utf-8")


def _b64_url_decode(data: str) -> bytes:
    """Decode base64-url encoded string, adding padding if necessary."""
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def _sign(message: bytes, secret: str) -> bytes:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()


def create_access_token(
    data: Dict[str, Any],
    expires_delta: Optional[int] = None,
    secret_key: Optional[str] = None,
) -> str:
    """Create a signed JWT token with the given payload.

    The payload is extended with an ``exp`` field representing the
    expiration time as a UNIX timestamp.  Clients send the token in
    the ``Authorization`` header as ``Bearer <token>``.

    Parameters
    ----------
    data : dict
        Claims to embed, e.g. ``{"sub": "user-42", "role": "attendee"}``.
    expires_delta : Optional[int]
        Lifetime of the token in seconds.  Defaults to
        ``settings.access_token_expire_minutes * 60``.
    secret_key : Optional[str]
        Signing key; defaults to ``settings.secret_key``.
    """
    to_encode = data.copy()
    exp_seconds = expires_delta or settings.access_token_expire_minutes * 60
    to_encode["exp"] = int(time.time()) + exp_seconds
    header = {"alg": "HS256", "typ": "JWT"}
    header_b64 = _b64_url_encode(json.dumps(header, separators=(",", ":")).encode("utf-8"))
    payload_b64 = _b64_url_encode(json.dumps(to_encode, separators=(",", ":")).encode("utf-8"))
    signing_input = f"{header_b64}.{payload_b64}".encode("utf-8")
    signature = _sign(signing_input, secret_key or settings.secret_key)
    return f"{header_b64}.{payload_b64}.{_b64_url_encode(signature)}"


def decode_access_token(token: str, secret_key: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """Verify and decode a JWT token.

    Returns the payload dictionary if the signature matches and the
    token has not expired; otherwise returns ``None``.
    """
    parts = token.split(".")
    if len(parts) != 3:
        return None
    header_b64, payload_b64, signature_b64 = parts
    signing_input = f"{header_b64}.{payload_b64}".encode("utf-8")
    expected_sig = _sign(signing_input, secret_key or settings.secret_key)
    try:
        actual_sig = _b64_url_decode(signature_b64)
        if not hmac.compare_digest(expected_sig, actual_sig):
            return None
        data = json.loads(_b64_url_decode(payload_b64).decode("utf-8"))
    except (binascii.Error, ValueError, UnicodeDecodeError):
        return None
    if not isinstance(data, dict):
        return None
    try:
        if data.get("exp") is None or int(data["exp"]) < int(time.time()):
            return None
    except (TypeError, ValueError):
        return None
    return data


class Authenticator(Protocol):
    """Anything that turns a request into a verified ``Identity``."""

    def authenticate(self, request: Request) -> Identity:
        ...


class BearerTokenAuthenticator:
    """Authenticate ``Authorization: Bearer <token>`` headers.

    Accepts tokens issued by ``create_access_token`` and, when
    configured, a static administrator token.
    """

    def __init__(
        self,
        secret_key: Optional[str] = None,
        static_admin_token: Optional[str] = None,
        static_admin_user_id: Optional[str] = None,
    ) -> None:
        self.secret_key = secret_key or settings.secret_key
        self.static_admin_token = (
            settings.admin_static_token if static_admin_token is None else static_admin_token
        )
        self.static_admin_user_id = static_admin_user_id or settings.admin_static_user_id

    def authenticate(self, request: Request) -> Identity:
        header = request.headers.get("Authorization", "")
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            raise AuthRequired()
        return self.identity_from_token(token.strip())

    def identity_from_token(self, token: str) -> Identity:
        if self.static_admin_token and hmac.compare_digest(
            token.encode("utf-8"), self.static_admin_token.encode("utf-8")
        ):
            return Identity(user_id=self.static_admin_user_id, role=Role.ADMIN)
        payload = decode_access_token(token, self.secret_key)
        if not payload or not payload.get("sub"):
            raise AuthRequired("Invalid or expired token")
        try:
            role = Role(payload.get("role", Role.ATTENDEE.value))
        except ValueError:
            raise AuthRequired("Token carries an unknown role")
        return Identity(user_id=str(payload["sub"]), role=role)


def get_current_identity(request: Request) -> Identity:
    """Dependency that authenticates the request via ``app.state.authenticator``."""
    authenticator: Authenticator = request.app.state.authenticator
    return authenticator.authenticate(request)
