"""Unit tests for bearer tokens and the request authenticator."""

import pytest
from starlette.requests import Request

from event_registration_api.app.core.errors import AuthRequired
from event_registration_api.app.core.security import (
    BearerTokenAuthenticator,
    Identity,
    Role,
    create_access_token,
    decode_access_token,
)


SECRET = "unit-test-secret"


def _request(authorization=None):
    headers = []
    if authorization is not None:
        headers.append((b"authorization", authorization.encode("latin-1")))
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers})


@pytest.fixture
def authenticator():
    return BearerTokenAuthenticator(
        secret_key=SECRET, static_admin_token="static-admin", static_admin_user_id="ops"
    )


def test_token_round_trip():
    token = create_access_token({"sub": "alice", "role": "attendee"}, secret_key=SECRET)

    payload = decode_access_token(token, SECRET)

    assert payload["sub"] == "alice"
    assert payload["role"] == "attendee"
    assert "exp" in payload


def test_expired_token_is_rejected():
    token = create_access_token({"sub": "alice"}, expires_delta=-10, secret_key=SECRET)

    assert decode_access_token(token, SECRET) is None


def test_token_signed_with_other_secret_is_rejected():
    token = create_access_token({"sub": "alice"}, secret_key="other")

    assert decode_access_token(token, SECRET) is None


@pytest.mark.parametrize("token", ["", "abc", "a.b", "a.b.c", "...."])
def test_malformed_tokens_are_rejected(token):
    assert decode_access_token(token, SECRET) is None


def test_authenticate_bearer_token(authenticator):
    token = create_access_token({"sub": "root", "role": "admin"}, secret_key=SECRET)

    identity = authenticator.authenticate(_request(f"Bearer {token}"))

    assert identity == Identity(user_id="root", role=Role.ADMIN)
    assert identity.is_admin


def test_role_defaults_to_attendee(authenticator):
    token = create_access_token({"sub": "alice"}, secret_key=SECRET)

    identity = authenticator.authenticate(_request(f"Bearer {token}"))

    assert identity.role is Role.ATTENDEE


def test_static_admin_token(authenticator):
    identity = authenticator.authenticate(_request("Bearer static-admin"))

    assert identity == Identity(user_id="ops", role=Role.ADMIN)


@pytest.mark.parametrize("header", [None, "", "Bearer", "Basic abc", "Bearer not-a-token"])
def test_missing_or_invalid_credentials_raise_auth_required(authenticator, header):
    with pytest.raises(AuthRequired):
        authenticator.authenticate(_request(header))


def test_unknown_role_is_rejected(authenticator):
    token = create_access_token({"sub": "alice", "role": "superuser"}, secret_key=SECRET)

    with pytest.raises(AuthRequired):
        authenticator.authenticate(_request(f"Bearer {token}"))
