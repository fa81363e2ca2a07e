"""Tests for JWT creation and verification (claims, expiry)."""

from datetime import timedelta

import pytest
from jose import jwt

from app.core.config import get_settings
from app.infrastructure.security.jwt import TokenClaims, create_access_token, verify_token


def test_round_trip_claims() -> None:
    token = create_access_token(
        {"userId": "u1", "tenantId": "t1", "role": "Manager", "email": "a@example.com"}
    )
    claims = verify_token(token)
    assert claims == TokenClaims(
        user_id="u1", tenant_id="t1", role="Manager", email="a@example.com", name=None
    )


def test_sub_is_accepted_as_user_id() -> None:
    claims = verify_token(create_access_token({"sub": "u2", "tenantId": "t1", "role": "member"}))
    assert claims.user_id == "u2"


def test_expired_token_rejected() -> None:
    token = create_access_token(
        {"userId": "u1", "tenantId": "t1", "role": "member"},
        expires_delta=timedelta(seconds=-30),
    )
    with pytest.raises(ValueError, match="Invalid token"):
        verify_token(token)


def test_token_without_exp_rejected() -> None:
    settings = get_settings()
    token = jwt.encode(
        {"userId": "u1", "tenantId": "t1", "role": "member"},
        settings.secret_key.get_secret_value(),
        algorithm=settings.algorithm,
    )
    with pytest.raises(ValueError):
        verify_token(token)


@pytest.mark.parametrize("missing", ["tenantId", "role"])
def test_missing_required_claim_rejected(missing: str) -> None:
    claims = {"userId": "u1", "tenantId": "t1", "role": "member"}
    del claims[missing]
    with pytest.raises(ValueError, match=missing):
        verify_token(create_access_token(claims))


def test_wrong_signature_rejected() -> None:
    token = jwt.encode({"userId": "u1", "tenantId": "t1", "role": "member", "exp": 9999999999}, "other-key")
    with pytest.raises(ValueError, match="Invalid token"):
        verify_token(token)
