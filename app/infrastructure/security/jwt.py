"""JWT token creation and verification for authentication.

Tokens are issued by the platform's auth service and shared with this
service through SECRET_KEY. Uses app.core.config for secret and algorithm.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, cast

from jose import JWTError, jwt

from app.core.config import get_settings


@dataclass(frozen=True)
class TokenClaims:
    """Verified caller identity."""

    user_id: str
    tenant_id: str
    role: str
    email: str | None = None
    name: str | None = None


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token with the given claims.

    Args:
        data: Claims to encode (e.g. userId, tenantId, role).
        expires_delta: Optional TTL; else uses settings.access_token_expire_minutes.

    Returns:
        Encoded JWT string.
    """
    settings = get_settings()
    to_encode = data.copy()
    if expires_delta is not None:
        expire = datetime.now(UTC) + expires_delta
    else:
        expire = datetime.now(UTC) + timedelta(
            minutes=settings.access_token_expire_minutes
        )
    to_encode["exp"] = expire
    encoded = jwt.encode(
        to_encode,
        settings.secret_key.get_secret_value(),
        algorithm=settings.algorithm,
    )
    return cast(str, encoded)


def verify_token(token: str) -> TokenClaims:
    """Verify and decode a JWT into caller claims.

    Enforces presence of exp, a user id (userId or sub), tenantId and role.

    Args:
        token: JWT string (e.g. from Authorization header).

    Returns:
        TokenClaims for the caller.

    Raises:
        ValueError: If token is invalid, expired, or missing required claims.
    """
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.secret_key.get_secret_value(),
            algorithms=[settings.algorithm],
            options={"require_exp": True},
        )
    except JWTError as e:
        raise ValueError(f"Invalid token: {e!s}") from e
    user_id = payload.get("userId") or payload.get("sub")
    if not user_id:
        raise ValueError("Token missing required claim: userId")
    for claim in ("tenantId", "role"):
        if not payload.get(claim):
            raise ValueError(f"Token missing required claim: {claim}")
    return TokenClaims(
        user_id=str(user_id),
        tenant_id=str(payload["tenantId"]),
        role=str(payload["role"]),
        email=payload.get("email"),
        name=payload.get("name"),
    )
