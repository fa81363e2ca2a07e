"""Presentation-layer dependency injection.

Routes depend on these; nothing here builds infrastructure. Services come
from the ServiceContext stored on app.state.context at startup, and the
caller's identity comes only from a verified bearer token.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.application.use_cases.search import SearchService
from app.core.config import get_settings
from app.core.service_context import ServiceContext
from app.domain.exceptions import AuthenticationException, AuthorizationException
from app.infrastructure.security.jwt import TokenClaims, verify_token

_http_bearer = HTTPBearer(auto_error=False)


def get_context(request: Request) -> ServiceContext:
    """Return the service context built by the lifespan."""
    return request.app.state.context


def get_search_service(
    context: Annotated[ServiceContext, Depends(get_context)],
) -> SearchService:
    return context.search_service


async def get_current_claims_optional(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_http_bearer)],
) -> TokenClaims | None:
    """Return verified claims if a valid bearer token is present; else None."""
    if not credentials:
        return None
    try:
        return verify_token(credentials.credentials)
    except ValueError:
        return None


async def get_current_claims(
    claims: Annotated[TokenClaims | None, Depends(get_current_claims_optional)],
) -> TokenClaims:
    """Return verified claims; raise 401 if the token is missing or invalid."""
    if claims is None:
        raise AuthenticationException("Not authenticated")
    return claims


def require_admin(resource: str, action: str):
    """Dependency factory: require a verified token whose role is an admin role."""

    async def _require(
        claims: Annotated[TokenClaims, Depends(get_current_claims)],
    ) -> TokenClaims:
        if claims.role not in get_settings().admin_role_set:
            raise AuthorizationException(resource=resource, action=action)
        return claims

    return _require
