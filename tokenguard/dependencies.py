"""Bearer token authentication dependencies for FastAPI routes.

The resolved ``Principal`` is passed to routes as an ordinary argument; nothing
is stored in ambient request state.
"""

import logging
from collections.abc import Callable

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from tokenguard.database import get_db
from tokenguard.errors import AccessDeniedError, InvalidBearerTokenError, NotAuthenticatedError
from tokenguard.models.token import TokenScope
from tokenguard.services.credentials import Principal
from tokenguard.services.token import TokenService, get_token_service

logger = logging.getLogger("tokenguard")

BEARER_PREFIX = "Bearer "


def extract_bearer_token(request: Request) -> str | None:
    """Return the credential from ``Authorization: Bearer <token>``, or None if there is none."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith(BEARER_PREFIX):
        return None
    return auth_header[len(BEARER_PREFIX) :].strip()


def get_optional_principal(
    request: Request,
    db: Session = Depends(get_db),
    token_service: TokenService = Depends(get_token_service),
) -> Principal | None:
    """Resolve the bearer token to a principal.

    No header means an anonymous request (None). A token of the wrong length is
    rejected before any store lookup; unknown and expired tokens raise their
    401 errors from the token service.
    """
    token = extract_bearer_token(request)
    if token is None:
        return None

    if len(token) != token_service.generator.token_length:
        logger.debug("Rejected bearer token with length %d", len(token))
        raise InvalidBearerTokenError()

    return token_service.resolve_principal(db, TokenScope.AUTHENTICATION, token)


def get_current_principal(principal: Principal | None = Depends(get_optional_principal)) -> Principal:
    """Require an authenticated principal. Raises 401 for anonymous requests."""
    if principal is None:
        raise NotAuthenticatedError()
    return principal


def require_verified_email(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.email_verified:
        raise AccessDeniedError("Email address has not been verified")
    return principal


def require_authority(authority: str) -> Callable[..., Principal]:
    """Build a dependency that returns 403 unless the principal holds ``authority``."""

    def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not principal.has_authority(authority):
            raise AccessDeniedError(f"Missing authority '{authority}'")
        return principal

    return dependency
