"""Token API endpoints."""

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from tokenguard.database import get_db
from tokenguard.dependencies import get_current_principal
from tokenguard.rate_limit import limiter
from tokenguard.schemas.token import (
    ActivateRequest,
    AuthenticationRequest,
    RefreshRequest,
    ResetPasswordRequest,
    TokenEmailRequest,
    TokenPairResponse,
)
from tokenguard.services.credentials import Principal
from tokenguard.services.token import TokenService, get_token_service

router = APIRouter(prefix="/api/v1/tokens", tags=["Tokens"])

TOKEN_REQUEST_ACCEPTED = {"detail": "If an account exists with that email, a token has been sent."}


@router.post("/authentication", response_model=TokenPairResponse)
@limiter.limit("10/minute")
def authenticate(
    request: Request,
    body: AuthenticationRequest,
    db: Session = Depends(get_db),
    token_service: TokenService = Depends(get_token_service),
) -> TokenPairResponse:
    """Exchange username and password for an authentication/refresh token pair."""
    pair = token_service.authenticate(db, body.username, body.password)
    return TokenPairResponse.from_pair(pair)


@router.delete("/authentication", status_code=204)
def revoke_authentication(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    token_service: TokenService = Depends(get_token_service),
) -> Response:
    """Sign the caller out of every session."""
    token_service.revoke_all_sessions(db, principal.id)
    return Response(status_code=204)


@router.post("/refresh", response_model=TokenPairResponse)
@limiter.limit("30/minute")
def refresh(
    request: Request,
    body: RefreshRequest,
    db: Session = Depends(get_db),
    token_service: TokenService = Depends(get_token_service),
) -> TokenPairResponse:
    """Rotate the token pair. The presented refresh token stops working."""
    pair = token_service.refresh(db, body.refresh_token)
    return TokenPairResponse.from_pair(pair)


@router.post("/activation", status_code=202)
@limiter.limit("3/minute")
def request_activation_token(
    request: Request,
    body: TokenEmailRequest,
    db: Session = Depends(get_db),
    token_service: TokenService = Depends(get_token_service),
) -> dict:
    """Send a new activation token. The response does not reveal whether the email is known."""
    token_service.create_activation_token(db, body.email)
    return TOKEN_REQUEST_ACCEPTED


@router.post("/activate")
@limiter.limit("5/minute")
def activate(
    request: Request,
    body: ActivateRequest,
    db: Session = Depends(get_db),
    token_service: TokenService = Depends(get_token_service),
) -> dict:
    """Verify the account's email address."""
    token_service.activate_account(db, body.activation_token)
    return {"detail": "Account activated"}


@router.post("/password-reset", status_code=202)
@limiter.limit("3/minute")
def request_password_reset_token(
    request: Request,
    body: TokenEmailRequest,
    db: Session = Depends(get_db),
    token_service: TokenService = Depends(get_token_service),
) -> dict:
    """Send a password reset token. The response does not reveal whether the email is known."""
    token_service.create_password_reset_token(db, body.email)
    return TOKEN_REQUEST_ACCEPTED


@router.put("/password-reset")
@limiter.limit("5/minute")
def reset_password(
    request: Request,
    body: ResetPasswordRequest,
    db: Session = Depends(get_db),
    token_service: TokenService = Depends(get_token_service),
) -> dict:
    """Set a new password using a reset token. Existing sessions are revoked."""
    token_service.reset_password(db, body.reset_token, body.new_password)
    return {"detail": "Password has been reset"}
