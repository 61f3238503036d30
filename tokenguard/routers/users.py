"""User API endpoints."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from tokenguard.database import get_db
from tokenguard.dependencies import get_current_principal
from tokenguard.rate_limit import limiter
from tokenguard.schemas.user import (
    PrincipalResponse,
    ProfileResponse,
    RegisterRequest,
    UpdateProfileRequest,
    UserResponse,
)
from tokenguard.services.credentials import Principal
from tokenguard.services.users import UserService, get_user_service

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


@router.post("", response_model=UserResponse, status_code=201)
@limiter.limit("5/minute")
def register(
    request: Request,
    body: RegisterRequest,
    db: Session = Depends(get_db),
    user_service: UserService = Depends(get_user_service),
) -> UserResponse:
    """Register a new account. An activation token is mailed to the given address."""
    user = user_service.register(db, body.username, body.email, body.password)
    return UserResponse.model_validate(user)


@router.get("/me", response_model=PrincipalResponse)
def me(principal: Principal = Depends(get_current_principal)) -> PrincipalResponse:
    """Return the authenticated caller."""
    return PrincipalResponse.from_principal(principal)


@router.patch("/me", response_model=ProfileResponse)
def update_me(
    body: UpdateProfileRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    user_service: UserService = Depends(get_user_service),
) -> ProfileResponse:
    """Update the caller's profile. Only fields present in the body change."""
    user = user_service.update_profile(db, principal.id, **body.model_dump(exclude_none=True))
    return ProfileResponse.for_owner(user)


@router.get("/{username}", response_model=ProfileResponse, response_model_exclude_none=True)
def get_user(
    username: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    user_service: UserService = Depends(get_user_service),
) -> ProfileResponse:
    """Look up a user. The full profile is only shown to its owner."""
    user = user_service.get_by_username(db, username)
    if user.id == principal.id:
        return ProfileResponse.for_owner(user)
    return ProfileResponse.for_public(user)
