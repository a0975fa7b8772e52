# backend/vowmarket/api/auth.py

from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordRequestForm
import logging

from ..schemas.user import Token, UserCreate, UserResponse, UserUpdate
from ..services.identity import Identity, IdentityProvider, Principal
from .dependencies import get_current_principal, get_identity_provider

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


def _user_response(identity: Identity, provider: IdentityProvider) -> UserResponse:
    return UserResponse(
        id=identity.user_id,
        email=identity.email,
        display_name=identity.display_name,
        role=provider.resolve_role(identity.user_id),
        photo_url=identity.photo_url,
        phone_number=identity.phone_number,
        city=identity.city,
        profile_complete=identity.profile_complete,
    )


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
def register(
    user_in: UserCreate,
    provider: IdentityProvider = Depends(get_identity_provider),
):
    identity = provider.register(user_in)
    logger.info("auth.registered user_id=%s role=%s", identity.user_id, user_in.role)
    return Token(access_token=provider.issue_token(identity), user=_user_response(identity, provider))


@router.post("/login", response_model=Token)
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    """OAuth2 password flow; ``username`` carries the email address."""
    identity = provider.authenticate(form_data.username, form_data.password)
    return Token(access_token=provider.issue_token(identity), user=_user_response(identity, provider))


@router.get("/me", response_model=UserResponse)
def read_me(
    principal: Principal = Depends(get_current_principal),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    return _user_response(principal.identity, provider)


@router.patch("/me", response_model=UserResponse)
def update_me(
    changes: UserUpdate,
    principal: Principal = Depends(get_current_principal),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    identity = provider.update_profile(principal.user_id, changes)
    logger.info(
        "auth.profile_updated user_id=%s fields=%s profile_complete=%s",
        identity.user_id, sorted(changes.model_fields_set), identity.profile_complete,
    )
    return _user_response(identity, provider)
