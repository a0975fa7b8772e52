from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from typing import Callable, Optional

from ..core.config import settings
from ..database import get_db
from ..models.user import UserRole
from ..services.exceptions import AuthenticationFailed
from ..services.identity import (
    DatabaseIdentityProvider,
    IdentityProvider,
    Principal,
)
from ..services.payment_gateway import PaymentGateway, build_payment_gateway

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/login", auto_error=False)


def get_identity_provider(request: Request, db: Session = Depends(get_db)) -> IdentityProvider:
    """Provider picked by ``AUTH_BACKEND``; the memory provider lives on ``app.state``."""
    provider = getattr(request.app.state, "identity_provider", None)
    if provider is not None:
        return provider
    return DatabaseIdentityProvider(db)


def get_payment_gateway(request: Request) -> PaymentGateway:
    gateway = getattr(request.app.state, "payment_gateway", None)
    if gateway is None:
        gateway = build_payment_gateway(settings)
        request.app.state.payment_gateway = gateway
    return gateway


def _credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_optional_principal(
    token: Optional[str] = Depends(oauth2_scheme),
    provider: IdentityProvider = Depends(get_identity_provider),
) -> Principal:
    """Caller's principal; anonymous callers resolve to ``guest``."""
    try:
        return provider.resolve(token)
    except AuthenticationFailed:
        raise _credentials_exception()


def get_current_principal(principal: Principal = Depends(get_optional_principal)) -> Principal:
    if principal.role == UserRole.GUEST:
        raise _credentials_exception()
    return principal


def require_role(*roles: UserRole) -> Callable[..., Principal]:
    """Dependency factory: the signed-in caller must hold one of ``roles``."""
    allowed = set(roles)

    def _check(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "message": "You do not have access to this resource.",
                    "field_errors": {"role": principal.role.value},
                },
            )
        return principal

    return _check
