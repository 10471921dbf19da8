"""FastAPI dependencies: authenticated principal and role gates.

Usage in any protected router:
    from src.sm_gateway.auth.dependencies import get_current_principal, require_provider

    @router.post("/x")
    async def x(provider: Annotated[ProviderPrincipal, Depends(require_provider)]):
        ...
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from src.sm_common.errors import AuthorizationError, InvalidCredentialsError
from src.sm_common.principal import (
    AdminPrincipal,
    CustomerPrincipal,
    Principal,
    ProviderPrincipal,
)
from src.sm_gateway.auth.jwt_handler import decode_access_token

# tokenUrl points at the external identity service's login endpoint
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")

# Reusable 401 exception with WWW-Authenticate header (OAuth2 standard)
_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid or expired token",
    headers={"WWW-Authenticate": "Bearer"},
)


async def get_current_principal(token: str = Depends(oauth2_scheme)) -> Principal:
    """Extract and validate the JWT Bearer token, return the caller's Principal."""
    try:
        return decode_access_token(token)
    except InvalidCredentialsError:
        raise _CREDENTIALS_EXCEPTION from None


async def require_customer(
    principal: Principal = Depends(get_current_principal),
) -> CustomerPrincipal:
    if not isinstance(principal, CustomerPrincipal):
        raise AuthorizationError("Customer account required")
    return principal


async def require_provider(
    principal: Principal = Depends(get_current_principal),
) -> ProviderPrincipal:
    if not isinstance(principal, ProviderPrincipal):
        raise AuthorizationError("Provider account required")
    return principal


async def require_admin(
    principal: Principal = Depends(get_current_principal),
) -> AdminPrincipal:
    if not isinstance(principal, AdminPrincipal):
        raise AuthorizationError("Admin account required", code=4003)
    return principal
