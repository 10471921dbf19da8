"""JWT access-token verification and principal extraction.

Tokens are issued by the identity service; this module only verifies them
and turns the ``sub``/``role`` claims into a Principal variant.

MVP NOTE: Using HS256 (symmetric HMAC). All services share one JWT_SECRET.
create_access_token exists for local tooling and tests.
"""

from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from config.settings import settings
from src.sm_common.errors import InvalidCredentialsError
from src.sm_common.principal import (
    AdminPrincipal,
    CustomerPrincipal,
    Principal,
    ProviderPrincipal,
)

_ALGORITHM = settings.JWT_ALGORITHM  # "HS256"
_ACCESS_EXPIRE = timedelta(minutes=settings.JWT_EXPIRE_MINUTES)

_PRINCIPAL_BY_ROLE: dict[str, type[CustomerPrincipal | ProviderPrincipal | AdminPrincipal]] = {
    "customer": CustomerPrincipal,
    "provider": ProviderPrincipal,
    "admin": AdminPrincipal,
}


def create_access_token(user_id: str, role: str) -> str:
    if role not in _PRINCIPAL_BY_ROLE:
        raise ValueError(f"Unknown role: {role}")
    now = datetime.now(UTC)
    payload = {
        "sub": user_id,
        "role": role,
        "type": "access",
        "iat": now,
        "exp": now + _ACCESS_EXPIRE,
    }
    return str(jwt.encode(payload, settings.JWT_SECRET, algorithm=_ALGORITHM))


def decode_access_token(token: str) -> Principal:
    """Decode and validate an access token.

    Raises:
        InvalidCredentialsError: bad signature, expired, wrong type,
            missing subject or unknown role.
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[_ALGORITHM],  # Explicit list prevents algorithm confusion
        )
    except JWTError:
        raise InvalidCredentialsError() from None

    if payload.get("type") != "access":
        raise InvalidCredentialsError()
    user_id = payload.get("sub")
    principal_cls = _PRINCIPAL_BY_ROLE.get(payload.get("role", ""))
    if not user_id or principal_cls is None:
        raise InvalidCredentialsError()
    return principal_cls(id=str(user_id))
