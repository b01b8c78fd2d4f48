"""Bearer-token authentication. Tokens are issued by the external identity provider."""

from datetime import timedelta
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from bookloop.config import settings
from bookloop.domain.caller import Caller
from bookloop.domain.enums import Role
from bookloop.domain.models import utcnow

bearer_scheme = HTTPBearer()
optional_bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(user_id: UUID, role: Role = Role.USER, expires_in: timedelta = timedelta(hours=1)) -> str:
    """Mint a token in the provider's format (used by tooling and tests)."""
    claims = {"sub": str(user_id), "role": role.value, "exp": utcnow() + expires_in}
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Caller:
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"verify_aud": False},
        )
        user_id = UUID(claims["sub"])
    except (JWTError, KeyError, ValueError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        ) from exc
    role = Role.ADMIN if claims.get("role") == Role.ADMIN.value else Role.USER
    return Caller(user_id=user_id, role=role)


async def get_current_caller(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> Caller:
    return decode_access_token(credentials.credentials)


async def get_optional_caller(
    credentials: HTTPAuthorizationCredentials | None = Depends(optional_bearer_scheme),
) -> Caller | None:
    if credentials is None:
        return None
    return decode_access_token(credentials.credentials)
