from dataclasses import dataclass
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from loguru import logger

from .settings import Settings, get_settings

# auto_error is off so a missing header produces the same 401 body as a bad token.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token", auto_error=False)


@dataclass(frozen=True)
class AuthenticatedUser:
    user_id: str
    token: str


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
        headers={"WWW-Authenticate": "Bearer"},
    )


def require_user(
    token: Annotated[Optional[str], Depends(oauth2_scheme)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> AuthenticatedUser:
    """
    Dependency that requires a Bearer token and resolves it to a user.

    OAuth2PasswordBearer only accepts the "Bearer" scheme, anything else
    arrives here as None.
    """
    if not token:
        raise _unauthorized()

    user_id = settings.TOKENS.get(token)
    if not user_id:
        logger.info("Rejected bearer token (unknown credential)")
        raise _unauthorized()

    return AuthenticatedUser(user_id=user_id, token=token)
