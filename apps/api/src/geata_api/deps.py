"""FastAPI dependencies: service container, user and admin authentication."""
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from geata_core.auth import ExpiredSignatureError, JWTError, decode_token, safe_compare
from geata_core.errors import NotFoundError
from geata_core.models import User
from geata_core.services import Services

auth_log = logging.getLogger("geata_api.auth")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login")


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_current_user(token: str = Depends(oauth2_scheme), services: Services = Depends(get_services)) -> User:
    """Resolve the current user from a bearer token."""
    try:
        payload = decode_token(token)
    except ExpiredSignatureError:
        auth_log.warning("auth.token expired")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="expired token")
    except JWTError:
        auth_log.warning("auth.token invalid")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid token")

    user_id = payload.get("sub")
    if not user_id:
        auth_log.warning("auth.token missing_sub")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid token: no subject")
    try:
        user = services.users.get(user_id)
    except NotFoundError:
        auth_log.warning("auth.user not_found sub=%s", user_id)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid token: user not found")
    return user


def require_admin(
    x_api_key: Optional[str] = Header(None),
    services: Services = Depends(get_services),
) -> str:
    """Admin endpoints authenticate with the ``x-api-key`` header."""
    expected = services.settings.admin_api_key
    if not expected or not safe_compare(x_api_key, expected):
        auth_log.warning("auth.admin invalid key")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized: invalid admin key")
    return "admin"


__all__ = ["get_services", "get_current_user", "require_admin", "oauth2_scheme"]
