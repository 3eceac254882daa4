from collections.abc import Callable

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from backend.config import settings
from backend.database import get_db
from backend.models.user import User
from backend.services.auth import get_user_from_token


def get_token(request: Request, authorization: str | None = Header(default=None)) -> str:
    if authorization and authorization.startswith("Bearer "):
        return authorization.replace("Bearer ", "", 1)
    cookie_token = request.cookies.get(settings.session_cookie_name)
    if cookie_token:
        return cookie_token
    raise HTTPException(status_code=401, detail="Authentication token is required. Please login first.")


def get_current_user(token: str = Depends(get_token), db: Session = Depends(get_db)) -> User:
    user = get_user_from_token(db, token)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid or expired authentication token. Please login again.")
    return user


def require_roles(*roles: str) -> Callable[..., User]:
    """Dependency that lets only users holding one of ``roles`` through."""

    def checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=403,
                detail=f"Forbidden. Your role ({current_user.role}) is not authorized for this resource.",
            )
        return current_user

    return checker
