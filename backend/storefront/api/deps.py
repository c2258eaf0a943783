from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from storefront.adapters.payment_gateway import PaymentGateway, get_default_gateway
from storefront.config import settings
from storefront.db import get_db
from storefront.models.user import User
from storefront.repositories.session_repo import DbSessionRepository, SessionRepository
from storefront.repositories.user_repo import UserRepository


def get_session_repository(db: Session = Depends(get_db)) -> SessionRepository:
    return DbSessionRepository(db)


def get_payment_gateway() -> PaymentGateway:
    return get_default_gateway()


def session_token(request: Request) -> Optional[str]:
    """Login token from the session cookie, or an ``Authorization: Bearer`` header."""
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if token:
        return token
    auth = request.headers.get("Authorization", "")
    scheme, _, value = auth.partition(" ")
    if scheme.lower() == "bearer" and value:
        return value.strip()
    return None


def get_current_user_id(
    request: Request,
    sessions: SessionRepository = Depends(get_session_repository),
) -> int:
    token = session_token(request)
    data = sessions.get(token) if token else None
    if not data or not data.get("user_id"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return int(data["user_id"])


def get_current_user(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> User:
    user = UserRepository(db).get(user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user
