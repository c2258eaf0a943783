from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from storefront.api.deps import get_current_user, get_session_repository, session_token
from storefront.config import settings
from storefront.db import get_db
from storefront.models.user import User
from storefront.repositories.session_repo import SessionRepository
from storefront.schemas.auth_schema import LoginIn, LoginOut, RegisterIn, UserOut
from storefront.services.auth_service import AuthService, InvalidCredentials, UserExists

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _set_cookie(response: Response, token: str):
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        token,
        max_age=settings.SESSION_TTL_SECONDS,
        httponly=True,
        samesite="lax",
    )


@router.post("/register", response_model=LoginOut, status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterIn,
    response: Response,
    db: Session = Depends(get_db),
    sessions: SessionRepository = Depends(get_session_repository),
):
    svc = AuthService(db, sessions)
    try:
        user = svc.register(
            payload.username,
            payload.email,
            payload.password,
            full_name=payload.full_name,
            address=payload.address,
        )
    except UserExists as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    token = svc.start_session(user)
    _set_cookie(response, token)
    return LoginOut(user=UserOut.model_validate(user), token=token)


@router.post("/login", response_model=LoginOut)
def login(
    payload: LoginIn,
    response: Response,
    db: Session = Depends(get_db),
    sessions: SessionRepository = Depends(get_session_repository),
):
    try:
        user, token = AuthService(db, sessions).login(payload.username, payload.password)
    except InvalidCredentials as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))
    _set_cookie(response, token)
    return LoginOut(user=UserOut.model_validate(user), token=token)


@router.post("/logout")
def logout(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    sessions: SessionRepository = Depends(get_session_repository),
):
    AuthService(db, sessions).logout(session_token(request))
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return {"ok": True}


@router.get("/user", response_model=UserOut)
def current_user(user: User = Depends(get_current_user)):
    return UserOut.model_validate(user)
