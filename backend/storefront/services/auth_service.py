import secrets
from typing import Optional, Tuple

from passlib.context import CryptContext
from passlib.exc import UnknownHashError
from sqlalchemy.orm import Session

from storefront.config import settings
from storefront.models.user import User
from storefront.repositories.session_repo import SessionRepository
from storefront.repositories.user_repo import UserRepository
from storefront.utils.logging import get_logger
from storefront.utils.transactions import transaction

log = get_logger(__name__)

# pure-python scheme, no native backend needed
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


class AuthError(Exception):
    pass


class UserExists(AuthError):
    pass


class InvalidCredentials(AuthError):
    pass


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (UnknownHashError, ValueError):
        # unrecognised or corrupt hash: treat as a failed login, not a 500
        return False


class AuthService:
    def __init__(self, db: Session, sessions: SessionRepository):
        self.db = db
        self.users = UserRepository(db)
        self.sessions = sessions

    def register(
        self,
        username: str,
        email: str,
        password: str,
        full_name: Optional[str] = None,
        address: Optional[str] = None,
        role: str = "customer",
    ) -> User:
        if self.users.exists(username, email):
            raise UserExists("Username or email already registered")
        with transaction(self.db, "auth.register"):
            user = self.users.add(
                User(
                    username=username,
                    email=email,
                    password_hash=get_password_hash(password),
                    full_name=full_name,
                    address=address,
                    role=role,
                )
            )
        log.info("registered user id=%s username=%s", user.id, username)
        return user

    def login(self, username: str, password: str) -> Tuple[User, str]:
        user = self.users.get_by_username(username)
        if not user or not verify_password(password, user.password_hash):
            raise InvalidCredentials("Invalid username or password")
        return user, self.start_session(user)

    def start_session(self, user: User) -> str:
        token = secrets.token_urlsafe(32)
        self.sessions.set(
            token, {"user_id": user.id, "role": user.role}, settings.SESSION_TTL_SECONDS
        )
        return token

    def logout(self, token: Optional[str]) -> None:
        if token:
            self.sessions.expire(token)
