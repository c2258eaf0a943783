from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from storefront.models.user import User


class UserRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: int) -> Optional[User]:
        return self.db.get(User, user_id)

    def get_by_username(self, username: str) -> Optional[User]:
        return self.db.query(User).filter(User.username == username).first()

    def exists(self, username: str, email: str) -> bool:
        return (
            self.db.query(User.id)
            .filter(or_(User.username == username, User.email == email))
            .first()
            is not None
        )

    def add(self, user: User) -> User:
        self.db.add(user)
        self.db.flush()
        return user
