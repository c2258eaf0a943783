from datetime import datetime
from typing import Optional

from storefront.schemas.base import ApiModel


class RegisterIn(ApiModel):
    username: str
    email: str
    password: str
    full_name: Optional[str] = None
    address: Optional[str] = None


class LoginIn(ApiModel):
    username: str
    password: str


class UserOut(ApiModel):
    id: int
    username: str
    email: str
    full_name: Optional[str] = None
    address: Optional[str] = None
    role: str
    created_at: Optional[datetime] = None


class LoginOut(ApiModel):
    user: UserOut
    token: str
