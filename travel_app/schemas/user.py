from datetime import datetime

from pydantic import EmailStr

from travel_app.models.enums import UserRole
from travel_app.schemas.common import CamelModel


class UserRegister(CamelModel):
    name: str | None = None
    email: EmailStr | None = None
    password: str | None = None
    phone: str | None = None
    address: str | None = None


class UserLogin(CamelModel):
    email: EmailStr
    password: str


class UserOut(CamelModel):
    id: int
    name: str
    email: str
    role: UserRole
    phone: str | None = None
    address: str | None = None
    profile_picture: str | None = None
    created_at: datetime | None = None


class TokenOut(CamelModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


class SessionOut(CamelModel):
    user_id: int
    email: str
    name: str
    role: UserRole
    expires_at: datetime | None = None
