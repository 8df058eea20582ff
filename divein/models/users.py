# divein/models/users.py
from typing import Literal, Optional
from pydantic import BaseModel, EmailStr

UserRole = Literal["organization"]


class Principal(BaseModel):
    """The authenticated caller. Anonymous visitors have no Principal at all."""
    id: str
    email: str
    role: UserRole = "organization"

    @property
    def is_organization(self) -> bool:
        return self.role == "organization"


# Input schema for signup (request body)
class UserCreate(BaseModel):
    email: EmailStr
    password: str
    confirm_password: str
    organization_name: str = ""


# Input schema for login (request body)
class UserLogin(BaseModel):
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class LogoutRequest(BaseModel):
    refresh_token: Optional[str] = None


class PasswordResetRequest(BaseModel):
    email: str = ""
    redirect_url: Optional[str] = None


class PasswordResetConfirm(BaseModel):
    token: str
    password: str
    confirm_password: str

