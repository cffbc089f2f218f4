from typing import Optional

from pydantic import EmailStr, Field

from api.schemas import CamelModel, iso


class RegisterRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    display_name: Optional[str] = Field(default=None, min_length=1, max_length=100)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)


class RefreshRequest(CamelModel):
    refresh_token: str = Field(min_length=1)


class ForgotPasswordRequest(CamelModel):
    email: EmailStr


class ResetPasswordRequest(CamelModel):
    token: str = Field(min_length=1)
    password: str = Field(min_length=8, max_length=128)


def user_to_dict(user) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "displayName": user.display_name,
        "timezone": user.timezone,
        "createdAt": iso(user.created_at),
    }
