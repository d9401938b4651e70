import re
from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional


def validate_password_strength(password: str) -> str:
    """
    Password rules
    - at least 8 characters
    - at least three of: upper case, lower case, digits, symbols
    """
    if len(password) < 8:
        raise ValueError("Password must be at least 8 characters")

    categories = 0
    if re.search(r"[A-Z]", password):
        categories += 1
    if re.search(r"[a-z]", password):
        categories += 1
    if re.search(r"[0-9]", password):
        categories += 1
    if re.search(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>\/?~`]", password):
        categories += 1

    if categories < 3:
        raise ValueError(
            "Password must contain at least three of: upper case, lower case, digits, symbols"
        )

    return password


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    name: str = Field(min_length=1, max_length=255)

    @field_validator("password")
    @classmethod
    def check_password_strength(cls, v: str) -> str:
        return validate_password_strength(v)


class VerifyEmailRequest(BaseModel):
    user_id: int
    code: str = Field(min_length=6, max_length=6)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordResetConfirm(BaseModel):
    token: str
    new_password: str = Field(min_length=8, max_length=128)

    @field_validator("new_password")
    @classmethod
    def check_password_strength(cls, v: str) -> str:
        return validate_password_strength(v)


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(min_length=8, max_length=128)

    @field_validator("new_password")
    @classmethod
    def check_password_strength(cls, v: str) -> str:
        return validate_password_strength(v)


class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    profile_image: Optional[str] = Field(default=None, max_length=500)


class AuthResponse(BaseModel):
    message: str
    user_id: Optional[int] = None
    csrf_token: Optional[str] = None


class UserInfo(BaseModel):
    id: int
    email: str
    name: str
    role: str
    status: str
    verified: bool
    lead_coins: int
    permissions: Optional[list[str]] = None
    profile_image: Optional[str] = None

    model_config = {"from_attributes": True}
