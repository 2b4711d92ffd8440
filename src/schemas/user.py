"""User and authentication schema definitions."""

from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from config import MIN_PASSWORD_LENGTH
from schemas.quota import QuotaStatus


class User(BaseModel):
    """Public view of a user; never carries password or reset material."""

    model_config = ConfigDict(from_attributes=True)

    user_id: str
    email: str
    name: Optional[str] = None
    picture: Optional[str] = None
    is_admin: bool = False
    is_verified: bool = False
    created_at: Optional[datetime] = None


class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)
    name: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class AuthResponse(BaseModel):
    token: str
    user: User
    message: Optional[str] = None


class CurrentUserResponse(BaseModel):
    user: User


class VerifyResponse(BaseModel):
    valid: bool
    user: User
    quotas: Dict[str, QuotaStatus]


class SendOTPRequest(BaseModel):
    email: EmailStr


class VerifyOTPRequest(BaseModel):
    email: EmailStr
    otp: str = Field(min_length=1)


class SignupWithOTPRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)
    otp: str = Field(min_length=1)
    name: Optional[str] = None


class GoogleAuthRequest(BaseModel):
    credential: str = Field(min_length=1, description="Google ID token")


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1)
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)


class ChangePasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_password: str = Field(alias="currentPassword", min_length=1)
    new_password: str = Field(alias="newPassword", min_length=MIN_PASSWORD_LENGTH)


class MessageResponse(BaseModel):
    message: str
    user: Optional[User] = None
