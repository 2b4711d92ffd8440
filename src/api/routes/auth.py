"""Authentication routes.

This module handles HTTP endpoints for signup, login, email verification,
Google sign-in, password management and the admin user operations.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

import pytz
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from config import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    FRONTEND_BASE_URL,
    JWT_ALGORITHM,
    JWT_SECRET_KEY,
)
from core.dependencies import (
    GoogleVerifierDep,
    MailServiceDep,
    OTPManagerDep,
    QuotaManagerDep,
    UserManagerDep,
)
from core.exceptions import (
    DuplicateUserError,
    ForbiddenError,
    UpstreamFailureError,
    ValidationError,
)
from schemas.user import (
    AuthResponse,
    ChangePasswordRequest,
    CurrentUserResponse,
    ForgotPasswordRequest,
    GoogleAuthRequest,
    LoginRequest,
    MessageResponse,
    ResetPasswordRequest,
    SendOTPRequest,
    SignupRequest,
    SignupWithOTPRequest,
    User,
    VerifyOTPRequest,
    VerifyResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])

# Missing credentials are reported as 401 by verify_token
security = HTTPBearer(auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token.

    Args:
        data: Data to encode in the token.
        expires_delta: Optional expiration time delta.

    Returns:
        Encoded JWT token string.
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(pytz.utc) + expires_delta
    else:
        expire = datetime.now(pytz.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def issue_token(user: User) -> str:
    return create_access_token(
        data={"sub": user.user_id, "email": user.email, "is_admin": user.is_admin}
    )


def decode_token(token: str) -> Optional[dict]:
    """Return the token payload, or None if it is invalid or expired."""
    try:
        payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None
    if payload.get("sub") is None:
        return None
    return payload


def verify_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict:
    """Verify JWT token from Authorization header.

    Args:
        credentials: HTTP Bearer token credentials.

    Returns:
        Decoded token payload.

    Raises:
        HTTPException: If the token is missing, invalid or expired.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No token provided",
        )
    payload = decode_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
        )
    return payload


def get_current_user(
    token_payload: dict = Depends(verify_token),
    user_manager: UserManagerDep = None,
) -> User:
    """Get current authenticated user.

    The user is always re-read from the database, so a revoked admin flag
    takes effect immediately even for tokens issued before the change.

    Raises:
        HTTPException: If user is not found.
    """
    user = user_manager.get_user_by_id(token_payload["sub"])
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    user_manager: UserManagerDep = None,
) -> Optional[User]:
    """Return the caller if a valid token is sent, otherwise None."""
    if credentials is None:
        return None
    payload = decode_token(credentials.credentials)
    if payload is None:
        return None
    return user_manager.get_user_by_id(payload["sub"])


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """Allow only admin users.

    Raises:
        ForbiddenError: If the caller is not an admin.
    """
    if not current_user.is_admin:
        raise ForbiddenError("Admin access required")
    return current_user


@router.post("/signup", response_model=AuthResponse, summary="Sign up with email")
def signup(
    req: SignupRequest,
    user_manager: UserManagerDep = None,
) -> AuthResponse:
    """Create an account with email and password.

    Raises:
        DuplicateUserError: If the email is already registered.
    """
    user = user_manager.create_user(
        email=req.email,
        password=req.password,
        name=req.name or req.email.split("@")[0],
    )
    return AuthResponse(
        token=issue_token(user), user=user, message="User created successfully."
    )


@router.post("/login", response_model=AuthResponse, summary="Log in")
def login(
    req: LoginRequest,
    user_manager: UserManagerDep = None,
) -> AuthResponse:
    user = user_manager.authenticate(req.email, req.password)
    return AuthResponse(token=issue_token(user), user=user)


@router.get("/verify", response_model=VerifyResponse, summary="Verify token")
def verify(
    current_user: User = Depends(get_current_user),
    quota_manager: QuotaManagerDep = None,
) -> VerifyResponse:
    """Validate the bearer token and return the user with quota summary."""
    return VerifyResponse(
        valid=True,
        user=current_user,
        quotas=quota_manager.get_summary(current_user.user_id),
    )


@router.get("/me", response_model=CurrentUserResponse, summary="Current user")
def get_current_user_info(
    current_user: User = Depends(get_current_user),
) -> CurrentUserResponse:
    return CurrentUserResponse(user=current_user)


@router.post("/send-otp", response_model=MessageResponse, summary="Send signup OTP")
def send_otp(
    req: SendOTPRequest,
    user_manager: UserManagerDep = None,
    otp_manager: OTPManagerDep = None,
    mail: MailServiceDep = None,
) -> MessageResponse:
    """Email a one-time password for signup.

    Raises:
        ValidationError: If a verified account already uses the email.
        RateLimitedError: If the email requested too many codes.
        UpstreamFailureError: If the email could not be delivered; the code
            is invalidated in that case.
    """
    existing = user_manager.get_user_by_email(req.email)
    if existing and existing.is_verified:
        raise ValidationError("User already exists and is verified. Please sign in instead.")

    code = otp_manager.issue(req.email)
    try:
        mail.send_otp_email(req.email, code)
    except UpstreamFailureError:
        otp_manager.invalidate(req.email)
        raise
    return MessageResponse(message="OTP sent successfully to your email")


@router.post("/verify-otp", summary="Verify OTP")
def verify_otp(
    req: VerifyOTPRequest,
    otp_manager: OTPManagerDep = None,
) -> dict:
    otp_manager.verify(req.email, req.otp)
    return {"message": "OTP verified successfully", "verified": True}


@router.post("/signup-with-otp", response_model=AuthResponse, summary="Sign up with OTP")
def signup_with_otp(
    req: SignupWithOTPRequest,
    user_manager: UserManagerDep = None,
    otp_manager: OTPManagerDep = None,
) -> AuthResponse:
    """Verify the emailed OTP and create a verified account."""
    if user_manager.get_user_by_email(req.email):
        raise DuplicateUserError(req.email)
    otp_manager.verify(req.email, req.otp)
    user = user_manager.create_user(
        email=req.email,
        password=req.password,
        name=req.name or req.email.split("@")[0],
        is_verified=True,
    )
    return AuthResponse(
        token=issue_token(user),
        user=user,
        message="User created and verified successfully.",
    )


@router.post("/google-auth", response_model=AuthResponse, summary="Sign in with Google")
def google_auth(
    req: GoogleAuthRequest,
    user_manager: UserManagerDep = None,
    verifier: GoogleVerifierDep = None,
) -> AuthResponse:
    identity = verifier.verify(req.credential)
    user = user_manager.login_with_google(
        google_id=identity.google_id,
        email=identity.email,
        name=identity.name,
        picture=identity.picture,
    )
    return AuthResponse(token=issue_token(user), user=user)


@router.post("/forgot-password", response_model=MessageResponse, summary="Request reset")
def forgot_password(
    req: ForgotPasswordRequest,
    user_manager: UserManagerDep = None,
    mail: MailServiceDep = None,
) -> MessageResponse:
    """Email a password reset link valid for one hour.

    Raises:
        NotFoundError: If no user has this email.
        UpstreamFailureError: If the email could not be delivered; the token
            is cleared in that case.
    """
    user, token = user_manager.issue_reset_token(req.email)
    link = f"{FRONTEND_BASE_URL}/reset-password/{token}"
    try:
        mail.send_password_reset_email(user.email, user.name, link)
    except UpstreamFailureError:
        user_manager.clear_reset_token(user.user_id)
        raise
    return MessageResponse(message="Password reset email sent successfully")


@router.post("/reset-password", response_model=MessageResponse, summary="Reset password")
def reset_password(
    req: ResetPasswordRequest,
    user_manager: UserManagerDep = None,
) -> MessageResponse:
    user_manager.reset_password(req.token, req.password)
    return MessageResponse(message="Password reset successfully")


@router.post("/change-password", response_model=MessageResponse, summary="Change password")
def change_password(
    req: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    user_manager: UserManagerDep = None,
) -> MessageResponse:
    user_manager.change_password(
        current_user.user_id, req.current_password, req.new_password
    )
    return MessageResponse(message="Password changed successfully")


@router.post("/grant-admin/{user_id}", response_model=MessageResponse, summary="Grant admin")
def grant_admin(
    user_id: str,
    admin: User = Depends(require_admin),
    user_manager: UserManagerDep = None,
) -> MessageResponse:
    user = user_manager.set_admin(user_id, True)
    logger.info("Admin %s granted admin to %s", admin.user_id, user_id)
    return MessageResponse(message="Admin access granted successfully", user=user)


@router.post("/revoke-admin/{user_id}", response_model=MessageResponse, summary="Revoke admin")
def revoke_admin(
    user_id: str,
    admin: User = Depends(require_admin),
    user_manager: UserManagerDep = None,
) -> MessageResponse:
    user = user_manager.set_admin(user_id, False)
    logger.info("Admin %s revoked admin from %s", admin.user_id, user_id)
    return MessageResponse(message="Admin access revoked successfully", user=user)


@router.get("/admin/users", response_model=List[User], summary="List users")
def list_users(
    admin: User = Depends(require_admin),
    user_manager: UserManagerDep = None,
) -> List[User]:
    return user_manager.list_users()


@router.delete("/admin/users/{user_id}", response_model=MessageResponse, summary="Delete user")
def delete_user(
    user_id: str,
    admin: User = Depends(require_admin),
    user_manager: UserManagerDep = None,
) -> MessageResponse:
    """Delete a user together with their keys and quota records."""
    if user_id == admin.user_id:
        raise ValidationError("Cannot delete your own account")
    user = user_manager.delete_user(user_id)
    return MessageResponse(message="User deleted successfully", user=user)
