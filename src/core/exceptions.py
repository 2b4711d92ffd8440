"""Custom exception classes for the Aithor backend.

This module defines application-specific exceptions following Google Python
Style Guide. Every error carries the HTTP status it maps to and a
machine-readable reason code so the API layer can render it uniformly.
"""

from typing import Any, Dict, Optional


class AithorError(Exception):
    """Base exception for all Aithor backend errors."""

    status_code: int = 500
    reason: str = "INTERNAL_ERROR"

    def __init__(self, message: str, provider: Optional[str] = None):
        """Initialize the exception.

        Args:
            message: Human-readable description of the failure.
            provider: Provider the failure relates to, if any.
        """
        self.message = message
        self.provider = provider
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Return the JSON body rendered for this error."""
        body: Dict[str, Any] = {"detail": self.message, "reason": self.reason}
        if self.provider:
            body["provider"] = self.provider
        return body


class ValidationError(AithorError):
    """Raised when input is missing or malformed."""

    status_code = 400
    reason = "VALIDATION_ERROR"


class NotFoundError(AithorError):
    """Raised when a referenced entity is absent or not owned by the caller."""

    status_code = 404
    reason = "NOT_FOUND"


class DuplicateKeyError(AithorError):
    """Raised when an API key with the same value is already stored."""

    status_code = 400
    reason = "DUPLICATE_KEY"


class DuplicateUserError(AithorError):
    """Raised when signing up with an email that is already registered."""

    status_code = 400
    reason = "DUPLICATE_USER"

    def __init__(self, email: str):
        self.email = email
        super().__init__("User already exists")


class QuotaExceededError(AithorError):
    """Raised when the free call allowance for a provider is used up."""

    status_code = 429
    reason = "QUOTA_EXCEEDED"

    def __init__(self, provider: str):
        super().__init__(
            "Free quota exceeded. Add your own API key to continue.",
            provider=provider,
        )


class UserKeyRequiredError(AithorError):
    """Raised when a provider has no free tier and the user has no key."""

    status_code = 400
    reason = "USER_KEY_REQUIRED"

    def __init__(self, provider: str):
        super().__init__(
            f"Please add your own API key for {provider} provider.",
            provider=provider,
        )


class ProviderNotConfiguredError(AithorError):
    """Raised when no active app key exists for a free-tier provider."""

    status_code = 500
    reason = "PROVIDER_NOT_CONFIGURED"

    def __init__(self, provider: str):
        super().__init__(
            "App key not configured for this provider", provider=provider
        )


class InvalidCredentialsError(AithorError):
    """Raised when an email/password pair does not match."""

    status_code = 401
    reason = "INVALID_CREDENTIALS"

    def __init__(self):
        super().__init__("Invalid credentials")


class UnauthorizedError(AithorError):
    """Raised when a request carries no valid authentication."""

    status_code = 401
    reason = "UNAUTHORIZED"


class ForbiddenError(AithorError):
    """Raised when an authenticated caller lacks the required privilege."""

    status_code = 403
    reason = "FORBIDDEN"


class RateLimitedError(AithorError):
    """Raised when a caller exceeds a request limit."""

    status_code = 429
    reason = "RATE_LIMITED"


class UpstreamFailureError(AithorError):
    """Raised when a mail, payment or AI provider call fails."""

    status_code = 502
    reason = "UPSTREAM_FAILURE"
