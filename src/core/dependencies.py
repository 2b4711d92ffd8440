"""Dependency injection module for FastAPI.

This module provides dependency injection functions for FastAPI routes,
following Google Python Style Guide and FastAPI best practices.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session

from core.database import get_db
from utils import api_key_manager
from utils import app_key_manager
from utils import feedback_manager
from utils import google_auth
from utils import key_resolver
from utils import llm_manager
from utils import mail_service
from utils import otp_manager
from utils import payment_manager
from utils import payment_service
from utils import quota_manager
from utils import user_manager


def get_user_manager(db: Session = Depends(get_db)) -> user_manager.UserManager:
    """Get UserManager instance with request-scoped DB session.

    Args:
        db: Database session.

    Returns:
        UserManager instance.
    """
    return user_manager.UserManager(db)


def get_api_key_manager(db: Session = Depends(get_db)) -> api_key_manager.APIKeyManager:
    """Get APIKeyManager instance with request-scoped DB session.

    Args:
        db: Database session.

    Returns:
        APIKeyManager instance.
    """
    return api_key_manager.APIKeyManager(db)


def get_quota_manager(db: Session = Depends(get_db)) -> quota_manager.QuotaManager:
    """Get QuotaManager instance with request-scoped DB session."""
    return quota_manager.QuotaManager(db)


def get_app_key_manager(db: Session = Depends(get_db)) -> app_key_manager.AppKeyManager:
    """Get AppKeyManager instance with request-scoped DB session."""
    return app_key_manager.AppKeyManager(db)


def get_key_resolver(
    api_keys: api_key_manager.APIKeyManager = Depends(get_api_key_manager),
    quotas: quota_manager.QuotaManager = Depends(get_quota_manager),
    app_keys: app_key_manager.AppKeyManager = Depends(get_app_key_manager),
) -> key_resolver.KeyResolver:
    """Get KeyResolver built on the request's key stores."""
    return key_resolver.KeyResolver(api_keys, quotas, app_keys)


def get_otp_manager(db: Session = Depends(get_db)) -> otp_manager.OTPManager:
    """Get OTPManager instance with request-scoped DB session."""
    return otp_manager.OTPManager(db)


def get_feedback_manager(
    db: Session = Depends(get_db),
) -> feedback_manager.FeedbackManager:
    """Get FeedbackManager instance with request-scoped DB session."""
    return feedback_manager.FeedbackManager(db)


def get_payment_manager(db: Session = Depends(get_db)) -> payment_manager.PaymentManager:
    """Get PaymentManager instance with request-scoped DB session."""
    return payment_manager.PaymentManager(db)


def get_mail_service() -> mail_service.MailService:
    return mail_service.MailService()


def get_google_verifier() -> google_auth.GoogleTokenVerifier:
    return google_auth.GoogleTokenVerifier()


def get_payment_service() -> payment_service.RazorpayService:
    return payment_service.RazorpayService()


# Type aliases for dependency injection
UserManagerDep = Annotated[user_manager.UserManager, Depends(get_user_manager)]
APIKeyManagerDep = Annotated[
    api_key_manager.APIKeyManager, Depends(get_api_key_manager)
]
QuotaManagerDep = Annotated[quota_manager.QuotaManager, Depends(get_quota_manager)]
AppKeyManagerDep = Annotated[
    app_key_manager.AppKeyManager, Depends(get_app_key_manager)
]
KeyResolverDep = Annotated[key_resolver.KeyResolver, Depends(get_key_resolver)]
OTPManagerDep = Annotated[otp_manager.OTPManager, Depends(get_otp_manager)]
FeedbackManagerDep = Annotated[
    feedback_manager.FeedbackManager, Depends(get_feedback_manager)
]
PaymentManagerDep = Annotated[
    payment_manager.PaymentManager, Depends(get_payment_manager)
]
LLMManagerDep = Annotated[llm_manager.LLMManager, Depends(llm_manager.get_llm_manager)]
MailServiceDep = Annotated[mail_service.MailService, Depends(get_mail_service)]
GoogleVerifierDep = Annotated[
    google_auth.GoogleTokenVerifier, Depends(get_google_verifier)
]
PaymentServiceDep = Annotated[
    payment_service.RazorpayService, Depends(get_payment_service)
]
