"""Database models.

Importing this package registers every table with ``Base.metadata``.
"""

from .user import UserModel
from .api_key import APIKeyModel
from .app_key import AppKeyModel
from .user_quota import UserQuotaModel
from .feedback import FeedbackModel
from .otp_code import OTPCodeModel
from .payment import PaymentModel

__all__ = [
    "UserModel",
    "APIKeyModel",
    "AppKeyModel",
    "UserQuotaModel",
    "FeedbackModel",
    "OTPCodeModel",
    "PaymentModel",
]
