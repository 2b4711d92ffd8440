"""Configuration module for the Aithor backend.

This module provides centralized configuration management, including directory
paths, API server settings, LLM provider registry, quota defaults and
third-party service credentials. All configuration values can be overridden
via environment variables.
"""

import os
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# --- Directory Configuration ---

# Root directory of the project
ROOT_DIR = Path(__file__).parent.parent.resolve()

# Data directory name
DATA_DIR_NAME = "data"
DATA_DIR = ROOT_DIR / DATA_DIR_NAME

# --- Database Configuration ---

# Any SQLAlchemy URL; defaults to a SQLite file inside the data directory
DATABASE_URL: str = os.getenv("DATABASE_URL", f"sqlite:///{DATA_DIR}/aithor.db")

# --- API Server Configuration ---

API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = int(os.getenv("API_PORT", "8000"))

# CORS allowed origins (comma-separated list)
_CORS_ALLOWED_ORIGINS_STR: str = os.getenv(
    "CORS_ALLOWED_ORIGINS",
    "http://localhost:3000,http://localhost:5173,http://localhost:5174,"
    "http://localhost:8080,https://aithor.vercel.app,"
    "https://chat-with-aithor.vercel.app",
)
CORS_ALLOWED_ORIGINS: List[str] = [
    origin.strip()
    for origin in _CORS_ALLOWED_ORIGINS_STR.split(",")
    if origin.strip()
]

# --- Logging Configuration ---

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT: str = os.getenv(
    "LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# --- Authentication Configuration ---

JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "your-secret-key-change-in-production")
JWT_ALGORITHM: str = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES: int = int(
    os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7))
)
MIN_PASSWORD_LENGTH: int = 6

# Google OAuth client id; when unset the token audience is not checked
GOOGLE_CLIENT_ID: Optional[str] = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_TOKENINFO_URL: str = "https://oauth2.googleapis.com/tokeninfo"
GOOGLE_TIMEOUT_SECONDS: float = float(os.getenv("GOOGLE_TIMEOUT_SECONDS", "10"))

# Externally visible frontend URL used in password reset links
FRONTEND_BASE_URL: str = os.getenv(
    "FRONTEND_BASE_URL", "https://chat-with-aithor.vercel.app"
).rstrip("/")
PASSWORD_RESET_TTL_MINUTES: int = int(os.getenv("PASSWORD_RESET_TTL_MINUTES", "60"))

# --- One-Time Password Configuration ---

OTP_LENGTH: int = 6
OTP_TTL_MINUTES: int = int(os.getenv("OTP_TTL_MINUTES", "10"))
OTP_MAX_ATTEMPTS: int = int(os.getenv("OTP_MAX_ATTEMPTS", "3"))
OTP_MAX_REQUESTS: int = int(os.getenv("OTP_MAX_REQUESTS", "3"))
OTP_REQUEST_WINDOW_HOURS: int = int(os.getenv("OTP_REQUEST_WINDOW_HOURS", "24"))

# --- API Key Storage ---

# Fernet key used to encrypt stored provider keys (plain text when unset)
API_KEY_ENCRYPTION_KEY: Optional[str] = os.getenv("API_KEY_ENCRYPTION_KEY")

# --- Quota Configuration ---

# Providers whose calls are subsidised through an app-owned key
_FREE_TIER_PROVIDERS_STR: str = os.getenv("FREE_TIER_PROVIDERS", "openai,gemini")
FREE_TIER_PROVIDERS: FrozenSet[str] = frozenset(
    p.strip().lower() for p in _FREE_TIER_PROVIDERS_STR.split(",") if p.strip()
)

# Free calls granted per (user, provider) when a ledger record is created
DEFAULT_MAX_FREE_CALLS: int = int(os.getenv("DEFAULT_MAX_FREE_CALLS", "10"))

# --- LLM Configuration ---

TEMPERATURE: float = float(os.getenv("TEMPERATURE", "0.7"))
LLM_MAX_TOKENS: int = int(os.getenv("LLM_MAX_TOKENS", "1000"))
LLM_TIMEOUT_SECONDS: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "60"))
LLM_MAX_RETRIES: int = int(os.getenv("LLM_MAX_RETRIES", "1"))
# Upper bound on cached provider clients (least recently used are dropped)
LLM_CLIENT_CACHE_SIZE: int = int(os.getenv("LLM_CLIENT_CACHE_SIZE", "64"))

# Provider registry for OpenAI-compatible endpoints
LLM_PROVIDERS: Dict[str, Dict[str, object]] = {
    "openai": {
        "display_name": "OpenAI",
        "base_url": None,
        "default_model": "gpt-4o-mini",
        "models": {
            "gpt-4o-mini": "gpt-4o-mini",
            "gpt-4": "gpt-4",
            "gpt-3.5-turbo": "gpt-3.5-turbo",
        },
    },
    "gemini": {
        "display_name": "Google Gemini",
        "base_url": "https://generativelanguage.googleapis.com/v1beta/openai/",
        "default_model": "gemini-2.0-flash",
        "models": {
            "gemini-2.0-flash": "gemini-2.0-flash",
            "gemini-2.0-flash-exp": "gemini-2.0-flash-exp",
        },
    },
    "claude": {
        "display_name": "Anthropic Claude",
        "base_url": "https://api.anthropic.com/v1/",
        "default_model": "claude-3-haiku-20240307",
        "models": {
            "claude-3-haiku": "claude-3-haiku-20240307",
            "claude-3-sonnet": "claude-3-sonnet-20240229",
            "claude-3-opus": "claude-3-opus-20240229",
        },
    },
    "deepseek": {
        "display_name": "DeepSeek",
        "base_url": "https://api.deepseek.com",
        "default_model": "deepseek-chat",
        "models": {
            "deepseek-chat": "deepseek-chat",
            "deepseek-coder": "deepseek-coder",
        },
    },
    "perplexity": {
        "display_name": "Perplexity",
        "base_url": "https://api.perplexity.ai",
        "default_model": "sonar",
        "models": {
            "perplexity-sonar": "sonar",
            "perplexity-sonar-pro": "sonar-pro",
        },
    },
}

# --- Mail Configuration (Brevo transactional API) ---

BREVO_API_KEY: Optional[str] = os.getenv("BREVO_API_KEY")
BREVO_API_URL: str = "https://api.brevo.com/v3/smtp/email"
BREVO_SENDER_EMAIL: str = os.getenv("BREVO_FROM_EMAIL", "noreply@aithor.com")
BREVO_SENDER_NAME: str = os.getenv("BREVO_FROM_NAME", "Aithor AI")
MAIL_TIMEOUT_SECONDS: float = float(os.getenv("MAIL_TIMEOUT_SECONDS", "15"))

# --- Payment Configuration (Razorpay) ---

RAZORPAY_KEY_ID: Optional[str] = os.getenv("RAZORPAY_KEY_ID")
RAZORPAY_KEY_SECRET: Optional[str] = os.getenv("RAZORPAY_KEY_SECRET")
RAZORPAY_WEBHOOK_SECRET: Optional[str] = os.getenv("RAZORPAY_WEBHOOK_SECRET")
RAZORPAY_API_URL: str = "https://api.razorpay.com/v1"
PAYMENT_TIMEOUT_SECONDS: float = float(os.getenv("PAYMENT_TIMEOUT_SECONDS", "20"))
DEFAULT_CURRENCY: str = "INR"

# --- Feedback Configuration ---

FEEDBACK_SOURCES: FrozenSet[str] = frozenset({"landing", "app"})
FEEDBACK_PAGE_SIZE: int = 10
FEEDBACK_MAX_PAGE_SIZE: int = 100
