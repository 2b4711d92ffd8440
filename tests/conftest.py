"""Pytest configuration for the Aithor backend tests."""

import os
import tempfile

from cryptography.fernet import Fernet

# Configure the environment before any application module reads it
_TMP_DIR = tempfile.mkdtemp(prefix="aithor-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR}/test.db"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["API_KEY_ENCRYPTION_KEY"] = Fernet.generate_key().decode()
os.environ["FREE_TIER_PROVIDERS"] = "openai,gemini"
os.environ["DEFAULT_MAX_FREE_CALLS"] = "10"
os.environ["FRONTEND_BASE_URL"] = "https://chat.example.test"

from typing import Any, Dict, List, Optional, Tuple  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app import app  # noqa: E402
from core import dependencies  # noqa: E402
from core.database import SessionLocal, engine  # noqa: E402
from core.exceptions import UnauthorizedError, UpstreamFailureError  # noqa: E402
from models.base import Base  # noqa: E402
from utils import llm_manager, user_manager  # noqa: E402
from utils.google_auth import GoogleIdentity  # noqa: E402
from utils.payment_service import RazorpayService  # noqa: E402

RAZORPAY_KEY_ID = "rzp_test_key"
RAZORPAY_KEY_SECRET = "rzp_test_secret"
RAZORPAY_WEBHOOK_SECRET = "rzp_webhook_secret"


class FakeMailer:
    """Records outgoing mail instead of calling Brevo."""

    def __init__(self) -> None:
        self.otps: Dict[str, str] = {}
        self.reset_links: Dict[str, str] = {}
        self.fail = False

    def send_otp_email(self, email: str, otp: str) -> None:
        if self.fail:
            raise UpstreamFailureError("Failed to send email. Please try again.")
        self.otps[email] = otp

    def send_password_reset_email(self, email: str, name: Optional[str], link: str) -> None:
        if self.fail:
            raise UpstreamFailureError("Failed to send email. Please try again.")
        self.reset_links[email] = link


class FakeGoogleVerifier:
    """Accepts credentials of the form ``google:<sub>:<email>``."""

    def verify(self, credential: str) -> GoogleIdentity:
        parts = credential.split(":")
        if len(parts) != 3 or parts[0] != "google":
            raise UnauthorizedError("Invalid Google token")
        return GoogleIdentity(
            google_id=parts[1],
            email=parts[2],
            name="Google User",
            picture="https://example.test/avatar.png",
        )


class FakeRazorpay(RazorpayService):
    """Real signature checks, canned gateway responses."""

    def __init__(self) -> None:
        super().__init__(
            key_id=RAZORPAY_KEY_ID,
            key_secret=RAZORPAY_KEY_SECRET,
            webhook_secret=RAZORPAY_WEBHOOK_SECRET,
        )
        self.counter = 0

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.counter += 1
        if path == "/orders":
            return {
                "id": f"order_{self.counter}",
                "entity": "order",
                "amount": payload["amount"],
                "currency": payload["currency"],
                "receipt": payload["receipt"],
                "status": "created",
            }
        return {
            "id": f"qr_{self.counter}",
            "entity": "qr_code",
            "payment_amount": payload["payment_amount"],
            "image_url": f"https://rzp.example.test/qr_{self.counter}.png",
            "status": "active",
        }


class FakeLLM:
    """Stands in for LLMManager.chat and remembers each call."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, str, str]] = []
        self.fail = False

    def chat(self, provider, model_id, api_key, messages) -> Tuple[str, str]:
        if self.fail:
            raise UpstreamFailureError("Provider request failed", provider=provider)
        self.calls.append((provider, model_id, api_key))
        return f"echo: {messages[-1].content}", f"{model_id}-vendor"


@pytest.fixture(autouse=True)
def reset_database():
    """Give every test an empty database."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(autouse=True)
def fast_password_hashing(monkeypatch):
    monkeypatch.setattr(user_manager, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def razorpay() -> FakeRazorpay:
    return FakeRazorpay()


@pytest.fixture
def client(mailer, fake_llm, razorpay):
    app.dependency_overrides[dependencies.get_mail_service] = lambda: mailer
    app.dependency_overrides[dependencies.get_google_verifier] = FakeGoogleVerifier
    app.dependency_overrides[dependencies.get_payment_service] = lambda: razorpay
    app.dependency_overrides[llm_manager.get_llm_manager] = lambda: fake_llm
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def signup(client: TestClient, email: str, password: str = "secret123") -> Dict[str, Any]:
    """Create an account through the API and return token, user and headers."""
    response = client.post(
        "/api/auth/signup", json={"email": email, "password": password, "name": "Test"}
    )
    assert response.status_code == 200, response.text
    body = response.json()
    body["headers"] = {"Authorization": f"Bearer {body['token']}"}
    return body


@pytest.fixture
def user(client):
    return signup(client, "user@example.com")


@pytest.fixture
def admin(client, db):
    body = signup(client, "admin@example.com")
    user_manager.UserManager(db).set_admin(body["user"]["user_id"], True)
    return body


@pytest.fixture
def make_user(client):
    """Factory creating extra accounts through the signup endpoint."""

    def _make(email: str, password: str = "secret123") -> Dict[str, Any]:
        return signup(client, email, password)

    return _make
