"""Tests for the outbound HTTP services and the LLM wrapper."""

import json
from unittest import mock

import httpx
import openai
import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from core.exceptions import UnauthorizedError, UpstreamFailureError, ValidationError
from schemas.chat import ChatMessage
from utils.google_auth import GoogleTokenVerifier
from utils.llm_manager import LLMManager, to_langchain_messages
from utils.mail_service import MailService
from utils.payment_service import RazorpayService

_RealClient = httpx.Client


@pytest.fixture
def transport(monkeypatch):
    """Route every httpx.Client through a handler set by the test."""
    state = {"requests": [], "handler": None}

    def handle(request: httpx.Request) -> httpx.Response:
        state["requests"].append(request)
        return state["handler"](request)

    def factory(**kwargs):
        return _RealClient(transport=httpx.MockTransport(handle), **kwargs)

    monkeypatch.setattr(httpx, "Client", factory)
    return state


def test_mail_service_posts_brevo_payload(transport):
    transport["handler"] = lambda request: httpx.Response(201, json={"messageId": "m1"})

    MailService(api_key="brevo-key").send_otp_email("to@example.com", "123456")

    request = transport["requests"][0]
    assert request.headers["api-key"] == "brevo-key"
    payload = json.loads(request.content)
    assert payload["to"] == [{"email": "to@example.com", "name": "to@example.com"}]
    assert "123456" in payload["htmlContent"]


def test_mail_service_failures(transport):
    transport["handler"] = lambda request: httpx.Response(400, json={"message": "bad"})

    with pytest.raises(UpstreamFailureError):
        MailService(api_key="brevo-key").send_otp_email("to@example.com", "123456")
    with pytest.raises(UpstreamFailureError):
        MailService(api_key=None).send_otp_email("to@example.com", "123456")


def test_mail_service_network_error(transport):
    def fail(request):
        raise httpx.ConnectError("unreachable", request=request)

    transport["handler"] = fail
    with pytest.raises(UpstreamFailureError):
        MailService(api_key="brevo-key").send_password_reset_email(
            "to@example.com", "Ann", "https://x/reset"
        )


def test_google_verifier_accepts_valid_token(transport):
    transport["handler"] = lambda request: httpx.Response(
        200,
        json={
            "aud": "client-1",
            "sub": "g-123",
            "email": "g@example.com",
            "email_verified": "true",
            "name": "G",
        },
    )

    identity = GoogleTokenVerifier(client_id="client-1").verify("id-token")

    assert identity.google_id == "g-123"
    assert identity.email == "g@example.com"
    assert transport["requests"][0].url.params["id_token"] == "id-token"


@pytest.mark.parametrize(
    "status,body",
    [
        (400, {"error": "invalid_token"}),
        (200, {"aud": "other", "sub": "g", "email": "g@example.com", "email_verified": "true"}),
        (200, {"aud": "client-1", "sub": "g", "email": "g@example.com", "email_verified": "false"}),
    ],
)
def test_google_verifier_rejects(transport, status, body):
    transport["handler"] = lambda request: httpx.Response(status, json=body)

    with pytest.raises(UnauthorizedError):
        GoogleTokenVerifier(client_id="client-1").verify("id-token")


def test_razorpay_create_order_uses_basic_auth(transport):
    transport["handler"] = lambda request: httpx.Response(
        200, json={"id": "order_1", "amount": 500, "currency": "INR"}
    )
    service = RazorpayService(key_id="kid", key_secret="ksecret", webhook_secret="w")

    order = service.create_order(500, "INR", "r1")

    request = transport["requests"][0]
    assert order["id"] == "order_1"
    assert request.url.path == "/v1/orders"
    assert request.headers["authorization"].startswith("Basic ")
    assert json.loads(request.content) == {"amount": 500, "currency": "INR", "receipt": "r1"}


def test_razorpay_errors(transport):
    transport["handler"] = lambda request: httpx.Response(401, json={"error": "auth"})

    with pytest.raises(UpstreamFailureError):
        RazorpayService(key_id="kid", key_secret="ksecret").create_qr_code(100)
    with pytest.raises(UpstreamFailureError):
        RazorpayService(key_id=None, key_secret=None).create_order(100, "INR")


def test_razorpay_signatures_fail_closed_without_secrets():
    service = RazorpayService(key_id=None, key_secret=None, webhook_secret=None)

    assert service.verify_payment_signature("o", "p", "sig") is False
    assert service.verify_webhook_signature(b"{}", "sig") is False


def test_to_langchain_messages():
    converted = to_langchain_messages(
        [
            ChatMessage(role="system", content="Be brief"),
            ChatMessage(role="user", content="Hi"),
            ChatMessage(role="assistant", content="Hello"),
        ]
    )
    assert [type(m) for m in converted] == [SystemMessage, HumanMessage, AIMessage]


def test_resolve_model_aliases_and_defaults():
    manager = LLMManager()

    assert manager.resolve_model("claude", "claude-3-haiku") == "claude-3-haiku-20240307"
    assert manager.resolve_model("openai", "gpt-unknown") == "gpt-4o-mini"
    with pytest.raises(ValidationError):
        manager.resolve_model("mistral", "mistral-large")


def test_clients_are_cached_per_key():
    manager = LLMManager()

    first = manager.get_llm("openai", "gpt-4o-mini", "sk-one")
    again = manager.get_llm("openai", "gpt-4o-mini", "sk-one")
    other = manager.get_llm("openai", "gpt-4o-mini", "sk-two")

    assert first is again
    assert first is not other

    manager.invalidate_key("sk-one")

    assert manager.get_llm("openai", "gpt-4o-mini", "sk-one") is not first
    assert manager.get_llm("openai", "gpt-4o-mini", "sk-two") is other


def test_client_cache_is_bounded_and_drops_least_recently_used():
    manager = LLMManager(max_clients=3)

    oldest = manager.get_llm("openai", "gpt-4o-mini", "sk-0")
    for i in range(1, 3):
        manager.get_llm("openai", "gpt-4o-mini", f"sk-{i}")
    assert manager.get_llm("openai", "gpt-4o-mini", "sk-0") is oldest
    manager.get_llm("openai", "gpt-4o-mini", "sk-3")
    assert manager.get_llm("openai", "gpt-4o-mini", "sk-0") is oldest

    for i in range(4, 50):
        manager.get_llm("openai", "gpt-4o-mini", f"sk-{i}")

    assert len(manager.active_llms) == 3
    assert manager.get_llm("openai", "gpt-4o-mini", "sk-0") is not oldest


def test_chat_returns_reply_and_vendor_model():
    manager = LLMManager()
    llm = mock.Mock()
    llm.invoke.return_value = AIMessage(content="Hi there")

    with mock.patch.object(manager, "get_llm", return_value=llm) as get_llm:
        reply, model = manager.chat(
            "perplexity", "perplexity-sonar", "pplx-key", [ChatMessage(role="user", content="Hi")]
        )

    assert (reply, model) == ("Hi there", "sonar")
    get_llm.assert_called_once_with("perplexity", "sonar", "pplx-key")


def test_chat_maps_provider_errors():
    manager = LLMManager()
    llm = mock.Mock()
    llm.invoke.side_effect = openai.APIConnectionError(
        request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    )

    with mock.patch.object(manager, "get_llm", return_value=llm):
        with pytest.raises(UpstreamFailureError) as exc_info:
            manager.chat("openai", "gpt-4", "sk", [ChatMessage(role="user", content="Hi")])

    assert exc_info.value.provider == "openai"
