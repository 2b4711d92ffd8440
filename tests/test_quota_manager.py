"""Tests for the free-tier quota ledger and the app key pool."""

import pytest

from core.exceptions import NotFoundError, ValidationError
from models.user_quota import UserQuotaModel
from utils.app_key_manager import AppKeyManager
from utils.quota_manager import QuotaManager
from utils.user_manager import UserManager


@pytest.fixture
def alice(db):
    return UserManager(db).create_user("alice@example.com", "secret123")


@pytest.fixture
def bob(db):
    return UserManager(db).create_user("bob@example.com", "secret123")


@pytest.fixture
def quotas(db):
    return QuotaManager(db)


def test_free_tier_membership(quotas):
    assert quotas.is_free_tier("openai")
    assert quotas.is_free_tier("gemini")
    assert not quotas.is_free_tier("claude")


def test_first_check_creates_zero_usage_record(db, quotas, alice):
    assert quotas.has_remaining_quota(alice.user_id, "openai")

    record = db.query(UserQuotaModel).filter_by(user_id=alice.user_id).one()
    assert record.used_calls == 0
    assert record.max_free_calls == 10


def test_non_free_tier_provider_never_has_quota(db, quotas, alice):
    assert not quotas.has_remaining_quota(alice.user_id, "claude")
    quotas.increment_usage(alice.user_id, "claude")
    assert db.query(UserQuotaModel).count() == 0


def test_usage_is_monotonic_and_remaining_never_negative(quotas, alice):
    seen = []
    for _ in range(12):
        quotas.increment_usage(alice.user_id, "openai")
        seen.append(quotas.get_status(alice.user_id, "openai"))

    used = [s.used_calls for s in seen]
    assert used == sorted(used)
    assert used[-1] == 12
    assert all(s.remaining_calls >= 0 for s in seen)
    assert seen[-1].remaining_calls == 0
    assert not quotas.has_remaining_quota(alice.user_id, "openai")


def test_increment_without_record_inserts_one(quotas, alice):
    quotas.increment_usage(alice.user_id, "gemini")
    assert quotas.get_status(alice.user_id, "gemini").used_calls == 1


def test_quota_isolation(quotas, alice, bob):
    quotas.increment_usage(alice.user_id, "openai")
    quotas.increment_usage(alice.user_id, "openai")

    assert quotas.get_status(alice.user_id, "openai").used_calls == 2
    assert quotas.get_status(alice.user_id, "gemini").used_calls == 0
    assert quotas.get_status(bob.user_id, "openai").used_calls == 0


def test_reset_is_idempotent(quotas, alice):
    for _ in range(3):
        quotas.increment_usage(alice.user_id, "openai")

    assert quotas.reset_usage(alice.user_id, "openai").used_calls == 0
    assert quotas.reset_usage(alice.user_id, "openai").used_calls == 0
    assert quotas.get_status(alice.user_id, "openai").used_calls == 0


def test_reset_creates_missing_record(quotas, alice):
    info = quotas.reset_usage(alice.user_id, "gemini")
    assert info.used_calls == 0
    assert info.remaining_calls == 10


def test_reset_rejects_non_free_tier_provider(quotas, alice):
    with pytest.raises(NotFoundError):
        quotas.reset_usage(alice.user_id, "deepseek")


def test_summary_covers_every_free_tier_provider(quotas, alice):
    quotas.increment_usage(alice.user_id, "openai")

    summary = quotas.get_summary(alice.user_id)

    assert set(summary) == {"openai", "gemini"}
    assert summary["openai"].used_calls == 1
    assert summary["openai"].remaining_calls == 9
    assert summary["gemini"].used_calls == 0


def test_list_quotas_includes_user_details(quotas, alice, bob):
    quotas.increment_usage(alice.user_id, "openai")
    quotas.increment_usage(bob.user_id, "gemini")

    assert len(quotas.list_quotas()) == 2
    only_alice = quotas.list_quotas(alice.user_id)
    assert [(q.email, q.provider) for q in only_alice] == [("alice@example.com", "openai")]


def test_app_key_upsert_rotates_single_slot(db):
    app_keys = AppKeyManager(db)
    app_keys.upsert("openai", "sk-app-first-0001")
    app_keys.upsert("openai", "sk-app-second-002")

    assert len(app_keys.list_keys()) == 1
    assert app_keys.get_active_key("openai") == "sk-app-second-002"


def test_app_key_only_for_free_tier_providers(db):
    with pytest.raises(ValidationError):
        AppKeyManager(db).upsert("claude", "ck-app-0000001")


def test_inactive_or_missing_app_key_is_not_found(db):
    app_keys = AppKeyManager(db)
    with pytest.raises(NotFoundError):
        app_keys.get_active_key("gemini")

    app_keys.upsert("gemini", "gm-app-0000001")
    app_keys.set_active("gemini", False)
    with pytest.raises(NotFoundError):
        app_keys.get_active_key("gemini")


def test_app_key_usage_is_recorded(db):
    app_keys = AppKeyManager(db)
    app_keys.upsert("openai", "sk-app-usage-001")

    app_keys.record_usage("openai")
    app_keys.record_usage("openai")

    db.expire_all()
    assert app_keys.list_keys()[0].usage_count == 2
