"""Tests for the per-user API key store."""

import threading

import pytest

from core.database import SessionLocal
from core.exceptions import DuplicateKeyError, NotFoundError, ValidationError
from models.api_key import APIKeyModel
from utils.api_key_manager import APIKeyManager
from utils.user_manager import UserManager


@pytest.fixture
def owner(db):
    return UserManager(db).create_user("owner@example.com", "secret123")


@pytest.fixture
def other(db):
    return UserManager(db).create_user("other@example.com", "secret123")


@pytest.fixture
def keys(db):
    return APIKeyManager(db)


def defaults(db, user_id, provider):
    db.expire_all()
    return [
        k.id
        for k in db.query(APIKeyModel).filter(
            APIKeyModel.user_id == user_id,
            APIKeyModel.provider == provider,
            APIKeyModel.is_default.is_(True),
        )
    ]


def test_create_stores_encrypted_key_and_hides_it_in_info(keys, owner):
    model = keys.create(owner.user_id, "openai", "sk-test-1234567890abcd", "Work")

    assert model.key != "sk-test-1234567890abcd"
    assert keys.reveal(model) == "sk-test-1234567890abcd"
    info = keys.to_info(model)
    assert info.key_preview == "sk-t...abcd"
    assert "sk-test-1234567890abcd" not in info.model_dump_json()


def test_duplicate_key_for_same_provider_is_rejected(keys, owner):
    keys.create(owner.user_id, "openai", "sk-same-key-0001", "First")

    with pytest.raises(DuplicateKeyError):
        keys.create(owner.user_id, "openai", "sk-same-key-0001", "Second")


def test_same_key_allowed_for_other_provider_or_user(keys, owner, other):
    keys.create(owner.user_id, "openai", "shared-key-value-01", "A")
    keys.create(owner.user_id, "deepseek", "shared-key-value-01", "B")
    keys.create(other.user_id, "openai", "shared-key-value-01", "C")

    assert len(keys.list_by_owner(owner.user_id)) == 2
    assert len(keys.list_by_owner(other.user_id)) == 1


def test_unknown_provider_is_rejected(keys, owner):
    with pytest.raises(ValidationError):
        keys.create(owner.user_id, "mystery", "sk-whatever-0001", "X")


def test_creating_a_default_clears_sibling_defaults(db, keys, owner):
    first = keys.create(owner.user_id, "openai", "sk-first-000001", "First", make_default=True)
    second = keys.create(owner.user_id, "openai", "sk-second-00002", "Second", make_default=True)
    gemini = keys.create(owner.user_id, "gemini", "gm-key-0000001", "Gemini", make_default=True)

    assert defaults(db, owner.user_id, "openai") == [second.id]
    assert defaults(db, owner.user_id, "gemini") == [gemini.id]
    assert first.id not in defaults(db, owner.user_id, "openai")


def test_at_most_one_default_after_any_sequence(db, keys, owner):
    a = keys.create(owner.user_id, "claude", "ck-aaaaaaaaaaaa", "A", make_default=True)
    b = keys.create(owner.user_id, "claude", "ck-bbbbbbbbbbbb", "B")
    c = keys.create(owner.user_id, "claude", "ck-cccccccccccc", "C")

    keys.set_default(b.id, owner.user_id)
    assert defaults(db, owner.user_id, "claude") == [b.id]

    keys.update(c.id, owner.user_id, make_default=True)
    assert defaults(db, owner.user_id, "claude") == [c.id]

    keys.update(a.id, owner.user_id, name="Renamed")
    assert defaults(db, owner.user_id, "claude") == [c.id]

    keys.set_default(a.id, owner.user_id)
    assert defaults(db, owner.user_id, "claude") == [a.id]


def test_update_checks_duplicates_excluding_itself(keys, owner):
    a = keys.create(owner.user_id, "openai", "sk-aaaaaaaaaaaa", "A")
    keys.create(owner.user_id, "openai", "sk-bbbbbbbbbbbb", "B")

    # Re-submitting its own value is not a duplicate
    keys.update(a.id, owner.user_id, raw_key="sk-aaaaaaaaaaaa", name="A2")

    with pytest.raises(DuplicateKeyError):
        keys.update(a.id, owner.user_id, raw_key="sk-bbbbbbbbbbbb")


def test_update_can_move_default_key_to_another_provider(db, keys, owner):
    gemini_default = keys.create(owner.user_id, "gemini", "gm-existing-0001", "G", make_default=True)
    moving = keys.create(owner.user_id, "openai", "sk-moving-000001", "M", make_default=True)

    keys.update(moving.id, owner.user_id, provider="gemini")

    assert defaults(db, owner.user_id, "gemini") == [moving.id]
    assert defaults(db, owner.user_id, "openai") == []
    assert gemini_default.id not in defaults(db, owner.user_id, "gemini")


def test_operations_on_foreign_keys_are_not_found(keys, owner, other):
    key = keys.create(owner.user_id, "openai", "sk-owned-000001", "Mine")

    with pytest.raises(NotFoundError):
        keys.update(key.id, other.user_id, name="Stolen")
    with pytest.raises(NotFoundError):
        keys.set_default(key.id, other.user_id)
    with pytest.raises(NotFoundError):
        keys.delete(key.id, other.user_id)


def test_deleting_default_does_not_promote_another(db, keys, owner):
    a = keys.create(owner.user_id, "openai", "sk-aaaaaaaaaaaa", "A", make_default=True)
    keys.create(owner.user_id, "openai", "sk-bbbbbbbbbbbb", "B")

    keys.delete(a.id, owner.user_id)

    assert defaults(db, owner.user_id, "openai") == []
    assert keys.get_default_active(owner.user_id, "openai") is None


def test_record_usage_increments_counter(db, keys, owner):
    key = keys.create(owner.user_id, "openai", "sk-usage-000001", "U", make_default=True)

    keys.record_usage(key.id)
    keys.record_usage(key.id)

    db.expire_all()
    stored = keys.get_default_active(owner.user_id, "openai")
    assert stored.usage_count == 2
    assert stored.last_used is not None


def test_list_all_grouped_includes_users_without_keys(keys, owner, other):
    keys.create(owner.user_id, "openai", "sk-grouped-00001", "G")

    grouped = {entry.email: entry for entry in keys.list_all_grouped()}

    assert len(grouped["owner@example.com"].api_keys) == 1
    assert grouped["other@example.com"].api_keys == []


def test_concurrent_set_default_leaves_exactly_one_default(db, keys, owner):
    created = [
        keys.create(owner.user_id, "openai", f"sk-concurrent-{i:04d}", f"K{i}")
        for i in range(6)
    ]
    errors = []

    def worker(key_id):
        session = SessionLocal()
        try:
            APIKeyManager(session).set_default(key_id, owner.user_id)
        except Exception as e:  # collected and asserted below
            errors.append(e)
        finally:
            session.close()

    threads = [threading.Thread(target=worker, args=(k.id,)) for k in created]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert len(defaults(db, owner.user_id, "openai")) == 1
