"""Tests for user storage, passwords and account deletion."""

from datetime import timedelta

import pytest

from core.exceptions import (
    DuplicateUserError,
    InvalidCredentialsError,
    NotFoundError,
    ValidationError,
)
from models.api_key import APIKeyModel
from models.feedback import FeedbackModel
from models.user import UserModel
from models.user_quota import UserQuotaModel
from utils.api_key_manager import APIKeyManager
from utils.feedback_manager import FeedbackManager
from utils.key_cipher import utc_now
from utils.quota_manager import QuotaManager
from utils.user_manager import UserManager


@pytest.fixture
def users(db):
    return UserManager(db)


def test_email_is_unique_case_insensitively(users):
    users.create_user("Casey@Example.com", "secret123")

    with pytest.raises(DuplicateUserError):
        users.create_user("casey@example.com", "secret123")


def test_authenticate(users):
    created = users.create_user("login@example.com", "secret123")

    assert users.authenticate("LOGIN@example.com", "secret123").user_id == created.user_id
    with pytest.raises(InvalidCredentialsError):
        users.authenticate("login@example.com", "wrong-password")
    with pytest.raises(InvalidCredentialsError):
        users.authenticate("nobody@example.com", "secret123")


def test_google_only_account_cannot_use_password_login(users):
    users.login_with_google("g-123", "google@example.com", "G", None)

    with pytest.raises(InvalidCredentialsError):
        users.authenticate("google@example.com", "anything")


def test_google_login_links_existing_account(users):
    created = users.create_user("linked@example.com", "secret123")

    linked = users.login_with_google("g-456", "linked@example.com", "Linked", "pic.png")
    again = users.login_with_google("g-456", "linked@example.com", "Other", None)

    assert linked.user_id == created.user_id == again.user_id
    assert linked.is_verified
    assert linked.picture == "pic.png"


def test_reset_token_flow(users):
    users.create_user("reset@example.com", "secret123")
    _, token = users.issue_reset_token("reset@example.com")

    users.reset_password(token, "brand-new-pass")

    users.authenticate("reset@example.com", "brand-new-pass")
    with pytest.raises(ValidationError):
        users.reset_password(token, "another-pass")


def test_expired_reset_token_is_rejected(db, users):
    created = users.create_user("late@example.com", "secret123")
    _, token = users.issue_reset_token("late@example.com")
    model = db.query(UserModel).filter_by(user_id=created.user_id).one()
    model.reset_token_expires_at = utc_now() - timedelta(minutes=1)
    db.commit()

    with pytest.raises(ValidationError, match="Invalid or expired"):
        users.reset_password(token, "brand-new-pass")


def test_reset_token_for_unknown_email(users):
    with pytest.raises(NotFoundError):
        users.issue_reset_token("ghost@example.com")


def test_change_password_rules(users):
    created = users.create_user("change@example.com", "secret123")

    with pytest.raises(ValidationError, match="incorrect"):
        users.change_password(created.user_id, "wrong", "new-secret")
    with pytest.raises(ValidationError, match="different"):
        users.change_password(created.user_id, "secret123", "secret123")

    users.change_password(created.user_id, "secret123", "new-secret")
    users.authenticate("change@example.com", "new-secret")


def test_long_passwords_are_accepted(users):
    password = "p" * 100
    users.create_user("long@example.com", password)
    users.authenticate("long@example.com", password)


def test_delete_user_cascades_keys_and_quotas_and_unlinks_feedback(db, users):
    doomed = users.create_user("doomed@example.com", "secret123")
    APIKeyManager(db).create(doomed.user_id, "openai", "sk-doomed-000001", "K")
    QuotaManager(db).increment_usage(doomed.user_id, "openai")
    feedback = FeedbackManager(db).create(
        "Doomed", "doomed@example.com", "bye", user_id=doomed.user_id
    )

    users.delete_user(doomed.user_id)

    db.expire_all()
    assert users.get_user_by_id(doomed.user_id) is None
    assert db.query(APIKeyModel).count() == 0
    assert db.query(UserQuotaModel).count() == 0
    kept = db.query(FeedbackModel).filter_by(id=feedback.id).one()
    assert kept.user_id is None


def test_dashboard_stats(db, users):
    users.create_user("a@example.com", "secret123")
    admin = users.create_user("b@example.com", "secret123")
    users.set_admin(admin.user_id, True)
    FeedbackManager(db).create("A", "a@example.com", "hello")

    stats = users.get_dashboard_stats()

    assert stats.total_users == 2
    assert stats.admin_users == 1
    assert stats.feedback_count == 1
    assert stats.growth.users == 0.0
