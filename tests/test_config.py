"""Tests for environment-driven settings."""

import importlib

import pytest

import config


@pytest.fixture
def reload_config(monkeypatch):
    def _reload(**env):
        for name, value in env.items():
            monkeypatch.setenv(name, value)
        return importlib.reload(config)

    yield _reload
    monkeypatch.undo()
    importlib.reload(config)


def test_mail_sender_is_read_from_brevo_from_variables(reload_config):
    settings = reload_config(BREVO_FROM_EMAIL="hello@aithor.test", BREVO_FROM_NAME="Aithor Team")

    assert settings.BREVO_SENDER_EMAIL == "hello@aithor.test"
    assert settings.BREVO_SENDER_NAME == "Aithor Team"


def test_client_cache_size_is_configurable(reload_config):
    assert reload_config(LLM_CLIENT_CACHE_SIZE="5").LLM_CLIENT_CACHE_SIZE == 5
