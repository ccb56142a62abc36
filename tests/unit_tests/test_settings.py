import pytest
from pydantic import ValidationError

from redirectory.config.settings import Settings


@pytest.fixture(autouse=True)
def no_signing_key_in_env(monkeypatch):
    monkeypatch.delenv("REDIRECTORY_SIGNING_KEY", raising=False)


def test_signing_key_is_required():
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_short_signing_key_is_refused():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, signing_key="abcd1234")


def test_signing_key_from_environment(monkeypatch):
    monkeypatch.setenv("REDIRECTORY_SIGNING_KEY", "0123456789abcdef0123")
    assert Settings(_env_file=None).signing_key == "0123456789abcdef0123"


def test_log_level_is_normalised():
    settings = Settings(_env_file=None, signing_key="0123456789abcdef", log_level="debug")
    assert settings.log_level == "DEBUG"
