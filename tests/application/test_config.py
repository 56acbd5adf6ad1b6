import pytest
from pydantic import ValidationError

from studymate.application.config import AppConfig, resolve_config


@pytest.fixture(autouse=True)
def isolated_home(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    for name in ("OPENAI_API_KEY", "OPENAI_BASE_URL", "PORT", "HOST", "LOG_LEVEL"):
        monkeypatch.delenv(f"STUDYMATE_{name}", raising=False)
    return tmp_path


def test_defaults():
    config = resolve_config()

    assert config.openai_api_key is None
    assert config.openai_model == "gpt-4o"
    assert config.questions_per_concept == 5
    assert config.oracle_timeout == 30.0
    assert config.port == 8000


def test_none_overrides_are_ignored(monkeypatch):
    monkeypatch.setenv("STUDYMATE_PORT", "9000")

    assert resolve_config({"port": None}).port == 9000
    assert resolve_config({"port": 9100}).port == 9100


def test_env_beats_config_file(monkeypatch, isolated_home):
    (isolated_home / ".studymate.toml").write_text('host = "0.0.0.0"\nport = 7000\n')
    monkeypatch.setenv("STUDYMATE_PORT", "7100")

    config = resolve_config()

    assert config.host == "0.0.0.0"
    assert config.port == 7100


def test_base_url_trailing_slash_is_stripped():
    config = AppConfig(openai_base_url="http://localhost:11434/v1/")
    assert config.openai_base_url == "http://localhost:11434/v1"


@pytest.mark.parametrize("field", ["oracle_timeout", "questions_per_concept"])
def test_non_positive_values_rejected(field):
    with pytest.raises(ValidationError):
        AppConfig(**{field: 0})
