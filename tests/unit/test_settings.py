import pytest
from pydantic import ValidationError

from brand_profile.config.settings import Settings


def test_settings_defaults():
    settings = Settings(ANTHROPIC_API_KEY="sk-ant-test", _env_file=None)

    assert settings.anthropic_api_key.get_secret_value() == "sk-ant-test"
    assert "sk-ant-test" not in repr(settings)
    assert settings.claude_max_tokens == 4000
    assert settings.base_profile_temperature == 0.7
    assert settings.llm_max_retries == 3
    assert settings.wikidata_sparql_url == "https://query.wikidata.org/sparql"


def test_settings_overrides():
    settings = Settings(
        ANTHROPIC_API_KEY="sk-ant-test",
        MAX_REQUESTS_PER_MINUTE=10,
        LOG_LEVEL="DEBUG",
        _env_file=None,
    )
    assert settings.max_requests_per_minute == 10
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize("key", ["", "ant-123"])
def test_settings_rejects_invalid_api_key(key):
    with pytest.raises(ValidationError, match="Invalid Anthropic API key format"):
        Settings(ANTHROPIC_API_KEY=key, _env_file=None)


def test_settings_rejects_unknown_log_level():
    with pytest.raises(ValidationError):
        Settings(ANTHROPIC_API_KEY="sk-ant-test", LOG_LEVEL="TRACE", _env_file=None)
