import pytest
from unittest.mock import patch
from pydantic import ValidationError

from wine_discovery.config.settings import Settings, get_settings


def test_defaults():
    with patch.dict("os.environ", {}, clear=True):
        settings = Settings(_env_file=None)
    assert settings.database_url == "sqlite:///wines.db"
    assert settings.max_search_results == 3
    assert settings.extraction_strategy == "auto"
    assert settings.image_enrichment_enabled is True
    assert settings.serper_base_url == "https://google.serper.dev"


def test_search_provider_priority(settings_factory):
    assert settings_factory().get_search_provider() == "serper"
    assert settings_factory(SERPER_API_KEY=None, SERPAPI_API_KEY="serpapi-key").get_search_provider() == "serpapi"
    assert settings_factory(SERPER_API_KEY=None).get_search_provider() == "none"


def test_blank_search_key_is_unset(settings_factory):
    settings = settings_factory(SERPER_API_KEY="   ")
    assert settings.serper_api_key is None


def test_anthropic_key_format(settings_factory):
    with pytest.raises(ValidationError):
        settings_factory(ANTHROPIC_API_KEY="not-a-key")

    settings = settings_factory(ANTHROPIC_API_KEY="sk-ant-test")
    assert settings.anthropic_api_key.get_secret_value() == "sk-ant-test"
    assert "sk-ant-test" not in repr(settings)


def test_ai_extraction_available(settings_factory):
    assert settings_factory().ai_extraction_available is False
    assert settings_factory(ANTHROPIC_API_KEY="sk-ant-test").ai_extraction_available is True
    assert settings_factory(
        ANTHROPIC_API_KEY="sk-ant-test", AI_EXTRACTION_ENABLED=False
    ).ai_extraction_available is False


def test_reads_environment():
    with patch.dict("os.environ", {
        "SERPAPI_API_KEY": "env-serpapi",
        "DATABASE_URL": "memory://",
        "EXTRACTION_STRATEGY": "heuristic",
        "EXTRA_GRAPE_VARIETIES": '["argaman"]',
        "EXTRA_WINE_REGIONS": '{"Carmel": "Israel"}',
    }, clear=True):
        settings = Settings(_env_file=None)
    assert settings.serpapi_api_key.get_secret_value() == "env-serpapi"
    assert settings.database_url == "memory://"
    assert settings.extraction_strategy == "heuristic"
    assert settings.extra_grape_varieties == ["argaman"]
    assert settings.extra_wine_regions == {"Carmel": "Israel"}


def test_invalid_strategy_rejected(settings_factory):
    with pytest.raises(ValidationError):
        settings_factory(EXTRACTION_STRATEGY="magic")


def test_get_settings_is_cached():
    get_settings.cache_clear()
    with patch.dict("os.environ", {}, clear=True):
        first = get_settings()
        second = get_settings()
    assert first is second
    get_settings.cache_clear()
