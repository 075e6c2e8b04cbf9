# tests/test_settings.py
import logging

import pytest

from services.pipeline_events import LoggingEventSink
from services.settings import load_settings
from utils.exceptions import ConfigError

ENV_NAMES = [
    "MISTRAL_API_KEY", "LLM_API_KEY", "DATABASE_URL", "LLM_BASE_URL", "LLM_MODEL",
    "LLM_TIMEOUT", "LLM_MAX_TOKENS", "LLM_TEMPERATURE", "SEED_PAPER_ID", "PAPER_LIMIT", "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    clean_env.setenv("MISTRAL_API_KEY", "sk-test")
    clean_env.setenv("DATABASE_URL", "sqlite:///graph.db")

    settings = load_settings(load_env=False)

    assert settings.llm_api_key == "sk-test"
    assert settings.llm_base_url == "https://api.mistral.ai/v1"
    assert settings.seed_paper_id == "2308.04079"
    assert settings.paper_limit == 50
    assert settings.llm_timeout == 30.0


def test_generic_key_alias(clean_env):
    clean_env.setenv("LLM_API_KEY", "sk-generic")
    clean_env.setenv("DATABASE_URL", "sqlite:///graph.db")
    assert load_settings(load_env=False).llm_api_key == "sk-generic"


@pytest.mark.parametrize("key", [None, "", "your_mistral_api_key_here"])
def test_missing_or_placeholder_key(clean_env, key):
    if key is not None:
        clean_env.setenv("MISTRAL_API_KEY", key)
    clean_env.setenv("DATABASE_URL", "sqlite:///graph.db")

    with pytest.raises(ConfigError, match="MISTRAL_API_KEY"):
        load_settings(load_env=False)


def test_missing_database_url(clean_env):
    clean_env.setenv("MISTRAL_API_KEY", "sk-test")
    with pytest.raises(ConfigError, match="DATABASE_URL"):
        load_settings(load_env=False)


def test_bad_numbers(clean_env):
    clean_env.setenv("MISTRAL_API_KEY", "sk-test")
    clean_env.setenv("DATABASE_URL", "sqlite:///graph.db")
    clean_env.setenv("PAPER_LIMIT", "fifty")

    with pytest.raises(ConfigError, match="PAPER_LIMIT"):
        load_settings(load_env=False)

    with pytest.raises(ConfigError):
        load_settings(load_env=False, paper_limit=0)


def test_cli_limit_overrides_env(clean_env):
    clean_env.setenv("MISTRAL_API_KEY", "sk-test")
    clean_env.setenv("DATABASE_URL", "sqlite:///graph.db")
    clean_env.setenv("PAPER_LIMIT", "20")
    assert load_settings(load_env=False, paper_limit=3).paper_limit == 3


def test_logging_event_sink_renders_sorted_fields(caplog):
    sink = LoggingEventSink()
    with caplog.at_level(logging.INFO, logger="pipeline.events"):
        sink.emit("paper_failed", reason="irrelevant", arxiv_id="2401.00001")

    assert caplog.messages == ["paper_failed arxiv_id='2401.00001' reason='irrelevant'"]
