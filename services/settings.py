# services/settings.py
import logging
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

from utils.exceptions import ConfigError

logger = logging.getLogger(__name__)

PLACEHOLDER_KEYS = {"your_mistral_api_key_here", "changeme"}


class Settings(BaseModel):
    llm_api_key: str
    database_url: str

    llm_base_url: str = "https://api.mistral.ai/v1"
    llm_model: str = "mistral-large-latest"
    llm_timeout: float = 30.0
    llm_max_tokens: int = 4000
    llm_temperature: float = 0.1

    seed_paper_id: str = "2308.04079"
    paper_limit: int = 50
    log_level: str = "INFO"


def load_environment() -> str:
    """Load .env.local for local runs, .env otherwise. Real env vars win."""
    env = os.getenv("APP_ENV", "local")
    if env == "local":
        load_dotenv(".env.local")
    else:
        load_dotenv(".env")
    return env


def _required(*names: str) -> str:
    for name in names:
        value = (os.getenv(name) or "").strip()
        if value and value.lower() not in PLACEHOLDER_KEYS:
            return value
    raise ConfigError(f"{names[0]} is not set. Add it to your environment or .env file")


def _number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw.strip())
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None


def load_settings(load_env: bool = True, paper_limit: Optional[int] = None) -> Settings:
    """
    Build Settings from the environment.
    Raises:
        ConfigError: a required secret is missing or a numeric value is malformed.
    """
    if load_env:
        env = load_environment()
        logger.debug(f"Loaded environment: {env}")

    settings = Settings(
        llm_api_key=_required("MISTRAL_API_KEY", "LLM_API_KEY"),
        database_url=_required("DATABASE_URL"),
        llm_base_url=os.getenv("LLM_BASE_URL", "https://api.mistral.ai/v1"),
        llm_model=os.getenv("LLM_MODEL", "mistral-large-latest"),
        llm_timeout=_number("LLM_TIMEOUT", 30.0, float),
        llm_max_tokens=_number("LLM_MAX_TOKENS", 4000, int),
        llm_temperature=_number("LLM_TEMPERATURE", 0.1, float),
        seed_paper_id=os.getenv("SEED_PAPER_ID", "2308.04079"),
        paper_limit=paper_limit if paper_limit is not None else _number("PAPER_LIMIT", 50, int),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )

    if settings.paper_limit < 1:
        raise ConfigError(f"Paper limit must be at least 1, got {settings.paper_limit}")

    return settings
