# promptcraft/config.py
"""
Runtime configuration. Everything the service needs from the environment is
read here once and passed around as explicit objects.

Env vars:
  DATABASE_URL                    (default: sqlite:///./promptcraft.db)
  LLM_PROVIDER=openai|anthropic   (default: auto-detect based on available keys)
  OPENAI_API_KEY=...
  ANTHROPIC_API_KEY=...
  LLM_MODEL=...                   (default: depends on provider)
  ANALYSIS_LLM_MODEL / QUESTIONS_LLM_MODEL / SYNTHESIS_LLM_MODEL (per-stage overrides)
  LLM_TIMEOUT_SECONDS             (default: SDK default)
  MOCK_LLM=true                   (mock mode for dev/tests)
  MOCK_AUTH=true, API_KEYS, API_KEYS_FILE, RATE_LIMIT_PER_MINUTE, REDIS_URL
  PROMETHEUS_ENABLED, LOG_AS_JSON, LOG_LEVEL, SENTRY_DSN, ENVIRONMENT
"""

import os
from functools import lru_cache
from typing import Optional, List

from pydantic import BaseModel, Field

ANTHROPIC_DEFAULT_MODEL = "claude-sonnet-4-20250514"
OPENAI_DEFAULT_MODEL = "gpt-4o-mini"


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


def _env_float(name: str) -> Optional[float]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def _detect_provider(explicit: str, openai_key: str, anthropic_key: str) -> str:
    # explicit > anthropic if key present > openai
    explicit = explicit.strip().lower()
    if explicit in ("anthropic", "claude"):
        return "anthropic"
    if explicit in ("openai", "gpt"):
        return "openai"
    if anthropic_key:
        return "anthropic"
    return "openai"


class LLMSettings(BaseModel):
    provider: str = "openai"
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    model: str = OPENAI_DEFAULT_MODEL
    analysis_model: Optional[str] = None
    questions_model: Optional[str] = None
    synthesis_model: Optional[str] = None
    timeout: Optional[float] = None
    mock: bool = True

    def model_for(self, stage: str) -> str:
        """Model to use for a workflow stage ("analysis", "questions", "synthesis")."""
        override = getattr(self, f"{stage}_model", None)
        return override or self.model

    @classmethod
    def from_env(cls) -> "LLMSettings":
        openai_key = os.getenv("OPENAI_API_KEY", "").strip()
        anthropic_key = os.getenv("ANTHROPIC_API_KEY", "").strip()
        provider = _detect_provider(os.getenv("LLM_PROVIDER", ""), openai_key, anthropic_key)
        default_model = ANTHROPIC_DEFAULT_MODEL if provider == "anthropic" else OPENAI_DEFAULT_MODEL
        return cls(
            provider=provider,
            openai_api_key=openai_key,
            anthropic_api_key=anthropic_key,
            model=os.getenv("LLM_MODEL", "").strip() or default_model,
            analysis_model=os.getenv("ANALYSIS_LLM_MODEL") or None,
            questions_model=os.getenv("QUESTIONS_LLM_MODEL") or None,
            synthesis_model=os.getenv("SYNTHESIS_LLM_MODEL") or None,
            timeout=_env_float("LLM_TIMEOUT_SECONDS"),
            mock=_env_flag("MOCK_LLM", "true"),
        )


class Settings(BaseModel):
    database_url: str = "sqlite:///./promptcraft.db"
    llm: LLMSettings = Field(default_factory=LLMSettings)

    mock_auth: bool = True
    api_keys: List[str] = Field(default_factory=list)
    api_keys_file: str = ""
    rate_limit_per_minute: int = 60
    redis_url: str = ""

    prometheus_enabled: bool = True
    log_as_json: bool = True
    log_level: str = "INFO"
    sentry_dsn: Optional[str] = None
    environment: str = "development"

    @classmethod
    def from_env(cls) -> "Settings":
        keys = [k.strip() for k in os.getenv("API_KEYS", "").split(",") if k.strip()]
        return cls(
            database_url=os.getenv("DATABASE_URL", "sqlite:///./promptcraft.db"),
            llm=LLMSettings.from_env(),
            mock_auth=_env_flag("MOCK_AUTH", "true"),
            api_keys=keys,
            api_keys_file=os.getenv("API_KEYS_FILE", ""),
            rate_limit_per_minute=int(os.getenv("RATE_LIMIT_PER_MINUTE", "60")),
            redis_url=os.getenv("REDIS_URL", ""),
            prometheus_enabled=_env_flag("PROMETHEUS_ENABLED", "true"),
            log_as_json=_env_flag("LOG_AS_JSON", "true"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            sentry_dsn=os.getenv("SENTRY_DSN") or None,
            environment=os.getenv("ENVIRONMENT", "development"),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
