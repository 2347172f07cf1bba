"""Application settings and CORS configuration."""

import json
import os
from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=(".env"), env_file_encoding="utf-8")

    # App
    APP_NAME: str = "pagecraft"
    ENVIRONMENT: str = "development"  # development | production | test

    # CORS
    # Accept list or CSV/JSON string from env; normalized to list[str] by validators
    CORS_ORIGINS: list[str] | str = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    ALLOW_CREDENTIALS: bool = True

    # LLM provider configuration
    LLM_PROVIDER: str = "gemini"  # gemini | azure_openai
    GEMINI_API_KEY: str | None = None
    AZURE_OPENAI_ENDPOINT: str | None = None
    AZURE_OPENAI_API_KEY: str | None = None
    AZURE_OPENAI_API_VERSION: str | None = None

    # Model selection: a named preset, with optional per-role overrides
    # (Azure deployments are named through the overrides)
    MODEL_PRESET: str = "production"
    CLASSIFICATION_MODEL: str | None = None
    REASONING_MODEL: str | None = None
    CONTENT_MODEL: str | None = None

    # Generation pipeline
    CONTEXT_TTL_SECONDS: int = 60 * 60
    CONTEXT_ID_PREFIX: str = "ctx_"
    STREAM_CLOSE_DELAY_SECONDS: float = 0.1
    IMAGE_BASE_URL: str = "https://www.vitamix.com"

    # Upstash Redis (rate limiting and the shared context store)
    # REST URL and token for Upstash Redis; optional in development/test
    UPSTASH_REDIS_REST_URL: str | None = None
    UPSTASH_REDIS_REST_TOKEN: str | None = None

    # Rate limit settings (requests per window)
    RATE_LIMIT_REQUESTS: int = 10
    RATE_LIMIT_WINDOW_SECONDS: int = 60

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: object) -> list[str]:
        """Allow list, CSV string, or JSON array string for CORS origins."""
        if isinstance(v, list):
            return [str(i).strip() for i in v]
        if isinstance(v, str):
            s = v.strip()
            if not s:
                return []
            if s.startswith("["):
                try:
                    parsed = json.loads(s)
                except json.JSONDecodeError as e:
                    raise ValueError(
                        "CORS_ORIGINS must be a CSV list or JSON array string"
                    ) from e
                if not isinstance(parsed, list):
                    raise ValueError("CORS_ORIGINS JSON must be a list")
                return [str(i).strip() for i in parsed]
            # CSV fallback
            return [i.strip() for i in s.split(",") if i.strip()]
        raise ValueError("Invalid CORS_ORIGINS type; expected str or list[str]")

    @field_validator("LLM_PROVIDER")
    @classmethod
    def _validate_provider(cls, v: str) -> str:
        provider = v.strip().lower()
        if provider not in {"gemini", "azure_openai"}:
            raise ValueError("LLM_PROVIDER must be 'gemini' or 'azure_openai'")
        return provider

    @model_validator(mode="after")
    def _validate_cors_credentials(self) -> "Settings":
        """Ensure wildcard origins are not used when credentials are allowed."""
        # Normalize in case the union allows a stray string at runtime
        if isinstance(self.CORS_ORIGINS, str):
            self.CORS_ORIGINS = self.assemble_cors_origins(self.CORS_ORIGINS)
        if self.ALLOW_CREDENTIALS and any(
            o.strip() == "*" for o in (self.CORS_ORIGINS or [])
        ):
            raise ValueError(
                "CORS configuration error: ALLOW_CREDENTIALS=True but "
                "CORS_ORIGINS contains '*'. Use explicit origins when credentials "
                "are allowed."
            )
        return self


@lru_cache
def get_settings() -> Settings:
    env = os.getenv("ENVIRONMENT", "development").lower()
    if env not in {"development", "production", "test"}:
        raise ValueError("ENVIRONMENT must be 'development', 'production', or 'test'")

    if env == "production":
        env_file = ".env.prod"
    elif env == "development":
        env_file = ".env.dev"
    else:
        # test environment - no env file needed, use defaults
        env_file = ""

    # Production must be able to reach at least one model provider.
    if env == "production" and not (
        os.getenv("GEMINI_API_KEY") or os.getenv("AZURE_OPENAI_API_KEY")
    ):
        if not os.path.exists(env_file):
            raise RuntimeError(
                "GEMINI_API_KEY or AZURE_OPENAI_API_KEY must be set in production"
            )

    # pydantic-settings accepts a runtime-only `_env_file` kwarg that mypy's
    # stub does not know about.
    return Settings(_env_file=env_file or None)  # type: ignore[call-arg]
