"""Centralized model factory for the generation pipeline.

Each pipeline stage asks for a model by *role* (classification, reasoning,
content). A named preset maps roles to model names; per-role settings
override the preset, which is also how Azure deployment names are supplied.

Usage:
    from services.ai.model_factory import get_model_for_role

    model = get_model_for_role("reasoning", preset="fast")
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, cast

from httpx import AsyncClient, HTTPStatusError
from pydantic_ai.models import Model
from pydantic_ai.models.google import GoogleModel
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.google import GoogleProvider
from pydantic_ai.providers.openai import OpenAIProvider
from pydantic_ai.retries import AsyncTenacityTransport, RetryConfig, wait_retry_after
from tenacity import retry_if_exception_type, stop_after_attempt, wait_exponential

from core.config import get_settings
from schemas.generation import ModelRole


logger = logging.getLogger(__name__)

DEFAULT_PRESET = "production"

MODEL_PRESETS: dict[str, dict[ModelRole, str]] = {
    "production": {
        "classification": "gemini-2.5-flash-lite",
        "reasoning": "gemini-2.5-pro",
        "content": "gemini-2.5-flash",
    },
    "fast": {
        "classification": "gemini-2.5-flash-lite",
        "reasoning": "gemini-2.5-flash-lite",
        "content": "gemini-2.5-flash-lite",
    },
}

_ROLE_OVERRIDES: dict[ModelRole, str] = {
    "classification": "CLASSIFICATION_MODEL",
    "reasoning": "REASONING_MODEL",
    "content": "CONTENT_MODEL",
}


def _normalize_azure_endpoint(endpoint: str) -> str:
    """Strip trailing slashes, which otherwise produce `//openai/...` paths."""
    return endpoint.rstrip("/")


def _is_azure_provider() -> bool:
    return get_settings().LLM_PROVIDER == "azure_openai"


def _validate_azure_credentials() -> bool:
    settings = get_settings()
    if (
        not settings.AZURE_OPENAI_ENDPOINT
        or not settings.AZURE_OPENAI_API_KEY
        or not settings.AZURE_OPENAI_API_VERSION
    ):
        logger.warning(
            "LLM_PROVIDER=azure_openai but credentials missing, falling back to Gemini"
        )
        return False
    return True


def _validate_gemini_credentials() -> bool:
    if not get_settings().GEMINI_API_KEY:
        logger.warning("Gemini API key not configured")
        return False
    return True


def resolve_preset(preset: str | None) -> str:
    """Return a known preset name, defaulting to the configured one."""
    name = preset or get_settings().MODEL_PRESET
    if name not in MODEL_PRESETS:
        logger.warning(f"Unknown model preset '{name}', using '{DEFAULT_PRESET}'")
        return DEFAULT_PRESET
    return name


def resolve_model_name(role: ModelRole, preset: str | None = None) -> str:
    """Model name for a role: explicit setting first, then the preset table."""
    override = getattr(get_settings(), _ROLE_OVERRIDES[role], None)
    if override:
        return cast(str, override)
    return MODEL_PRESETS[resolve_preset(preset)][role]


def create_resilient_http_client() -> AsyncClient:
    """HTTP client that retries overload, rate-limit and gateway errors.

    Backoff is exponential and honours Retry-After when the provider sends it.
    """

    def should_retry_status(response: Any) -> None:
        if response.status_code in (429, 502, 503, 504):
            response.raise_for_status()

    transport = AsyncTenacityTransport(
        config=RetryConfig(
            retry=retry_if_exception_type(HTTPStatusError),
            wait=wait_retry_after(
                fallback_strategy=wait_exponential(multiplier=2, min=1, max=30),
                max_wait=60,
            ),
            stop=stop_after_attempt(4),
            reraise=True,
        ),
        validate_response=should_retry_status,
    )
    return AsyncClient(transport=transport, timeout=120)


def _create_azure_model(model_name: str, http_client: AsyncClient) -> Model:
    settings = get_settings()

    from openai import AsyncAzureOpenAI

    azure_client = AsyncAzureOpenAI(
        azure_endpoint=_normalize_azure_endpoint(settings.AZURE_OPENAI_ENDPOINT or ""),
        api_key=settings.AZURE_OPENAI_API_KEY,
        api_version=settings.AZURE_OPENAI_API_VERSION,
        http_client=http_client,
    )
    return OpenAIChatModel(
        model_name, provider=OpenAIProvider(openai_client=azure_client)
    )


def _create_gemini_model(model_name: str, http_client: AsyncClient) -> Model:
    provider = GoogleProvider(
        api_key=get_settings().GEMINI_API_KEY,
        http_client=http_client,
    )
    return cast(Model, GoogleModel(model_name, provider=provider))


@lru_cache
def get_model_for_role(role: ModelRole, preset: str | None = None) -> Model:
    """Build (once per role and preset) the pydantic-ai model for a stage.

    Raises:
        ValueError: when neither Azure OpenAI nor Gemini is configured.
    """
    model_name = resolve_model_name(role, preset)
    http_client = create_resilient_http_client()

    if _is_azure_provider() and _validate_azure_credentials():
        logger.info(f"Using Azure OpenAI {role} model: {model_name}")
        return _create_azure_model(model_name, http_client)

    if not _validate_gemini_credentials():
        raise ValueError(
            "No valid LLM provider configured. Either set Azure OpenAI "
            "credentials (AZURE_OPENAI_ENDPOINT + AZURE_OPENAI_API_KEY) "
            "or Gemini credentials (GEMINI_API_KEY)."
        )

    logger.info(f"Using Gemini {role} model: {model_name}")
    return _create_gemini_model(model_name, http_client)
