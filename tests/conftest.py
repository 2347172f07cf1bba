"""Shared test fixtures for pytest.

The environment is pinned to `test` before any application module builds
settings, and real model requests are disabled. Every test that touches the
pipeline talks to `ScriptedGateway` instead of a provider.
"""

import json
import os
import re
from collections.abc import AsyncGenerator, Callable, Generator
from typing import Any

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from pydantic_ai import models


os.environ["ENVIRONMENT"] = "test"
os.environ.pop("UPSTASH_REDIS_REST_URL", None)
os.environ.pop("UPSTASH_REDIS_REST_TOKEN", None)

models.ALLOW_MODEL_REQUESTS = False

from main import app
from services.ai.exceptions import ModelGatewayError
from services.ai.gateway import get_model_gateway
from services.ai.prompts import SIGNAL_INTERPRETATION_PROMPT
from services.catalog import ContentCatalog, get_content_catalog
from services.context_store import InMemoryContextStore, get_context_store


_BLOCK_TYPE_RE = re.compile(r'Generate HTML content for a "([a-z-]+)" block')

DEFAULT_CLASSIFICATION: dict[str, Any] = {
    "intentType": "discovery",
    "confidence": 0.9,
    "entities": {"products": [], "useCases": ["smoothies"], "features": []},
    "journeyStage": "exploring",
}

DEFAULT_REASONING: dict[str, Any] = {
    "selectedBlocks": [
        {"type": "hero", "rationale": "Open with the smoothie story"},
        {"type": "product-cards", "rationale": "Several blenders fit"},
        {"type": "recipe-cards", "rationale": "Show what they can make"},
        {
            "type": "faq",
            "rationale": "Common smoothie questions",
            "contentGuidance": "smoothie loading order",
        },
    ],
    "reasoning": {
        "intentAnalysis": "You want a blender that makes great smoothies.",
        "userNeedsAssessment": "Frozen fruit and greens need a strong motor.",
        "finalDecision": "Show a few strong smoothie blenders and recipes.",
    },
    "userJourney": {
        "currentStage": "exploring",
        "nextBestAction": "Compare the top two models",
        "suggestedFollowUps": ["Compare Ascent X5 vs E310", "Smoothie recipes"],
    },
    "confidence": {"intent": 0.9, "productMatch": 0.5},
}

DEFAULT_INTERPRETATION: dict[str, Any] = {
    "interpretation": {
        "primaryIntent": "Find a blender for family smoothies",
        "specificNeeds": ["easy cleaning"],
        "emotionalContext": "Curious and a little overwhelmed",
        "journeyStage": "comparing",
        "keyInsights": ["Viewed two Ascent models", "Searched for smoothie recipes"],
    },
    "classification": {
        "intentType": "comparison",
        "confidence": 0.85,
        "entities": {"products": [], "useCases": ["smoothies"]},
        "journeyStage": "comparing",
    },
    "contentRecommendation": {
        "heroTone": "warm",
        "prioritizeBlocks": ["comparison-table"],
        "avoidBlocks": [],
    },
}

Response = str | dict[str, Any] | Exception


def _render(response: Response) -> str:
    if isinstance(response, Exception):
        raise response
    if isinstance(response, dict):
        return json.dumps(response)
    return response


class ScriptedGateway:
    """`ModelGateway` that answers from canned responses and records every call.

    Content responses are keyed by block type; anything unscripted renders a
    small heading. A response may be an exception instance, which is raised.
    """

    def __init__(
        self,
        *,
        classification: Response | None = None,
        reasoning: Response | None = None,
        interpretation: Response | None = None,
        content: dict[str, Response] | None = None,
        on_content: Callable[[str], None] | None = None,
    ) -> None:
        self.classification = (
            DEFAULT_CLASSIFICATION if classification is None else classification
        )
        self.reasoning = DEFAULT_REASONING if reasoning is None else reasoning
        self.interpretation = (
            DEFAULT_INTERPRETATION if interpretation is None else interpretation
        )
        self.content = content or {}
        self.on_content = on_content
        self.calls: list[tuple[str, str, str]] = []

    async def complete(
        self, role: str, system: str, user: str, *, preset: str | None = None
    ) -> str:
        self.calls.append((role, system, user))
        if role == "classification":
            return _render(self.classification)
        if role == "reasoning":
            if system == SIGNAL_INTERPRETATION_PROMPT:
                return _render(self.interpretation)
            return _render(self.reasoning)

        match = _BLOCK_TYPE_RE.search(system)
        block_type = match.group(1) if match else "unknown"
        if self.on_content is not None:
            self.on_content(block_type)
        default = f"<h2>{block_type.replace('-', ' ').title()}</h2><p>Content</p>"
        return _render(self.content.get(block_type, default))

    def model_name(self, role: str, preset: str | None = None) -> str:
        return f"scripted-{role}"

    def calls_for(self, role: str) -> list[tuple[str, str, str]]:
        return [call for call in self.calls if call[0] == role]

    def content_block_types(self) -> list[str]:
        types = []
        for _, system, _ in self.calls_for("content"):
            match = _BLOCK_TYPE_RE.search(system)
            types.append(match.group(1) if match else "unknown")
        return types


def parse_sse(body: str) -> list[tuple[str, dict[str, Any]]]:
    """Split an SSE body into (event name, JSON data) pairs."""
    events = []
    for chunk in body.split("\n\n"):
        lines = chunk.strip().splitlines()
        if len(lines) != 2:
            continue
        name = lines[0].removeprefix("event: ")
        events.append((name, json.loads(lines[1].removeprefix("data: "))))
    return events


@pytest.fixture
def model_error() -> ModelGatewayError:
    return ModelGatewayError("content model call failed: boom")


@pytest.fixture
def scripted_gateway_factory() -> type[ScriptedGateway]:
    return ScriptedGateway


@pytest.fixture
def gateway() -> ScriptedGateway:
    return ScriptedGateway()


@pytest.fixture
def sse_parser() -> Callable[[str], list[tuple[str, dict[str, Any]]]]:
    return parse_sse


@pytest.fixture
def catalog() -> ContentCatalog:
    return get_content_catalog()


@pytest.fixture
def context_store() -> InMemoryContextStore:
    return InMemoryContextStore(ttl_seconds=3600)


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """
    Create a test client for the FastAPI application.
    """
    with TestClient(app) as client:
        yield client


@pytest_asyncio.fixture
async def async_client(
    gateway: ScriptedGateway,
    context_store: InMemoryContextStore,
    catalog: ContentCatalog,
) -> AsyncGenerator[AsyncClient, None]:
    """Async client wired to the scripted gateway and an in-memory store."""
    app.dependency_overrides[get_model_gateway] = lambda: gateway
    app.dependency_overrides[get_context_store] = lambda: context_store
    app.dependency_overrides[get_content_catalog] = lambda: catalog
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.pop(get_model_gateway, None)
    app.dependency_overrides.pop(get_context_store, None)
    app.dependency_overrides.pop(get_content_catalog, None)
