"""Tests for the SSE page generation endpoint."""

import json

import pytest

from main import app
from schemas.context import ExtensionContext, ExtensionSignal
from services.context_store import UnavailableContextStore, get_context_store


GENERATE_URL = "/api/v1/generate"


def _names(events) -> list[str]:
    return [name for name, _ in events]


@pytest.mark.asyncio
async def test_streams_a_page(async_client, sse_parser):
    response = await async_client.get(
        GENERATE_URL, params={"query": "best blender for smoothies"}
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"
    assert response.headers["x-accel-buffering"] == "no"
    events = sse_parser(response.text)
    assert _names(events)[0] == "generation-start"
    assert _names(events)[-1] == "generation-complete"
    assert events[0][1]["query"] == "best blender for smoothies"


@pytest.mark.asyncio
async def test_q_is_an_alias_of_query(async_client, sse_parser):
    response = await async_client.get(GENERATE_URL, params={"q": "soup blender"})

    assert response.status_code == 200
    assert sse_parser(response.text)[0][1]["query"] == "soup blender"


@pytest.mark.asyncio
@pytest.mark.parametrize("params", [{}, {"query": "   "}])
async def test_missing_query_is_rejected_before_streaming(async_client, params):
    response = await async_client.get(GENERATE_URL, params=params)

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"]["type"] == "invalid_request"
    assert body["message"] == "Missing query parameter"


@pytest.mark.asyncio
async def test_unknown_context_id_is_404(async_client, gateway):
    response = await async_client.get(GENERATE_URL, params={"ctx": "ctx_unknown"})

    assert response.status_code == 404
    assert response.json()["error"]["type"] == "context_not_found"
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_malformed_context_is_500(async_client, context_store):
    await context_store.put_raw("ctx_broken", "{not json")

    response = await async_client.get(GENERATE_URL, params={"ctx": "ctx_broken"})

    assert response.status_code == 500
    assert response.json()["error"]["type"] == "malformed_context"


@pytest.mark.asyncio
async def test_missing_storage_is_500(async_client):
    app.dependency_overrides[get_context_store] = UnavailableContextStore

    response = await async_client.get(GENERATE_URL, params={"ctx": "ctx_abc"})

    assert response.status_code == 500
    assert response.json()["error"]["type"] == "storage_unavailable"


@pytest.mark.asyncio
async def test_stored_context_runs_the_context_pipeline(
    async_client, context_store, sse_parser
):
    context_id = await context_store.put(
        ExtensionContext(
            signals=[ExtensionSignal(id="s1", type="search", data={"query": "soup"})]
        )
    )

    response = await async_client.get(GENERATE_URL, params={"ctx": context_id})

    events = sse_parser(response.text)
    assert events[0] == (
        "reasoning-step",
        {
            "stage": "signals",
            "title": "Interpreting Your Browsing Behavior",
            "content": "Analyzing 1 signals to understand your intent...",
        },
    )
    start = next(data for name, data in events if name == "generation-start")
    assert start["query"] == "Find a blender for family smoothies"
    assert start["hasSignals"] is True
    assert _names(events)[-1] == "generation-complete"


@pytest.mark.asyncio
async def test_explicit_query_overrides_stored_query(
    async_client, context_store, sse_parser
):
    context_id = await context_store.put(ExtensionContext(query="old question"))

    response = await async_client.get(
        GENERATE_URL, params={"ctx": context_id, "query": "new question"}
    )

    start = next(
        data for name, data in sse_parser(response.text) if name == "generation-start"
    )
    assert start["query"] == "new question"
    stored = await context_store.get(context_id)
    assert stored.query == "old question"


@pytest.mark.asyncio
async def test_inline_session_history_reaches_classifier(async_client, gateway):
    history = {"previousQueries": [{"query": "quiet blenders", "intent": "discovery"}]}

    response = await async_client.get(
        GENERATE_URL, params={"query": "which is cheaper", "ctx": json.dumps(history)}
    )

    assert response.status_code == 200
    classification_user = gateway.calls_for("classification")[0][2]
    assert '- "quiet blenders" (discovery)' in classification_user


@pytest.mark.asyncio
async def test_unreadable_inline_history_is_ignored(async_client, gateway, sse_parser):
    response = await async_client.get(
        GENERATE_URL, params={"query": "soup", "ctx": "{not json"}
    )

    assert response.status_code == 200
    assert _names(sse_parser(response.text))[-1] == "generation-complete"
    assert "Previous queries" not in gateway.calls_for("classification")[0][2]


@pytest.mark.asyncio
async def test_reasoning_failure_streams_one_error(
    async_client, gateway, model_error, sse_parser
):
    gateway.reasoning = model_error

    response = await async_client.get(GENERATE_URL, params={"query": "soup"})

    assert response.status_code == 200
    events = sse_parser(response.text)
    assert _names(events).count("error") == 1
    assert events[-1][0] == "error"
    assert events[-1][1]["code"] == "ORCHESTRATION_ERROR"
