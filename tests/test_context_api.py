"""Tests for the context storage endpoint."""

import pytest


CONTEXT_URL = "/api/v1/context"


@pytest.mark.asyncio
async def test_stores_context_and_returns_id(async_client, context_store):
    payload = {
        "signals": [
            {
                "id": "s1",
                "type": "page_view",
                "label": "Viewed product",
                "weight": 0.3,
                "product": "Ascent X5",
            }
        ],
        "previousQueries": ["smoothie blenders"],
        "profile": {"segments": ["comparison_shopper"], "confidence_score": 0.7},
    }

    response = await async_client.post(CONTEXT_URL, json=payload)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Context stored"
    assert body["data"]["id"].startswith("ctx_")
    assert body["data"]["expires_in"] == 3600

    stored = await context_store.get(body["data"]["id"])
    assert stored.signals[0].product == "Ascent X5"
    assert stored.previous_queries == ["smoothie blenders"]
    assert stored.profile.confidence_score == 0.7


@pytest.mark.asyncio
async def test_query_alone_is_enough(async_client):
    response = await async_client.post(CONTEXT_URL, json={"query": "quiet blender"})

    assert response.status_code == 200


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [{}, {"query": "  ", "signals": []}])
async def test_empty_context_is_rejected(async_client, payload):
    response = await async_client.post(CONTEXT_URL, json=payload)

    assert response.status_code == 400
    assert response.json()["error"]["type"] == "empty_context"


@pytest.mark.asyncio
async def test_invalid_payload_is_a_validation_error(async_client):
    response = await async_client.post(CONTEXT_URL, json={"signals": "not a list"})

    assert response.status_code == 422
    assert response.json()["error"]["type"] == "validation_error"


@pytest.mark.asyncio
async def test_stored_context_opens_a_stream(async_client, sse_parser):
    stored = await async_client.post(CONTEXT_URL, json={"query": "quiet blender"})
    context_id = stored.json()["data"]["id"]

    response = await async_client.get("/api/v1/generate", params={"ctx": context_id})

    assert response.status_code == 200
    names = [name for name, _ in sse_parser(response.text)]
    assert names[-1] == "generation-complete"
