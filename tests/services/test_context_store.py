"""Tests for browsing-context storage backends."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from core.exceptions import (
    ContextNotFoundError,
    ContextStoreUnavailableError,
    MalformedContextError,
)
from schemas.context import ExtensionContext
from services.context_store import (
    CONTEXT_KEY_PREFIX,
    InMemoryContextStore,
    UnavailableContextStore,
    UpstashContextStore,
    encode_context,
    get_context_store,
    new_context_id,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def stored_context() -> ExtensionContext:
    return ExtensionContext(query="quiet blender", previous_queries=["soup"])


def test_new_context_id_has_prefix():
    context_id = new_context_id()

    assert context_id.startswith("ctx_")
    assert len(context_id) == len("ctx_") + 12
    assert new_context_id() != context_id


class TestInMemoryContextStore:
    @pytest.mark.asyncio
    async def test_put_then_get(self, context_store, stored_context):
        context_id = await context_store.put(stored_context)

        loaded = await context_store.get(context_id)

        assert loaded.query == "quiet blender"
        assert loaded.previous_queries == ["soup"]

    @pytest.mark.asyncio
    async def test_entries_expire(self, stored_context):
        clock = FakeClock()
        store = InMemoryContextStore(ttl_seconds=60, clock=clock)
        context_id = await store.put(stored_context)

        clock.now += 59
        assert (await store.get(context_id)).query == "quiet blender"

        clock.now += 1
        with pytest.raises(ContextNotFoundError):
            await store.get(context_id)

    @pytest.mark.asyncio
    async def test_unknown_id(self, context_store):
        with pytest.raises(ContextNotFoundError) as exc_info:
            await context_store.get("ctx_missing")

        assert exc_info.value.context_id == "ctx_missing"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["not json", '{"signals": "nope"}'])
    async def test_undecodable_entry_is_malformed(self, context_store, raw):
        await context_store.put_raw("ctx_bad", raw)

        with pytest.raises(MalformedContextError):
            await context_store.get("ctx_bad")


class TestUpstashContextStore:
    @pytest.mark.asyncio
    async def test_put_sets_with_expiry(self, stored_context):
        redis = AsyncMock()
        store = UpstashContextStore(redis, ttl_seconds=3600)

        context_id = await store.put(stored_context)

        redis.set.assert_awaited_once_with(
            f"{CONTEXT_KEY_PREFIX}{context_id}",
            encode_context(stored_context),
            ex=3600,
        )

    @pytest.mark.asyncio
    async def test_get_decodes_stored_json(self, stored_context):
        redis = AsyncMock()
        redis.get.return_value = encode_context(stored_context)
        store = UpstashContextStore(redis, ttl_seconds=3600)

        loaded = await store.get("ctx_abc")

        redis.get.assert_awaited_once_with(f"{CONTEXT_KEY_PREFIX}ctx_abc")
        assert loaded.query == "quiet blender"

    @pytest.mark.asyncio
    async def test_missing_key(self):
        redis = AsyncMock()
        redis.get.return_value = None
        store = UpstashContextStore(redis, ttl_seconds=3600)

        with pytest.raises(ContextNotFoundError):
            await store.get("ctx_gone")


@pytest.mark.asyncio
async def test_unavailable_store_always_raises(stored_context):
    store = UnavailableContextStore()

    with pytest.raises(ContextStoreUnavailableError):
        await store.put(stored_context)
    with pytest.raises(ContextStoreUnavailableError):
        await store.get("ctx_abc")


class TestGetContextStore:
    @pytest.fixture(autouse=True)
    def clear_cache(self):
        get_context_store.cache_clear()
        yield
        get_context_store.cache_clear()

    def _settings(self, **overrides):
        values = {
            "ENVIRONMENT": "development",
            "UPSTASH_REDIS_REST_URL": None,
            "UPSTASH_REDIS_REST_TOKEN": None,
            "CONTEXT_TTL_SECONDS": 3600,
        }
        values.update(overrides)
        return SimpleNamespace(**values)

    def test_in_memory_outside_production(self):
        with patch(
            "services.context_store.get_settings", return_value=self._settings()
        ):
            assert isinstance(get_context_store(), InMemoryContextStore)

    def test_unavailable_in_production_without_upstash(self):
        settings = self._settings(ENVIRONMENT="production")
        with patch("services.context_store.get_settings", return_value=settings):
            assert isinstance(get_context_store(), UnavailableContextStore)

    def test_upstash_when_configured(self):
        settings = self._settings(
            UPSTASH_REDIS_REST_URL="https://example.upstash.io",
            UPSTASH_REDIS_REST_TOKEN="token",
        )
        with patch("services.context_store.get_settings", return_value=settings):
            assert isinstance(get_context_store(), UpstashContextStore)
