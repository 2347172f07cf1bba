"""Short-lived storage for browsing contexts posted by the extension.

A context is written once by `POST /context` and read by the generation
stream it seeds. Entries expire after `CONTEXT_TTL_SECONDS`. Upstash Redis
is used when configured; otherwise contexts live in process memory, which
is only acceptable outside production.
"""

from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Callable
from functools import lru_cache
from typing import TYPE_CHECKING, Protocol

from pydantic import ValidationError

from core.config import get_settings
from core.exceptions import (
    ContextNotFoundError,
    ContextStoreUnavailableError,
    MalformedContextError,
)
from schemas.context import ExtensionContext


if TYPE_CHECKING:
    from upstash_redis.asyncio import Redis

logger = logging.getLogger(__name__)

CONTEXT_KEY_PREFIX = "pagecraft:context:"


class ContextStore(Protocol):
    async def put(self, context: ExtensionContext) -> str: ...

    async def get(self, context_id: str) -> ExtensionContext: ...


def new_context_id() -> str:
    return f"{get_settings().CONTEXT_ID_PREFIX}{secrets.token_hex(6)}"


def encode_context(context: ExtensionContext) -> str:
    return context.model_dump_json(by_alias=True)


def decode_context(context_id: str, raw: str | bytes) -> ExtensionContext:
    try:
        return ExtensionContext.model_validate_json(raw)
    except ValidationError as e:
        logger.error(
            f"Stored context {context_id} is not decodable: {e.error_count()} error(s)"
        )
        raise MalformedContextError(f"Context {context_id} is malformed") from e


class InMemoryContextStore:
    """Process-local store with expiry on a monotonic clock."""

    def __init__(
        self, ttl_seconds: int, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, str]] = {}

    def _purge_expired(self) -> None:
        now = self._clock()
        for key in [k for k, (expires, _) in self._entries.items() if expires <= now]:
            del self._entries[key]

    async def put(self, context: ExtensionContext) -> str:
        self._purge_expired()
        context_id = new_context_id()
        self._entries[context_id] = (self._clock() + self._ttl, encode_context(context))
        return context_id

    async def put_raw(self, context_id: str, raw: str) -> None:
        """Store pre-encoded data under a fixed id."""
        self._entries[context_id] = (self._clock() + self._ttl, raw)

    async def get(self, context_id: str) -> ExtensionContext:
        entry = self._entries.get(context_id)
        if entry is None or entry[0] <= self._clock():
            self._entries.pop(context_id, None)
            raise ContextNotFoundError(context_id)
        return decode_context(context_id, entry[1])


class UpstashContextStore:
    """Redis-backed store; expiry is delegated to `SET ... EX`."""

    def __init__(self, redis: Redis, ttl_seconds: int) -> None:
        self._redis = redis
        self._ttl = ttl_seconds

    async def put(self, context: ExtensionContext) -> str:
        context_id = new_context_id()
        await self._redis.set(
            f"{CONTEXT_KEY_PREFIX}{context_id}", encode_context(context), ex=self._ttl
        )
        return context_id

    async def get(self, context_id: str) -> ExtensionContext:
        raw = await self._redis.get(f"{CONTEXT_KEY_PREFIX}{context_id}")
        if raw is None:
            raise ContextNotFoundError(context_id)
        return decode_context(context_id, raw)


class UnavailableContextStore:
    """Stand-in for a missing backend; every operation fails loudly."""

    async def put(self, context: ExtensionContext) -> str:
        raise ContextStoreUnavailableError("No context store is configured")

    async def get(self, context_id: str) -> ExtensionContext:
        raise ContextStoreUnavailableError("No context store is configured")


@lru_cache
def get_context_store() -> ContextStore:
    """Dependency provider for the process-wide context store.

    Production requires Upstash; without it every store operation raises
    `ContextStoreUnavailableError`.
    """
    settings = get_settings()
    if settings.UPSTASH_REDIS_REST_URL and settings.UPSTASH_REDIS_REST_TOKEN:
        from upstash_redis.asyncio import Redis

        logger.info("Using Upstash Redis context store")
        return UpstashContextStore(
            Redis(
                url=settings.UPSTASH_REDIS_REST_URL,
                token=settings.UPSTASH_REDIS_REST_TOKEN,
            ),
            ttl_seconds=settings.CONTEXT_TTL_SECONDS,
        )

    if settings.ENVIRONMENT == "production":
        logger.error(
            "UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN must be set "
            "in production; context storage is unavailable"
        )
        return UnavailableContextStore()
    logger.warning("Upstash Redis not configured. Using in-memory context store.")
    return InMemoryContextStore(ttl_seconds=settings.CONTEXT_TTL_SECONDS)
