"""Page generation streaming endpoint."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncGenerator, Coroutine
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from core.config import Settings, get_settings
from core.exceptions import InvalidGenerationRequestError
from core.ratelimit import check_rate_limit
from schemas.generation import QueryContext, SessionContext
from services.ai.channel import EventReceiver, EventSender, open_channel
from services.ai.gateway import ModelGateway, get_model_gateway
from services.ai.orchestrator import orchestrate, orchestrate_from_context
from services.catalog import ContentCatalog, get_content_catalog
from services.context_store import ContextStore, get_context_store
from services.slugs import generate_slug, generate_slug_from_context


logger = logging.getLogger(__name__)

router = APIRouter(tags=["generation"])

SSE_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}

# Strong references so in-flight runs are not garbage collected mid-stream
_background_runs: set[asyncio.Task[None]] = set()


def _parse_session_context(raw: str) -> SessionContext | None:
    """Inline session history sent as JSON in `ctx`; ignored when unreadable."""
    try:
        return SessionContext.model_validate(json.loads(raw))
    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning(f"Ignoring unparseable inline session context: {e}")
        return None


async def _run_then_close(
    run: Coroutine[Any, Any, object], sender: EventSender, close_delay: float
) -> None:
    try:
        await run
    finally:
        # Let the transport flush the final event before the stream ends
        await asyncio.sleep(close_delay)
        sender.close()


def _start_run(
    run: Coroutine[Any, Any, object], sender: EventSender, settings: Settings
) -> None:
    task = asyncio.create_task(
        _run_then_close(run, sender, settings.STREAM_CLOSE_DELAY_SECONDS)
    )
    _background_runs.add(task)
    task.add_done_callback(_background_runs.discard)


async def _event_stream(
    receiver: EventReceiver, sender: EventSender
) -> AsyncGenerator[str, None]:
    try:
        async for event in receiver:
            yield event.to_sse()
    finally:
        # Reached on normal close and when the client goes away
        sender.disconnect()


@router.get(
    "/generate",
    response_class=StreamingResponse,
    dependencies=[Depends(check_rate_limit)],
)
async def generate_page(
    gateway: Annotated[ModelGateway, Depends(get_model_gateway)],
    catalog: Annotated[ContentCatalog, Depends(get_content_catalog)],
    store: Annotated[ContextStore, Depends(get_context_store)],
    settings: Annotated[Settings, Depends(get_settings)],
    query: Annotated[str | None, Query()] = None,
    q: Annotated[str | None, Query(description="Alias of `query`")] = None,
    slug: Annotated[str | None, Query()] = None,
    ctx: Annotated[
        str | None,
        Query(description="Stored context id, or inline session history JSON"),
    ] = None,
    preset: Annotated[str | None, Query(description="Model preset name")] = None,
) -> StreamingResponse:
    """Stream a personalized page as Server-Sent Events.

    A stored context is resolved before the stream opens, so a missing or
    malformed context is answered with a JSON error instead of a stream.
    """
    explicit_query = (query or q or "").strip() or None
    sender, receiver = open_channel()

    if ctx and ctx.startswith(settings.CONTEXT_ID_PREFIX):
        context = await store.get(ctx)
        if explicit_query:
            context = context.model_copy(update={"query": explicit_query})
        effective_slug = slug or generate_slug_from_context(context)
        logger.info(
            f"Generating from stored context {ctx} "
            f"({len(context.signals)} signals) as {effective_slug!r}"
        )
        run = orchestrate_from_context(
            context, effective_slug, sender, gateway, catalog, preset=preset
        )
    else:
        if not explicit_query:
            raise InvalidGenerationRequestError("Missing query parameter")
        session = _parse_session_context(ctx) if ctx else None
        query_context = QueryContext(
            query=explicit_query,
            slug=slug or generate_slug(explicit_query),
            previous_queries=session.previous_queries if session else [],
            profile=session.profile if session else None,
        )
        run = orchestrate(query_context, sender, gateway, catalog, preset=preset)

    _start_run(run, sender, settings)
    return StreamingResponse(
        _event_stream(receiver, sender),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
