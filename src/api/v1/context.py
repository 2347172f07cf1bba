"""Context bundle storage for the browser extension."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from core.config import Settings, get_settings
from core.exceptions import EmptyContextError
from core.ratelimit import check_rate_limit
from schemas.api import ApiResponse, StoredContextData
from schemas.context import ExtensionContext
from services.context_store import ContextStore, get_context_store


logger = logging.getLogger(__name__)

router = APIRouter(tags=["context"])


@router.post(
    "/context",
    response_model=ApiResponse[StoredContextData],
    dependencies=[Depends(check_rate_limit)],
)
async def store_context(
    context: ExtensionContext,
    store: Annotated[ContextStore, Depends(get_context_store)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ApiResponse[StoredContextData]:
    """Store a browsing context and return the id to open a stream with."""
    if not context.has_content():
        raise EmptyContextError("Context must have signals, query, or previous queries")

    context_id = await store.put(context)
    logger.info(f"Stored context {context_id} with {len(context.signals)} signals")
    return ApiResponse(
        success=True,
        data=StoredContextData(id=context_id, expires_in=settings.CONTEXT_TTL_SECONDS),
        message="Context stored",
    )
