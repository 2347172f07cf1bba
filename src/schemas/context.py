"""Browsing context captured by the browser extension.

The extension posts this bundle to `/api/v1/context` and later opens the
generation stream with the returned id. Signal and bundle keys are camelCase;
the rule-based profile keeps the snake_case keys the extension computes.
"""

from __future__ import annotations

import time
from typing import Any

from pydantic import BaseModel, Field

from .base import CamelModel


class ExtensionSignal(CamelModel):
    """One captured browsing event (page view, search, click, ...)."""

    id: str
    type: str
    category: str = ""
    label: str = ""
    weight: float = 0.0
    weight_label: str | None = None
    icon: str | None = None
    timestamp: int = 0  # epoch milliseconds
    data: dict[str, Any] = Field(default_factory=dict)
    product: str | None = None


class ExtensionProfile(BaseModel):
    segments: list[str] = Field(default_factory=list)
    life_stage: str | None = None
    use_cases: list[str] = Field(default_factory=list)
    products_considered: list[str] = Field(default_factory=list)
    price_sensitivity: str | None = None
    decision_style: str | None = None
    purchase_readiness: str | None = None
    shopping_for: str | None = None
    occasion: str | None = None
    brand_relationship: str | None = None
    content_engagement: str | None = None
    time_sensitive: bool | None = None
    confidence_score: float = 0.0
    signals_count: int = 0
    session_count: int = 0
    first_visit: int | None = None
    last_visit: int | None = None


class ExtensionContext(CamelModel):
    signals: list[ExtensionSignal] = Field(default_factory=list)
    query: str | None = None
    previous_queries: list[str] = Field(default_factory=list)
    profile: ExtensionProfile = Field(default_factory=ExtensionProfile)
    timestamp: int = Field(default_factory=lambda: int(time.time() * 1000))

    def has_content(self) -> bool:
        """A storable bundle carries signals, a query, or previous queries."""
        has_query = bool(self.query and self.query.strip())
        return bool(self.signals) or has_query or bool(self.previous_queries)
