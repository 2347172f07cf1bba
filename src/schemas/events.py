"""Server-Sent Event schemas for page generation streaming.

Every event on the wire is a named SSE event whose `data` line is the
camelCase JSON of one payload model below. Payload models keep the
orchestrator from drifting out of the event contract the client renders.
"""

from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .base import CamelModel
from .generation import (
    ConfidenceScores,
    HeroComposition,
    IntentClassification,
    JourneyStage,
    SectionStyle,
)


EventName = Literal[
    "generation-start",
    "reasoning-start",
    "reasoning-step",
    "reasoning-complete",
    "block-start",
    "block-content",
    "block-rationale",
    "image-ready",
    "suggestion-enhancement",
    "generation-complete",
    "error",
]


class InterpretationBrief(CamelModel):
    primary_intent: str
    journey_stage: JourneyStage
    emotional_context: str = ""
    specific_needs: list[str] = Field(default_factory=list)


class GenerationStartPayload(CamelModel):
    query: str
    estimated_blocks: int
    interpretation: InterpretationBrief | None = None
    has_signals: bool | None = None


class ReasoningStartPayload(CamelModel):
    model: str
    preset: str
    hero_fast_path: bool = True


class ReasoningStepPayload(CamelModel):
    stage: str
    title: str
    content: str


class ReasoningCompletePayload(CamelModel):
    confidence: ConfidenceScores
    duration: int = Field(..., description="Milliseconds spent reasoning")


class BlockStartPayload(CamelModel):
    block_type: str
    index: int
    fast_path: bool | None = None


class BlockContentPayload(CamelModel):
    index: int
    html: str
    section_style: SectionStyle | None = None
    hero_composition: HeroComposition | None = None


class BlockRationalePayload(CamelModel):
    block_type: str
    rationale: str


class ImageReadyPayload(CamelModel):
    index: int
    image_url: str


class SuggestionEnhancementPayload(CamelModel):
    suggestions: list[str]


class NavigationSummary(CamelModel):
    journey_stage: JourneyStage
    confidence: ConfidenceScores
    next_best_action: str
    suggested_follow_ups: list[str]


class Recommendations(CamelModel):
    products: list[str]
    recipes: list[str]
    block_types: list[str]


class GenerationCompletePayload(CamelModel):
    total_blocks: int
    duration: int
    intent: IntentClassification
    reasoning: NavigationSummary
    recommendations: Recommendations
    signal_interpretation: InterpretationBrief | None = None


class ErrorPayload(CamelModel):
    message: str
    code: str


class GenerationEvent(BaseModel):
    """Canonical envelope for one streamed generation event."""

    event: EventName
    data: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")

    @classmethod
    def of(cls, event: EventName, payload: CamelModel) -> GenerationEvent:
        return cls.model_validate({"event": event, "data": payload.to_wire()})

    @classmethod
    def error(cls, message: str, code: str) -> GenerationEvent:
        return cls.of("error", ErrorPayload(message=message, code=code))

    def to_sse(self) -> str:
        """Render the named-event SSE wire format."""
        payload = json.dumps(self.data, ensure_ascii=False, separators=(",", ":"))
        return f"event: {self.event}\ndata: {payload}\n\n"
