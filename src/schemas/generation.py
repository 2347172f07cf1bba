"""Domain models for a page generation run.

These are produced and consumed by the pipeline stages in `services.ai`:
classification, signal interpretation, reasoning, and block generation.
Model responses are validated straight into them, so every model accepts
the camelCase keys the prompts ask for.
"""

from __future__ import annotations

from typing import Literal, get_args

from pydantic import ConfigDict, Field

from .base import CamelModel


IntentType = Literal[
    "discovery",
    "comparison",
    "product-detail",
    "use-case",
    "specs",
    "reviews",
    "price",
    "recommendation",
    "support",
    "partnership",
    "gift",
    "medical",
    "accessibility",
]

JourneyStage = Literal["exploring", "comparing", "deciding"]

BlockType = Literal[
    "hero",
    "product-hero",
    "reasoning",
    "reasoning-user",
    "product-cards",
    "recipe-cards",
    "comparison-table",
    "specs-table",
    "product-recommendation",
    "feature-highlights",
    "use-case-cards",
    "testimonials",
    "faq",
    "follow-up",
    "split-content",
    "columns",
    "text",
    "quick-answer",
    "support-triage",
    "budget-breakdown",
    "accessibility-specs",
    "empathy-hero",
    "best-pick",
    "sustainability-info",
    "smart-features",
    "engineering-specs",
    "noise-context",
    "allergen-safety",
]

BLOCK_TYPES: frozenset[str] = frozenset(get_args(BlockType))
INTENT_TYPES: frozenset[str] = frozenset(get_args(IntentType))

SectionStyle = Literal["default", "dark", "highlight"]
ModelRole = Literal["classification", "reasoning", "content"]


class IntentEntities(CamelModel):
    products: list[str] = Field(default_factory=list)
    use_cases: list[str] = Field(default_factory=list)
    features: list[str] = Field(default_factory=list)
    price_range: str | None = None


class IntentClassification(CamelModel):
    intent_type: IntentType
    confidence: float = Field(..., ge=0.0, le=1.0)
    entities: IntentEntities = Field(default_factory=IntentEntities)
    journey_stage: JourneyStage = "exploring"

    @classmethod
    def fallback(cls) -> IntentClassification:
        """Neutral classification used whenever the classifier cannot answer."""
        return cls(intent_type="discovery", confidence=0.5, journey_stage="exploring")


class BlockSelection(CamelModel):
    """One planned page section, consumed in list order."""

    model_config = ConfigDict(frozen=True)

    type: BlockType
    variant: str | None = None
    priority: int = 1
    rationale: str = ""
    content_guidance: str = ""


class HeroComposition(CamelModel):
    text_placement: Literal["left", "right", "center"] = "left"
    background_tone: Literal["light", "dark"] = "dark"
    aspect_ratio: Literal["wide", "square"] = "wide"


class HeroImage(HeroComposition):
    """A resolved hero image plus the layout it was composed for."""

    url: str

    def composition(self) -> HeroComposition:
        return HeroComposition(
            text_placement=self.text_placement,
            background_tone=self.background_tone,
            aspect_ratio=self.aspect_ratio,
        )


class GeneratedBlock(CamelModel):
    type: BlockType
    html: str
    section_style: SectionStyle | None = None
    hero_composition: HeroComposition | None = None


class BlockRationale(CamelModel):
    block_type: str
    reason: str = ""
    content_focus: str = ""


class ReasoningTrace(CamelModel):
    intent_analysis: str = ""
    user_needs_assessment: str = ""
    block_selection_rationale: list[BlockRationale] = Field(default_factory=list)
    alternatives_considered: list[str] = Field(default_factory=list)
    final_decision: str = ""


class UserJourneyPlan(CamelModel):
    current_stage: JourneyStage = "exploring"
    next_best_action: str = ""
    suggested_follow_ups: list[str] = Field(default_factory=list)


class ConfidenceScores(CamelModel):
    """Dual confidence: query understanding vs. a single product standing out."""

    intent: float = Field(0.8, ge=0.0, le=1.0)
    product_match: float = Field(0.5, ge=0.0, le=1.0)


class ProductSelection(CamelModel):
    """A pointer to a catalog product plus why it was picked."""

    id: str
    rationale: str = ""
    is_primary: bool = False
    context_type: Literal["commercial", "consumer", "either"] = "either"


class ReasoningResult(CamelModel):
    selected_blocks: list[BlockSelection]
    reasoning: ReasoningTrace
    user_journey: UserJourneyPlan
    confidence: ConfidenceScores = Field(default_factory=ConfidenceScores)
    selected_products: list[ProductSelection] | None = None
    product_selection_rationale: str | None = None


class ReasoningStep(CamelModel):
    stage: str
    title: str
    content: str


class InterpretationSummary(CamelModel):
    primary_intent: str = ""
    specific_needs: list[str] = Field(default_factory=list)
    emotional_context: str = ""
    journey_stage: JourneyStage = "exploring"
    key_insights: list[str] = Field(default_factory=list)


class ContentRecommendation(CamelModel):
    hero_tone: str = ""
    prioritize_blocks: list[str] = Field(default_factory=list)
    avoid_blocks: list[str] = Field(default_factory=list)
    special_guidance: str = ""


class SignalInterpretation(CamelModel):
    interpretation: InterpretationSummary
    classification: IntentClassification
    content_recommendation: ContentRecommendation = Field(
        default_factory=ContentRecommendation
    )


class QueryHistoryItem(CamelModel):
    query: str
    intent: str | None = None
    journey_stage: JourneyStage | None = None
    recommended_products: list[str] = Field(default_factory=list)
    recommended_recipes: list[str] = Field(default_factory=list)
    block_types: list[str] = Field(default_factory=list)


class SessionProfile(CamelModel):
    use_cases: list[str] = Field(default_factory=list)
    price_range: str | None = None
    products_viewed: list[str] = Field(default_factory=list)
    concerns: list[str] = Field(default_factory=list)
    journey_stage: JourneyStage | None = None


class SessionContext(CamelModel):
    """Conversation history carried between successive generations."""

    previous_queries: list[QueryHistoryItem] = Field(default_factory=list)
    profile: SessionProfile | None = None


class QueryContext(CamelModel):
    """Seed of a generation run; immutable once built."""

    model_config = ConfigDict(frozen=True)

    query: str
    slug: str
    previous_queries: list[QueryHistoryItem] = Field(default_factory=list)
    profile: SessionProfile | None = None
