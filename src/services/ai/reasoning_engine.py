"""Block-selection reasoning: which sections a page gets, in which order, and why.

The model proposes a plan; the engine then moderates its confidence with the
external signals' confidence, gates product-specific blocks on product-match
confidence, and applies structural rules (aliases, intent requirements,
separation of dark sections, a closing follow-up block).

A failed or malformed reasoning call is fatal for the run: there is no
sensible default page plan, so `ReasoningFailure` is raised.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Sequence
from typing import Any

from pydantic import Field

from schemas.base import CamelModel
from schemas.catalog import RetrievalContext
from schemas.generation import (
    BLOCK_TYPES,
    BlockSelection,
    ConfidenceScores,
    IntentClassification,
    ProductSelection,
    ReasoningResult,
    ReasoningStep,
    ReasoningTrace,
    SessionContext,
    SignalInterpretation,
    UserJourneyPlan,
)
from services.ai.exceptions import ModelGatewayError, ReasoningFailure
from services.ai.gateway import ModelGateway
from services.ai.parsing import Malformed, parse_model
from services.ai.prompts import REASONING_SYSTEM_PROMPT
from services.catalog import ContentCatalog, get_content_catalog


logger = logging.getLogger(__name__)

SINGLE_RECOMMENDATION_THRESHOLD = 0.8
BEST_PICK_THRESHOLD = 0.6
COMPARISON_THRESHOLD = 0.4
INTENT_CONFIDENCE_FLOOR = 0.5

BLOCK_ALIASES: dict[str, str] = {
    "hero-block": "hero",
    "faq-block": "faq",
    "reasoning": "reasoning-user",
}

DARK_BLOCKS = frozenset({"hero", "product-hero", "product-recommendation", "best-pick"})
PRODUCT_SELLING_BLOCKS = frozenset(
    {"product-recommendation", "best-pick", "product-cards", "comparison-table"}
)

_COMPARISON_RE = re.compile(
    r"\b(vs|versus|compare|comparison|difference between|which is better|"
    r"which one|should i choose|should i get)\b"
)
_MODEL_MENTION_RE = re.compile(
    r"\b(x2|x5|a2500|a3500|e310|propel|explorian|ascent|venturist)\b"
)


class _PlannedBlock(CamelModel):
    type: str
    variant: str | None = None
    priority: int = 0
    rationale: str = ""
    content_guidance: str = ""


class _ReasoningResponse(CamelModel):
    """Loose shape of the model's answer, before rules are applied."""

    selected_blocks: list[_PlannedBlock]
    reasoning: ReasoningTrace
    user_journey: UserJourneyPlan
    confidence: ConfidenceScores | float | None = None
    selected_products: list[dict[str, Any]] = Field(default_factory=list)
    product_selection_rationale: str | None = None


def detect_comparison_query(query: str) -> bool:
    """Explicit comparison wording, or two or more model names."""
    lowered = query.lower()
    if _COMPARISON_RE.search(lowered):
        return True
    return len(set(_MODEL_MENTION_RE.findall(lowered))) >= 2


def build_reasoning_prompt(
    query: str,
    intent: IntentClassification,
    retrieval: RetrievalContext,
    catalog: ContentCatalog,
    session: SessionContext | None = None,
    interpretation: SignalInterpretation | None = None,
) -> str:
    catalog_lines = "\n".join(
        f"- {p['id']}: {p['name']} ({p['series']}) | ${p['price'] or 'N/A'} | "
        f"Best for: {', '.join(p['bestFor']) or 'general use'}"
        for p in catalog.compact_product_catalog()
    )
    products = "\n".join(
        f"- {p.name} ({p.series}): ${p.price} - {p.tagline or p.description[:100]}"
        for p in retrieval.products[:5]
    )
    recipes = "\n".join(
        f"- {r.name}: {r.category} - {r.time or 'quick'} prep"
        for r in retrieval.recipes[:3]
    )
    use_cases = "\n".join(
        f"- {uc.name}: {uc.description}" for uc in retrieval.use_cases
    )
    entities = intent.entities

    sections = [
        f'## User Query\n"{query}"',
        "## Intent Classification\n"
        f"- Type: {intent.intent_type}\n"
        f"- Confidence: {intent.confidence}\n"
        f"- Journey Stage: {intent.journey_stage}\n"
        f"- Detected Products: {', '.join(entities.products) or 'None'}\n"
        f"- Use Cases: {', '.join(entities.use_cases) or 'None'}\n"
        f"- Features: {', '.join(entities.features) or 'None'}",
        f"## Available Products (pre-filtered)\n{products or 'No products matched'}",
        "## FULL PRODUCT CATALOG (for product selection, use exact ids)\n"
        f"{catalog_lines}",
        f"## Relevant Use Cases\n{use_cases or 'No specific use cases matched'}",
        f"## Available Recipes\n{recipes or 'No recipes matched'}",
    ]

    previous = session.previous_queries if session else []
    if previous:
        history = "\n".join(
            f'  - "{item.query}" ({item.intent or "unknown"})' for item in previous[-3:]
        )
        sections.append(f"## Session History\n{history}")
        last = previous[-1]
        sections.append(
            "## Last Query Context\n"
            f'- Query: "{last.query}"\n'
            f"- Journey Stage: {last.journey_stage or 'exploring'}\n"
            f"- Products Shown: {', '.join(last.recommended_products) or 'None'}\n"
            f"- Recipes Shown: {', '.join(last.recommended_recipes) or 'None'}\n"
            f"- Blocks Used: {', '.join(last.block_types) or 'None'}"
        )
    else:
        sections.append("## Session History\nNew session")

    if session and session.profile:
        profile_json = json.dumps(session.profile.to_wire(), indent=2)
        sections.append(f"## User Profile\n{profile_json}")

    if interpretation:
        summary = interpretation.interpretation
        content = interpretation.content_recommendation
        insights = "\n".join(f"  - {i}" for i in summary.key_insights) or "  - None"
        sections.append(
            "## BROWSING CONTEXT (adds context, does NOT override the query)\n"
            f"**Interpreted Intent**: {summary.primary_intent}\n"
            f"**Emotional Context**: {summary.emotional_context}\n"
            f"**Specific Needs**: {', '.join(summary.specific_needs) or 'None'}\n"
            f"**Journey Stage**: {summary.journey_stage}\n"
            f"**Key Insights**:\n{insights}\n"
            f"**Hero Tone**: {content.hero_tone}\n"
            f"**Suggested Blocks**: {', '.join(content.prioritize_blocks) or 'None'}\n"
            f"**Avoid Blocks**: {', '.join(content.avoid_blocks) or 'None'}\n"
            f"**Additional Guidance**: {content.special_guidance or 'None'}"
        )

    if detect_comparison_query(query):
        sections.append(
            "## COMPARISON QUERY DETECTED\n"
            "You MUST include a best-pick block followed by a comparison-table block."
        )

    sections.append(
        "## Your Task\n"
        "Analyze this query and select the blocks to render, in page order. "
        "Consider the user's journey stage and what would move them closer to a "
        "confident decision."
    )
    return "\n\n".join(sections)


def _selections(raw_blocks: Sequence[_PlannedBlock]) -> list[BlockSelection]:
    selections = []
    for raw in raw_blocks:
        block_type = BLOCK_ALIASES.get(raw.type, raw.type)
        if block_type not in BLOCK_TYPES:
            logger.warning(f"Dropping unknown block type from plan: {raw.type!r}")
            continue
        selections.append(
            BlockSelection(
                type=block_type,
                variant=raw.variant,
                priority=raw.priority,
                rationale=raw.rationale,
                content_guidance=raw.content_guidance,
            )
        )
    return selections


def _product_selections(raw: Sequence[dict[str, Any]]) -> list[ProductSelection]:
    selections = []
    for item in raw:
        product_id = str(item.get("id") or "").strip()
        if not product_id:
            continue
        context_type = item.get("contextType")
        if context_type not in ("commercial", "consumer", "either"):
            context_type = "either"
        selections.append(
            ProductSelection(
                id=product_id,
                rationale=str(item.get("rationale") or ""),
                is_primary=bool(item.get("isPrimary")),
                context_type=context_type,
            )
        )
    return selections


def _raw_confidence(value: ConfidenceScores | float | None) -> ConfidenceScores:
    if isinstance(value, ConfidenceScores):
        return value
    if isinstance(value, (int, float)):
        # A single number is the intent confidence; product match stays moderate
        return ConfidenceScores(intent=min(max(float(value), 0.0), 1.0))
    return ConfidenceScores()


def moderate_confidence(
    llm: ConfidenceScores, external_sources: Sequence[float | None]
) -> ConfidenceScores:
    """Cap the model's confidence by how strong the external signals are.

    Intent confidence is never pulled below 0.5 by weak signals; product-match
    confidence is capped by them outright.
    """
    known = [c for c in external_sources if c is not None]
    external = min(known) if known else 1.0
    return ConfidenceScores(
        intent=min(llm.intent, max(external, INTENT_CONFIDENCE_FLOOR)),
        product_match=min(llm.product_match, external),
    )


def _index_of(blocks: Sequence[BlockSelection], block_type: str) -> int:
    return next((i for i, b in enumerate(blocks) if b.type == block_type), -1)


def _insert_after_lead(blocks: list[BlockSelection], block: BlockSelection) -> None:
    """Insert after the hero or best-pick, whichever comes later."""
    lead = max(_index_of(blocks, "hero"), _index_of(blocks, "best-pick"))
    index = lead + 1 if lead >= 0 else min(1, len(blocks))
    blocks.insert(index, block)


def enforce_confidence_thresholds(
    blocks: Sequence[BlockSelection], confidence: ConfidenceScores
) -> list[BlockSelection]:
    """Show options instead of a single pick when no product clearly stands out."""
    result = list(blocks)
    product_match = confidence.product_match

    if product_match < SINGLE_RECOMMENDATION_THRESHOLD and any(
        b.type == "product-recommendation" for b in result
    ):
        result = [b for b in result if b.type != "product-recommendation"]
        logger.info(
            f"Removed product-recommendation (product match {product_match:.0%})"
        )
        if product_match >= COMPARISON_THRESHOLD and _index_of(
            result, "comparison-table"
        ) < 0:
            _insert_after_lead(
                result,
                BlockSelection(
                    type="comparison-table",
                    rationale=(
                        "Showing a comparison instead of a single recommendation: "
                        "several products fit this need"
                    ),
                    content_guidance=(
                        "Compare relevant products without declaring a winner"
                    ),
                ),
            )
        if _index_of(result, "product-cards") < 0:
            table = _index_of(result, "comparison-table")
            index = table + 1 if table >= 0 else max(len(result) - 1, 0)
            result.insert(
                index,
                BlockSelection(
                    type="product-cards",
                    rationale="Showing product options for you to explore",
                    content_guidance=(
                        "Display relevant products without ranking or declaring "
                        "a best choice"
                    ),
                ),
            )

    if product_match < BEST_PICK_THRESHOLD and any(
        b.type == "best-pick" for b in result
    ):
        result = [b for b in result if b.type != "best-pick"]
        logger.info(f"Removed best-pick (product match {product_match:.0%})")

    if (
        confidence.intent < COMPARISON_THRESHOLD
        and product_match < COMPARISON_THRESHOLD
        and not any(b.type in ("use-case-cards", "feature-highlights") for b in result)
    ):
        hero = _index_of(result, "hero")
        index = hero + 1 if hero >= 0 else min(1, len(result))
        result.insert(
            index,
            BlockSelection(
                type="use-case-cards",
                rationale=(
                    "Low confidence on both intent and product match: "
                    "explore use cases first"
                ),
                content_guidance=(
                    "Show use cases relevant to the user's signals to narrow "
                    "down their needs"
                ),
            ),
        )
    return result


def apply_intent_rules(
    blocks: Sequence[BlockSelection], intent_type: str, comparison_query: bool
) -> list[BlockSelection]:
    result = list(blocks)
    if intent_type == "support":
        result = [b for b in result if b.type not in PRODUCT_SELLING_BLOCKS]
        if _index_of(result, "support-triage") < 0:
            hero = _index_of(result, "hero")
            result.insert(
                hero + 1,
                BlockSelection(
                    type="support-triage",
                    rationale="Helping you resolve the issue comes first",
                    content_guidance="Acknowledge the problem and point to support",
                ),
            )
        if _index_of(result, "faq") < 0:
            result.append(
                BlockSelection(
                    type="faq",
                    rationale="Answers to common support questions",
                    content_guidance="Warranty, cleaning and troubleshooting",
                )
            )
    elif (intent_type == "comparison" or comparison_query) and _index_of(
        result, "comparison-table"
    ) < 0:
        _insert_after_lead(
            result,
            BlockSelection(
                type="comparison-table",
                rationale="You are weighing models against each other",
                content_guidance="Side-by-side comparison of the products considered",
            ),
        )
    return result


def separate_dark_blocks(blocks: Sequence[BlockSelection]) -> list[BlockSelection]:
    """Keep dark sections apart; the page always opens with the dark hero."""
    result: list[BlockSelection] = []
    previous = "hero"
    for block in blocks:
        if block.type == "hero":
            result.append(block)
            previous = block.type
            continue
        if block.type in DARK_BLOCKS and previous in DARK_BLOCKS:
            result.append(
                BlockSelection(
                    type="feature-highlights",
                    rationale="Visual separator between hero-style blocks",
                    content_guidance="Highlight key features relevant to the query",
                )
            )
        result.append(block)
        previous = block.type
    return result


def ensure_required_blocks(blocks: Sequence[BlockSelection]) -> list[BlockSelection]:
    result = [b for b in blocks if b.type not in ("reasoning", "reasoning-user")]
    result = separate_dark_blocks(result)
    if _index_of(result, "follow-up") < 0:
        result.append(
            BlockSelection(
                type="follow-up",
                rationale="Enable continued exploration",
                content_guidance="Provide contextual follow-up suggestions",
            )
        )
    return [b.model_copy(update={"priority": i}) for i, b in enumerate(result, 1)]


async def analyze_and_select_blocks(
    gateway: ModelGateway,
    query: str,
    intent: IntentClassification,
    retrieval: RetrievalContext,
    *,
    session: SessionContext | None = None,
    interpretation: SignalInterpretation | None = None,
    profile_confidence: float | None = None,
    catalog: ContentCatalog | None = None,
    preset: str | None = None,
) -> ReasoningResult:
    """Plan the page for a query.

    Raises:
        ReasoningFailure: when the model call fails or its answer cannot be parsed.
    """
    prompt = build_reasoning_prompt(
        query,
        intent,
        retrieval,
        catalog or get_content_catalog(),
        session,
        interpretation,
    )
    try:
        response = await gateway.complete(
            "reasoning", REASONING_SYSTEM_PROMPT, prompt, preset=preset
        )
    except ModelGatewayError as e:
        raise ReasoningFailure(f"Reasoning model call failed: {e.message}") from e

    parsed = parse_model(response, _ReasoningResponse)
    if isinstance(parsed, Malformed):
        raise ReasoningFailure(f"Reasoning response unusable: {parsed.reason}")
    raw = parsed.value

    confidence = moderate_confidence(
        _raw_confidence(raw.confidence),
        [
            intent.confidence,
            interpretation.classification.confidence if interpretation else None,
            profile_confidence,
        ],
    )
    blocks = _selections(raw.selected_blocks)
    blocks = enforce_confidence_thresholds(blocks, confidence)
    blocks = apply_intent_rules(
        blocks, intent.intent_type, detect_comparison_query(query)
    )
    blocks = ensure_required_blocks(blocks)
    logger.info(
        f"Selected blocks: {', '.join(b.type for b in blocks)} "
        f"(intent {confidence.intent:.0%}, "
        f"product match {confidence.product_match:.0%})"
    )

    return ReasoningResult(
        selected_blocks=blocks,
        reasoning=raw.reasoning,
        user_journey=raw.user_journey,
        confidence=confidence,
        selected_products=_product_selections(raw.selected_products) or None,
        product_selection_rationale=raw.product_selection_rationale,
    )


def format_reasoning_for_display(trace: ReasoningTrace) -> list[ReasoningStep]:
    return [
        ReasoningStep(
            stage="understanding",
            title="Understanding Your Question",
            content=trace.intent_analysis,
        ),
        ReasoningStep(
            stage="assessment",
            title="Assessing Your Needs",
            content=trace.user_needs_assessment,
        ),
        ReasoningStep(
            stage="decision", title="My Recommendation", content=trace.final_decision
        ),
    ]
