"""Intent classification for a query, with or without browsing context.

Classification never fails a run: a model error or an unparseable answer
yields `IntentClassification.fallback()`, or for context runs a heuristic
built from the extension's rule-based profile.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from schemas.context import ExtensionContext, ExtensionProfile, ExtensionSignal
from schemas.generation import (
    IntentClassification,
    IntentEntities,
    QueryHistoryItem,
    SessionContext,
    SessionProfile,
)
from services.ai.exceptions import ModelGatewayError
from services.ai.gateway import ModelGateway
from services.ai.parsing import Malformed, parse_model
from services.ai.prompts import CLASSIFICATION_PROMPT


logger = logging.getLogger(__name__)

MAX_PROMPT_SIGNALS = 20
PROFILE_HEURISTIC_CONFIDENCE = 0.6

_USE_CASE_PHRASES: dict[str, str] = {
    "smoothies": "make smoothies",
    "soups": "make hot soups",
    "nut_butters": "make nut butters",
    "baby_food": "make baby food",
    "frozen_desserts": "make frozen desserts",
}


async def _classify(
    gateway: ModelGateway, system: str, user: str, preset: str | None
) -> IntentClassification | None:
    try:
        response = await gateway.complete(
            "classification", system, user, preset=preset
        )
    except ModelGatewayError as e:
        logger.warning(f"Intent classification call failed: {e.message}")
        return None

    parsed = parse_model(response, IntentClassification)
    if isinstance(parsed, Malformed):
        logger.warning(f"Intent classification unparseable: {parsed.reason}")
        return None
    return parsed.value


async def classify_intent(
    gateway: ModelGateway,
    query: str,
    history: Sequence[QueryHistoryItem] | None = None,
    *,
    preset: str | None = None,
) -> IntentClassification:
    """Classify a query, considering earlier queries of the session."""
    history_lines = ""
    if history:
        history_lines = "\n\nPrevious queries in this session:\n" + "\n".join(
            f'- "{item.query}" ({item.intent or "unknown"})' for item in history
        )
    result = await _classify(
        gateway, CLASSIFICATION_PROMPT, f'Query: "{query}"{history_lines}', preset
    )
    return result or IntentClassification.fallback()


def format_signals_for_prompt(signals: Sequence[ExtensionSignal]) -> str:
    """Top signals by weight, then recency, one line each."""
    ranked = sorted(signals, key=lambda s: (s.weight, s.timestamp), reverse=True)
    lines = []
    for signal in ranked[:MAX_PROMPT_SIGNALS]:
        if signal.product:
            detail = f" - Product: {signal.product}"
        elif signal.data.get("query"):
            detail = f' - "{signal.data["query"]}"'
        elif signal.data.get("h1"):
            detail = f" - {signal.data['h1']}"
        elif signal.data.get("path"):
            detail = f" - {signal.data['path']}"
        else:
            detail = ""
        weight = signal.weight_label or signal.weight
        lines.append(f"- {signal.label}{detail} ({weight})")
    return "\n".join(lines)


def _profile_summary(profile: ExtensionProfile) -> str:
    def listed(values: Sequence[str]) -> str:
        return ", ".join(values) or "none"

    return (
        "Inferred Profile:\n"
        f"- Segments: {listed(profile.segments)}\n"
        f"- Use Cases: {listed(profile.use_cases)}\n"
        f"- Products Considered: {listed(profile.products_considered)}\n"
        f"- Price Sensitivity: {profile.price_sensitivity or 'unknown'}\n"
        f"- Purchase Readiness: {profile.purchase_readiness or 'unknown'}\n"
        f"- Decision Style: {profile.decision_style or 'unknown'}\n"
        f"- Confidence: {round(profile.confidence_score * 100)}%"
    )


def classify_from_profile(profile: ExtensionProfile) -> IntentClassification:
    """Rule-based classification from the extension's profile alone."""
    considered = profile.products_considered
    intent_type = "discovery"
    stage = "exploring"
    if "gift_buyer" in profile.segments or profile.shopping_for == "gift":
        intent_type = "gift"
    elif "comparison_shopper" in profile.segments or len(considered) >= 2:
        intent_type, stage = "comparison", "comparing"
    elif profile.purchase_readiness == "high":
        intent_type, stage = "recommendation", "deciding"
    elif len(considered) == 1:
        intent_type, stage = "product-detail", "comparing"

    return IntentClassification(
        intent_type=intent_type,
        confidence=PROFILE_HEURISTIC_CONFIDENCE,
        entities=IntentEntities(
            products=list(considered), use_cases=list(profile.use_cases)
        ),
        journey_stage=stage,
    )


async def classify_intent_from_context(
    gateway: ModelGateway,
    query: str,
    context: ExtensionContext,
    *,
    preset: str | None = None,
) -> IntentClassification:
    """Classify with browsing signals and the inferred profile as extra context.

    Falls back to `classify_from_profile` when the model cannot answer.
    """
    history = ""
    if context.previous_queries:
        history = "\n\nConversation History:\n" + "\n".join(
            f'{i}. "{q}"' for i, q in enumerate(context.previous_queries, start=1)
        )
    system = (
        f"{CLASSIFICATION_PROMPT}\n\n"
        "ADDITIONAL CONTEXT FROM BROWSING BEHAVIOR:\n\n"
        "## Browsing Signals (most important first):\n"
        f"{format_signals_for_prompt(context.signals)}\n\n"
        f"## {_profile_summary(context.profile)}"
        f"{history}"
    )
    result = await _classify(gateway, system, f'Query: "{query}"', preset)
    if result is None:
        logger.info("Using profile heuristic classification")
        return classify_from_profile(context.profile)
    return result


def build_query_from_context(context: ExtensionContext) -> str:
    """Phrase a natural-language query from the profile when none was typed."""
    parts: list[str] = []
    if context.query:
        parts.append(context.query)

    profile = context.profile
    if "new_parent" in profile.segments or "baby_food" in profile.use_cases:
        if not context.query:
            parts.append("I want to make baby food")
        parts.append("for my baby")
    elif "gift_buyer" in profile.segments:
        if not context.query:
            parts.append("I'm looking for a blender as a gift")
    elif {"existing_owner", "upgrade_intent"} & set(profile.segments):
        if not context.query:
            parts.append("I want to upgrade my blender")
        parts.append("I already have one")

    if not parts:
        for use_case in profile.use_cases:
            phrase = _USE_CASE_PHRASES.get(use_case)
            if phrase:
                parts.append(f"I want to {phrase}")
                break

    considered = profile.products_considered
    if len(considered) == 1:
        parts.append(f"I've been looking at the {considered[0]}")
    elif len(considered) == 2:
        parts.append(f"I'm comparing the {considered[0]} and {considered[1]}")
    elif considered:
        parts.append(f"I'm considering the {', '.join(considered[:3])}")

    if profile.price_sensitivity == "high":
        parts.append("I'm on a budget")
    elif (
        profile.price_sensitivity == "low"
        and "premium_preference" in profile.segments
    ):
        parts.append("budget isn't a concern")

    if not parts:
        searches = [
            s.data["query"]
            for s in context.signals
            if s.type == "search" and s.data.get("query")
        ]
        if searches:
            parts.append(f"I'm looking for information about {searches[-1]}")
        else:
            parts.append("Help me find the right blender")

    return ". ".join(parts) + ". What do you recommend?"


def build_session_context(context: ExtensionContext) -> SessionContext:
    """Session history and profile in the shape the reasoning engine reads."""
    profile = context.profile
    readiness = profile.purchase_readiness
    if readiness == "high":
        stage = "deciding"
    elif readiness == "medium_high":
        stage = "comparing"
    else:
        stage = "exploring"
    price_range = {"high": "budget", "low": "premium"}.get(
        profile.price_sensitivity or "", profile.price_sensitivity
    )
    return SessionContext(
        previous_queries=[
            QueryHistoryItem(query=q, intent="discovery")
            for q in context.previous_queries
        ],
        profile=SessionProfile(
            use_cases=list(profile.use_cases),
            price_range=price_range,
            products_viewed=list(profile.products_considered),
            journey_stage=stage,
        ),
    )
