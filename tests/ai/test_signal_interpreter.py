"""Tests for browsing-signal interpretation."""

import json

import pytest

from schemas.context import ExtensionContext, ExtensionProfile, ExtensionSignal
from services.ai.prompts import SIGNAL_INTERPRETATION_PROMPT
from services.ai.signal_interpreter import (
    extract_products_from_signals,
    format_signals_for_interpretation,
    interpret_signals,
)


def _signal(**values) -> ExtensionSignal:
    return ExtensionSignal.model_validate({"id": "s", "type": "page_view", **values})


@pytest.fixture
def browsing_context() -> ExtensionContext:
    return ExtensionContext(
        signals=[
            _signal(
                type="referrer",
                timestamp=1_000,
                data={"domain": "google.com", "searchQuery": "best blender"},
            ),
            _signal(
                type="page_view",
                category="product",
                weight=0.3,
                timestamp=3_000,
                data={"h1": "Ascent® X5 - Smart System", "price": "$749.95"},
                product="Ascent X5",
            ),
            _signal(type="search", timestamp=5_000, data={"query": "smoothie"}),
            _signal(
                type="scroll",
                timestamp=6_000,
                data={"depth": 40, "page": {"path": "/x5"}},
            ),
            _signal(
                type="scroll",
                timestamp=7_000,
                data={"depth": 75, "page": {"path": "/x5"}},
            ),
            _signal(
                type="time_on_page",
                timestamp=8_000,
                data={"seconds": 95, "page": {"path": "/x5"}},
            ),
            _signal(type="click", timestamp=9_000, data={"text": "Compare"}),
        ],
        query="which is quieter",
        previous_queries=["smoothie blenders"],
        profile=ExtensionProfile(segments=["comparison_shopper"]),
    )


def test_format_compresses_the_journey(browsing_context):
    summary = json.loads(format_signals_for_interpretation(browsing_context))

    assert summary["searches"] == ["smoothie"]
    assert summary["ref"] == 'google.com:"best blender"'
    assert summary["journey"] == [
        {
            "t": 2,
            "a": "page",
            "d": "Ascent® X5 - Smart System ($749.95)",
            "p": "Ascent X5",
            "c": "product",
        },
        {"t": 8, "a": "click", "d": "Compare"},
    ]
    assert summary["products"] == ["Ascent X5"]
    assert summary["scrolls"] == {"/x5": 75}
    assert summary["timeSpent"] == {"/x5": 95}
    assert summary["previousQueries"] == ["smoothie blenders"]
    assert summary["currentQuery"] == "which is quieter"
    assert summary["profileHints"] == {
        "segments": ["comparison_shopper"],
        "useCases": [],
    }


def test_format_treats_non_numeric_depth_and_time_as_zero():
    context = ExtensionContext(
        signals=[
            _signal(type="scroll", data={"depth": "75%", "page": {"path": "/x5"}}),
            _signal(type="scroll", data={"depth": "40", "page": {"path": "/x5"}}),
            _signal(
                type="time_on_page", data={"seconds": None, "page": {"path": "/a"}}
            ),
        ]
    )

    summary = json.loads(format_signals_for_interpretation(context))

    assert summary["scrolls"] == {"/x5": 40}
    assert summary["timeSpent"] == {"/a": 0}


def test_format_without_signals():
    summary = json.loads(format_signals_for_interpretation(ExtensionContext()))

    assert summary == {"journey": [], "products": []}


def test_extract_products_reads_product_headings():
    signals = [
        _signal(product="Ascent X5"),
        _signal(category="product", data={"h1": "E310 Explorian™ - Blender"}),
        _signal(product="Ascent X5"),
    ]

    assert extract_products_from_signals(signals) == ["Ascent X5", "E310 Explorian"]


@pytest.mark.asyncio
async def test_interpret_signals_uses_reasoning_role(gateway, browsing_context):
    result = await interpret_signals(gateway, browsing_context)

    assert result is not None
    assert result.classification.intent_type == "comparison"
    assert result.interpretation.primary_intent == "Find a blender for family smoothies"
    role, system, user = gateway.calls[0]
    assert role == "reasoning"
    assert system == SIGNAL_INTERPRETATION_PROMPT
    assert json.loads(user)["currentQuery"] == "which is quieter"


@pytest.mark.asyncio
async def test_interpret_signals_fills_products_from_signals(gateway, browsing_context):
    result = await interpret_signals(gateway, browsing_context)

    assert result.classification.entities.products == ["Ascent X5"]


@pytest.mark.asyncio
async def test_interpret_signals_returns_none_on_failure(
    scripted_gateway_factory, browsing_context, model_error
):
    failing = scripted_gateway_factory(interpretation=model_error)
    malformed = scripted_gateway_factory(interpretation="not json")

    assert await interpret_signals(failing, browsing_context) is None
    assert await interpret_signals(malformed, browsing_context) is None
