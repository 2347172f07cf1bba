"""Direct model interpretation of captured browsing signals.

Signals are compressed into a compact JSON narrative (searches, referrer,
a timed journey, products, scroll depth and dwell time) and interpreted in
one reasoning-role call. The interpretation's classification supersedes the
intent classifier for the run.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Sequence
from typing import Any

from schemas.context import ExtensionContext, ExtensionSignal
from schemas.generation import SignalInterpretation
from services.ai.exceptions import ModelGatewayError
from services.ai.gateway import ModelGateway
from services.ai.parsing import Malformed, parse_model
from services.ai.prompts import SIGNAL_INTERPRETATION_PROMPT


logger = logging.getLogger(__name__)

MAX_SIGNAL_PRODUCTS = 10
CATEGORY_WEIGHT_THRESHOLD = 0.15

TYPE_ABBREVIATIONS: dict[str, str] = {
    "page_view": "page",
    "click": "click",
    "search": "search",
    "scroll": "scroll",
    "referrer": "ref",
    "time_on_page": "time",
    "video_play": "video",
    "video_complete": "video_done",
}

_AGGREGATED_TYPES = frozenset({"search", "referrer", "scroll", "time_on_page"})
_TRADEMARKS_RE = re.compile("[®™]")
_PRICE_CHARS_RE = re.compile(r"[^0-9.]")


def _essence(signal: ExtensionSignal) -> str:
    """The few words that describe what a signal's action was about."""
    data = signal.data
    if signal.type == "search":
        return str(data.get("query") or "")
    if signal.type == "page_view":
        result = str(data.get("h1") or data.get("path") or "")
        price = data.get("price")
        if price:
            result += f" (${_PRICE_CHARS_RE.sub('', str(price))})"
        return result
    if signal.type == "click":
        return str(data.get("text") or data.get("imgAlt") or signal.category or "")
    if signal.type == "scroll":
        return f"{data.get('depth') or 0}%"
    if signal.type == "referrer":
        domain = data.get("domain")
        search_query = data.get("searchQuery")
        if search_query:
            return f'{domain}:"{search_query}"'
        return str(domain or "direct")
    if signal.type == "time_on_page":
        return f"{data.get('seconds') or 0}s"
    if signal.type in ("video_play", "video_complete"):
        return str(data.get("title") or data.get("src") or "video")
    return signal.label or signal.type


def _as_int(value: Any) -> int:
    """Whole-number reading of a signal value; anything non-numeric counts as 0."""
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0


def _page_path(signal: ExtensionSignal) -> str:
    page = signal.data.get("page")
    if isinstance(page, dict) and page.get("path"):
        return str(page["path"])
    return "unknown"


def _signals_summary(signals: Sequence[ExtensionSignal]) -> dict[str, Any]:
    if not signals:
        return {"journey": [], "products": []}

    ordered = sorted(signals, key=lambda s: s.timestamp)
    start = ordered[0].timestamp

    journey = []
    for signal in ordered:
        if signal.type in _AGGREGATED_TYPES:
            continue
        entry: dict[str, Any] = {
            "t": round((signal.timestamp - start) / 1000),
            "a": TYPE_ABBREVIATIONS.get(signal.type, signal.type),
            "d": _essence(signal),
        }
        if signal.product:
            entry["p"] = signal.product
        if (
            signal.weight >= CATEGORY_WEIGHT_THRESHOLD
            and signal.category
            and signal.category != signal.type
        ):
            entry["c"] = signal.category
        journey.append(entry)

    scrolls: dict[str, int] = {}
    time_spent: dict[str, int] = {}
    for signal in ordered:
        if signal.type == "scroll":
            path = _page_path(signal)
            depth = _as_int(signal.data.get("depth"))
            scrolls[path] = max(scrolls.get(path, 0), depth)
        elif signal.type == "time_on_page":
            path = _page_path(signal)
            seconds = _as_int(signal.data.get("seconds"))
            time_spent[path] = max(time_spent.get(path, 0), seconds)

    summary: dict[str, Any] = {}
    searches = [
        str(s.data["query"])
        for s in ordered
        if s.type == "search" and s.data.get("query")
    ]
    if searches:
        summary["searches"] = searches
    referrer = next((s for s in ordered if s.type == "referrer"), None)
    if referrer is not None:
        ref = _essence(referrer)
        if ref != "direct":
            summary["ref"] = ref
    summary["journey"] = journey
    products = list(dict.fromkeys(s.product for s in ordered if s.product))
    if products:
        summary["products"] = products
    if scrolls:
        summary["scrolls"] = scrolls
    if time_spent:
        summary["timeSpent"] = time_spent
    return summary


def format_signals_for_interpretation(context: ExtensionContext) -> str:
    """Compact JSON of the signals plus query history and profile hints."""
    summary = _signals_summary(context.signals)
    if context.previous_queries:
        summary["previousQueries"] = list(context.previous_queries)
    if context.query:
        summary["currentQuery"] = context.query
    profile = context.profile
    if profile.segments or profile.use_cases:
        summary["profileHints"] = {
            "segments": list(profile.segments),
            "useCases": list(profile.use_cases),
        }
    return json.dumps(summary, ensure_ascii=False, separators=(",", ":"))


def extract_products_from_signals(signals: Sequence[ExtensionSignal]) -> list[str]:
    """Products named by signals, including product page headings."""
    products: dict[str, None] = {}
    for signal in signals:
        if signal.product:
            products[signal.product] = None
        if signal.category == "product" and signal.data.get("h1"):
            heading = _TRADEMARKS_RE.sub("", str(signal.data["h1"])).strip()
            name = heading.split(" - ")[0].strip()
            if name:
                products[name] = None
    return list(products)[:MAX_SIGNAL_PRODUCTS]


async def interpret_signals(
    gateway: ModelGateway,
    context: ExtensionContext,
    *,
    preset: str | None = None,
) -> SignalInterpretation | None:
    """Interpret a browsing context, or return None when the model cannot.

    Products seen in the signals fill the classification's product entities
    when the model leaves them empty.
    """
    payload = format_signals_for_interpretation(context)
    logger.info(
        f"Interpreting {len(context.signals)} signals "
        f"({len(context.previous_queries)} previous queries)"
    )
    try:
        response = await gateway.complete(
            "reasoning", SIGNAL_INTERPRETATION_PROMPT, payload, preset=preset
        )
    except ModelGatewayError as e:
        logger.warning(f"Signal interpretation call failed: {e.message}")
        return None

    parsed = parse_model(response, SignalInterpretation)
    if isinstance(parsed, Malformed):
        logger.warning(f"Signal interpretation unparseable: {parsed.reason}")
        return None

    interpretation = parsed.value
    entities = interpretation.classification.entities
    if not entities.products:
        seen = extract_products_from_signals(context.signals)
        if seen:
            entities.products = seen
    return interpretation
