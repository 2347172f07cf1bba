"""Content-quality gate for model-rendered block HTML.

A rendered block that reads like a refusal or an apology is never shown.
Product-centric blocks get a deterministic card built from the first
retrieval product; every other block type is omitted from the page.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from html import escape

from schemas.catalog import Product


logger = logging.getLogger(__name__)


REFUSAL_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"I'm sorry",
        r"I cannot",
        r"I can't",
        r"I apologize",
        r"weren't included",
        r"not available",
        r"let me know how you'd like to proceed",
    )
)


class FallbackPolicy(str, Enum):
    PRODUCT_CARD = "product_card"
    OMIT = "omit"


PRODUCT_FALLBACK_TYPES: frozenset[str] = frozenset(
    {"product-recommendation", "best-pick", "product-cards", "product-hero"}
)


@dataclass(frozen=True, slots=True)
class SafetyOutcome:
    html: str
    triggered: bool
    policy: FallbackPolicy | None = None


def fallback_policy(block_type: str) -> FallbackPolicy:
    if block_type in PRODUCT_FALLBACK_TYPES:
        return FallbackPolicy.PRODUCT_CARD
    return FallbackPolicy.OMIT


def scan(html: str) -> str | None:
    """Return the first refusal pattern found in `html`, if any."""
    for pattern in REFUSAL_PATTERNS:
        if pattern.search(html):
            return pattern.pattern
    return None


def build_fallback_card(block_type: str, product: Product) -> str:
    name = escape(product.name)
    tagline = escape(product.tagline or product.description[:150] or "Premium blender")
    price = f"${product.price:.2f}" if product.price is not None else ""
    warranty = escape(product.warranty or "Full Warranty")
    price_line = f"{price} · {warranty}" if price else warranty
    url = escape(product.url, quote=True)
    return (
        f'<div class="{block_type}">\n'
        f'  <div class="{block_type}-wrapper">\n'
        f'    <div class="{block_type}-content">\n'
        f"      <h2>{name}</h2>\n"
        f"      <p>{tagline}</p>\n"
        f"      <p>{price_line}</p>\n"
        f'      <p><a href="{url}" class="button primary">Explore the {name}</a></p>\n'
        f"    </div>\n"
        f"  </div>\n"
        f"</div>"
    )


def apply_safety_policy(
    block_type: str, html: str, products: Sequence[Product]
) -> SafetyOutcome:
    """Scan rendered HTML and apply the block type's fallback policy.

    A product-card policy without any product to show degrades to omission.
    """
    matched = scan(html)
    if matched is None:
        return SafetyOutcome(html=html, triggered=False)

    policy = fallback_policy(block_type)
    logger.warning(
        f"Refusal text in {block_type} block (pattern {matched!r}); "
        f"applying {policy.value} fallback"
    )
    if policy is FallbackPolicy.PRODUCT_CARD and products:
        return SafetyOutcome(
            html=build_fallback_card(block_type, products[0]),
            triggered=True,
            policy=policy,
        )
    return SafetyOutcome(html="", triggered=True, policy=FallbackPolicy.OMIT)
