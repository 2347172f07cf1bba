"""In-process content catalog and retrieval-context builder.

The catalog is a packaged JSON document loaded once per process. Retrieval is
keyword scoring only: use-case keyword tables, product model mentions and the
keywords of previous queries in the session.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Sequence
from functools import lru_cache
from importlib import resources
from typing import Any

from core.config import get_settings
from schemas.catalog import (
    FAQ,
    Article,
    Product,
    Recipe,
    RetrievalContext,
    Review,
    SafetyGuidelines,
    UseCase,
)


logger = logging.getLogger(__name__)

NO_IMAGE = "no-image"

# Unicode hyphens and dashes ("hot‑soup") should match plain keywords
_DASHES_RE = re.compile("[\u2010-\u2015\u2212]")

USE_CASE_KEYWORDS: dict[str, tuple[str, ...]] = {
    "smoothies": ("smoothie", "smoothies", "shake", "shakes", "fruit", "frozen"),
    "soups": (
        "soup",
        "soups",
        "puree",
        "pureed",
        "picky eater",
        "hide vegetables",
        "hiding vegetables",
        "sneak vegetables",
    ),
    "nut-butters": ("nut butter", "nut butters", "peanut butter", "almond butter"),
    "frozen-desserts": ("ice cream", "frozen dessert", "sorbet", "nice cream"),
    "dips": ("dip", "dips", "hummus", "salsa", "guacamole"),
    "baby": ("baby food", "baby", "infant", "toddler"),
    "family": ("family", "kids", "children", "son", "daughter"),
}

COMMERCIAL_KEYWORDS: tuple[str, ...] = (
    "commercial",
    "restaurant",
    "cafe",
    "café",
    "bar",
    "food service",
    "business",
    "bulk",
)

_MODEL_RE = re.compile(
    r"\b(x2|x5|a2500|a3500|e310|propel|ascent|explorian|venturist)\b"
)


def normalize_query(query: str) -> str:
    return _DASHES_RE.sub(" ", query).lower()


def extract_keywords(query: str) -> list[str]:
    """Use-case ids whose keyword table matches the query."""
    text = normalize_query(query)
    return [
        use_case
        for use_case, terms in USE_CASE_KEYWORDS.items()
        if any(term in text for term in terms)
    ]


def is_commercial_query(query: str) -> bool:
    text = normalize_query(query)
    return any(re.search(rf"\b{re.escape(kw)}\b", text) for kw in COMMERCIAL_KEYWORDS)


def normalize_image_url(url: str | None) -> str:
    """Absolute image URL for a catalog path; empty when there is no image."""
    if not url or url == NO_IMAGE:
        return ""
    if url.startswith("http"):
        return url
    if url.startswith("/"):
        return get_settings().IMAGE_BASE_URL.rstrip("/") + url
    return url


class ContentCatalog:
    """Read-only view over the packaged catalog document."""

    def __init__(self, document: dict[str, Any]):
        self.products = [Product.model_validate(p) for p in document["products"]]
        self.recipes = [Recipe.model_validate(r) for r in document["recipes"]]
        self.faqs = [FAQ.model_validate(f) for f in document["faqs"]]
        self.reviews = [Review.model_validate(r) for r in document["reviews"]]
        self.use_cases = [UseCase.model_validate(u) for u in document["useCases"]]
        self.articles = [Article.model_validate(a) for a in document["articles"]]
        self._safety = SafetyGuidelines.model_validate(document["safetyGuidelines"])
        self._by_id = {p.id: p for p in self.products}

    @classmethod
    def from_package(cls) -> ContentCatalog:
        raw = (
            resources.files("services.catalog")
            .joinpath("data/catalog.json")
            .read_text(encoding="utf-8")
        )
        return cls(json.loads(raw))

    def get_product_by_id(self, product_id: str) -> Product | None:
        return self._by_id.get(product_id)

    def safety_guidelines(self) -> SafetyGuidelines:
        return self._safety

    def compact_product_catalog(self) -> list[dict[str, Any]]:
        """One line of data per product, for block-selection reasoning."""
        return [
            {
                "id": p.id,
                "name": p.name,
                "series": p.series,
                "price": p.price,
                "bestFor": p.best_for[:5],
            }
            for p in self.products
        ]

    def faqs_for_query(self, text: str) -> list[FAQ]:
        """Catalog FAQs relevant to `text`, best first. Never invents entries."""
        lowered = normalize_query(text)
        words = [w for w in lowered.split() if len(w) > 3]
        scored: list[tuple[float, int, FAQ]] = []
        for position, faq in enumerate(self.faqs):
            score = 0.0
            for keyword in faq.keywords:
                if keyword.lower() in lowered:
                    score += 2
            question = faq.question.lower()
            answer = faq.answer.lower()
            for word in words:
                if word in question:
                    score += 1
                if word in answer:
                    score += 0.5
            if score > 0:
                scored.append((score, position, faq))
        scored.sort(key=lambda item: (-item[0], item[1]))
        return [faq for _, _, faq in scored]

    def _products_for(
        self, text: str, keywords: Sequence[str], intent_type: str | None
    ) -> list[Product]:
        found: list[Product] = []
        for model in dict.fromkeys(_MODEL_RE.findall(text)):
            found.extend(
                p
                for p in self.products
                if model in p.name.lower() or model in p.id.lower()
            )

        if not found and keywords:
            for keyword in keywords:
                needle = keyword.replace("-", " ")
                found.extend(
                    p
                    for p in self.products
                    if any(needle in bf.lower() for bf in p.best_for)
                    or needle in p.description.lower()
                )

        if not found:
            found = list(self.products)

        unique = list({p.id: p for p in found}.values())
        if intent_type == "gift":
            unique = [p for p in unique if "reconditioned" not in p.name.lower()]
        return unique

    def _recipes_for(self, text: str, keywords: Sequence[str]) -> list[Recipe]:
        scored: list[tuple[int, int, Recipe]] = []
        for position, recipe in enumerate(self.recipes):
            score = 0
            if recipe.name.lower() in text:
                score += 5
            score += sum(2 for kw in recipe.keywords if kw.lower() in text)
            score += sum(1 for kw in keywords if kw in recipe.category)
            if score:
                scored.append((score, position, recipe))
        scored.sort(key=lambda item: (-item[0], item[1]))
        return [recipe for _, _, recipe in scored]

    def retrieve(
        self,
        query: str,
        intent_type: str | None = None,
        max_products: int = 5,
        max_recipes: int = 6,
        history: Sequence[str] | None = None,
    ) -> RetrievalContext:
        """Build the bounded retrieval context for one generation run.

        Args:
            query: The effective query text.
            intent_type: Intent used for filtering (gift excludes reconditioned).
            max_products: Upper bound on candidate products.
            max_recipes: Upper bound on candidate recipes.
            history: Previous query texts of the session; their use-case
                keywords enrich the current query's.
        """
        text = normalize_query(query)
        keywords = extract_keywords(query)
        history_keywords = [kw for q in history or () for kw in extract_keywords(q)]
        if history_keywords:
            logger.debug(
                f"Enriching retrieval with history keywords: {history_keywords}"
            )
        combined = list(dict.fromkeys([*keywords, *history_keywords]))

        products = self._products_for(text, combined, intent_type)[:max_products]

        recipes = self._recipes_for(text, combined)
        if not recipes:
            recipes = self.recipes
        recipes = recipes[:max_recipes]

        use_cases = [
            uc
            for uc in self.use_cases
            if uc.id in combined
            or uc.name.lower() in text
            or any(kw in text for kw in uc.keywords)
        ] or self.use_cases[:3]

        articles: list[Article] = []
        if is_commercial_query(query):
            articles = [a for a in self.articles if a.category == "commercial"][:3]

        return RetrievalContext(
            products=products,
            recipes=recipes,
            faqs=self.faqs_for_query(query)[:6],
            reviews=list(self.reviews),
            use_cases=use_cases,
            articles=articles,
        )


@lru_cache
def get_content_catalog() -> ContentCatalog:
    """Process-wide catalog, loaded on first use."""
    catalog = ContentCatalog.from_package()
    logger.info(
        f"Loaded content catalog: {len(catalog.products)} products, "
        f"{len(catalog.recipes)} recipes, {len(catalog.faqs)} FAQs"
    )
    return catalog
