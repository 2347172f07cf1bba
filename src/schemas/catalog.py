"""Content catalog records and the per-run retrieval context."""

from __future__ import annotations

from typing import Literal

from pydantic import Field

from .base import CamelModel


class ImageSet(CamelModel):
    primary: str = ""


class Product(CamelModel):
    id: str
    name: str
    series: str = ""
    url: str = ""
    price: float | None = None
    warranty: str = ""
    tagline: str = ""
    description: str = ""
    features: list[str] = Field(default_factory=list)
    best_for: list[str] = Field(default_factory=list)
    specs: dict[str, str] = Field(default_factory=dict)
    images: ImageSet = Field(default_factory=ImageSet)
    # Attached when the reasoning engine selects this product explicitly
    match_rationale: str | None = None
    is_primary_match: bool | None = None


class Recipe(CamelModel):
    id: str
    name: str
    category: str = ""
    subcategory: str | None = None
    time: str | None = None
    prep_time: str | None = None
    difficulty: str | None = None
    images: ImageSet = Field(default_factory=ImageSet)
    url: str = ""
    recommended_program: str | None = None
    keywords: list[str] = Field(default_factory=list)


class Review(CamelModel):
    id: str
    author: str
    author_title: str | None = None
    content: str
    source_type: Literal["chef", "customer-story", "bazaarvoice"]
    source_url: str | None = None
    product_id: str | None = None
    rating: float | None = None


class UseCase(CamelModel):
    id: str
    name: str
    description: str = ""
    icon: str | None = None
    keywords: list[str] = Field(default_factory=list)


class Article(CamelModel):
    id: str
    title: str
    category: str = ""
    summary: str = ""
    key_points: list[str] = Field(default_factory=list)
    target_audience: str | None = None
    url: str = ""


class FAQ(CamelModel):
    id: str
    category: str = ""
    question: str
    answer: str
    keywords: list[str] = Field(default_factory=list)


class CleaningProcedure(CamelModel):
    title: str
    source: str
    steps: list[str]


class MaterialInfo(CamelModel):
    material: str
    source: str
    notes: list[str] = Field(default_factory=list)


class DedicatedContainers(CamelModel):
    title: str
    source: str
    official_description: str
    product_url: str
    product_name: str
    compatible_series: list[str] = Field(default_factory=list)


class SafetyGuidelines(CamelModel):
    """Pre-vetted allergen and cleaning guidance, quoted verbatim on pages."""

    self_clean: CleaningProcedure
    containers: MaterialInfo
    dedicated_containers: DedicatedContainers
    disclaimer: str


class RetrievalContext(CamelModel):
    """Query-relevant slice of the catalog, owned by a single generation run.

    `products` is replaced once, when the reasoning engine's explicit product
    selections resolve against the catalog.
    """

    products: list[Product] = Field(default_factory=list)
    recipes: list[Recipe] = Field(default_factory=list)
    faqs: list[FAQ] = Field(default_factory=list)
    reviews: list[Review] = Field(default_factory=list)
    use_cases: list[UseCase] = Field(default_factory=list)
    articles: list[Article] = Field(default_factory=list)
