"""Tests for the packaged content catalog and keyword retrieval."""

import pytest

from services.catalog import (
    extract_keywords,
    is_commercial_query,
    normalize_image_url,
)


def test_catalog_loads_every_section(catalog):
    assert len(catalog.products) == 6
    assert catalog.get_product_by_id("a3500").name == "Ascent X5"
    assert catalog.get_product_by_id("missing") is None
    assert catalog.safety_guidelines().disclaimer


def test_compact_catalog_has_one_entry_per_product(catalog):
    compact = catalog.compact_product_catalog()

    assert [entry["id"] for entry in compact] == [p.id for p in catalog.products]
    assert set(compact[0]) == {"id", "name", "series", "price", "bestFor"}


def test_extract_keywords_normalizes_unicode_dashes():
    assert extract_keywords("hot‑soup for my kids") == ["soups", "family"]
    assert extract_keywords("something else") == []


@pytest.mark.parametrize(
    ("query", "expected"),
    [
        ("blender for my cafe", True),
        ("RESTAURANT kitchen", True),
        ("barbecue sauce", False),
        ("smoothies at home", False),
    ],
)
def test_is_commercial_query(query, expected):
    assert is_commercial_query(query) is expected


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("/content/x.png", "https://www.vitamix.com/content/x.png"),
        ("https://cdn.example.com/x.png", "https://cdn.example.com/x.png"),
        ("no-image", ""),
        (None, ""),
        ("", ""),
    ],
)
def test_normalize_image_url(url, expected):
    assert normalize_image_url(url) == expected


class TestRetrieve:
    def test_model_mentions_pick_products(self, catalog):
        retrieval = catalog.retrieve("e310 or ascent x2")

        assert [p.id for p in retrieval.products] == ["e310", "a3500", "a2500"]

    def test_unmatched_query_is_bounded(self, catalog):
        retrieval = catalog.retrieve("hello", max_products=5, max_recipes=2)

        assert len(retrieval.products) == 5
        assert len(retrieval.recipes) == 2
        assert len(retrieval.use_cases) == 3
        assert len(retrieval.reviews) == len(catalog.reviews)

    def test_history_keywords_enrich_retrieval(self, catalog):
        retrieval = catalog.retrieve("which one is quieter", history=["baby food"])

        assert [r.id for r in retrieval.recipes] == ["r-baby-pears"]
        assert [uc.id for uc in retrieval.use_cases] == ["baby"]

    def test_commercial_queries_get_articles(self, catalog):
        commercial = catalog.retrieve("blender for my restaurant")
        home = catalog.retrieve("smoothies at home")

        assert commercial.articles
        assert all(a.category == "commercial" for a in commercial.articles)
        assert home.articles == []


class TestFaqsForQuery:
    def test_best_match_first(self, catalog):
        faqs = catalog.faqs_for_query("how loud is it")

        assert faqs[0].id == "faq-noise"

    def test_never_invents_entries(self, catalog):
        assert catalog.faqs_for_query("zzz") == []
