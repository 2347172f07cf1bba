"""Tests for page slug generation."""

from schemas.context import ExtensionContext, ExtensionProfile
from services.slugs import generate_slug, generate_slug_from_context, query_hash


def test_query_hash_is_a_short_base36_string_hash():
    assert query_hash("") == "0"
    assert query_hash("a") == "2p"
    assert query_hash("best blender") == query_hash("best blender")
    assert query_hash("best blender") != query_hash("best blenders")
    assert len(query_hash("a much longer query about soup")) <= 6


def test_generate_slug():
    assert generate_slug("A") == "a-1t"
    slug = generate_slug("  Best Blender -- for Smoothies!! ")
    assert slug.startswith("best-blender-for-smoothies-")


def test_generate_slug_truncates_long_queries():
    slug = generate_slug("soup " * 40)

    base, _, suffix = slug.rpartition("-")
    assert len(base) <= 80
    assert suffix == query_hash("soup " * 40)


def test_context_slug_prefers_the_query():
    context = ExtensionContext(query="Quiet blender", timestamp=35)

    assert generate_slug_from_context(context) == generate_slug("Quiet blender")


def test_context_slug_from_profile():
    context = ExtensionContext(
        profile=ExtensionProfile(
            segments=["gift-buyer", "premium"],
            use_cases=["smoothies"],
            products_considered=["Ascent X5"],
        ),
        timestamp=35,
    )

    assert generate_slug_from_context(context) == "gift-buyer-smoothies-ascentx5-z"


def test_context_slug_default():
    context = ExtensionContext(timestamp=36 * 36)

    assert generate_slug_from_context(context) == "personalized-recommendation-100"
