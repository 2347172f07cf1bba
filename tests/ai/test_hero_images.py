"""Tests for hero image selection."""

from services.ai.hero_images import HERO_IMAGES, select_image


def _category_urls(category: str) -> set[str]:
    return {image.url for image in HERO_IMAGES[category]}


def _path(url: str) -> str:
    return url.removeprefix("https://www.vitamix.com")


def test_use_case_entities_win_over_query_words():
    image = select_image("help me choose", "discovery", ["soups"])
    assert _path(image.url) in _category_urls("soups")


def test_query_keywords_are_used_without_entities():
    image = select_image("best blender for almond butter")
    assert _path(image.url) in _category_urls("nut-butters")
    assert image.aspect_ratio == "wide"
    assert image.text_placement == "right"


def test_intent_categories_are_used_last():
    image = select_image("something for my sister", "gift")
    assert _path(image.url) in _category_urls("gift")


def test_unknown_everything_uses_default():
    image = select_image("hello")
    assert _path(image.url) in _category_urls("default")


def test_selection_is_stable_per_query():
    first = select_image("green smoothies every morning", "use-case")
    second = select_image("green smoothies every morning", "use-case")
    assert first == second


def test_urls_are_absolute():
    image = select_image("smoothie")
    assert image.url.startswith("https://")
    assert image.composition().aspect_ratio == image.aspect_ratio
