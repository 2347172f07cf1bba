"""Hero image selection keyed by use case, query keywords and intent.

Images are curated per category; each entry carries the composition the hero
markup is laid out for. The pick inside a category is a stable hash of the
query, so the same query always gets the same image.
"""

from __future__ import annotations

import hashlib
from collections.abc import Sequence
from types import MappingProxyType

from schemas.generation import HeroImage
from services.catalog import normalize_image_url


def _wide(path: str, placement: str = "left", tone: str = "dark") -> HeroImage:
    return HeroImage(
        url=path, text_placement=placement, background_tone=tone, aspect_ratio="wide"
    )


def _square(path: str, tone: str = "dark") -> HeroImage:
    return HeroImage(
        url=path, text_placement="center", background_tone=tone, aspect_ratio="square"
    )


_RECIPES = "/content/dam/vitamix/home/recipes"

HERO_IMAGES: MappingProxyType[str, tuple[HeroImage, ...]] = MappingProxyType(
    {
        "smoothies": (
            _wide(f"{_RECIPES}/smoothies/Mango_Smoothie-Hero.png"),
            _wide(f"{_RECIPES}/smoothies/Avo_Hero.jpg", placement="right"),
            _square(f"{_RECIPES}/smoothies/PBJSmoothieBowl.jpg"),
        ),
        "soups": (
            _wide("/content/dam/vitamix/home/ascent-x/Try_Anything_Soup.png"),
            _square(f"{_RECIPES}/soups/RoastedCauliflowerBisque.png"),
            _square(f"{_RECIPES}/soups/CarrotCanelliniBeanSoup_470x449.jpg"),
        ),
        "frozen-treats": (
            _wide("/content/dam/vitamix/home/ascent-x/Try_Anything_NiceCream.png"),
            _square(f"{_RECIPES}/desserts/Blackberry-Whip.jpg", tone="light"),
        ),
        "drinks": (
            _wide(f"{_RECIPES}/beverages/GoldenMilk.jpg", tone="light"),
            _square(f"{_RECIPES}/beverages/E310_TangerineSpritz.png", tone="light"),
        ),
        "nut-butters": (
            _wide(f"{_RECIPES}/nut-butters/AlmondButter-Hero.jpg", placement="right"),
        ),
        "sauces": (_square(f"{_RECIPES}/dips/RoastedGarlicHummus.jpg", tone="light"),),
        "baby-food": (_wide(f"{_RECIPES}/baby/PearPeaPuree-Hero.jpg", tone="light"),),
        "healthy": (
            _wide(f"{_RECIPES}/smoothies/GreenPower-Hero.jpg"),
            _square(f"{_RECIPES}/salads/KaleCaesar.jpg", tone="light"),
        ),
        "kitchen": (
            _wide("/content/dam/vitamix/home/lifestyle/Kitchen_Counter_Ascent.jpg"),
            _wide(
                "/content/dam/vitamix/home/lifestyle/Family_Kitchen.jpg",
                placement="right",
            ),
        ),
        "gift": (_wide("/content/dam/vitamix/home/lifestyle/Gift_Ascent_X5.jpg"),),
        "default": (
            _wide("/content/dam/vitamix/home/lifestyle/Kitchen_Counter_Ascent.jpg"),
            _square("/content/dam/vitamix/home/products/Ascent_X5_Hero.png"),
        ),
    }
)

# Order matters: specific phrases are listed before the generic ones they contain
USE_CASE_TO_CATEGORY: MappingProxyType[str, str] = MappingProxyType(
    {
        "green smoothie": "smoothies",
        "protein shake": "smoothies",
        "smoothies": "smoothies",
        "smoothie": "smoothies",
        "shake": "smoothies",
        "hot soup": "soups",
        "soups": "soups",
        "soup": "soups",
        "bisque": "soups",
        "ice cream": "frozen-treats",
        "nice cream": "frozen-treats",
        "frozen dessert": "frozen-treats",
        "sorbet": "frozen-treats",
        "frozen": "frozen-treats",
        "nut butter": "nut-butters",
        "almond butter": "nut-butters",
        "peanut butter": "nut-butters",
        "juice": "drinks",
        "latte": "drinks",
        "drinks": "drinks",
        "baby food": "baby-food",
        "baby": "baby-food",
        "puree": "baby-food",
        "dips": "sauces",
        "dip": "sauces",
        "sauce": "sauces",
        "hummus": "sauces",
        "healthy": "healthy",
        "wellness": "healthy",
        "meal prep": "kitchen",
        "family": "kitchen",
        "gift": "gift",
    }
)

INTENT_TO_CATEGORIES: MappingProxyType[str, tuple[str, ...]] = MappingProxyType(
    {
        "discovery": ("kitchen", "smoothies", "soups"),
        "comparison": ("kitchen", "default"),
        "product-detail": ("default",),
        "use-case": ("smoothies", "soups", "healthy"),
        "specs": ("default",),
        "reviews": ("kitchen",),
        "price": ("default",),
        "recommendation": ("kitchen", "default"),
        "support": ("kitchen",),
        "gift": ("gift",),
        "medical": ("healthy",),
        "accessibility": ("kitchen",),
        "partnership": ("default",),
    }
)


def _stable_index(seed: str, size: int) -> int:
    digest = hashlib.sha256(seed.encode("utf-8")).digest()
    return int.from_bytes(digest[:4], "big") % size


def _category_for(
    query: str, intent_type: str | None, use_cases: Sequence[str] | None
) -> str:
    for use_case in use_cases or ():
        normalized = use_case.lower().replace("_", " ").strip()
        if not normalized:
            continue
        if normalized in USE_CASE_TO_CATEGORY:
            return USE_CASE_TO_CATEGORY[normalized]
        for keyword, category in USE_CASE_TO_CATEGORY.items():
            if keyword in normalized or normalized in keyword:
                return category

    lowered = query.lower()
    for keyword, category in USE_CASE_TO_CATEGORY.items():
        if keyword in lowered:
            return category

    if intent_type:
        categories = INTENT_TO_CATEGORIES.get(intent_type, ("default",))
        return categories[_stable_index(query, len(categories))]
    return "default"


def select_image(
    query: str,
    intent_type: str | None = None,
    use_cases: Sequence[str] | None = None,
) -> HeroImage:
    """Pick the hero image for a run, with its absolute URL and composition.

    Resolution order: use-case entities, keywords in the query, the intent's
    categories, then the default category.
    """
    category = _category_for(query, intent_type, use_cases)
    candidates = HERO_IMAGES.get(category) or HERO_IMAGES["default"]
    image = candidates[_stable_index(query, len(candidates))]
    return image.model_copy(update={"url": normalize_image_url(image.url)})
