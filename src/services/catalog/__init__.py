"""Content catalog: products, recipes, FAQs, reviews and vetted safety data."""

from .content_service import (
    ContentCatalog,
    extract_keywords,
    get_content_catalog,
    is_commercial_query,
    normalize_image_url,
)


__all__ = [
    "ContentCatalog",
    "extract_keywords",
    "get_content_catalog",
    "is_commercial_query",
    "normalize_image_url",
]
