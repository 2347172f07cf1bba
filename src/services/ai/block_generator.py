"""Per-block HTML generation.

Model-rendered blocks get a type-specific excerpt of the retrieval context
and a structural template, are post-processed and safety scanned. A gateway
failure yields a fixed placeholder so one block never ends the run.
The reasoning, follow-up and allergen-safety blocks are built from data
only and never touch a model.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from html import escape, unescape

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
from schemas.generation import (
    BlockSelection,
    GeneratedBlock,
    HeroComposition,
    HeroImage,
    IntentClassification,
    ReasoningResult,
    SectionStyle,
    UserJourneyPlan,
)
from services.ai.block_templates import get_block_template
from services.ai.exceptions import ModelGatewayError
from services.ai.gateway import ModelGateway
from services.ai.hero_images import select_image
from services.ai.parsing import strip_code_fences
from services.ai.prompts import CONTENT_RULES
from services.ai.safety import apply_safety_policy
from services.catalog import ContentCatalog, get_content_catalog, normalize_image_url


logger = logging.getLogger(__name__)

MAX_EXTRACTED_NAMES = 5
MAX_FAQS = 6
NO_FAQS_NOTE = "(No catalog FAQs match this page. Do not write any.)"

DARK_STYLE_BLOCKS = frozenset(
    {"hero", "product-hero", "product-recommendation", "best-pick"}
)
HIGHLIGHT_STYLE_BLOCKS = frozenset({"reasoning-user", "testimonials", "recipe-cards"})
HERO_IMAGE_BLOCKS = frozenset({"hero", "product-hero", "empathy-hero"})
PRODUCT_LIST_BLOCKS = frozenset(
    {"product-cards", "product-recommendation", "comparison-table", "best-pick"}
)
PRODUCT_NAME_BLOCKS = frozenset(
    {
        "product-cards",
        "product-recommendation",
        "comparison-table",
        "accessibility-specs",
    }
)

_PRODUCT_NAME_RE = re.compile(r'class="product-name"[^>]*>(?:<a[^>]*>)?([^<]+)')
_HEADLINE_RE = re.compile(r'class="product-recommendation-headline"[^>]*>([^<]+)')
_HEADING_RE = re.compile(r"<h[23][^>]*>(?:<a[^>]*>)?([^<]+)")
_TABLE_HEADER_RE = re.compile(
    r"<th[^>]*>(?:<[^>]*>)*([A-Z][a-zA-Z0-9\s]+)(?:</[^>]*>)*</th>"
)
_RECIPE_TITLE_RE = re.compile(r'class="recipe-card-title"[^>]*>([^<]+)')
_H4_RE = re.compile(r"<h4[^>]*>([^<]+)")
_HERO_CLASS_RE = re.compile(r'^<div class="hero[^"]*"')

_GENERIC_HEADINGS = ("Specifications", "Continue", "Tips")
_TABLE_LABELS = frozenset({"Feature", "Price", "Weight", "Controls", "Model", "Lid"})


def section_style(block_type: str) -> SectionStyle | None:
    if block_type in DARK_STYLE_BLOCKS:
        return "dark"
    if block_type in HIGHLIGHT_STYLE_BLOCKS:
        return "highlight"
    return None


def _image_line(url: str | None) -> str:
    return normalize_image_url(url) or "none (omit the image element)"


def build_product_context(products: Sequence[Product]) -> str:
    if not products:
        return "No products available."
    entries = []
    for p in products:
        match = ""
        if p.match_rationale:
            primary = " (PRIMARY RECOMMENDATION)" if p.is_primary_match else ""
            match = f"\n  Match Rationale: {p.match_rationale}{primary}"
        entries.append(
            f"- {p.name} ({p.series})\n"
            f"  Price: ${p.price}\n"
            f"  Warranty: {p.warranty or 'Full Warranty'}\n"
            f"  Image: {_image_line(p.images.primary)}\n"
            f"  URL: {p.url}\n"
            f"  Tagline: {p.tagline or p.description[:100] or 'Premium blender'}\n"
            f"  Features: {', '.join(p.features[:3]) or 'High performance blending'}\n"
            f"  Best for: {', '.join(p.best_for) or 'All blending tasks'}{match}"
        )
    return "\n".join(entries)


def build_recipe_context(recipes: Sequence[Recipe]) -> str:
    if not recipes:
        return "No recipes available."
    entries = []
    for r in recipes:
        program = (
            f"\n  Program: {r.recommended_program}" if r.recommended_program else ""
        )
        kind = f"\n  Type: {r.subcategory}" if r.subcategory else ""
        entries.append(
            f"- {r.name}\n"
            f"  Category: {r.category}{program}{kind}\n"
            f"  Time: {r.time or r.prep_time or '10 min'}\n"
            f"  Difficulty: {r.difficulty or 'easy'}\n"
            f"  Image: {_image_line(r.images.primary)}\n"
            f"  URL: {r.url or '#'}"
        )
    return "\n".join(entries)


def build_use_case_context(use_cases: Sequence[UseCase]) -> str:
    if not use_cases:
        return "No use cases available."
    return "\n".join(
        f"- {uc.name}\n  ID: {uc.id}\n  Description: {uc.description}\n"
        f"  Icon: {uc.icon or 'none'}"
        for uc in use_cases
    )


def build_testimonial_context(reviews: Sequence[Review]) -> str:
    if not reviews:
        return "No testimonials available."
    entries = []
    for r in reviews:
        title = f", {r.author_title}" if r.author_title else ""
        source = f"\n  Source URL: {r.source_url}" if r.source_url else ""
        entries.append(
            f'- "{r.content}"\n  Author: {r.author}{title} ({r.source_type}){source}'
        )
    return "\n".join(entries)


def build_faq_context(faqs: Sequence[FAQ]) -> str:
    return "\n".join(
        f"- Q: {faq.question}\n  A: {faq.answer}\n  Category: {faq.category}"
        for faq in faqs
    )


def build_article_context(articles: Sequence[Article]) -> str:
    return "\n\n".join(
        f"## {a.title}\n"
        f"Category: {a.category}\n"
        f"Summary: {a.summary}\n"
        f"Key Points: {'; '.join(a.key_points) or 'N/A'}\n"
        f"Target Audience: {a.target_audience or 'Food service professionals'}\n"
        f"URL: {a.url}"
        for a in articles
    )


def select_testimonials(reviews: Sequence[Review]) -> list[Review]:
    """Two chef quotes, one customer story and one verified review."""
    by_source: dict[str, list[Review]] = {}
    for review in reviews:
        by_source.setdefault(review.source_type, []).append(review)
    return [
        *by_source.get("chef", [])[:2],
        *by_source.get("customer-story", [])[:1],
        *by_source.get("bazaarvoice", [])[:1],
    ]


def _single_product_context(product: Product, heading: str) -> str:
    return (
        f"\n\n## {heading}:\n- {product.name}\n- Price: ${product.price}\n"
        f"- Features: {', '.join(product.features) or 'High performance blending'}"
    )


def build_data_context(
    block: BlockSelection,
    retrieval: RetrievalContext,
    *,
    query: str,
    catalog: ContentCatalog,
    hero_image: HeroImage | None = None,
    product_selection_rationale: str | None = None,
) -> str:
    """The slice of the retrieval context a block type is allowed to draw on."""
    block_type = block.type
    products = retrieval.products
    context = ""

    if block_type in PRODUCT_LIST_BLOCKS:
        context = (
            "\n\n## Available Products (USE THESE EXACT IMAGE URLs):\n"
            f"{build_product_context(products)}"
        )
        if block_type == "comparison-table" and product_selection_rationale:
            context += (
                "\n\n## Product Selection Rationale "
                "(INCLUDE as comparison-rationale div):\n"
                f"{product_selection_rationale}"
            )
    elif block_type == "specs-table":
        if products:
            context = _single_product_context(
                products[0], "Product to Display Specs For"
            )
            if products[0].specs:
                specs = "\n".join(f"- {k}: {v}" for k, v in products[0].specs.items())
                context += f"\n\n## Published Specifications:\n{specs}"
    elif block_type == "faq":
        faqs = catalog.faqs_for_query(block.content_guidance or query)
        if not faqs:
            faqs = retrieval.faqs
        context = (
            "\n\n## Real FAQs (USE THESE EXACT Q&A PAIRS, do not invent):\n"
            f"{build_faq_context(faqs[:MAX_FAQS]) or NO_FAQS_NOTE}"
        )
    elif block_type == "recipe-cards":
        context = (
            "\n\n## Available Recipes (USE THESE EXACT IMAGE URLs):\n"
            f"{build_recipe_context(retrieval.recipes)}"
        )
    elif block_type in HERO_IMAGE_BLOCKS and hero_image is not None:
        context = (
            f"\n\n## Hero Image (USE THIS EXACT URL): {hero_image.url}\n"
            f"Text placement: {hero_image.text_placement}; "
            f"background tone: {hero_image.background_tone}"
        )
    elif block_type in ("use-case-cards", "feature-highlights"):
        if block_type == "feature-highlights":
            context = f'\n\n## User\'s Original Question: "{query}"'
        context += (
            "\n\n## Use Cases to Highlight:\n"
            f"{build_use_case_context(retrieval.use_cases)}"
            f"\n\n## Related Products:\n{build_product_context(products[:3])}"
        )
    elif block_type == "testimonials":
        reviews = select_testimonials(retrieval.reviews)
        context = (
            "\n\n## Real Testimonials (USE THESE EXACT QUOTES, do not invent):\n"
            f"{build_testimonial_context(reviews)}"
        )
    elif block_type in ("engineering-specs", "noise-context"):
        if products:
            context = _single_product_context(products[0], "Product Context")
    elif block_type in ("sustainability-info", "smart-features"):
        context = f"\n\n## Related Products:\n{build_product_context(products[:2])}"
    elif block_type == "accessibility-specs":
        context = (
            "\n\n## Products for Accessibility Comparison (USE THESE EXACT URLs):\n"
            f"{build_product_context(products[:4])}"
        )

    if retrieval.articles:
        context += (
            "\n\n## Commercial/B2B Reference Articles:\n"
            f"{build_article_context(retrieval.articles)}"
        )
    return context


def wrap_block_html(
    block_type: str,
    content: str,
    variant: str | None = None,
    composition: HeroComposition | None = None,
) -> str:
    """Strip fences and make sure the markup sits in its block container.

    Heroes get their layout classes from the image composition: wide images
    are full-bleed with text placement and tone, anything else is split.
    """
    html = strip_code_fences(content)

    if block_type == "hero":
        if composition is not None and composition.aspect_ratio == "wide":
            variant = (
                f"text-{composition.text_placement} "
                f"bg-{composition.background_tone} aspect-wide"
            )
        else:
            variant = "split quote aspect-square"

    if not html.startswith(f'<div class="{block_type}'):
        variant_class = f" {variant}" if variant else ""
        return f'<div class="{block_type}{variant_class}">\n{html}\n</div>'
    if block_type == "hero":
        return _HERO_CLASS_RE.sub(f'<div class="hero {variant}"', html, count=1)
    return html


def failure_block(block_type: str) -> GeneratedBlock:
    return GeneratedBlock(
        type=block_type,
        html=f'<div class="{block_type}"><p>Content generation failed</p></div>',
    )


async def generate_block_content(
    gateway: ModelGateway,
    block: BlockSelection,
    retrieval: RetrievalContext,
    *,
    query: str,
    intent: IntentClassification | None = None,
    catalog: ContentCatalog | None = None,
    product_selection_rationale: str | None = None,
    preset: str | None = None,
) -> GeneratedBlock:
    """Render one block through the content model.

    Never raises for model failures: the block degrades to the failure
    placeholder, or to the safety fallback when the output reads as a refusal.
    """
    catalog = catalog or get_content_catalog()
    block_type = block.type

    hero_image = None
    if block_type in HERO_IMAGE_BLOCKS:
        hero_image = select_image(
            query,
            intent.intent_type if intent else None,
            intent.entities.use_cases if intent else None,
        )
    composition = hero_image.composition() if hero_image else None

    data_context = build_data_context(
        block,
        retrieval,
        query=query,
        catalog=catalog,
        hero_image=hero_image,
        product_selection_rationale=product_selection_rationale,
    )
    system = (
        f'Generate HTML content for a "{block_type}" block.\n'
        f"Content guidance: {block.content_guidance}\n\n"
        f"{CONTENT_RULES}\n"
        f"{get_block_template(block_type)}\n"
        f"{data_context}"
    )
    user = (
        f"Generate the {block_type} block content.\n"
        f"Variant: {block.variant or 'default'}\n"
        f"Rationale: {block.rationale}"
    )

    try:
        response = await gateway.complete("content", system, user, preset=preset)
    except ModelGatewayError as e:
        logger.error(f"Error generating {block_type} block: {e.message}")
        return failure_block(block_type)

    html = wrap_block_html(block_type, response, block.variant, composition)
    outcome = apply_safety_policy(block_type, html, retrieval.products)
    html = outcome.html

    if block_type == "specs-table" and retrieval.products and html:
        name = escape(retrieval.products[0].name, quote=True)
        html = html.replace(
            '<div class="specs-table',
            f'<div data-product-name="{name}" class="specs-table',
            1,
        )

    return GeneratedBlock(
        type=block_type,
        html=html,
        section_style=section_style(block_type),
        hero_composition=composition,
    )


async def generate_hero_fast(
    gateway: ModelGateway,
    query: str,
    intent: IntentClassification,
    retrieval: RetrievalContext,
    *,
    catalog: ContentCatalog | None = None,
    preset: str | None = None,
) -> GeneratedBlock:
    """Render the hero without waiting for the block plan."""
    selection = BlockSelection(
        type="hero",
        priority=1,
        rationale="fast path",
        content_guidance=f"Create an engaging hero for: {query}",
    )
    return await generate_block_content(
        gateway,
        selection,
        retrieval,
        query=query,
        intent=intent,
        catalog=catalog,
        preset=preset,
    )


def build_reasoning_user_block(result: ReasoningResult) -> GeneratedBlock:
    trace = result.reasoning
    steps = "".join(
        f"\n  <div>\n    <div>{stage}</div>\n"
        f"    <div><p>{escape(content)}</p></div>\n  </div>"
        for stage, content in (
            ("understanding", trace.intent_analysis),
            ("assessment", trace.user_needs_assessment),
            ("decision", trace.final_decision),
        )
    )
    html = (
        '<div class="reasoning-user">\n'
        "  <div><div>Here's What I Understand</div></div>"
        f"{steps}\n"
        "</div>"
    )
    return GeneratedBlock(
        type="reasoning-user", html=html, section_style=section_style("reasoning-user")
    )


def build_follow_up_block(journey: UserJourneyPlan) -> GeneratedBlock:
    chips = "\n".join(
        f"  <div><div>{escape(suggestion)}</div></div>"
        for suggestion in journey.suggested_follow_ups
    )
    return GeneratedBlock(
        type="follow-up", html=f'<div class="follow-up">\n{chips}\n</div>'
    )


def build_allergen_safety_block(guidelines: SafetyGuidelines) -> GeneratedBlock:
    """Allergen guidance assembled only from the vetted guideline fields."""
    clean = guidelines.self_clean
    materials = guidelines.containers
    dedicated = guidelines.dedicated_containers

    steps = "\n".join(f"        <li>{escape(step)}</li>" for step in clean.steps)
    notes = "\n".join(
        f"        <li>{escape(note)}</li>"
        for note in [f"Container material: {materials.material}", *materials.notes]
    )
    series = escape(", ".join(dedicated.compatible_series))

    html = f"""<div class="allergen-safety">
  <div>
    <div>Allergen Safety Guide</div>
  </div>
  <div>
    <div>
      <h4>{escape(clean.title)}</h4>
      <ol>
{steps}
      </ol>
      <p><em>Source: <a href="{escape(clean.source, quote=True)}" target="_blank" rel="noopener">Official Cleaning Guide</a></em></p>
    </div>
  </div>
  <div>
    <div>
      <h4>{escape(dedicated.title)}</h4>
      <p>{escape(dedicated.official_description)}</p>
      <p><strong>Product:</strong> <a href="{escape(dedicated.product_url, quote=True)}" target="_blank" rel="noopener">{escape(dedicated.product_name)}</a></p>
      <p>Compatible with: {series} series</p>
    </div>
  </div>
  <div>
    <div>
      <h4>Material Information</h4>
      <ul>
{notes}
      </ul>
      <p><em>Source: <a href="{escape(materials.source, quote=True)}" target="_blank" rel="noopener">Product Specifications</a></em></p>
    </div>
  </div>
  <div>
    <div><p><em>{escape(guidelines.disclaimer)}</em></p></div>
  </div>
</div>"""
    return GeneratedBlock(type="allergen-safety", html=html)


async def render_block(
    gateway: ModelGateway,
    block: BlockSelection,
    retrieval: RetrievalContext,
    reasoning: ReasoningResult,
    *,
    query: str,
    intent: IntentClassification,
    catalog: ContentCatalog | None = None,
    preset: str | None = None,
) -> GeneratedBlock:
    """Build a planned block, bypassing the model for data-only block types."""
    catalog = catalog or get_content_catalog()
    if block.type == "reasoning-user":
        return build_reasoning_user_block(reasoning)
    if block.type == "follow-up":
        return build_follow_up_block(reasoning.user_journey)
    if block.type == "allergen-safety":
        return build_allergen_safety_block(catalog.safety_guidelines())
    return await generate_block_content(
        gateway,
        block,
        retrieval,
        query=query,
        intent=intent,
        catalog=catalog,
        product_selection_rationale=reasoning.product_selection_rationale,
        preset=preset,
    )


def _add(names: list[str], name: str) -> None:
    name = unescape(name).strip()
    if name and name not in names:
        names.append(name)


def extract_product_names(blocks: Sequence[GeneratedBlock]) -> list[str]:
    """Product names mentioned in rendered product blocks, for session history."""
    names: list[str] = []
    for block in blocks:
        if block.type not in PRODUCT_NAME_BLOCKS:
            continue
        for match in _PRODUCT_NAME_RE.findall(block.html):
            _add(names, match)
        for match in _HEADLINE_RE.findall(block.html):
            _add(names, match)
        for match in _HEADING_RE.findall(block.html):
            if not any(generic in match for generic in _GENERIC_HEADINGS):
                _add(names, match)
        for match in _TABLE_HEADER_RE.findall(block.html):
            label = match.strip()
            if len(label) > 2 and label not in _TABLE_LABELS:
                _add(names, label)
    return names[:MAX_EXTRACTED_NAMES]


def extract_recipe_names(blocks: Sequence[GeneratedBlock]) -> list[str]:
    names: list[str] = []
    for block in blocks:
        if block.type != "recipe-cards":
            continue
        for match in _RECIPE_TITLE_RE.findall(block.html):
            _add(names, match)
        for match in _H4_RE.findall(block.html):
            _add(names, match)
    return names[:MAX_EXTRACTED_NAMES]
