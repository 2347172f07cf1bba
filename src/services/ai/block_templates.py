"""Structural HTML templates for model-rendered blocks.

The registry is immutable and built once at import. Lookups are a pure
function over an injectable table so tests can supply their own.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType


SHARED_RULES = """
CRITICAL RULES FOR EVERY BLOCK:
- The header element MUST be the first thing in your output.
- Never invent product, recipe or person names that are not in the context.
- Call-to-action text must be derived from the product's attributes
  ("Perfect for Your Smoothies", "Explore the [Product Name]"), never generic
  ("View Details", "Learn More", "Shop Now")."""


def _with_rules(template: str) -> str:
    return f"{template.strip()}\n{SHARED_RULES}"


GENERIC_TEMPLATE = _with_rules(
    """
## HTML Template:
<div class="section-header">
  <h2>[Title tailored to the user's question]</h2>
</div>
<div>
  <div>
    <p>[Content drawn from the context below]</p>
  </div>
</div>"""
)


_TEMPLATES: dict[str, str] = {
    "hero": """
## HTML Template (image row first, then the content row):
<div>
  <div><picture><img src="EXACT_HERO_IMAGE_URL" alt="[Describe the image]"></picture></div>
</div>
<div>
  <div>
    <h1>[Headline that speaks to the user's need, under 10 words]</h1>
    <p>[One or two sentences connecting their question to what follows]</p>
    <p><a href="#products" class="button">[Value-driven CTA]</a></p>
  </div>
</div>""",
    "product-hero": """
## HTML Template (one featured product):
<div>
  <div><picture><img src="EXACT_PRODUCT_IMAGE_URL" alt="Product Name"></picture></div>
  <div>
    <h1>Exact Product Name</h1>
    <p>[Tagline from context]</p>
    <p>$XXX.XX</p>
    <p><a href="EXACT_PRODUCT_URL" class="button">[Value-driven CTA]</a></p>
  </div>
</div>""",
    "empathy-hero": """
## HTML Template (warm, acknowledging hero):
<div>
  <div><picture><img src="EXACT_HERO_IMAGE_URL" alt="[Describe the image]"></picture></div>
</div>
<div>
  <div>
    <h1>[Headline that acknowledges the user's situation with care]</h1>
    <p>[Reassuring sentence. No medical claims.]</p>
  </div>
</div>""",
    "product-cards": """
## HTML Template (header, then 3-4 product cards):
<div class="pcheader">
  <h2 class="pctitle">[Title tailored to the user's question]</h2>
  <p class="pcsubtitle">[Why these products match their needs]</p>
</div>
<div class="product-card" data-match-rationale="MATCH_RATIONALE" data-is-primary="true_or_false">
  <div><picture><img src="EXACT_IMAGE_URL" alt="Product Name" loading="lazy"></picture></div>
  <div>
    <h3 class="product-name"><a href="EXACT_PRODUCT_URL">Exact Product Name</a></h3>
    <p>[Tagline from context]</p>
    <p>$XXX.XX</p>
    <p><a href="EXACT_PRODUCT_URL" class="button">[Value-driven CTA]</a></p>
  </div>
</div>
Add data-match-rationale and data-is-primary only for products that carry a
Match Rationale in the context. Do not include star ratings.""",
    "recipe-cards": """
## HTML Template (header, then one card per recipe in the context):
<div class="rcheader">
  <h3 class="rctitle">[Empathetic title, e.g. "Recipes You Might Love"]</h3>
  <p class="rcsubtitle">[Why these recipes are shown]</p>
</div>
<div class="recipe-card" data-href="EXACT_RECIPE_URL">
  <div class="recipe-card-image"><picture><img src="EXACT_IMAGE_URL" alt="Recipe name" loading="lazy"></picture></div>
  <div class="recipe-card-content">
    <h4 class="recipe-card-title">Exact Recipe Name</h4>
    <p class="recipe-card-description">[Time and difficulty from context]</p>
    <p class="recipe-card-link"><a href="EXACT_RECIPE_URL">View Recipe</a></p>
  </div>
</div>
Use ONLY recipes from the context. Skip the image div when a recipe has no image.""",
    "comparison-table": """
## HTML Template (header, optional rationale, then the table):
<div class="ctheader">
  <h2>[Comparison title naming the products]</h2>
</div>
<div class="comparison-rationale"><p>[Product selection rationale, when provided]</p></div>
<table>
  <thead><tr><th>Feature</th><th>Product A</th><th>Product B</th></tr></thead>
  <tbody>
    <tr><td>Price</td><td>$XXX.XX</td><td>$XXX.XX</td></tr>
    <tr><td>Warranty</td><td>...</td><td>...</td></tr>
  </tbody>
</table>
Compare without declaring a winner unless a product is marked PRIMARY.""",
    "specs-table": """
## HTML Template:
<div class="stheader"><h2>[Product Name] Specifications</h2></div>
<div><div>Motor</div><div>[value]</div></div>
<div><div>Container</div><div>[value]</div></div>
<div><div>Dimensions</div><div>[value]</div></div>""",
    "product-recommendation": """
## HTML Template (one recommended product):
<div>
  <div><picture><img src="EXACT_IMAGE_URL" alt="Product Name"></picture></div>
  <div>
    <p class="eyebrow">[Why this is the pick for them]</p>
    <h2 class="product-recommendation-headline">Exact Product Name</h2>
    <p>[Two sentences tying features to the user's needs]</p>
    <p>$XXX.XX · [Warranty]</p>
    <p><a href="EXACT_PRODUCT_URL" class="button primary">[Value-driven CTA]</a></p>
  </div>
</div>""",
    "best-pick": """
## HTML Template:
<div class="bpheader"><p class="eyebrow">Best Pick For You</p></div>
<div>
  <div><picture><img src="EXACT_IMAGE_URL" alt="Product Name"></picture></div>
  <div>
    <h2>Exact Product Name</h2>
    <p>[Why it stands out for this user]</p>
    <p><a href="EXACT_PRODUCT_URL" class="button">[Value-driven CTA]</a></p>
  </div>
</div>""",
    "feature-highlights": """
## HTML Template (header, then 3-4 feature rows):
<div class="fhheader">
  <h2 class="fhtitle">[Title tailored to the user's question]</h2>
  <p class="fhsubtitle">[What these features help accomplish]</p>
</div>
<div><div><h3>Feature Name</h3><p>[Benefit for this user]</p></div></div>
For family or picky-eater questions, cover hot soups that hide vegetables,
quick self-cleaning and texture control.""",
    "use-case-cards": """
## HTML Template (header, then 3-4 cards):
<div class="ucheader">
  <h2 class="uctitle">[Title tailored to the user's question]</h2>
  <p class="ucsubtitle">[What these use cases help accomplish]</p>
</div>
<div class="use-case-card">
  <div class="use-case-icon">[icon from context]</div>
  <div class="use-case-content">
    <h4 class="use-case-title">Use Case Name</h4>
    <p class="use-case-description">[Brief description]</p>
  </div>
</div>""",
    "testimonials": """
## HTML Template (header, then one card per testimonial in the context):
<div class="theader"><h2>[Title, e.g. "What Cooks Are Saying"]</h2></div>
<div>
  <div>
    <blockquote>"Exact quote from context"</blockquote>
    <p class="author">Author, Title</p>
  </div>
</div>
Quote testimonials exactly. Never invent quotes or authors.""",
    "faq": """
## HTML Template (one row per FAQ in the context):
<div class="faqheader"><h2>[Title, e.g. "Questions You Might Have"]</h2></div>
<div>
  <div>Exact question from context</div>
  <div><p>Exact answer from context</p></div>
</div>
Use ONLY the question and answer pairs provided. Never write new ones.""",
    "quick-answer": """
## HTML Template:
<div class="qaheader"><h2>[Direct yes/no or one-line answer]</h2></div>
<div><div><p>[Two sentences of supporting detail from the context]</p></div></div>""",
    "support-triage": """
## HTML Template:
<div class="stheader">
  <h2>[Empathetic headline acknowledging the problem]</h2>
  <p>[Reassurance that help is available]</p>
</div>
<div><div><h3>[Likely fix]</h3><p>[Step from context]</p></div></div>
<div><div><h3>Contact Support</h3><p>[How to reach support and what the warranty covers]</p></div></div>
Never recommend buying a new product.""",
    "budget-breakdown": """
## HTML Template:
<div class="bbheader"><h2>[Title about value for money]</h2></div>
<div><div><h3>Exact Product Name</h3><p>$XXX.XX · [Warranty]</p><p>[Cost per year of warranty or value note]</p></div></div>""",
    "accessibility-specs": """
## HTML Template (one row per product):
<div class="asheader"><h2>[Title about ease of use]</h2></div>
<div>
  <div><h3 class="product-name">Exact Product Name</h3></div>
  <div><p>Controls: [from context]</p><p>Weight: [from specs]</p><p>Height: [from specs]</p></div>
</div>""",
    "sustainability-info": """
## HTML Template:
<div class="siheader"><h2>[Title about durability and sustainability]</h2></div>
<div><div><h3>[Point]</h3><p>[Detail grounded in warranty and build from context]</p></div></div>""",
    "smart-features": """
## HTML Template:
<div class="sfheader"><h2>[Title about connected features]</h2></div>
<div><div><h3>[Feature from context]</h3><p>[What it does for the user]</p></div></div>""",
    "engineering-specs": """
## HTML Template:
<div class="esheader"><h2>[Product Name] Engineering</h2></div>
<div><div><h3>[Component]</h3><p>[Detail from the product's features and specs]</p></div></div>""",
    "noise-context": """
## HTML Template:
<div class="ncheader"><h2>[Honest title about blender noise]</h2></div>
<div><div><p>[Noise level from specs, compared to everyday sounds]</p></div></div>
<div><div><p>[Tips for quieter blending]</p></div></div>""",
    "split-content": """
## HTML Template:
<div>
  <div><picture><img src="EXACT_IMAGE_URL" alt="..."></picture></div>
  <div><h2>[Title]</h2><p>[Content from context]</p></div>
</div>""",
    "columns": """
## HTML Template (2-3 columns):
<div>
  <div><h3>[Column title]</h3><p>[Content]</p></div>
  <div><h3>[Column title]</h3><p>[Content]</p></div>
</div>""",
    "text": """
## HTML Template:
<div><div><h2>[Title]</h2><p>[Paragraph grounded in the context]</p></div></div>""",
}


BLOCK_TEMPLATES: Mapping[str, str] = MappingProxyType(
    {block_type: _with_rules(body) for block_type, body in _TEMPLATES.items()}
)


def get_block_template(
    block_type: str, registry: Mapping[str, str] = BLOCK_TEMPLATES
) -> str:
    """Structural template for `block_type`, or the generic section template."""
    return registry.get(block_type, GENERIC_TEMPLATE)
