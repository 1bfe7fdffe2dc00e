"""
Prompt templates for product catalogue extraction.

Prompt Categories:
    1. Sitemap Extraction - Deduce the catalogue from product-like page URLs
    2. Encyclopedia Extraction - Pull the catalogue out of article text

Both prompts ask for the same JSON object so one normalizer handles either.
"""

from brand_profile.inference.prompts import PromptConfig


CATALOGUE_OUTPUT_FORMAT = """Return a JSON object:
{
  "products": [{"name": "Product or model line", "category": "Category", "variants": ["Trim, size or edition names"]}],
  "services": [{"name": "Service offering", "category": "Category"}],
  "sub_brands": ["Brand names owned by the company that are marketed on their own"],
  "discontinued": [{"name": "Product no longer sold", "category": "Category"}]
}"""


# =============================================================================
# PROMPT 1: Sitemap Extraction
# =============================================================================

PRODUCT_SITEMAP_CONFIG = PromptConfig(
    name="brand-profile/product-sitemap",
    description="Deduce current products and services from sitemap URLs",
    recommended_temperature=0.1,
)

PRODUCT_SITEMAP_TEMPLATE = """You are cataloguing the current offering of {{ brand_name }} from its website structure.

Below are product-related page URLs from the brand's sitemap, one per line:
<urls>
{{ urls_text }}
</urls>

<guidelines>
1. Deduce product lines, models and services from the URL paths. Use the names customers would recognise, properly capitalised.
2. Merge URLs that describe the same product (colour, size and locale variants belong in "variants").
3. Ignore navigation, campaign and filter pages.
4. Put anything marked as previous-year, archived or legacy under "discontinued".
</guidelines>

""" + CATALOGUE_OUTPUT_FORMAT[:-2] + """,
  "confidence": "low | medium | high",
  "notes": "Anything uncertain about this catalogue"
}"""


# =============================================================================
# PROMPT 2: Encyclopedia Extraction
# =============================================================================

PRODUCT_WIKIPEDIA_CONFIG = PromptConfig(
    name="brand-profile/product-wikipedia",
    description="Extract products, services and sub-brands from encyclopedia text",
    recommended_temperature=0.1,
)

PRODUCT_WIKIPEDIA_TEMPLATE = """Extract the product catalogue of {{ brand_name }} from the encyclopedia text below.

<text>
{{ wikipedia_text }}
</text>

<guidelines>
1. Only list products, services and sub-brands that the text names explicitly.
2. Do not list competitors, partners or parent companies.
3. Products the text describes as discontinued, sold off or retired go under "discontinued".
</guidelines>

""" + CATALOGUE_OUTPUT_FORMAT


# =============================================================================
# Prompt Registry
# =============================================================================

PROMPT_REGISTRY = {
    "brand-profile/product-sitemap": {
        "config": PRODUCT_SITEMAP_CONFIG,
        "system": None,
        "user_template": PRODUCT_SITEMAP_TEMPLATE,
    },
    "brand-profile/product-wikipedia": {
        "config": PRODUCT_WIKIPEDIA_CONFIG,
        "system": None,
        "user_template": PRODUCT_WIKIPEDIA_TEMPLATE,
    },
}


def get_prompt(prompt_name: str) -> dict:
    """
    Get a prompt by logical name.

    Raises:
        KeyError: If prompt name not found
    """
    if prompt_name not in PROMPT_REGISTRY:
        available = ", ".join(PROMPT_REGISTRY.keys())
        raise KeyError(f"Prompt '{prompt_name}' not found. Available: {available}")
    return PROMPT_REGISTRY[prompt_name]


__all__ = [
    "PRODUCT_SITEMAP_CONFIG",
    "PRODUCT_SITEMAP_TEMPLATE",
    "PRODUCT_WIKIPEDIA_CONFIG",
    "PRODUCT_WIKIPEDIA_TEMPLATE",
    "PROMPT_REGISTRY",
    "get_prompt",
]
