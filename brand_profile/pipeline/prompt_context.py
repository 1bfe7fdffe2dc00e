"""
Prompt context blocks rendered from a saved profile document.

Downstream generation prompts inject these strings verbatim. Each block
falls back to its own sentinel text, so a base-only document still renders.
"""

from typing import Any, Mapping

from brand_profile.extractors.product_extractor import format_products_for_prompt
from brand_profile.inference.competitor_inference import format_competitors_for_prompt
from brand_profile.inference.persona_inference import format_personas_for_prompt
from brand_profile.inference.regional_context import format_terminology_for_prompt


def build_prompt_context(profile_document: Mapping[str, Any]) -> dict[str, str]:
    """
    Render competitors, personas, products and terminology of a profile.

    Args:
        profile_document: Document returned by ``BrandProfilePipeline.run``

    Returns:
        Mapping of block name to rendered text

    Example:
        >>> build_prompt_context({})["products"]
        'No product catalogue available.'
    """
    products = profile_document.get("products")
    return {
        "competitors": format_competitors_for_prompt(profile_document.get("competitors") or []),
        "personas": format_personas_for_prompt(profile_document.get("personas") or []),
        "products": format_products_for_prompt(products if isinstance(products, Mapping) else None),
        "terminology": format_terminology_for_prompt(
            profile_document.get("key_terminology"),
            profile_document.get("regulatory_context"),
        ),
    }


__all__ = ["build_prompt_context"]
