"""Product catalogue extraction from sitemaps, Wikidata and Wikipedia."""

from brand_profile.extractors.product_extractor import (
    ProductExtractor,
    extract_year,
    filter_product_urls,
    format_products_for_prompt,
    merge_results,
    normalize_items,
    normalize_results,
)

__all__ = [
    "ProductExtractor",
    "extract_year",
    "filter_product_urls",
    "format_products_for_prompt",
    "merge_results",
    "normalize_items",
    "normalize_results",
]
