"""
Product catalogue extraction.

Three tiers produce the products, services, sub-brands and discontinued
lines of a brand:

1. Sitemap + LLM: product-like URLs from the brand's sitemap are handed to
   the model. Used when the caller supplies a sitemap address.
2. Wikidata SPARQL: structured relationships of the brand entity.
3. Wikipedia + LLM: article text handed to the model when the knowledge
   graph yields fewer than ``MIN_PRODUCTS_THRESHOLD`` products. Its items
   are merged into the graph results.

Every public entry point is total. Failures inside a tier are logged and
show up only in ``metadata.source`` / ``metadata.error``.
"""

from __future__ import annotations

import re
from typing import Any, Mapping, Optional, Sequence, Union

from brand_profile.config.settings import Settings, get_settings
from brand_profile.extractors.prompts import get_prompt
from brand_profile.models.schemas import (
    ExtractionMetadata,
    ExtractionResult,
    ExtractionSource,
    ProductCatalogEntry,
    ProductStatus,
    dedupe_by_name,
)
from brand_profile.services.http_service import HttpFetcher
from brand_profile.services.knowledge_service import KnowledgeSourceClient
from brand_profile.services.llm_service import CompletionClient, parse_json_object
from brand_profile.utils.formatters import render_template
from brand_profile.utils.logger import get_logger

logger = get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

MIN_PRODUCTS_THRESHOLD = 3
MAX_CANDIDATE_URLS = 300
MAX_PROMPT_URLS = 200
WIKIPEDIA_MAX_CHARS = 8000
FULL_TEXT_CHARS = 12000

MAX_NAMES_PER_CATEGORY = 5
MAX_RENDERED_SERVICES = 10
MAX_RENDERED_SUB_BRANDS = 10

NO_CATALOGUE = "No product catalogue available."

# Industry-agnostic query; {entity_id} is substituted before sending
PRODUCTS_SPARQL = """
SELECT DISTINCT ?item ?itemLabel ?typeLabel ?inception ?discontinued WHERE {
  {
    ?item wdt:P176 wd:{entity_id} .
  } UNION {
    ?item wdt:P178 wd:{entity_id} .
  } UNION {
    wd:{entity_id} wdt:P1056 ?item .
  } UNION {
    ?item wdt:P127 wd:{entity_id} .
    ?item wdt:P31/wdt:P279* wd:Q4830453 .
  }
  OPTIONAL { ?item wdt:P31 ?type . }
  OPTIONAL { ?item wdt:P571 ?inception . }
  OPTIONAL { ?item wdt:P576 ?discontinued . }
  SERVICE wikibase:label { bd:serviceParam wikibase:language "en" . }
}
LIMIT 200
"""

PRODUCT_SEGMENTS: tuple[str, ...] = (
    "/trucks/", "/suvs/", "/sedans/", "/coupes/", "/electric/",
    "/performance/", "/vans/", "/commercial/", "/vehicles/", "/cars/",
    "/models/", "/lineup/",
    "/products/", "/solutions/", "/apps/", "/tools/", "/features/",
    "/services/", "/platforms/",
    "/shop/", "/collections/", "/categories/",
    "/catalog/", "/offerings/",
)

EXCLUDE_PATTERNS: tuple[str, ...] = (
    "/previous-year/", "/legacy/", "/archive/", "/discontinued/",
    "/support/", "/help/", "/faq/", "/blog/", "/news/", "/press/",
    "/about/", "/careers/", "/contact/", "/privacy/", "/terms/",
    "/login/", "/account/", "/cart/", "/checkout/",
    ".pdf", ".jpg", ".png", ".gif",
)

SLUG_PATTERN = re.compile(r"/[a-z0-9]+-?[a-z0-9]*/?$")
LOC_PATTERN = re.compile(r"<loc>([^<]+)</loc>")
YEAR_PATTERN = re.compile(r"^\s*(\d{4})")
ENTITY_LABEL_PATTERN = re.compile(r"^Q\d+$")


# =============================================================================
# Pure Helpers
# =============================================================================

def extract_year(value: Optional[str]) -> Optional[int]:
    """
    Leading four-digit year of a timestamp or bare year string.

    Examples:
        >>> extract_year("1991-01-01T00:00:00Z")
        1991
        >>> extract_year("2004")
        2004
        >>> extract_year("unknown") is None
        True
    """
    if not value:
        return None
    match = YEAR_PATTERN.match(str(value))
    return int(match.group(1)) if match else None


def clean_category(type_label: Optional[str]) -> str:
    """``"electric_CAR"`` -> ``"Electric car"``."""
    if not type_label:
        return ""
    clean = type_label.replace("_", " ")
    return clean[:1].upper() + clean[1:].lower()


def filter_product_urls(urls: Sequence[str]) -> list[str]:
    """Keep product-like URLs, capped at ``MAX_CANDIDATE_URLS``."""
    filtered = []
    for url in urls:
        url_lower = url.lower()
        if any(pattern in url_lower for pattern in EXCLUDE_PATTERNS):
            continue
        if any(segment in url_lower for segment in PRODUCT_SEGMENTS) or SLUG_PATTERN.search(url_lower):
            filtered.append(url)
    return filtered[:MAX_CANDIDATE_URLS]


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if v and str(v).strip()]


def normalize_items(items: Any, status: ProductStatus = ProductStatus.CURRENT) -> list[ProductCatalogEntry]:
    """
    Convert model output items into catalogue entries.

    Strings become ``{name}`` entries; mappings keep name, category and
    variants. Items without a name are dropped.
    """
    if not isinstance(items, list):
        return []

    entries = []
    for item in items:
        if isinstance(item, str):
            name, category, variants = item.strip(), "", []
        elif isinstance(item, dict):
            name = str(item.get("name") or "").strip()
            category = str(item.get("category") or "")
            variants = _string_list(item.get("variants"))
        else:
            continue
        if name:
            entries.append(ProductCatalogEntry(name=name, category=category, variants=variants, status=status))
    return entries


def normalize_sub_brands(value: Any) -> list[str]:
    return _string_list(value)


def normalize_results(result: ExtractionResult) -> ExtractionResult:
    """Dedupe every list case-insensitively and refresh the metadata counts."""
    normalized = result.model_copy(update={
        "products": dedupe_by_name(result.products, lambda p: p.name),
        "services": dedupe_by_name(result.services, lambda s: s.name),
        "sub_brands": dedupe_by_name(result.sub_brands, lambda s: s),
        "discontinued": dedupe_by_name(result.discontinued, lambda d: d.name),
    })
    normalized.metadata = normalized.metadata.model_copy(update={
        "count": normalized.total_count,
        "counts": normalized.counts,
    })
    return normalized


def merge_results(primary: ExtractionResult, secondary: ExtractionResult) -> ExtractionResult:
    """
    Append secondary entries whose lower-cased name is absent from the primary list.

    Sub-brands are plain strings and merge by exact membership.
    """
    def _merge(existing: list[ProductCatalogEntry], extra: list[ProductCatalogEntry]) -> list[ProductCatalogEntry]:
        seen = {entry.name.lower() for entry in existing}
        return existing + [entry for entry in extra if entry.name and entry.name.lower() not in seen]

    known_sub_brands = set(primary.sub_brands)
    return primary.model_copy(update={
        "products": _merge(primary.products, secondary.products),
        "services": _merge(primary.services, secondary.services),
        "sub_brands": primary.sub_brands + [s for s in secondary.sub_brands if s not in known_sub_brands],
        "discontinued": _merge(primary.discontinued, secondary.discontinued),
    })


def _entry_field(entry: Any, field: str) -> Any:
    if isinstance(entry, Mapping):
        return entry.get(field)
    return getattr(entry, field, None)


def format_products_for_prompt(extraction: Union[ExtractionResult, Mapping[str, Any], None]) -> str:
    """
    Render a catalogue for prompt injection.

    Accepts an ExtractionResult or a mapping; a profile document's
    ``products`` mapping stores products under ``items``.

    Example:
        >>> format_products_for_prompt({})
        'No product catalogue available.'
    """
    if extraction is None:
        return NO_CATALOGUE
    if isinstance(extraction, ExtractionResult):
        products, services, sub_brands = extraction.products, extraction.services, extraction.sub_brands
    else:
        products = extraction.get("products") or extraction.get("items") or []
        services = extraction.get("services") or []
        sub_brands = extraction.get("sub_brands") or []

    lines: list[str] = []

    by_category: dict[str, list[str]] = {}
    for product in products:
        name = _entry_field(product, "name")
        if not name:
            continue
        by_category.setdefault(_entry_field(product, "category") or "Other", []).append(name)

    for category in sorted(by_category):
        names = by_category[category]
        rendered = ", ".join(names[:MAX_NAMES_PER_CATEGORY])
        if len(names) > MAX_NAMES_PER_CATEGORY:
            rendered += ", ..."
        lines.append(f"{category}: {rendered}")

    service_names = [n for n in (_entry_field(s, "name") for s in services) if n][:MAX_RENDERED_SERVICES]
    if service_names:
        lines.append(f"Services: {', '.join(service_names)}")

    if sub_brands:
        lines.append(f"Sub-brands: {', '.join(str(s) for s in list(sub_brands)[:MAX_RENDERED_SUB_BRANDS])}")

    return "\n".join(lines) if lines else NO_CATALOGUE


# =============================================================================
# Extractor
# =============================================================================

class ProductExtractor:
    """
    Product catalogue extraction across sitemap, knowledge graph and encyclopedia.

    Example:
        >>> extractor = ProductExtractor(llm=ClaudeService(), http=HttpFetcher())
        >>> result = await extractor.extract_products("Acme")
        >>> result.metadata.source
        'hybrid'
    """

    def __init__(
        self,
        llm: CompletionClient,
        http: Optional[HttpFetcher] = None,
        knowledge: Optional[KnowledgeSourceClient] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.llm = llm
        self.http = http or HttpFetcher(settings=self.settings)
        self.knowledge = knowledge or KnowledgeSourceClient(http=self.http, settings=self.settings)

    # =========================================================================
    # Tier 1: Sitemap
    # =========================================================================

    async def fetch_sitemap_urls(self, sitemap_url: str) -> list[str]:
        """
        All ``<loc>`` entries of a sitemap document.

        Raises:
            RuntimeError: On a non-success status
        """
        response = await self.http.fetch(sitemap_url)
        if not response.ok:
            raise RuntimeError(f"Sitemap fetch failed: {response.status_code}")
        urls = [match.strip() for match in LOC_PATTERN.findall(response.text)]
        logger.info("Sitemap fetched", sitemap_url=sitemap_url, urls=len(urls))
        return urls

    async def extract_from_sitemap(self, sitemap_url: str, brand_name: str) -> ExtractionResult:
        """
        Deduce the current catalogue from the brand's sitemap.

        Args:
            sitemap_url: Address of the sitemap XML
            brand_name: Brand name for the prompt

        Returns:
            ExtractionResult tagged ``sitemap`` on success, or one of
            ``sitemap_failed``, ``sitemap_empty``, ``sitemap_no_products``,
            ``sitemap_llm_failed`` with empty lists
        """
        logger.info("Extracting products from sitemap", brand_name=brand_name, sitemap_url=sitemap_url)
        metadata = ExtractionMetadata(source=ExtractionSource.SITEMAP, sitemap_url=sitemap_url)

        try:
            urls = await self.fetch_sitemap_urls(sitemap_url)
        except Exception as e:
            logger.error("Sitemap fetch failed", sitemap_url=sitemap_url, error=str(e))
            return ExtractionResult(metadata=metadata.model_copy(update={
                "source": ExtractionSource.SITEMAP_FAILED,
                "error": str(e),
            }))

        metadata.total_urls = len(urls)
        if not urls:
            logger.warning("Sitemap has no URLs", sitemap_url=sitemap_url)
            metadata.source = ExtractionSource.SITEMAP_EMPTY
            return ExtractionResult(metadata=metadata)

        product_urls = filter_product_urls(urls)
        metadata.product_urls = len(product_urls)
        if not product_urls:
            logger.warning("Sitemap has no product URLs", sitemap_url=sitemap_url)
            metadata.source = ExtractionSource.SITEMAP_NO_PRODUCTS
            return ExtractionResult(metadata=metadata)

        prompt_spec = get_prompt("brand-profile/product-sitemap")
        template = prompt_spec["user_template"]
        prompt = render_template(template, {
            "brand_name": brand_name,
            "urls_text": "\n".join(product_urls[:MAX_PROMPT_URLS]),
        })

        try:
            completion = await self.llm.complete(
                prompt,
                response_format="json_object",
                temperature=prompt_spec["config"].recommended_temperature,
            )
            data = parse_json_object(completion)
            result = ExtractionResult(
                products=normalize_items(data.get("products")),
                services=normalize_items(data.get("services")),
                sub_brands=normalize_sub_brands(data.get("sub_brands")),
                discontinued=normalize_items(data.get("discontinued"), ProductStatus.DISCONTINUED),
                metadata=metadata.model_copy(update={
                    "confidence": str(data.get("confidence") or "unknown"),
                    "notes": str(data.get("notes") or ""),
                }),
            )
        except Exception as e:
            logger.error("Sitemap extraction model call failed", brand_name=brand_name, error=str(e))
            return ExtractionResult(metadata=metadata.model_copy(update={
                "source": ExtractionSource.SITEMAP_LLM_FAILED,
                "error": str(e),
            }))

        result = normalize_results(result)
        logger.info("Sitemap extraction complete", brand_name=brand_name, count=result.metadata.count)
        return result

    # =========================================================================
    # Tier 2: Knowledge Graph
    # =========================================================================

    async def query_wikidata_products(self, entity_id: str) -> list[ProductCatalogEntry]:
        """
        Products, developments and subsidiaries related to a Wikidata entity.

        Returns an empty list when the query fails.
        """
        query = PRODUCTS_SPARQL.replace("{entity_id}", entity_id)
        try:
            response = await self.http.fetch(
                self.settings.wikidata_sparql_url,
                params={"query": query},
                headers={"Accept": "application/sparql-results+json"},
            )
            if not response.ok:
                raise RuntimeError(f"SPARQL query failed: {response.status_code}")

            bindings = (response.json_body().get("results") or {}).get("bindings") or []
            products = []
            seen: set[str] = set()
            for binding in bindings:
                name = ((binding.get("itemLabel") or {}).get("value") or "").strip()
                if not name or name in seen or ENTITY_LABEL_PATTERN.match(name):
                    continue
                seen.add(name)

                item_uri = (binding.get("item") or {}).get("value") or ""
                discontinued = (binding.get("discontinued") or {}).get("value")
                products.append(ProductCatalogEntry(
                    name=name,
                    category=clean_category((binding.get("typeLabel") or {}).get("value")),
                    wikidata_id=item_uri.rsplit("/", 1)[-1] or None,
                    inception_year=extract_year((binding.get("inception") or {}).get("value")),
                    status=ProductStatus.DISCONTINUED if discontinued else ProductStatus.CURRENT,
                ))

            logger.info("Knowledge graph products found", entity_id=entity_id, count=len(products))
            return products
        except Exception as e:
            logger.error("Knowledge graph query failed", entity_id=entity_id, error=str(e))
            return []

    # =========================================================================
    # Tier 3: Encyclopedia
    # =========================================================================

    async def extract_from_wikipedia(self, brand_name: str, text: Optional[str]) -> Optional[ExtractionResult]:
        if not text:
            logger.info("No encyclopedia text available", brand_name=brand_name)
            return None

        if len(text) > WIKIPEDIA_MAX_CHARS:
            text = text[:WIKIPEDIA_MAX_CHARS] + "..."

        prompt_spec = get_prompt("brand-profile/product-wikipedia")
        template = prompt_spec["user_template"]
        prompt = render_template(template, {"brand_name": brand_name, "wikipedia_text": text})

        try:
            completion = await self.llm.complete(
                prompt,
                response_format="json_object",
                temperature=prompt_spec["config"].recommended_temperature,
            )
            data = parse_json_object(completion)
            return ExtractionResult(
                products=normalize_items(data.get("products")),
                services=normalize_items(data.get("services")),
                sub_brands=normalize_sub_brands(data.get("sub_brands")),
                discontinued=normalize_items(data.get("discontinued"), ProductStatus.DISCONTINUED),
            )
        except Exception as e:
            logger.error("Encyclopedia extraction failed", brand_name=brand_name, error=str(e))
            return None

    # =========================================================================
    # Graph + Encyclopedia
    # =========================================================================

    async def extract_products(self, brand_name: str, wikipedia_summary: Optional[str] = None) -> ExtractionResult:
        """
        Extract the catalogue from the knowledge graph, topped up from the encyclopedia.

        Args:
            brand_name: Brand or company name
            wikipedia_summary: Article text to reuse instead of fetching

        Returns:
            ExtractionResult tagged ``wikidata``, ``hybrid``, ``wikipedia_llm`` or ``none``
        """
        logger.info("Extracting products", brand_name=brand_name)
        result = ExtractionResult.empty(ExtractionSource.NONE)

        entity_id = await self.knowledge.find_entity_id(brand_name)
        if entity_id:
            result.metadata.brand_wikidata_id = entity_id
            graph_products = await self.query_wikidata_products(entity_id)
            if graph_products:
                result.products = graph_products
                result.metadata.source = ExtractionSource.WIKIDATA

        if len(result.products) < MIN_PRODUCTS_THRESHOLD:
            logger.info(
                "Knowledge graph below threshold, trying encyclopedia",
                brand_name=brand_name,
                count=len(result.products),
                threshold=MIN_PRODUCTS_THRESHOLD,
            )
            text = wikipedia_summary or await self.knowledge.fetch_full_text(
                f"{brand_name} company", max_chars=FULL_TEXT_CHARS,
            )
            encyclopedia = await self.extract_from_wikipedia(brand_name, text)
            if encyclopedia is not None:
                result = merge_results(result, encyclopedia)
                result.metadata.source = (
                    ExtractionSource.HYBRID
                    if result.metadata.source == ExtractionSource.WIKIDATA
                    else ExtractionSource.WIKIPEDIA_LLM
                )

        result = normalize_results(result)
        logger.info(
            "Product extraction complete",
            brand_name=brand_name,
            source=result.metadata.source,
            count=result.metadata.count,
        )
        return result


__all__ = [
    "EXCLUDE_PATTERNS",
    "MIN_PRODUCTS_THRESHOLD",
    "PRODUCT_SEGMENTS",
    "ProductExtractor",
    "clean_category",
    "extract_year",
    "filter_product_urls",
    "format_products_for_prompt",
    "merge_results",
    "normalize_items",
    "normalize_results",
]
