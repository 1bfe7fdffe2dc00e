"""
Pydantic models and schemas for the brand profile pipeline.

This module defines the data structures exchanged between stages and the
aggregate profile handed back to the caller. Every stage returns one of
these models on both its success and fallback paths.

Models:
    - RegionInference: Market detected from a site address
    - RegionalContext: Languages, currency and market notes for a market
    - Competitor / CompetitorInferenceResult: Competitive set
    - Persona / PersonaInferenceResult: Customer personas
    - ProductCatalogEntry / ExtractionResult: Product catalogue with provenance
    - KnowledgeSummary: Encyclopedia lookup result
    - PipelineParams: Caller options for a profile run
    - BrandProfile: Frozen aggregate of all stage outputs
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Iterable, Optional, Self, TypeVar

from pydantic import (
    BaseModel as PydanticBaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
)

T = TypeVar("T")


# =============================================================================
# Base Configuration
# =============================================================================

class BaseModel(PydanticBaseModel):
    """Base model with common configuration for all schemas."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        use_enum_values=True,
    )

    def to_json(self, **kwargs) -> str:
        """Serialize model to JSON string."""
        return self.model_dump_json(indent=2, **kwargs)

    def to_dict(self, **kwargs) -> dict[str, Any]:
        """Serialize model to dictionary."""
        return self.model_dump(**kwargs)

    @classmethod
    def from_json(cls, json_str: str) -> Self:
        """Deserialize model from JSON string."""
        return cls.model_validate_json(json_str)


# =============================================================================
# Enums
# =============================================================================

class ConfidenceLevel(str, Enum):
    """Self-reported certainty of an inference stage."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class BusinessModel(str, Enum):
    """Canonical business model labels."""
    B2B = "B2B"
    B2C = "B2C"
    HYBRID = "B2B & B2C"


class CompetitorSource(str, Enum):
    """Provenance of a competitor list."""
    LLMO = "llmo"
    LLM_INFERRED = "llm_inferred"
    FALLBACK_EMPTY = "fallback_empty"


class PersonaSource(str, Enum):
    """Provenance of a persona list."""
    LLM_INFERRED = "llm_inferred"
    FALLBACK = "fallback"


class ProductStatus(str, Enum):
    """Lifecycle status of a catalogue entry."""
    CURRENT = "current"
    DISCONTINUED = "discontinued"


class ExtractionSource(str, Enum):
    """Which product extraction tier produced a catalogue."""
    SITEMAP = "sitemap"
    SITEMAP_FAILED = "sitemap_failed"
    SITEMAP_EMPTY = "sitemap_empty"
    SITEMAP_NO_PRODUCTS = "sitemap_no_products"
    SITEMAP_LLM_FAILED = "sitemap_llm_failed"
    WIKIDATA = "wikidata"
    WIKIPEDIA_LLM = "wikipedia_llm"
    HYBRID = "hybrid"
    NONE = "none"


# =============================================================================
# Helpers
# =============================================================================

def dedupe_by_name(items: Iterable[T], get_name: Callable[[T], Optional[str]]) -> list[T]:
    """
    Drop entries with empty names and case-insensitive duplicates.

    The first occurrence of each lower-cased name wins, so its original
    casing is what callers display.
    """
    seen: set[str] = set()
    unique: list[T] = []
    for item in items:
        name = (get_name(item) or "").strip()
        if not name:
            continue
        key = name.lower()
        if key in seen:
            continue
        seen.add(key)
        unique.append(item)
    return unique


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Region and Regional Context
# =============================================================================

FALLBACK_COUNTRY_CODE = "US"


class RegionInference(BaseModel):
    """Market detected from a site address."""

    country_code: str = Field(default=FALLBACK_COUNTRY_CODE, description="ISO 3166-1 alpha-2 code")
    confidence: ConfidenceLevel = Field(default=ConfidenceLevel.MEDIUM)
    detection_method: str = Field(default="unknown")
    reasoning: str = Field(default="")

    @field_validator("country_code", mode="before")
    @classmethod
    def normalize_country_code(cls, v: Any) -> str:
        """Anything but a two-letter code becomes the fallback market."""
        code = str(v or FALLBACK_COUNTRY_CODE).strip().upper()
        if len(code) != 2 or not code.isalpha():
            return FALLBACK_COUNTRY_CODE
        return code

    @field_validator("confidence", mode="before")
    @classmethod
    def normalize_confidence(cls, v: Any) -> str:
        if isinstance(v, Enum):
            v = v.value
        value = str(v or "").strip().lower()
        if value not in {c.value for c in ConfidenceLevel}:
            return ConfidenceLevel.MEDIUM.value
        return value

    @field_validator("detection_method", mode="before")
    @classmethod
    def default_detection_method(cls, v: Any) -> str:
        return str(v) if v else "unknown"

    @field_validator("reasoning", mode="before")
    @classmethod
    def default_reasoning(cls, v: Any) -> str:
        return str(v) if v else ""


class RegionalContext(BaseModel):
    """Language, currency and market notes for one market."""

    languages: list[str] = Field(..., min_length=1)
    primary_language: str
    regulatory_context: str = ""
    key_terminology: dict[str, list[str]] = Field(default_factory=dict)
    market_specifics: str = ""
    currency: str = Field(..., pattern=r"^[A-Z]{3}$")
    business_model: BusinessModel = BusinessModel.B2C


# =============================================================================
# Competitors and Personas
# =============================================================================

class Competitor(BaseModel):
    """One competing brand."""

    name: str = Field(..., min_length=1)
    aliases: list[str] = Field(default_factory=list)
    urls: list[str] = Field(default_factory=list)
    why_competitor: str = ""
    source: CompetitorSource = CompetitorSource.LLM_INFERRED


class CompetitorInferenceResult(BaseModel):
    """Competitor list with the market summary that accompanied it."""

    competitors: list[Competitor] = Field(default_factory=list)
    market_context: str = ""
    source: CompetitorSource = CompetitorSource.LLM_INFERRED


class Persona(BaseModel):
    """A customer persona and the unbranded queries it would use."""

    name: str = Field(..., min_length=1)
    role: str = ""
    needs: str = ""
    unbranded_angle: str = ""
    source: PersonaSource = PersonaSource.LLM_INFERRED


class PersonaInferenceResult(BaseModel):
    personas: list[Persona] = Field(default_factory=list)
    source: PersonaSource = PersonaSource.LLM_INFERRED


# =============================================================================
# Product Catalogue
# =============================================================================

class ProductCatalogEntry(BaseModel):
    """A product, service or discontinued line."""

    name: str = Field(..., min_length=1)
    category: str = ""
    variants: list[str] = Field(default_factory=list)
    status: ProductStatus = ProductStatus.CURRENT
    wikidata_id: Optional[str] = None
    inception_year: Optional[int] = None


class ExtractionCounts(BaseModel):
    products: int = 0
    services: int = 0
    sub_brands: int = 0
    discontinued: int = 0


class ExtractionMetadata(BaseModel):
    """Provenance and counts for an extraction result."""

    source: ExtractionSource = ExtractionSource.NONE
    count: int = 0
    counts: ExtractionCounts = Field(default_factory=ExtractionCounts)
    confidence: Optional[str] = None
    notes: Optional[str] = None
    error: Optional[str] = None
    sitemap_url: Optional[str] = None
    total_urls: Optional[int] = None
    product_urls: Optional[int] = None
    brand_wikidata_id: Optional[str] = None
    extracted_at: datetime = Field(default_factory=_utcnow)

    @field_serializer("extracted_at")
    def serialize_datetime(self, value: datetime) -> str:
        return value.isoformat()


class ExtractionResult(BaseModel):
    """Product catalogue produced by one or more extraction tiers."""

    products: list[ProductCatalogEntry] = Field(default_factory=list)
    services: list[ProductCatalogEntry] = Field(default_factory=list)
    sub_brands: list[str] = Field(default_factory=list)
    discontinued: list[ProductCatalogEntry] = Field(default_factory=list)
    metadata: ExtractionMetadata = Field(default_factory=ExtractionMetadata)

    @classmethod
    def empty(cls, source: ExtractionSource, **metadata: Any) -> "ExtractionResult":
        """Well-shaped result with no entries, tagged with ``source``."""
        return cls(metadata=ExtractionMetadata(source=source, **metadata))

    @property
    def counts(self) -> ExtractionCounts:
        return ExtractionCounts(
            products=len(self.products),
            services=len(self.services),
            sub_brands=len(self.sub_brands),
            discontinued=len(self.discontinued),
        )

    @property
    def total_count(self) -> int:
        counts = self.counts
        return counts.products + counts.services + counts.sub_brands + counts.discontinued


class ProductsCatalogue(BaseModel):
    """The four catalogue lists as stored on a profile."""

    items: list[ProductCatalogEntry] = Field(default_factory=list)
    services: list[ProductCatalogEntry] = Field(default_factory=list)
    sub_brands: list[str] = Field(default_factory=list)
    discontinued: list[ProductCatalogEntry] = Field(default_factory=list)

    @classmethod
    def from_extraction(cls, extraction: ExtractionResult) -> "ProductsCatalogue":
        return cls(
            items=extraction.products,
            services=extraction.services,
            sub_brands=extraction.sub_brands,
            discontinued=extraction.discontinued,
        )


# =============================================================================
# Knowledge Source
# =============================================================================

class KnowledgeSummary(BaseModel):
    """Introductory encyclopedia text for an entity."""

    title: str
    summary: str = ""
    page_id: int
    wikidata_id: Optional[str] = None


# =============================================================================
# Pipeline Input and Output
# =============================================================================

class PipelineParams(BaseModel):
    """
    Caller options for a profile run.

    Unknown keys are kept and forwarded to the base-profile prompt.
    """

    model_config = ConfigDict(extra="allow")

    enhance: bool = True
    sitemap_url: Optional[str] = Field(default=None, alias="sitemapUrl")
    competitors: list[Any] = Field(default_factory=list)

    @field_validator("enhance", mode="before")
    @classmethod
    def default_enhance(cls, v: Any) -> Any:
        return True if v is None else v

    @field_validator("competitors", mode="before")
    @classmethod
    def default_competitors(cls, v: Any) -> Any:
        return v or []


class BrandProfile(BaseModel):
    """
    Aggregate output of one enriched profile run.

    Built once after every stage has finished and never mutated afterwards.
    ``to_document`` flattens it into the mapping returned to callers, with
    the base-profile keys first.
    """

    model_config = ConfigDict(frozen=True)

    base_profile: dict[str, Any] = Field(default_factory=dict)

    # Region
    country_code: str
    region_confidence: ConfidenceLevel
    region_detection_method: str
    region_reasoning: str = ""

    # Regional context
    languages: list[str]
    primary_language: str
    regulatory_context: str = ""
    key_terminology: dict[str, list[str]] = Field(default_factory=dict)
    market_specifics: str = ""
    currency: str
    business_model: BusinessModel

    # Competitors and personas
    competitors: list[Competitor] = Field(default_factory=list)
    competitors_source: CompetitorSource
    market_context: str = ""
    personas: list[Persona] = Field(default_factory=list)
    personas_source: PersonaSource

    # Products
    products: ProductsCatalogue = Field(default_factory=ProductsCatalogue)
    products_metadata: ExtractionMetadata = Field(default_factory=ExtractionMetadata)

    def to_document(self) -> dict[str, Any]:
        """Flatten into the profile document handed to persistence."""
        enrichment = self.model_dump(mode="json", exclude={"base_profile"})
        return {**self.base_profile, **enrichment}


__all__ = [
    "BaseModel",
    "ConfidenceLevel",
    "BusinessModel",
    "CompetitorSource",
    "PersonaSource",
    "ProductStatus",
    "ExtractionSource",
    "FALLBACK_COUNTRY_CODE",
    "dedupe_by_name",
    "RegionInference",
    "RegionalContext",
    "Competitor",
    "CompetitorInferenceResult",
    "Persona",
    "PersonaInferenceResult",
    "ProductCatalogEntry",
    "ExtractionCounts",
    "ExtractionMetadata",
    "ExtractionResult",
    "ProductsCatalogue",
    "KnowledgeSummary",
    "PipelineParams",
    "BrandProfile",
]
