"""
Models package for the brand profile pipeline.

Exports the pydantic schemas shared by every stage.
"""

from brand_profile.models.schemas import (
    BaseModel,
    BrandProfile,
    BusinessModel,
    Competitor,
    CompetitorInferenceResult,
    CompetitorSource,
    ConfidenceLevel,
    ExtractionCounts,
    ExtractionMetadata,
    ExtractionResult,
    ExtractionSource,
    FALLBACK_COUNTRY_CODE,
    KnowledgeSummary,
    Persona,
    PersonaInferenceResult,
    PersonaSource,
    PipelineParams,
    ProductCatalogEntry,
    ProductsCatalogue,
    ProductStatus,
    RegionalContext,
    RegionInference,
    dedupe_by_name,
)

__all__ = [
    "BaseModel",
    "BrandProfile",
    "BusinessModel",
    "Competitor",
    "CompetitorInferenceResult",
    "CompetitorSource",
    "ConfidenceLevel",
    "ExtractionCounts",
    "ExtractionMetadata",
    "ExtractionResult",
    "ExtractionSource",
    "FALLBACK_COUNTRY_CODE",
    "KnowledgeSummary",
    "Persona",
    "PersonaInferenceResult",
    "PersonaSource",
    "PipelineParams",
    "ProductCatalogEntry",
    "ProductsCatalogue",
    "ProductStatus",
    "RegionalContext",
    "RegionInference",
    "dedupe_by_name",
]
