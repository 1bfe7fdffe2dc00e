"""
Inference stages: region, regional context, competitors and personas.

Every stage here is total. Failed model calls are retried a bounded number
of times and then replaced by a deterministic fallback of the same shape.
"""

from brand_profile.inference.competitor_inference import (
    CompetitorInferenceService,
    competitors_from_caller,
    format_competitors_for_prompt,
)
from brand_profile.inference.persona_inference import (
    PersonaInferenceService,
    format_personas_for_prompt,
)
from brand_profile.inference.regional_context import (
    RegionalContextService,
    create_fallback_context,
    format_terminology_for_prompt,
    normalize_business_model,
)

__all__ = [
    "CompetitorInferenceService",
    "PersonaInferenceService",
    "RegionalContextService",
    "competitors_from_caller",
    "create_fallback_context",
    "format_competitors_for_prompt",
    "format_personas_for_prompt",
    "format_terminology_for_prompt",
    "normalize_business_model",
]
