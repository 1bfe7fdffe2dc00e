"""Pipeline module for the brand profile pipeline."""

from brand_profile.pipeline.orchestrator import (
    BrandProfilePipeline,
    ProfileStateDict,
    build_brand_profile,
)
from brand_profile.pipeline.prompt_context import build_prompt_context

__all__ = [
    "BrandProfilePipeline",
    "ProfileStateDict",
    "build_brand_profile",
    "build_prompt_context",
]
