"""
Region and regional context inference.

Two stages share this module:

1. ``infer_region_from_url`` asks the model for the primary market of a
   website. One attempt; any failure yields the US fallback.
2. ``infer_regional_context`` asks for languages, currency, regulation and
   terminology of that market. Up to three attempts; exhaustion yields a
   context built from the static country tables below.

Example:
    >>> service = RegionalContextService(llm=ClaudeService())
    >>> region = await service.infer_region_from_url("https://acme.de")
    >>> context = await service.infer_regional_context(region.country_code, "Tools", "Acme")
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

from brand_profile.inference.prompts import get_prompt
from brand_profile.models.schemas import (
    FALLBACK_COUNTRY_CODE,
    BusinessModel,
    ConfidenceLevel,
    RegionalContext,
    RegionInference,
)
from brand_profile.services.llm_service import CompletionClient, parse_json_object
from brand_profile.utils.formatters import render_template, truncate_text
from brand_profile.utils.logger import get_logger
from brand_profile.utils.retry import attempt_with_fallback

logger = get_logger(__name__)


# =============================================================================
# Static Market Tables
# =============================================================================

COUNTRY_LANGUAGES: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "US": ("en-US",),
    "GB": ("en-GB",),
    "DE": ("de-DE",),
    "AT": ("de-AT",),
    "CH": ("de-CH", "fr-CH", "it-CH"),
    "FR": ("fr-FR",),
    "IT": ("it-IT",),
    "ES": ("es-ES",),
    "NL": ("nl-NL",),
    "BE": ("nl-BE", "fr-BE"),
    "JP": ("ja-JP",),
    "BR": ("pt-BR",),
    "AU": ("en-AU",),
    "CA": ("en-CA", "fr-CA"),
    "IN": ("en-IN",),
    "MX": ("es-MX",),
    "PT": ("pt-PT",),
    "PL": ("pl-PL",),
    "SE": ("sv-SE",),
    "NO": ("no-NO",),
    "DK": ("da-DK",),
    "FI": ("fi-FI",),
})

CURRENCY_BY_COUNTRY: Mapping[str, str] = MappingProxyType({
    "US": "USD",
    "GB": "GBP",
    "CH": "CHF",
    "JP": "JPY",
    "AU": "AUD",
    "CA": "CAD",
    "IN": "INR",
    "BR": "BRL",
    "MX": "MXN",
    "SE": "SEK",
    "NO": "NOK",
    "DK": "DKK",
    "PL": "PLN",
})

DEFAULT_LANGUAGES: tuple[str, ...] = ("en-US",)
# Unlisted markets are assumed to be in the eurozone
DEFAULT_CURRENCY = "EUR"

REGIONAL_CONTEXT_MAX_ATTEMPTS = 3

MAX_INDUSTRY_CHARS = 200
MAX_AUDIENCE_CHARS = 300
MAX_TERMS_PER_LANGUAGE = 15

NO_TERMINOLOGY = "No specific regional terminology available."


# =============================================================================
# Pure Helpers
# =============================================================================

def normalize_country_code(country_code: Optional[str]) -> str:
    return (country_code or "").strip().upper() or FALLBACK_COUNTRY_CODE


def get_default_languages(country_code: str) -> list[str]:
    return list(COUNTRY_LANGUAGES.get(country_code, DEFAULT_LANGUAGES))


def get_default_currency(country_code: str) -> str:
    return CURRENCY_BY_COUNTRY.get(country_code, DEFAULT_CURRENCY)


def normalize_business_model(value: Any) -> str:
    """
    Map free-form business model text onto the three canonical labels.

    Examples:
        >>> normalize_business_model("b2b")
        'B2B'
        >>> normalize_business_model("Mostly B2C, some b2b")
        'B2B & B2C'
        >>> normalize_business_model(None)
        'B2C'
    """
    if isinstance(value, Enum):
        value = value.value
    text = str(value or "").upper()
    has_b2b = "B2B" in text
    has_b2c = "B2C" in text
    if has_b2b and has_b2c:
        return BusinessModel.HYBRID.value
    if has_b2b:
        return BusinessModel.B2B.value
    return BusinessModel.B2C.value


def create_fallback_context(country_code: Optional[str]) -> RegionalContext:
    """Regional context built only from the static tables."""
    code = normalize_country_code(country_code)
    languages = get_default_languages(code)
    return RegionalContext(
        languages=languages,
        primary_language=languages[0],
        regulatory_context="",
        key_terminology={},
        market_specifics="",
        currency=get_default_currency(code),
        business_model=BusinessModel.B2C,
    )


def format_terminology_for_prompt(
    key_terminology: Optional[Mapping[str, Any]],
    regulatory_context: Optional[str] = None,
) -> str:
    """
    Render regulation and terminology for a downstream generation prompt.

    Each language lists at most 15 terms.
    """
    lines: list[str] = []

    if regulatory_context:
        lines.append(f"Regulatory Context: {regulatory_context}")
        lines.append("")

    if key_terminology:
        lines.append("Industry Terminology (use these exact terms):")
        for lang, terms in key_terminology.items():
            if isinstance(terms, (list, tuple)) and terms:
                lines.append(f"  [{lang}]: {', '.join(str(t) for t in terms[:MAX_TERMS_PER_LANGUAGE])}")

    return "\n".join(lines) if lines else NO_TERMINOLOGY


def _coerce_terminology(value: Any) -> dict[str, list[str]]:
    if not isinstance(value, dict):
        return {}
    terminology: dict[str, list[str]] = {}
    for lang, terms in value.items():
        if isinstance(terms, list):
            terminology[str(lang)] = [str(term) for term in terms if term]
    return terminology


def context_from_model_output(data: Mapping[str, Any], country_code: str) -> RegionalContext:
    """
    Build a RegionalContext from parsed model output.

    Each missing or malformed field is replaced by its table default on its own.
    """
    languages = data.get("languages")
    if not isinstance(languages, list) or not [lang for lang in languages if lang]:
        languages = get_default_languages(country_code)
    else:
        languages = [str(lang) for lang in languages if lang]

    currency = str(data.get("currency") or "").strip().upper()
    if len(currency) != 3 or not currency.isalpha():
        currency = get_default_currency(country_code)

    return RegionalContext(
        languages=languages,
        primary_language=str(data.get("primary_language") or languages[0]),
        regulatory_context=str(data.get("regulatory_context") or ""),
        key_terminology=_coerce_terminology(data.get("key_terminology")),
        market_specifics=str(data.get("market_specifics") or ""),
        currency=currency,
        business_model=normalize_business_model(data.get("business_model")),
    )


# =============================================================================
# Service
# =============================================================================

class RegionalContextService:
    """Market detection and localisation context backed by a completion client."""

    def __init__(self, llm: CompletionClient):
        self.llm = llm

    async def infer_region_from_url(self, url: str) -> RegionInference:
        """
        Infer the primary market of a website.

        Args:
            url: Site address

        Returns:
            RegionInference; ``{US, low, fallback}`` when the call or parse fails
        """
        prompt_spec = get_prompt("brand-profile/region-from-url")
        template = prompt_spec["user_template"]
        prompt = render_template(template, {"url": url})

        async def _attempt() -> RegionInference:
            completion = await self.llm.complete(
                prompt,
                response_format="json_object",
                temperature=prompt_spec["config"].recommended_temperature,
            )
            return RegionInference.model_validate(parse_json_object(completion))

        def _fallback(error: Optional[BaseException]) -> RegionInference:
            return RegionInference(
                country_code=FALLBACK_COUNTRY_CODE,
                confidence=ConfidenceLevel.LOW,
                detection_method="fallback",
                reasoning=f"Could not analyze URL, defaulting to US: {error}",
            )

        region = await attempt_with_fallback(
            _attempt, _fallback, stage="region_inference", max_attempts=1,
        )
        logger.info(
            "Region inferred",
            url=url,
            country_code=region.country_code,
            confidence=region.confidence,
            detection_method=region.detection_method,
        )
        return region

    async def infer_regional_context(
        self,
        country_code: Optional[str],
        industry: Optional[str] = None,
        brand_name: Optional[str] = None,
        target_audience: Optional[str] = None,
    ) -> RegionalContext:
        """
        Infer languages, currency, regulation and terminology for a market.

        Args:
            country_code: ISO country code; blank means US
            industry: Industry description
            brand_name: Brand name
            target_audience: Audience description

        Returns:
            RegionalContext; the static-table context after three failed attempts
        """
        code = normalize_country_code(country_code)
        prompt_spec = get_prompt("brand-profile/regional-inference")
        template = prompt_spec["user_template"]
        prompt = render_template(template, {
            "country_code": code,
            "industry": truncate_text(industry or "General business", MAX_INDUSTRY_CHARS),
            "brand_name": brand_name or "Unknown",
            "target_audience": truncate_text(target_audience or "General audience", MAX_AUDIENCE_CHARS),
        })

        async def _attempt() -> RegionalContext:
            completion = await self.llm.complete(
                prompt,
                response_format="json_object",
                temperature=prompt_spec["config"].recommended_temperature,
            )
            return context_from_model_output(parse_json_object(completion), code)

        context = await attempt_with_fallback(
            _attempt,
            lambda _error: create_fallback_context(code),
            stage="regional_context",
            max_attempts=REGIONAL_CONTEXT_MAX_ATTEMPTS,
        )

        term_count = sum(len(terms) for terms in context.key_terminology.values())
        logger.info(
            "Regional context inferred",
            country_code=code,
            languages=len(context.languages),
            terms=term_count,
            business_model=context.business_model,
        )
        return context


__all__ = [
    "COUNTRY_LANGUAGES",
    "CURRENCY_BY_COUNTRY",
    "DEFAULT_CURRENCY",
    "DEFAULT_LANGUAGES",
    "RegionalContextService",
    "context_from_model_output",
    "create_fallback_context",
    "format_terminology_for_prompt",
    "get_default_currency",
    "get_default_languages",
    "normalize_business_model",
    "normalize_country_code",
]
