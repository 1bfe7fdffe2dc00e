"""
Competitor inference.

Asks the model for the direct competitors of a brand in its market. Up to
three attempts; exhaustion yields an empty, ``fallback_empty`` tagged result.
Caller-supplied competitor lists bypass inference entirely and are
normalized by ``competitors_from_caller``.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional, Sequence

from brand_profile.inference.prompts import get_prompt
from brand_profile.models.schemas import (
    Competitor,
    CompetitorInferenceResult,
    CompetitorSource,
    dedupe_by_name,
)
from brand_profile.services.llm_service import CompletionClient, parse_json_object
from brand_profile.utils.formatters import render_template, truncate_text
from brand_profile.utils.logger import get_logger
from brand_profile.utils.retry import TransientInferenceFailure, attempt_with_fallback

logger = get_logger(__name__)

COMPETITOR_MAX_ATTEMPTS = 3

MAX_INDUSTRY_CHARS = 200
MAX_SUMMARY_CHARS = 1500
MAX_RENDERED_COMPETITORS = 8

NO_COMPETITORS = "No competitors identified"


# =============================================================================
# Normalization
# =============================================================================

def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if item and str(item).strip()]


def normalize_competitor(raw: Any, source: CompetitorSource) -> Optional[Competitor]:
    """
    Convert one raw entry (string or mapping) into a Competitor.

    Returns None for entries without a usable name.
    """
    if isinstance(raw, str):
        name = raw.strip()
        return Competitor(name=name, source=source) if name else None

    if not isinstance(raw, dict):
        return None

    name = str(raw.get("name") or "").strip()
    if not name:
        return None

    return Competitor(
        name=name,
        aliases=_string_list(raw.get("aliases")),
        urls=_string_list(raw.get("urls")),
        why_competitor=str(raw.get("why_competitor") or ""),
        source=source,
    )


def normalize_competitors(items: Iterable[Any], source: CompetitorSource) -> list[Competitor]:
    """Normalize raw entries, dropping nameless ones and case-insensitive duplicates."""
    competitors = [normalize_competitor(item, source) for item in items or []]
    return dedupe_by_name(
        (c for c in competitors if c is not None),
        lambda c: c.name,
    )


def competitors_from_caller(items: Iterable[Any]) -> list[Competitor]:
    """Competitors supplied by the caller, tagged ``llmo``."""
    return normalize_competitors(items, CompetitorSource.LLMO)


def format_competitors_for_prompt(competitors: Sequence[Any]) -> str:
    """
    Render up to eight competitors as bullet lines.

    Example:
        >>> format_competitors_for_prompt([{"name": "Globex", "why_competitor": "Same buyers"}])
        '- Globex: Same buyers'
    """
    lines = []
    for competitor in list(competitors or [])[:MAX_RENDERED_COMPETITORS]:
        if isinstance(competitor, Competitor):
            name, why = competitor.name, competitor.why_competitor
        elif isinstance(competitor, dict):
            name, why = competitor.get("name"), competitor.get("why_competitor")
        else:
            name, why = competitor, None
        if not name:
            continue
        lines.append(f"- {name}: {why}" if why else f"- {name}")

    return "\n".join(lines) if lines else NO_COMPETITORS


# =============================================================================
# Service
# =============================================================================

class CompetitorInferenceService:
    """Competitive set inference backed by a completion client."""

    def __init__(self, llm: CompletionClient):
        self.llm = llm

    async def infer_competitors(
        self,
        brand_name: str,
        industry: Optional[str] = None,
        wikipedia_summary: Optional[str] = None,
        country_code: Optional[str] = None,
    ) -> CompetitorInferenceResult:
        """
        Infer the direct competitors of a brand.

        Args:
            brand_name: Brand name
            industry: Industry description
            wikipedia_summary: Encyclopedia overview of the company
            country_code: Market; blank renders as "Global"

        Returns:
            CompetitorInferenceResult tagged ``llm_inferred`` or ``fallback_empty``
        """
        prompt_spec = get_prompt("brand-profile/competitor-inference")
        template = prompt_spec["user_template"]
        prompt = render_template(template, {
            "brand_name": brand_name,
            "industry": truncate_text(industry or "General business", MAX_INDUSTRY_CHARS),
            "country_code": country_code or "Global",
            "wikipedia_summary": truncate_text(wikipedia_summary, MAX_SUMMARY_CHARS)
            or "No company overview available.",
        })

        async def _attempt() -> CompetitorInferenceResult:
            completion = await self.llm.complete(
                prompt,
                response_format="json_object",
                temperature=prompt_spec["config"].recommended_temperature,
            )
            data = parse_json_object(completion)
            raw = data.get("competitors") or []
            if not isinstance(raw, list):
                raise TransientInferenceFailure(
                    f"competitors must be a list, got {type(raw).__name__}"
                )
            return CompetitorInferenceResult(
                competitors=normalize_competitors(raw, CompetitorSource.LLM_INFERRED),
                market_context=str(data.get("market_context") or ""),
                source=CompetitorSource.LLM_INFERRED,
            )

        def _fallback(_error: Optional[BaseException]) -> CompetitorInferenceResult:
            return CompetitorInferenceResult(
                competitors=[],
                market_context=f"Could not infer competitors for {brand_name} in {industry or 'General business'}",
                source=CompetitorSource.FALLBACK_EMPTY,
            )

        result = await attempt_with_fallback(
            _attempt,
            _fallback,
            stage="competitor_inference",
            max_attempts=COMPETITOR_MAX_ATTEMPTS,
        )
        logger.info(
            "Competitors inferred",
            brand_name=brand_name,
            count=len(result.competitors),
            source=result.source,
        )
        return result


__all__ = [
    "CompetitorInferenceService",
    "competitors_from_caller",
    "format_competitors_for_prompt",
    "normalize_competitor",
    "normalize_competitors",
]
