"""
Persona inference.

One model call describes the customers who research the brand's category.
The stage does not retry: any failure returns the single generic
``General Consumer`` persona tagged ``fallback``.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

from brand_profile.inference.prompts import get_prompt
from brand_profile.models.schemas import (
    Competitor,
    Persona,
    PersonaInferenceResult,
    PersonaSource,
    dedupe_by_name,
)
from brand_profile.services.llm_service import CompletionClient, parse_json_object
from brand_profile.utils.formatters import render_template, truncate_text
from brand_profile.utils.logger import get_logger
from brand_profile.utils.retry import TransientInferenceFailure, attempt_with_fallback

logger = get_logger(__name__)

MAX_INDUSTRY_CHARS = 200
MAX_AUDIENCE_CHARS = 300
MAX_PROMPT_COMPETITORS = 8
MAX_RENDERED_PERSONAS = 5

NO_COMPETITORS_SPECIFIED = "No competitors specified"
NO_PERSONAS = "General consumers researching options"


def fallback_persona() -> Persona:
    return Persona(
        name="General Consumer",
        role="Typical customer researching options",
        needs="Finding the best product for their needs",
        unbranded_angle="best options in category, top rated products, which is best for",
        source=PersonaSource.FALLBACK,
    )


def _competitor_name(competitor: Any) -> Optional[str]:
    if isinstance(competitor, Competitor):
        return competitor.name
    if isinstance(competitor, dict):
        return competitor.get("name")
    if isinstance(competitor, str):
        return competitor
    return None


def format_competitor_names(competitors: Optional[Sequence[Any]]) -> str:
    """Bullet list of up to eight competitor names for the persona prompt."""
    names = [name for name in (_competitor_name(c) for c in competitors or []) if name]
    if not names:
        return NO_COMPETITORS_SPECIFIED
    return "\n".join(f"- {name}" for name in names[:MAX_PROMPT_COMPETITORS])


def format_personas_for_prompt(personas: Optional[Sequence[Any]]) -> str:
    """
    Render up to five personas as bullet lines.

    Example:
        >>> format_personas_for_prompt([])
        'General consumers researching options'
    """
    lines = []
    for persona in list(personas or [])[:MAX_RENDERED_PERSONAS]:
        if isinstance(persona, Persona):
            name, angle = persona.name, persona.unbranded_angle
        elif isinstance(persona, dict):
            name, angle = persona.get("name"), persona.get("unbranded_angle")
        else:
            continue
        if not name:
            continue
        lines.append(f"- {name}: {angle}" if angle else f"- {name}")

    return "\n".join(lines) if lines else NO_PERSONAS


def normalize_personas(items: Sequence[Any]) -> list[Persona]:
    personas = [
        Persona(
            name=str(item.get("name") or "").strip(),
            role=str(item.get("role") or ""),
            needs=str(item.get("needs") or ""),
            unbranded_angle=str(item.get("unbranded_angle") or ""),
            source=PersonaSource.LLM_INFERRED,
        )
        for item in items
        if isinstance(item, dict) and str(item.get("name") or "").strip()
    ]
    return dedupe_by_name(personas, lambda p: p.name)


class PersonaInferenceService:
    """Customer persona inference backed by a completion client."""

    def __init__(self, llm: CompletionClient):
        self.llm = llm

    async def infer_personas(
        self,
        brand_name: str,
        industry: Optional[str] = None,
        target_audience: Optional[str] = None,
        competitors: Optional[Sequence[Any]] = None,
        country_code: Optional[str] = None,
    ) -> PersonaInferenceResult:
        """
        Infer customer personas.

        Args:
            brand_name: Brand name
            industry: Industry description
            target_audience: Audience description
            competitors: Competitor names, mappings or Competitor models
            country_code: Market; blank renders as "Global"

        Returns:
            PersonaInferenceResult tagged ``llm_inferred`` or ``fallback``
        """
        prompt_spec = get_prompt("brand-profile/persona-inference")
        template = prompt_spec["user_template"]
        prompt = render_template(template, {
            "brand_name": brand_name,
            "industry": truncate_text(industry or "General business", MAX_INDUSTRY_CHARS),
            "target_audience": truncate_text(target_audience or "General audience", MAX_AUDIENCE_CHARS),
            "country_code": country_code or "Global",
            "competitors": format_competitor_names(competitors),
        })

        async def _attempt() -> PersonaInferenceResult:
            completion = await self.llm.complete(
                prompt,
                response_format="json_object",
                temperature=prompt_spec["config"].recommended_temperature,
            )
            raw = parse_json_object(completion).get("personas") or []
            if not isinstance(raw, list):
                raise TransientInferenceFailure(
                    f"personas must be a list, got {type(raw).__name__}"
                )
            return PersonaInferenceResult(
                personas=normalize_personas(raw),
                source=PersonaSource.LLM_INFERRED,
            )

        result = await attempt_with_fallback(
            _attempt,
            lambda _error: PersonaInferenceResult(
                personas=[fallback_persona()],
                source=PersonaSource.FALLBACK,
            ),
            stage="persona_inference",
            max_attempts=1,
        )
        logger.info(
            "Personas inferred",
            brand_name=brand_name,
            count=len(result.personas),
            source=result.source,
        )
        return result


__all__ = [
    "PersonaInferenceService",
    "fallback_persona",
    "format_competitor_names",
    "format_personas_for_prompt",
    "normalize_personas",
]
