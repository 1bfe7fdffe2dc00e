import pytest

from brand_profile.inference.competitor_inference import (
    CompetitorInferenceService,
    competitors_from_caller,
    format_competitors_for_prompt,
    normalize_competitor,
)
from brand_profile.models.schemas import Competitor, CompetitorSource


def test_normalize_competitor_shapes():
    assert normalize_competitor("  Globex ", CompetitorSource.LLMO).name == "Globex"
    assert normalize_competitor("", CompetitorSource.LLMO) is None
    assert normalize_competitor({"name": None}, CompetitorSource.LLMO) is None
    assert normalize_competitor(42, CompetitorSource.LLMO) is None

    competitor = normalize_competitor(
        {"name": "Globex", "aliases": ["GX", "", None], "urls": "not-a-list", "why_competitor": "Same buyers"},
        CompetitorSource.LLM_INFERRED,
    )
    assert competitor.aliases == ["GX"]
    assert competitor.urls == []
    assert competitor.source == "llm_inferred"


def test_competitors_from_caller_tags_llmo_and_dedupes():
    competitors = competitors_from_caller(["Globex", {"name": "globex"}, {"name": "Initech"}, "", None])
    assert [c.name for c in competitors] == ["Globex", "Initech"]
    assert all(c.source == "llmo" for c in competitors)


def test_format_competitors_for_prompt():
    text = format_competitors_for_prompt([
        Competitor(name="Globex", why_competitor="Same buyers"),
        {"name": "Initech"},
        "Umbrella",
    ])
    assert text == "- Globex: Same buyers\n- Initech\n- Umbrella"


def test_format_competitors_caps_and_sentinel():
    text = format_competitors_for_prompt([f"Brand {i}" for i in range(12)])
    assert len(text.splitlines()) == 8
    assert format_competitors_for_prompt([]) == "No competitors identified"


@pytest.mark.asyncio
async def test_infer_competitors(scripted_llm, competitors_payload):
    llm = scripted_llm(competitors=competitors_payload)
    result = await CompetitorInferenceService(llm).infer_competitors(
        "Acme", industry="Power tools", wikipedia_summary="Acme makes drills.", country_code="DE",
    )

    assert result.source == "llm_inferred"
    assert [c.name for c in result.competitors] == ["Globex", "Initech"]
    assert result.competitors[0].aliases == ["Globex Tools"]
    assert result.market_context.startswith("A consolidated market")

    prompt = llm.prompts("competitors")[0]
    assert "Acme makes drills." in prompt
    assert "Market: DE" in prompt
    assert llm.calls[0]["temperature"] == 0.3


@pytest.mark.asyncio
async def test_infer_competitors_defaults_in_prompt(scripted_llm):
    llm = scripted_llm(competitors={"competitors": []})
    result = await CompetitorInferenceService(llm).infer_competitors("Acme")

    assert result.competitors == []
    assert result.source == "llm_inferred"
    prompt = llm.prompts("competitors")[0]
    assert "Market: Global" in prompt
    assert "Industry: General business" in prompt


@pytest.mark.asyncio
async def test_infer_competitors_retries_non_list(scripted_llm, competitors_payload):
    llm = scripted_llm(competitors=[{"competitors": "Globex"}, competitors_payload])
    result = await CompetitorInferenceService(llm).infer_competitors("Acme")

    assert llm.count("competitors") == 2
    assert len(result.competitors) == 2


@pytest.mark.asyncio
async def test_infer_competitors_fallback_empty(scripted_llm):
    llm = scripted_llm(competitors="not json")
    result = await CompetitorInferenceService(llm).infer_competitors("Acme", industry="Power tools")

    assert llm.count("competitors") == 3
    assert result.competitors == []
    assert result.source == "fallback_empty"
    assert result.market_context == "Could not infer competitors for Acme in Power tools"
