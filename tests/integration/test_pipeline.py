"""
End-to-end runs of the profile graph with scripted model answers.

Knowledge lookups are mocked; the real stage services and product
extractor run against them.
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from brand_profile.models.schemas import ExtractionMetadata, ExtractionResult, KnowledgeSummary, ProductCatalogEntry
from brand_profile.pipeline.orchestrator import BrandProfilePipeline, build_brand_profile
from brand_profile.services.llm_service import ChatCompletion
from brand_profile.utils.retry import InputError, ModelOutputError, PipelineError

BASE_URL = "https://acme.de"


@pytest.fixture
def knowledge():
    knowledge = MagicMock()
    knowledge.fetch_summary = AsyncMock(return_value=KnowledgeSummary(
        title="Acme", summary="Acme makes cordless drills.", page_id=1,
    ))
    knowledge.find_entity_id = AsyncMock(return_value=None)
    knowledge.fetch_full_text = AsyncMock(return_value=None)
    return knowledge


@pytest.fixture
def http():
    http = MagicMock()
    http.fetch = AsyncMock()
    return http


@pytest.fixture
def routes(base_profile, region_payload, regional_payload, competitors_payload, personas_payload):
    return {
        "base": base_profile,
        "region": region_payload,
        "regional": regional_payload,
        "competitors": competitors_payload,
        "personas": personas_payload,
        "wikipedia": {
            "products": [{"name": "Drill X", "category": "Drills"}],
            "services": ["Tool Rental"],
        },
    }


@pytest.fixture
def make_pipeline(mock_settings, knowledge, http):
    def _make(llm, **kwargs):
        kwargs.setdefault("knowledge", knowledge)
        return BrandProfilePipeline(settings=mock_settings, llm=llm, http=http, **kwargs)
    return _make


# =============================================================================
# Base profile only
# =============================================================================

@pytest.mark.asyncio
async def test_enhance_false_returns_base_profile(scripted_llm, make_pipeline, base_profile, knowledge):
    llm = scripted_llm(base=base_profile)

    document = await make_pipeline(llm).run(BASE_URL, {"enhance": False, "tone": "formal"})

    assert document == base_profile
    assert [call["stage"] for call in llm.calls] == ["base"]
    knowledge.fetch_summary.assert_not_called()

    call = llm.calls[0]
    assert call["temperature"] == 0.7
    assert call["system_prompt"]
    assert "Website: https://acme.de" in call["prompt"]
    assert '"tone": "formal"' in call["prompt"]


@pytest.mark.asyncio
async def test_run_context(scripted_llm, make_pipeline, base_profile):
    llm = scripted_llm(base=base_profile)

    document = await make_pipeline(llm).run_context({"baseURL": BASE_URL, "params": {"enhance": False}})

    assert document == base_profile


# =============================================================================
# Enriched runs
# =============================================================================

@pytest.mark.asyncio
async def test_enriched_run(scripted_llm, make_pipeline, routes, knowledge):
    llm = scripted_llm(**routes)

    document = await make_pipeline(llm).run(BASE_URL, {"enhance": True})

    assert list(document)[:2] == ["main_profile", "competitive_context"]
    assert document["main_profile"]["brand_name"] == "Acme"

    assert document["country_code"] == "DE"
    assert document["region_confidence"] == "high"
    assert document["region_detection_method"] == "tld"
    assert document["languages"] == ["de-DE"]
    assert document["primary_language"] == "de-DE"
    assert document["currency"] == "EUR"
    assert document["business_model"] == "B2B & B2C"
    assert document["key_terminology"] == {"de-DE": ["Akkuschrauber", "Bohrhammer"]}

    assert [c["name"] for c in document["competitors"]] == ["Globex", "Initech"]
    assert document["competitors_source"] == "llm_inferred"
    assert document["market_context"].startswith("A consolidated market")

    assert [p["name"] for p in document["personas"]] == ["Site Foreman", "DIY Renovator"]
    assert document["personas_source"] == "llm_inferred"

    assert [p["name"] for p in document["products"]["items"]] == ["Drill X"]
    assert [s["name"] for s in document["products"]["services"]] == ["Tool Rental"]
    assert document["products_metadata"]["source"] == "wikipedia_llm"
    assert document["products_metadata"]["count"] == 2

    assert [call["stage"] for call in llm.calls] == [
        "base", "region", "regional", "competitors", "personas", "wikipedia",
    ]
    knowledge.fetch_summary.assert_awaited_once_with("Acme company")
    knowledge.fetch_full_text.assert_not_called()

    assert "Brand: Acme" in llm.prompts("regional")[0]
    competitors_prompt = llm.prompts("competitors")[0]
    assert "Industry: Cordless power tools" in competitors_prompt
    assert "Acme makes cordless drills." in competitors_prompt
    assert "Market: DE" in competitors_prompt
    assert "- Globex" in llm.prompts("personas")[0]
    assert "Acme makes cordless drills." in llm.prompts("wikipedia")[0]


@pytest.mark.asyncio
async def test_enhance_defaults_to_true(scripted_llm, make_pipeline, routes):
    llm = scripted_llm(**routes)

    document = await make_pipeline(llm).run(BASE_URL)

    assert "country_code" in document
    assert llm.count("region") == 1


@pytest.mark.asyncio
async def test_caller_competitors_skip_inference(scripted_llm, make_pipeline, routes):
    llm = scripted_llm(**routes)

    document = await make_pipeline(llm).run(
        BASE_URL,
        {"competitors": ["Globex", {"name": "initech"}, {"name": "Globex"}]},
    )

    assert llm.count("competitors") == 0
    assert document["competitors_source"] == "llmo"
    assert document["market_context"] == ""
    assert [c["name"] for c in document["competitors"]] == ["Globex", "initech"]
    assert all(c["source"] == "llmo" for c in document["competitors"])
    assert "- initech" in llm.prompts("personas")[0]


@pytest.mark.asyncio
async def test_blank_caller_competitors_fall_back_to_inference(scripted_llm, make_pipeline, routes):
    llm = scripted_llm(**routes)

    document = await make_pipeline(llm).run(BASE_URL, {"competitors": ["", {"name": " "}]})

    assert llm.count("competitors") == 1
    assert document["competitors_source"] == "llm_inferred"


@pytest.mark.asyncio
async def test_sitemap_branch(scripted_llm, make_pipeline, routes):
    extractor = MagicMock()
    extractor.extract_from_sitemap = AsyncMock(return_value=ExtractionResult(
        products=[ProductCatalogEntry(name="Drill X")],
        metadata=ExtractionMetadata(source="sitemap", sitemap_url="https://acme.de/sitemap.xml", count=1),
    ))
    extractor.extract_products = AsyncMock()
    llm = scripted_llm(**routes)

    document = await make_pipeline(llm, product_extractor=extractor).run(
        BASE_URL, {"sitemapUrl": "https://acme.de/sitemap.xml"},
    )

    extractor.extract_from_sitemap.assert_awaited_once_with("https://acme.de/sitemap.xml", "Acme")
    extractor.extract_products.assert_not_called()
    assert document["products_metadata"]["source"] == "sitemap"
    assert document["products_metadata"]["sitemap_url"] == "https://acme.de/sitemap.xml"
    assert [p["name"] for p in document["products"]["items"]] == ["Drill X"]


@pytest.mark.asyncio
async def test_brand_name_falls_back_to_url(scripted_llm, make_pipeline, routes, knowledge):
    routes["base"] = {"main_profile": {"tone_attributes": ["calm"]}}
    llm = scripted_llm(**routes)

    await make_pipeline(llm).run("https://www.acme.de/de/")

    knowledge.fetch_summary.assert_awaited_once_with("Acme company")
    assert "Industry: General business" in llm.prompts("competitors")[0]


@pytest.mark.asyncio
async def test_brand_name_unknown(scripted_llm, make_pipeline, routes, knowledge):
    routes["base"] = {}
    llm = scripted_llm(**routes)

    await make_pipeline(llm).run("https://www.co.uk")

    knowledge.fetch_summary.assert_awaited_once_with("Unknown Brand company")


@pytest.mark.asyncio
async def test_two_letter_brand_from_url(scripted_llm, make_pipeline, routes, knowledge):
    routes["base"] = {}
    llm = scripted_llm(**routes)

    await make_pipeline(llm).run("https://www.hp.com")

    knowledge.fetch_summary.assert_awaited_once_with("Hp company")


@pytest.mark.asyncio
async def test_every_stage_degrades_to_fallback(scripted_llm, make_pipeline, base_profile, knowledge):
    knowledge.fetch_summary.return_value = None
    llm = scripted_llm(
        base=base_profile,
        region="garbage",
        regional="garbage",
        competitors="garbage",
        personas="garbage",
    )

    document = await make_pipeline(llm).run(BASE_URL)

    assert document["main_profile"] == base_profile["main_profile"]
    assert document["country_code"] == "US"
    assert document["region_confidence"] == "low"
    assert document["region_detection_method"] == "fallback"
    assert document["languages"] == ["en-US"]
    assert document["currency"] == "USD"
    assert document["business_model"] == "B2C"
    assert document["competitors"] == []
    assert document["competitors_source"] == "fallback_empty"
    assert [p["name"] for p in document["personas"]] == ["General Consumer"]
    assert document["personas_source"] == "fallback"
    assert document["products"]["items"] == []
    assert document["products_metadata"]["source"] == "none"

    assert llm.count("region") == 1
    assert llm.count("regional") == 3
    assert llm.count("competitors") == 3
    assert llm.count("personas") == 1
    assert llm.count("wikipedia") == 0


# =============================================================================
# Failures
# =============================================================================

@pytest.mark.asyncio
@pytest.mark.parametrize("base_url", [None, "", "not a url"])
async def test_invalid_base_url(scripted_llm, make_pipeline, base_url):
    llm = scripted_llm()

    with pytest.raises(InputError):
        await make_pipeline(llm).run(base_url)

    assert llm.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("params", [
    {"competitors": "Acme"},
    {"enhance": "sometimes"},
    ["x"],
    42,
])
async def test_invalid_params(scripted_llm, make_pipeline, params):
    llm = scripted_llm()

    with pytest.raises(InputError) as exc:
        await make_pipeline(llm).run(BASE_URL, params)

    assert exc.value.message == "brand-profile: invalid params"
    assert "error" in exc.value.details
    assert llm.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("content", ["not json", '["a", "b"]'])
async def test_unparseable_base_profile(scripted_llm, make_pipeline, content):
    llm = scripted_llm(base=content)

    with pytest.raises(ModelOutputError) as exc:
        await make_pipeline(llm).run(BASE_URL)

    assert exc.value.message == "brand-profile: invalid JSON returned by model"
    assert llm.count("region") == 0


@pytest.mark.asyncio
async def test_unexpected_error_becomes_pipeline_error(scripted_llm, make_pipeline, routes, knowledge):
    knowledge.fetch_summary.side_effect = RuntimeError("boom")
    llm = scripted_llm(**routes)

    with pytest.raises(PipelineError) as exc:
        await make_pipeline(llm).run(BASE_URL, run_id="run-42")

    assert "boom" in exc.value.message
    assert exc.value.details == {"run_id": "run-42", "base_url": BASE_URL}


# =============================================================================
# Lifecycle
# =============================================================================

@pytest.mark.asyncio
async def test_injected_clients_are_not_closed(scripted_llm, make_pipeline, http):
    llm = scripted_llm()
    llm.close = AsyncMock()
    http.disconnect = AsyncMock()

    async with make_pipeline(llm):
        pass

    llm.close.assert_not_called()
    http.disconnect.assert_not_called()


@pytest.mark.asyncio
async def test_owned_clients_are_closed(mock_settings):
    with patch("brand_profile.pipeline.orchestrator.ClaudeService") as claude_cls, \
            patch("brand_profile.pipeline.orchestrator.HttpFetcher") as http_cls:
        claude_cls.return_value.close = AsyncMock()
        http_cls.return_value.disconnect = AsyncMock()

        async with BrandProfilePipeline(settings=mock_settings):
            pass

    claude_cls.return_value.close.assert_awaited_once()
    http_cls.return_value.disconnect.assert_awaited_once()


@pytest.mark.asyncio
async def test_build_brand_profile(mock_settings, base_profile):
    claude = MagicMock()
    claude.complete = AsyncMock(return_value=ChatCompletion.from_text(json.dumps(base_profile)))
    claude.close = AsyncMock()

    with patch("brand_profile.pipeline.orchestrator.ClaudeService", return_value=claude), \
            patch("brand_profile.pipeline.orchestrator.HttpFetcher") as http_cls:
        http_cls.return_value.disconnect = AsyncMock()
        document = await build_brand_profile(BASE_URL, {"enhance": False}, settings=mock_settings)

    assert document == base_profile
    claude.close.assert_awaited_once()
