import pytest

from brand_profile.inference.regional_context import (
    COUNTRY_LANGUAGES,
    CURRENCY_BY_COUNTRY,
    RegionalContextService,
    context_from_model_output,
    create_fallback_context,
    format_terminology_for_prompt,
    get_default_currency,
    get_default_languages,
    normalize_business_model,
)
from brand_profile.models.schemas import BusinessModel
from brand_profile.utils.retry import TransientInferenceFailure


# =============================================================================
# Static tables and helpers
# =============================================================================

def test_tables_are_read_only():
    with pytest.raises(TypeError):
        COUNTRY_LANGUAGES["XX"] = ("xx-XX",)
    with pytest.raises(TypeError):
        CURRENCY_BY_COUNTRY["XX"] = "XXX"


def test_default_languages_and_currency():
    assert get_default_languages("CH") == ["de-CH", "fr-CH", "it-CH"]
    assert get_default_languages("ZZ") == ["en-US"]
    assert get_default_currency("GB") == "GBP"
    assert get_default_currency("DE") == "EUR"
    assert get_default_currency("ZZ") == "EUR"


@pytest.mark.parametrize("raw,expected", [
    ("B2B", "B2B"),
    ("b2c", "B2C"),
    ("B2B & B2C", "B2B & B2C"),
    ("Mostly b2c with some B2B", "B2B & B2C"),
    ("D2C", "B2C"),
    (None, "B2C"),
    (BusinessModel.B2B, "B2B"),
])
def test_normalize_business_model(raw, expected):
    assert normalize_business_model(raw) == expected


def test_create_fallback_context():
    context = create_fallback_context("ch")
    assert context.languages == ["de-CH", "fr-CH", "it-CH"]
    assert context.primary_language == "de-CH"
    assert context.currency == "CHF"
    assert context.business_model == "B2C"
    assert context.key_terminology == {}

    assert create_fallback_context(None).currency == "USD"


def test_format_terminology_for_prompt():
    text = format_terminology_for_prompt(
        {"de-DE": ["Akkuschrauber", "Bohrhammer"], "fr-CH": []},
        "EU Machinery Directive",
    )
    assert text == (
        "Regulatory Context: EU Machinery Directive\n"
        "\n"
        "Industry Terminology (use these exact terms):\n"
        "  [de-DE]: Akkuschrauber, Bohrhammer"
    )


def test_format_terminology_caps_terms_per_language():
    terms = [f"term{i}" for i in range(20)]
    text = format_terminology_for_prompt({"en-US": terms})
    assert "term14" in text
    assert "term15" not in text


def test_format_terminology_empty_sentinel():
    assert format_terminology_for_prompt({}, "") == "No specific regional terminology available."
    assert format_terminology_for_prompt(None) == "No specific regional terminology available."


def test_context_from_model_output_repairs_fields():
    context = context_from_model_output(
        {"languages": [], "currency": "euros", "key_terminology": {"de-DE": ["Bohrer", None]}, "business_model": "b2b"},
        "CH",
    )
    assert context.languages == ["de-CH", "fr-CH", "it-CH"]
    assert context.primary_language == "de-CH"
    assert context.currency == "CHF"
    assert context.key_terminology == {"de-DE": ["Bohrer"]}
    assert context.business_model == "B2B"


# =============================================================================
# Service
# =============================================================================

@pytest.mark.asyncio
async def test_infer_region_from_url(scripted_llm, region_payload):
    llm = scripted_llm(region=region_payload)
    region = await RegionalContextService(llm).infer_region_from_url("https://acme.de")

    assert region.country_code == "DE"
    assert region.confidence == "high"
    assert region.detection_method == "tld"
    assert llm.calls[0]["temperature"] == 0.1
    assert "https://acme.de" in llm.calls[0]["prompt"]


@pytest.mark.asyncio
async def test_infer_region_invalid_code_falls_back_to_us(scripted_llm):
    llm = scripted_llm(region={"country_code": "Germany"})
    region = await RegionalContextService(llm).infer_region_from_url("https://acme.de")

    assert region.country_code == "US"
    assert region.confidence == "medium"
    assert region.detection_method == "unknown"


@pytest.mark.asyncio
async def test_infer_region_failure_is_single_attempt(scripted_llm):
    llm = scripted_llm(region="this is not json")
    region = await RegionalContextService(llm).infer_region_from_url("https://acme.de")

    assert region.country_code == "US"
    assert region.confidence == "low"
    assert region.detection_method == "fallback"
    assert region.reasoning.startswith("Could not analyze URL, defaulting to US: ")
    assert llm.count("region") == 1


@pytest.mark.asyncio
async def test_infer_regional_context(scripted_llm, regional_payload):
    llm = scripted_llm(regional=regional_payload)
    context = await RegionalContextService(llm).infer_regional_context(
        "de", industry="Power tools", brand_name="Acme", target_audience="Trades",
    )

    assert context.languages == ["de-DE"]
    assert context.currency == "EUR"
    assert context.business_model == "B2B & B2C"
    assert context.key_terminology == {"de-DE": ["Akkuschrauber", "Bohrhammer"]}

    prompt = llm.calls[0]["prompt"]
    assert "Market (ISO country code): DE" in prompt
    assert "Brand: Acme" in prompt
    assert llm.calls[0]["temperature"] == 0.3


@pytest.mark.asyncio
async def test_infer_regional_context_retries_then_succeeds(scripted_llm, regional_payload):
    llm = scripted_llm(regional=["{broken", TransientInferenceFailure("flaky"), regional_payload])
    context = await RegionalContextService(llm).infer_regional_context("DE")

    assert context.primary_language == "de-DE"
    assert llm.count("regional") == 3


@pytest.mark.asyncio
async def test_infer_regional_context_fallback_after_three_attempts(scripted_llm):
    llm = scripted_llm(regional="{broken")
    context = await RegionalContextService(llm).infer_regional_context("JP", industry=None)

    assert llm.count("regional") == 3
    assert context.languages == ["ja-JP"]
    assert context.currency == "JPY"
    assert context.business_model == "B2C"
    assert "Industry: General business" in llm.prompts("regional")[0]
