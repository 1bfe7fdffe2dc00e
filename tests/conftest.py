import json
from unittest.mock import MagicMock, patch

import pytest
from pydantic import SecretStr

from brand_profile.services.http_service import HttpResponse
from brand_profile.services.llm_service import ChatCompletion


class ScriptedLLM:
    """
    Completion client answering by prompt stage.

    A route value may be a dict (sent as JSON), a raw string, None (no
    content) or an exception instance (raised). A list is consumed in order
    and its last entry repeats.
    """

    MARKERS = {
        "base": "Build the brand profile for this website.",
        "region": "Determine the primary country market",
        "regional": "You are a market localisation expert.",
        "competitors": "Identify the direct competitors",
        "personas": "Describe the customers who research",
        "sitemap": "You are cataloguing the current offering",
        "wikipedia": "Extract the product catalogue of",
    }

    def __init__(self, **routes):
        self.routes = {
            stage: list(value) if isinstance(value, list) else [value]
            for stage, value in routes.items()
        }
        self.calls = []

    def _stage(self, prompt):
        for stage, marker in self.MARKERS.items():
            if marker in prompt:
                return stage
        raise AssertionError(f"Unrecognised prompt: {prompt[:80]}")

    async def complete(self, prompt, *, system_prompt=None, response_format="json_object", temperature=0.7):
        stage = self._stage(prompt)
        self.calls.append({
            "stage": stage,
            "prompt": prompt,
            "system_prompt": system_prompt,
            "temperature": temperature,
        })

        responses = self.routes.get(stage)
        if not responses:
            raise RuntimeError(f"No scripted response for {stage}")
        response = responses.pop(0) if len(responses) > 1 else responses[0]

        if isinstance(response, Exception):
            raise response
        if isinstance(response, (dict, list)):
            return ChatCompletion.from_text(json.dumps(response))
        return ChatCompletion.from_text(response)

    def count(self, stage):
        return sum(1 for call in self.calls if call["stage"] == stage)

    def prompts(self, stage):
        return [call["prompt"] for call in self.calls if call["stage"] == stage]


@pytest.fixture
def mock_settings():
    """Create mock settings for testing."""
    settings = MagicMock()
    settings.anthropic_api_key = SecretStr("sk-ant-api-mock-key")
    settings.app_env = "development"
    settings.log_level = "INFO"
    settings.log_json = False

    settings.claude_model = "claude-sonnet-4-20250514"
    settings.claude_max_tokens = 4000
    settings.base_profile_temperature = 0.7
    settings.max_requests_per_minute = 1000
    settings.llm_max_retries = 3
    settings.request_timeout_seconds = 30

    settings.http_user_agent = "BrandProfileBot/test"
    settings.wikipedia_api_url = "https://en.wikipedia.org/w/api.php"
    settings.wikidata_api_url = "https://www.wikidata.org/w/api.php"
    settings.wikidata_sparql_url = "https://query.wikidata.org/sparql"
    return settings


@pytest.fixture(autouse=True)
def patch_get_settings(mock_settings):
    """Globally patch get_settings where modules imported it directly."""
    targets = [
        "brand_profile.config.settings.get_settings",
        "brand_profile.services.llm_service.get_settings",
        "brand_profile.services.http_service.get_settings",
        "brand_profile.services.knowledge_service.get_settings",
        "brand_profile.extractors.product_extractor.get_settings",
        "brand_profile.pipeline.orchestrator.get_settings",
    ]
    patchers = [patch(target, return_value=mock_settings) for target in targets]
    for patcher in patchers:
        patcher.start()
    yield mock_settings
    for patcher in reversed(patchers):
        patcher.stop()


@pytest.fixture
def scripted_llm():
    """Factory for ScriptedLLM clients."""
    return ScriptedLLM


@pytest.fixture
def http_response():
    """Factory for HttpResponse objects; dict/list bodies are JSON encoded."""
    def _make(status_code=200, body="", url=""):
        text = json.dumps(body) if isinstance(body, (dict, list)) else body
        return HttpResponse(status_code=status_code, text=text, url=url)
    return _make


@pytest.fixture
def base_profile():
    return {
        "main_profile": {
            "brand_name": "Acme",
            "industry": "Power tools",
            "target_audience": "Professional tradespeople",
            "tone_attributes": ["direct", "practical"],
        },
        "competitive_context": {
            "brand_name": "Acme",
            "industry": "Cordless power tools",
        },
    }


@pytest.fixture
def region_payload():
    return {
        "country_code": "de",
        "confidence": "high",
        "detection_method": "tld",
        "reasoning": "The site uses the .de domain",
    }


@pytest.fixture
def regional_payload():
    return {
        "languages": ["de-DE"],
        "primary_language": "de-DE",
        "regulatory_context": "Product safety rules under the EU Machinery Directive",
        "key_terminology": {"de-DE": ["Akkuschrauber", "Bohrhammer"]},
        "market_specifics": "Strong specialist retail",
        "currency": "eur",
        "business_model": "b2b and b2c",
    }


@pytest.fixture
def competitors_payload():
    return {
        "competitors": [
            {"name": "Globex", "aliases": ["Globex Tools"], "urls": ["https://globex.example"], "why_competitor": "Same trade buyers"},
            {"name": "globex", "why_competitor": "Duplicate"},
            {"name": "Initech", "why_competitor": "Overlapping cordless range"},
            {"name": ""},
        ],
        "market_context": "A consolidated market led by a handful of brands.",
    }


@pytest.fixture
def personas_payload():
    return {
        "personas": [
            {"name": "Site Foreman", "role": "Runs crews", "needs": "Durable kit", "unbranded_angle": "most durable cordless drill"},
            {"name": "DIY Renovator", "role": "Homeowner", "needs": "Easy to use", "unbranded_angle": "best drill for beginners"},
        ],
    }
