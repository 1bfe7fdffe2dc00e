"""
Prompt templates for the base profile and the inference stages.

Templates use ``{{ name }}`` placeholders and are filled with
``render_template``. Each template asks for a single JSON object whose keys
match what the corresponding stage parses.

Prompt Categories:
    1. Base Profile - Brand voice and competitive positioning from a site address
    2. Region From URL - Primary market of a website
    3. Regional Inference - Languages, currency and terminology of a market
    4. Competitor Inference - Direct competitors in a market
    5. Persona Inference - Customer personas and their unbranded searches
"""

from dataclasses import dataclass


# =============================================================================
# Prompt Configuration
# =============================================================================

@dataclass(frozen=True)
class PromptConfig:
    """Configuration for a prompt template."""
    name: str
    description: str
    recommended_temperature: float

    def __repr__(self) -> str:
        return f"PromptConfig({self.name}, temp={self.recommended_temperature})"


# =============================================================================
# PROMPT 1: Base Profile
# =============================================================================

BASE_PROFILE_CONFIG = PromptConfig(
    name="brand-profile/system",
    description="Generate the brand voice profile for a website",
    recommended_temperature=0.7,
)

BASE_PROFILE_SYSTEM = """You are a senior brand strategist. Given a company website, you describe how the brand communicates and where it competes.

<guidelines>
1. Base every statement on what the brand is publicly known for. Do not invent product names.
2. Keep descriptions short and concrete.
3. Use null for anything you cannot determine.
</guidelines>

<output_format>
Return a JSON object with exactly two top-level keys:
{
  "main_profile": {
    "brand_name": "Official brand name",
    "industry": "Industry or category",
    "target_audience": "Who the brand speaks to",
    "tone_attributes": ["3-5 adjectives"],
    "communication_style": "How the brand writes",
    "brand_values": ["Core values"],
    "language_guidelines": {"preferred_terms": [], "avoid_terms": []}
  },
  "competitive_context": {
    "brand_name": "Official brand name",
    "industry": "Industry or category",
    "positioning": "One-sentence market position",
    "differentiators": ["What sets the brand apart"]
  }
}
</output_format>"""

BASE_PROFILE_USER = """Build the brand profile for this website.

Website: {{ baseURL }}
Request parameters (JSON): {{ params }}"""


# =============================================================================
# PROMPT 2: Region From URL
# =============================================================================

REGION_FROM_URL_CONFIG = PromptConfig(
    name="brand-profile/region-from-url",
    description="Detect the primary market of a website from its address",
    recommended_temperature=0.1,
)

REGION_FROM_URL_TEMPLATE = """Determine the primary country market served by this website.

URL: {{ url }}

Consider, in order: country-code top-level domains (.de, .co.uk, .fr), country or language path segments (/en-gb/, /de/), subdomains (uk.example.com), and finally what the brand is publicly known for. Generic domains (.com, .net, .io) without other signals usually mean the brand's home market.

Return a JSON object:
{
  "country_code": "ISO 3166-1 alpha-2 code, e.g. US, GB, DE",
  "confidence": "low | medium | high",
  "detection_method": "tld | path | subdomain | brand_knowledge",
  "reasoning": "One sentence"
}"""


# =============================================================================
# PROMPT 3: Regional Inference
# =============================================================================

REGIONAL_INFERENCE_CONFIG = PromptConfig(
    name="brand-profile/regional-inference",
    description="Infer languages, currency, regulation and terminology for a market",
    recommended_temperature=0.3,
)

REGIONAL_INFERENCE_TEMPLATE = """You are a market localisation expert.

Brand: {{ brand_name }}
Industry: {{ industry }}
Target audience: {{ target_audience }}
Market (ISO country code): {{ country_code }}

Describe how this brand should communicate in this market.

Return a JSON object:
{
  "languages": ["BCP 47 locale codes spoken by customers, most important first, e.g. de-CH"],
  "primary_language": "The most important locale code",
  "regulatory_context": "Regulation that shapes marketing claims in this industry and market, or empty",
  "key_terminology": {"<locale>": ["Industry terms customers actually search for, in that language"]},
  "market_specifics": "Notable buying habits or market structure",
  "currency": "ISO 4217 code",
  "business_model": "B2B | B2C | B2B & B2C"
}"""


# =============================================================================
# PROMPT 4: Competitor Inference
# =============================================================================

COMPETITOR_INFERENCE_CONFIG = PromptConfig(
    name="brand-profile/competitor-inference",
    description="Infer the direct competitors of a brand",
    recommended_temperature=0.3,
)

COMPETITOR_INFERENCE_TEMPLATE = """Identify the direct competitors of a brand.

Brand: {{ brand_name }}
Industry: {{ industry }}
Market: {{ country_code }}

Company overview:
{{ wikipedia_summary }}

<guidelines>
- List 5 to 10 brands that customers actually compare against {{ brand_name }} in this market.
- Prefer brands over parent holding companies.
- Do not list {{ brand_name }} itself or its own sub-brands.
</guidelines>

Return a JSON object:
{
  "competitors": [
    {
      "name": "Competitor brand name",
      "aliases": ["Other names customers use"],
      "urls": ["https://competitor.example"],
      "why_competitor": "One sentence"
    }
  ],
  "market_context": "Two sentences on how this market is structured"
}"""


# =============================================================================
# PROMPT 5: Persona Inference
# =============================================================================

PERSONA_INFERENCE_CONFIG = PromptConfig(
    name="brand-profile/persona-inference",
    description="Infer customer personas and their unbranded search angles",
    recommended_temperature=0.3,
)

PERSONA_INFERENCE_TEMPLATE = """Describe the customers who research products like those of {{ brand_name }}.

Brand: {{ brand_name }}
Industry: {{ industry }}
Target audience: {{ target_audience }}
Market: {{ country_code }}

Competitors customers also consider:
{{ competitors }}

Return 3 to 5 distinct personas as a JSON object:
{
  "personas": [
    {
      "name": "Short persona label",
      "role": "Who they are",
      "needs": "What they are trying to achieve",
      "unbranded_angle": "Comma-separated examples of questions they ask without naming any brand"
    }
  ]
}"""


# =============================================================================
# Prompt Registry
# =============================================================================

PROMPT_REGISTRY = {
    "brand-profile/system": {
        "config": BASE_PROFILE_CONFIG,
        "system": BASE_PROFILE_SYSTEM,
        "user_template": BASE_PROFILE_USER,
    },
    "brand-profile/region-from-url": {
        "config": REGION_FROM_URL_CONFIG,
        "system": None,
        "user_template": REGION_FROM_URL_TEMPLATE,
    },
    "brand-profile/regional-inference": {
        "config": REGIONAL_INFERENCE_CONFIG,
        "system": None,
        "user_template": REGIONAL_INFERENCE_TEMPLATE,
    },
    "brand-profile/competitor-inference": {
        "config": COMPETITOR_INFERENCE_CONFIG,
        "system": None,
        "user_template": COMPETITOR_INFERENCE_TEMPLATE,
    },
    "brand-profile/persona-inference": {
        "config": PERSONA_INFERENCE_CONFIG,
        "system": None,
        "user_template": PERSONA_INFERENCE_TEMPLATE,
    },
}


def get_prompt(prompt_name: str) -> dict:
    """
    Get a prompt by logical name.

    Args:
        prompt_name: Registry key, e.g. ``"brand-profile/persona-inference"``

    Returns:
        Dict with config, system and user_template

    Raises:
        KeyError: If prompt name not found
    """
    if prompt_name not in PROMPT_REGISTRY:
        available = ", ".join(PROMPT_REGISTRY.keys())
        raise KeyError(f"Prompt '{prompt_name}' not found. Available: {available}")
    return PROMPT_REGISTRY[prompt_name]


__all__ = [
    "PromptConfig",
    "BASE_PROFILE_CONFIG",
    "BASE_PROFILE_SYSTEM",
    "BASE_PROFILE_USER",
    "REGION_FROM_URL_CONFIG",
    "REGION_FROM_URL_TEMPLATE",
    "REGIONAL_INFERENCE_CONFIG",
    "REGIONAL_INFERENCE_TEMPLATE",
    "COMPETITOR_INFERENCE_CONFIG",
    "COMPETITOR_INFERENCE_TEMPLATE",
    "PERSONA_INFERENCE_CONFIG",
    "PERSONA_INFERENCE_TEMPLATE",
    "PROMPT_REGISTRY",
    "get_prompt",
]
