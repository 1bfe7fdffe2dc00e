import pytest

from brand_profile.extractors import prompts as extractor_prompts
from brand_profile.inference import prompts as inference_prompts
from brand_profile.utils.formatters import render_template


def test_inference_registry_names():
    assert set(inference_prompts.PROMPT_REGISTRY) == {
        "brand-profile/system",
        "brand-profile/region-from-url",
        "brand-profile/regional-inference",
        "brand-profile/competitor-inference",
        "brand-profile/persona-inference",
    }


def test_extractor_registry_names():
    assert set(extractor_prompts.PROMPT_REGISTRY) == {
        "brand-profile/product-sitemap",
        "brand-profile/product-wikipedia",
    }


@pytest.mark.parametrize("module", [inference_prompts, extractor_prompts])
def test_registry_entries_are_consistent(module):
    for name, prompt in module.PROMPT_REGISTRY.items():
        assert prompt["config"].name == name
        assert prompt["user_template"]
        assert 0.0 <= prompt["config"].recommended_temperature <= 1.0


def test_get_prompt_unknown_name():
    with pytest.raises(KeyError, match="not found"):
        inference_prompts.get_prompt("brand-profile/unknown")
    with pytest.raises(KeyError):
        extractor_prompts.get_prompt("brand-profile/system")


def test_base_profile_prompt_renders_inputs():
    prompt = inference_prompts.get_prompt("brand-profile/system")
    assert prompt["system"]

    text = render_template(prompt["user_template"], {"baseURL": "https://acme.de", "params": '{"enhance": true}'})
    assert "Website: https://acme.de" in text
    assert '{"enhance": true}' in text
    assert "{{" not in text
