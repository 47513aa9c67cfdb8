from unittest.mock import AsyncMock, MagicMock

import pytest

from tryon.jobs.errors import CapabilityError, ProviderConfigurationError
from tryon.processing.images import EncodedImage
from tryon.providers.base import ModelCategory
from tryon.providers.gemini import GeminiProvider
from tryon.providers.registry import DEFAULT_AI_MODEL, MODEL_CATALOG, family_for


def test_catalog_entry_is_returned_for_known_model(registry):
    config = registry.get_model_config("gemini-1.5-flash-vision")
    assert config.display_name == "Gemini 1.5 Flash Vision"
    assert config.can_generate_images


@pytest.mark.parametrize(
    "selector,family",
    [
        ("gemini-3.0-ultra", "gemini"),
        ("meta-llama-4-scout", "groq"),
        ("gpt-5-vision", "openai"),
        ("Qwen2-VL-7B", "qwen"),
        ("deepseek-vl2", "deepseek"),
        ("moondream-3", "moondream"),
        ("clip-vit-large", "clip"),
    ],
)
def test_family_detection(selector, family):
    assert family_for(selector) == family


def test_unknown_model_in_generation_family_can_generate(registry):
    config = registry.get_model_config("gemini-3.0-ultra")
    assert config.family == "gemini"
    assert config.can_generate_images
    assert config.category is ModelCategory.EXPERIMENTAL


def test_unknown_model_in_analysis_family_cannot_generate(registry):
    config = registry.get_model_config("llama-4-vision")
    assert config.family == "groq"
    assert not config.can_generate_images


def test_unrecognized_selector_falls_back_to_default(registry):
    assert registry.get_model_config("stable-diffusion-xl").model == DEFAULT_AI_MODEL
    assert registry.get_model_config(None).model == DEFAULT_AI_MODEL


def test_only_gemini_models_generate():
    generating = {c.model for c in MODEL_CATALOG.values() if c.can_generate_images}
    assert generating and all(m.startswith("gemini") for m in generating)


def test_list_models_filters_by_category(registry):
    analysis = registry.list_models("analysis-only")
    assert analysis
    assert all(not c.can_generate_images for c in analysis)
    assert len(registry.list_models()) == len(MODEL_CATALOG)


def test_generation_provider_for_gemini_selector(registry, provider):
    assert registry.get_provider("gemini-2.0-flash-exp") is provider


@pytest.mark.anyio
async def test_analysis_only_provider_raises_capability_error(registry):
    backend = registry.get_provider("moondream-2")
    image = EncodedImage(b"x")
    with pytest.raises(CapabilityError) as exc_info:
        await backend.generate_image(image, image, "prompt", "moondream-2")
    assert "generation-capable model" in str(exc_info.value)


@pytest.mark.anyio
async def test_gemini_without_key_is_a_configuration_error():
    image = EncodedImage(b"x")
    with pytest.raises(ProviderConfigurationError):
        await GeminiProvider(api_key=None).generate_image(image, image, "prompt", DEFAULT_AI_MODEL)


def _gemini_response(parts):
    content = MagicMock(parts=parts)
    return MagicMock(candidates=[MagicMock(content=content)])


@pytest.mark.anyio
async def test_gemini_returns_first_inline_image():
    text_part = MagicMock(inline_data=None)
    image_part = MagicMock()
    image_part.inline_data.data = b"\x89PNGdata"
    image_part.inline_data.mime_type = "image/png"
    client = MagicMock()
    client.aio.models.generate_content = AsyncMock(return_value=_gemini_response([text_part, image_part]))

    image = EncodedImage(b"\xff\xd8")
    result = await GeminiProvider(client=client).generate_image(image, image, "prompt", DEFAULT_AI_MODEL)

    assert result.data == b"\x89PNGdata"
    assert result.mime_type == "image/png"
    kwargs = client.aio.models.generate_content.call_args.kwargs
    assert kwargs["model"] == DEFAULT_AI_MODEL
    assert kwargs["contents"][-1] == "prompt"
    assert kwargs["config"].temperature == 0.6


@pytest.mark.anyio
async def test_gemini_without_image_part_returns_none():
    client = MagicMock()
    client.aio.models.generate_content = AsyncMock(
        return_value=_gemini_response([MagicMock(inline_data=None)])
    )
    image = EncodedImage(b"\xff\xd8")
    assert await GeminiProvider(client=client).generate_image(image, image, "p", DEFAULT_AI_MODEL) is None
