"""Provider registry: maps a model selector to its capabilities and backend."""

import logging
from typing import Dict, List, Optional, Tuple

from tryon.providers.base import (
    AnalysisOnlyProvider,
    GenerationProvider,
    ModelCategory,
    ModelConfig,
)

logger = logging.getLogger(__name__)

DEFAULT_AI_MODEL = "gemini-2.5-flash-image-preview"

# Canonical generation-capable family.
GENERATION_FAMILY = "gemini"

# (family, match kind, token, provider display name). Order matters: the
# first match wins.
_FAMILY_RULES: List[Tuple[str, str, str, str]] = [
    ("gemini", "prefix", "gemini", "Gemini"),
    ("groq", "contains", "llama", "Groq"),
    ("openai", "contains", "gpt", "OpenAI"),
    ("qwen", "contains", "qwen", "Qwen"),
    ("deepseek", "contains", "deepseek", "DeepSeek"),
    ("moondream", "contains", "moondream", "MoonDream"),
    ("clip", "contains", "clip", "CLIP"),
]

MODEL_CATALOG: Dict[str, ModelConfig] = {
    c.model: c
    for c in [
        ModelConfig(
            model="gemini-2.5-flash-image-preview",
            family="gemini",
            display_name="Gemini 2.5 Flash Image Preview",
            can_generate_images=True,
            category=ModelCategory.RECOMMENDED,
            description="Best balance of quality and cost; tuned for consistent image edits.",
            rate_limit="500 req/day",
        ),
        ModelConfig(
            model="gemini-2.0-flash-exp",
            family="gemini",
            display_name="Gemini 2.0 Flash (Experimental)",
            can_generate_images=True,
            category=ModelCategory.EXPERIMENTAL,
            description="Experimental model with advanced features; results may vary.",
            rate_limit="100-500 req/day",
        ),
        ModelConfig(
            model="gemini-1.5-pro-vision",
            family="gemini",
            display_name="Gemini 1.5 Pro Vision",
            can_generate_images=True,
            category=ModelCategory.RECOMMENDED,
            description="High quality image processing.",
            rate_limit="50 req/day",
        ),
        ModelConfig(
            model="gemini-1.5-flash-vision",
            family="gemini",
            display_name="Gemini 1.5 Flash Vision",
            can_generate_images=True,
            category=ModelCategory.RECOMMENDED,
            description="Fast, efficient image processing.",
            rate_limit="1500 req/day",
        ),
        ModelConfig(
            model="llama-3.2-90b-vision-preview",
            family="groq",
            display_name="Llama 3.2 90B Vision (Groq)",
            can_generate_images=False,
            category=ModelCategory.ANALYSIS_ONLY,
            description="Image analysis only; does not generate images.",
            rate_limit="14400 req/day",
        ),
        ModelConfig(
            model="gpt-4o-mini-vision",
            family="openai",
            display_name="GPT-4o Mini Vision",
            can_generate_images=False,
            category=ModelCategory.ANALYSIS_ONLY,
            description="OpenAI vision model; image generation not wired up.",
            free_tier=False,
            rate_limit="Depends on plan",
        ),
        ModelConfig(
            model="qwen-vl-plus",
            family="qwen",
            display_name="Qwen VL Plus",
            can_generate_images=False,
            category=ModelCategory.ANALYSIS_ONLY,
            description="Visual analysis model.",
            rate_limit="Limited",
        ),
        ModelConfig(
            model="deepseek-vl",
            family="deepseek",
            display_name="DeepSeek VL",
            can_generate_images=False,
            category=ModelCategory.ANALYSIS_ONLY,
            description="Visual analysis with good accuracy.",
            rate_limit="Limited",
        ),
        ModelConfig(
            model="moondream-2",
            family="moondream",
            display_name="Moondream 2",
            can_generate_images=False,
            category=ModelCategory.ANALYSIS_ONLY,
            description="Lightweight image analysis.",
            rate_limit="Unlimited",
        ),
        ModelConfig(
            model="clip-interrogator",
            family="clip",
            display_name="CLIP Interrogator",
            can_generate_images=False,
            category=ModelCategory.ANALYSIS_ONLY,
            description="Image captioning and analysis.",
            rate_limit="Unlimited",
        ),
    ]
}


def family_for(selector: Optional[str]) -> Optional[str]:
    """Backend family recognized in ``selector``, or None if unrecognized."""
    key = (selector or "").strip().lower()
    for family, kind, token, _ in _FAMILY_RULES:
        if kind == "prefix" and key.startswith(token):
            return family
        if kind == "contains" and token in key:
            return family
    return None


class ProviderRegistry:
    """Resolves model selectors to capability descriptors and backends.

    - Known selectors resolve to their catalog entry
    - Unknown selectors of a recognized family get a descriptor for that family
    - Unrecognized selectors fall back to the default generation model
    """

    def __init__(
        self,
        generation_provider: GenerationProvider,
        default_model: str = DEFAULT_AI_MODEL,
    ):
        self._default_model = default_model
        self._providers: Dict[str, GenerationProvider] = {
            GENERATION_FAMILY: generation_provider,
        }
        for family, _, _, display in _FAMILY_RULES:
            if family != GENERATION_FAMILY:
                self._providers[family] = AnalysisOnlyProvider(display, family)

    @property
    def default_model(self) -> str:
        return self._default_model

    def register(self, family: str, provider: GenerationProvider) -> None:
        self._providers[family] = provider

    def get_model_config(self, selector: Optional[str]) -> ModelConfig:
        if selector and selector in MODEL_CATALOG:
            return MODEL_CATALOG[selector]

        family = family_for(selector)
        if family is None:
            if selector:
                logger.warning(
                    "Unrecognized model selector %r, defaulting to %s",
                    selector, self._default_model,
                )
            return MODEL_CATALOG.get(self._default_model) or ModelConfig(
                model=self._default_model,
                family=GENERATION_FAMILY,
                display_name=self._default_model,
                can_generate_images=True,
                category=ModelCategory.RECOMMENDED,
            )

        can_generate = family == GENERATION_FAMILY
        return ModelConfig(
            model=selector,
            family=family,
            display_name=selector,
            can_generate_images=can_generate,
            category=ModelCategory.EXPERIMENTAL if can_generate else ModelCategory.ANALYSIS_ONLY,
        )

    def get_provider(self, selector: Optional[str]) -> GenerationProvider:
        family = self.get_model_config(selector).family
        return self._providers.get(family, self._providers[GENERATION_FAMILY])

    def list_models(self, category: Optional[str] = None) -> List[ModelConfig]:
        configs = list(MODEL_CATALOG.values())
        if category:
            configs = [c for c in configs if c.category.value == category]
        return configs
