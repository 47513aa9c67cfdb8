"""Provider interface and model catalog types."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from tryon.jobs.errors import CapabilityError
from tryon.processing.images import EncodedImage


class ModelCategory(str, Enum):
    RECOMMENDED = "recommended"
    EXPERIMENTAL = "experimental"
    ANALYSIS_ONLY = "analysis-only"


@dataclass(frozen=True)
class ModelConfig:
    """Capability descriptor for one selectable AI model."""
    model: str
    family: str
    display_name: str
    can_generate_images: bool
    category: ModelCategory
    description: str = ""
    free_tier: bool = True
    rate_limit: str = ""


class GenerationProvider(ABC):
    """A backend able to composite a garment onto a person.

    Subclasses implement ``generate_image``. It returns the generated image,
    or None when the backend answered without one; transport failures are
    raised as ProviderTransportError.
    """

    name: str = "provider"
    family: str = ""

    @abstractmethod
    async def generate_image(
        self,
        subject_image: EncodedImage,
        garment_image: EncodedImage,
        prompt: str,
        model: str,
    ) -> Optional[EncodedImage]:
        ...


class AnalysisOnlyProvider(GenerationProvider):
    """Families that can describe images but not produce them."""

    def __init__(self, name: str, family: str, display_name: Optional[str] = None):
        self.name = name
        self.family = family
        self._display_name = display_name or name

    async def generate_image(self, subject_image, garment_image, prompt, model):
        raise CapabilityError(model, self._display_name)
