"""Gemini image generation backend (google-genai SDK)."""

import logging
from typing import Optional

import httpx
from google import genai
from google.genai import errors, types

from tryon.jobs.errors import ProviderConfigurationError, ProviderTransportError
from tryon.processing.images import EncodedImage
from tryon.providers.base import GenerationProvider

logger = logging.getLogger(__name__)

_SAFETY_CATEGORIES = (
    types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
    types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
    types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
    types.HarmCategory.HARM_CATEGORY_HARASSMENT,
)


class GeminiProvider(GenerationProvider):
    name = "Gemini"
    family = "gemini"

    def __init__(self, api_key: Optional[str] = None, client: Optional[genai.Client] = None):
        self._api_key = api_key
        self._client = client

    def _get_client(self) -> genai.Client:
        # Created on first use so a missing key only fails jobs that need Gemini
        if self._client is None:
            if not self._api_key:
                raise ProviderConfigurationError("GEMINI_API_KEY is not configured")
            self._client = genai.Client(api_key=self._api_key)
        return self._client

    async def generate_image(
        self,
        subject_image: EncodedImage,
        garment_image: EncodedImage,
        prompt: str,
        model: str,
    ) -> Optional[EncodedImage]:
        client = self._get_client()
        logger.info("Calling Gemini model %s", model)

        config = types.GenerateContentConfig(
            temperature=0.6,
            top_k=32,
            top_p=0.8,
            response_modalities=["IMAGE", "TEXT"],
            safety_settings=[
                types.SafetySetting(
                    category=category,
                    threshold=types.HarmBlockThreshold.BLOCK_ONLY_HIGH,
                )
                for category in _SAFETY_CATEGORIES
            ],
        )
        contents = [
            types.Part.from_bytes(data=subject_image.data, mime_type=subject_image.mime_type),
            types.Part.from_bytes(data=garment_image.data, mime_type=garment_image.mime_type),
            prompt,
        ]

        try:
            response = await client.aio.models.generate_content(
                model=model,
                contents=contents,
                config=config,
            )
        except errors.APIError as exc:
            raise ProviderTransportError(self.name, f"{exc.code} {exc.message}") from exc
        except httpx.HTTPError as exc:
            raise ProviderTransportError(self.name, f"{type(exc).__name__}: {exc}") from exc

        for candidate in response.candidates or []:
            if candidate.content is None:
                continue
            for part in candidate.content.parts or []:
                if part.inline_data is not None and part.inline_data.data:
                    return EncodedImage(
                        data=part.inline_data.data,
                        mime_type=part.inline_data.mime_type or "image/png",
                    )

        logger.warning("Gemini returned no inline image for model %s", model)
        return None
