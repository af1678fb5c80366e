"""
Gemini image generator for SocialPulse Media.

Synchronous backend: the generated image comes back inline in the
generateContent response. Reference images are sent inline as base64 parts.
"""

import base64
import logging

from socialpulse_media.errors import EmptyResultError, ProviderError
from socialpulse_media.models import EmbeddedImage, GenerationRequest, GenerationResult

from . import ImageGenerator

logger = logging.getLogger(__name__)


GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta"


class GeminiGenerator(ImageGenerator):
    """
    Google Gemini image generator.

    Uses Gemini's native image output through the generateContent endpoint.
    """

    provider_id = "gemini"
    display_name = "Google Gemini"
    available_models = (
        "gemini-2.0-flash-preview-image-generation",
        "gemini-2.5-flash-image",
        "gemini-3-pro-image-preview",
    )
    env_prefix = "GEMINI"
    default_base_url = GEMINI_API_URL

    def build_payload(self, request: GenerationRequest) -> dict:
        enhanced_prompt = self.enhance_prompt(request)
        logger.debug(f"[gemini] Enhanced prompt: {enhanced_prompt}")

        parts = [{"text": enhanced_prompt}]
        for image in request.reference_images:
            parts.append({
                "inlineData": {
                    "mimeType": image.mime_type,
                    "data": image.to_base64(),
                }
            })

        return {
            "contents": [{"parts": parts}],
            "generationConfig": {
                "responseModalities": ["TEXT", "IMAGE"],
            },
        }

    def _generate(self, request: GenerationRequest, model: str) -> GenerationResult:
        logger.info(f"[gemini] Generating image with model: {model}")

        response = self._client.post(
            f"{self.base_url}/models/{model}:generateContent",
            params={"key": self.settings.api_key},
            json=self.build_payload(request),
            headers={"Content-Type": "application/json"},
        )

        if not response.is_success:
            raise ProviderError(f"Gemini API error {response.status_code}: {self._error_message(response)}")

        try:
            data = response.json()
        except ValueError:
            raise ProviderError("Gemini API returned invalid JSON")

        # Response format: candidates[0].content.parts[].inlineData.data
        for candidate in data.get("candidates") or []:
            content = candidate.get("content") or {}
            for part in content.get("parts") or []:
                inline_data = part.get("inlineData") or {}
                if inline_data.get("mimeType", "").startswith("image/") and inline_data.get("data"):
                    return GenerationResult.ok(
                        image=EmbeddedImage(
                            data=base64.b64decode(inline_data["data"]),
                            mime_type=inline_data["mimeType"],
                        ),
                        provider=self.provider_id,
                        model=model,
                    )

        # Check for error
        if data.get("error"):
            error = data["error"]
            message = error.get("message", "Unknown error") if isinstance(error, dict) else str(error)
            raise ProviderError(f"Gemini API error: {message}")

        # Check for blocked content
        candidates = data.get("candidates") or []
        if candidates and candidates[0].get("finishReason") == "SAFETY":
            raise ProviderError("Image generation blocked by safety filters")

        raise EmptyResultError("No image generated from Gemini")
