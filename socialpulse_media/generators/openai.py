"""
OpenAI Images generator for SocialPulse Media.

Synchronous backend: images come back inline as base64 in the same response.
"""

import base64
import logging

from socialpulse_media.errors import EmptyResultError, ProviderError
from socialpulse_media.models import AspectRatio, EmbeddedImage, GenerationRequest, GenerationResult

from . import ImageGenerator

logger = logging.getLogger(__name__)


OPENAI_API_URL = "https://api.openai.com/v1"

# dall-e-3 only renders three sizes
DALLE3_SIZES = {
    AspectRatio.SQUARE.value: "1024x1024",
    AspectRatio.PORTRAIT_4_5.value: "1024x1792",
    AspectRatio.STORY.value: "1024x1792",
    AspectRatio.PORTRAIT_3_4.value: "1024x1792",
    AspectRatio.WIDESCREEN.value: "1792x1024",
    AspectRatio.LANDSCAPE_4_3.value: "1792x1024",
}


class OpenAIGenerator(ImageGenerator):
    """OpenAI DALL-E image generator."""

    provider_id = "openai"
    display_name = "OpenAI"
    available_models = ("dall-e-3", "dall-e-2")
    env_prefix = "OPENAI"
    default_base_url = OPENAI_API_URL

    def build_payload(self, request: GenerationRequest, model: str) -> dict:
        ratio = getattr(request.aspect_ratio, "value", request.aspect_ratio) or AspectRatio.SQUARE.value
        size = DALLE3_SIZES.get(ratio, "1024x1024") if model == "dall-e-3" else "1024x1024"

        return {
            "model": model,
            "prompt": self.enhance_prompt(request),
            "n": 1,  # GenerationResult carries a single image
            "size": size,
            "response_format": "b64_json",
        }

    def _generate(self, request: GenerationRequest, model: str) -> GenerationResult:
        logger.info(f"[openai] Generating image with model: {model}")
        if request.reference_images:
            # The generations endpoint takes text only
            logger.info("[openai] Reference images are not sent to the images endpoint")

        response = self._client.post(
            f"{self.base_url}/images/generations",
            json=self.build_payload(request, model),
            headers={
                "Authorization": f"Bearer {self.settings.api_key}",
                "Content-Type": "application/json",
            },
        )

        if not response.is_success:
            raise ProviderError(f"OpenAI API error {response.status_code}: {self._error_message(response)}")

        try:
            data = response.json()
        except ValueError:
            raise ProviderError("OpenAI API returned invalid JSON")

        if data.get("error"):
            error = data["error"]
            message = error.get("message", "Unknown error") if isinstance(error, dict) else str(error)
            raise ProviderError(f"OpenAI API error: {message}")

        items = data.get("data") or []
        if not items:
            raise EmptyResultError("No images returned from OpenAI")

        first = items[0]
        image = None
        if first.get("b64_json"):
            image = EmbeddedImage(data=base64.b64decode(first["b64_json"]), mime_type="image/png")

        metadata = {"provider": self.provider_id, "model": model}
        if first.get("revised_prompt"):
            metadata["revised_prompt"] = first["revised_prompt"]
        urls = [item["url"] for item in items if item.get("url")]
        if urls:
            metadata["all_urls"] = urls

        return GenerationResult.ok(image=image, image_url=urls[0] if urls else None, **metadata)
