"""
Prompt enhancement shared by every image backend.

Turns a structured GenerationRequest into a single natural-language prompt.
Pure and deterministic: the same request always yields the same string.
"""

from typing import Optional

from socialpulse_media.models import AspectRatio, CameraAngle, GenerationRequest, ImageStyle


PRODUCT_WITH_PRESENTER_INSTRUCTION = (
    "Create a professional product advertisement featuring the provided product with the presenter/model"
)
PRODUCT_INSTRUCTION = "Create a professional product advertisement featuring the provided product"
PRESENTER_INSTRUCTION = "Create content featuring the provided presenter/model"

STYLE_PHRASES = {
    ImageStyle.DIGITAL_ART.value: "digital art style",
    ImageStyle.ANIME.value: "anime/manga art style",
    ImageStyle.WATERCOLOR.value: "watercolor painting style",
    ImageStyle.OIL_PAINTING.value: "oil painting style",
    ImageStyle.RENDER_3D.value: "3D rendered style",
    ImageStyle.MINIMALIST.value: "minimalist clean design",
    ImageStyle.VINTAGE.value: "vintage retro style",
    ImageStyle.NEON.value: "neon cyberpunk style with glowing lights",
}

CAMERA_ANGLE_PHRASES = {
    CameraAngle.HIGH_ANGLE.value: "shot from high angle looking down",
    CameraAngle.LOW_ANGLE.value: "shot from low angle looking up, dramatic",
    CameraAngle.BIRDS_EYE.value: "bird's eye view, top-down perspective",
    CameraAngle.DUTCH_ANGLE.value: "dutch angle, tilted camera",
    CameraAngle.CLOSE_UP.value: "extreme close-up shot",
    CameraAngle.WIDE_SHOT.value: "wide establishing shot",
}

ASPECT_RATIO_PHRASES = {
    AspectRatio.SQUARE.value: "square composition",
    AspectRatio.PORTRAIT_4_5.value: "vertical portrait composition",
    AspectRatio.STORY.value: "tall vertical composition for mobile",
    AspectRatio.WIDESCREEN.value: "wide cinematic composition",
    AspectRatio.PORTRAIT_3_4.value: "portrait composition",
    AspectRatio.LANDSCAPE_4_3.value: "landscape composition",
}


def _text(value) -> Optional[str]:
    """Enum members and raw strings both reduce to their text value."""
    if value is None:
        return None
    return getattr(value, "value", value)


def reference_instruction(request: GenerationRequest) -> Optional[str]:
    """Lead instruction describing how the reference images should be used."""
    if request.product_image and request.presenter_image:
        return PRODUCT_WITH_PRESENTER_INSTRUCTION
    if request.product_image:
        return PRODUCT_INSTRUCTION
    if request.presenter_image:
        return PRESENTER_INSTRUCTION
    return None


def style_phrase(style) -> Optional[str]:
    style = _text(style)
    if not style or style == ImageStyle.PHOTOREALISTIC.value:
        return None
    return STYLE_PHRASES.get(style, style)


def camera_angle_phrase(angle) -> Optional[str]:
    angle = _text(angle)
    if not angle or angle == CameraAngle.EYE_LEVEL.value:
        return None
    return CAMERA_ANGLE_PHRASES.get(angle, angle)


def aspect_ratio_phrase(ratio) -> Optional[str]:
    ratio = _text(ratio)
    if not ratio:
        return None
    return ASPECT_RATIO_PHRASES.get(ratio)


def enhance_prompt(request: GenerationRequest) -> str:
    """
    Enhance a generation prompt with reference, style, angle and ratio phrases.

    Args:
        request: The structured generation request

    Returns:
        The reference instruction (if any), then the base prompt, then the
        style, camera angle and aspect ratio phrases, comma separated.
    """
    parts = [reference_instruction(request), request.prompt]
    parts.append(style_phrase(request.style))
    parts.append(camera_angle_phrase(request.camera_angle))
    parts.append(aspect_ratio_phrase(request.aspect_ratio))
    return ", ".join(p for p in parts if p)
