"""
Data models for SocialPulse Media.
"""

import base64
import mimetypes
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Union

from socialpulse_media.errors import GatewayError


DATA_URL_PATTERN = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.*)$", re.DOTALL)
DEFAULT_MIME_TYPE = "image/png"


class _ChoiceEnum(str, Enum):
    """String enum that parses user input leniently."""

    @classmethod
    def from_string(cls, value: str):
        normalized = value.strip().lower().replace("_", "-")
        for member in cls:
            if member.value == normalized:
                return member
        label = re.sub(r"(?<!^)(?=[A-Z])", " ", cls.__name__).lower()
        raise ValueError(f"Unknown {label}: {value}. Use one of: {', '.join(m.value for m in cls)}")


class AspectRatio(_ChoiceEnum):
    """Aspect ratios offered by the content studio."""

    SQUARE = "1:1"  # Instagram post
    PORTRAIT_4_5 = "4:5"  # Instagram feed
    STORY = "9:16"  # Stories/Reels
    WIDESCREEN = "16:9"  # YouTube/Web
    PORTRAIT_3_4 = "3:4"  # Pinterest
    LANDSCAPE_4_3 = "4:3"


class CameraAngle(_ChoiceEnum):
    """Camera angles. EYE_LEVEL is the natural default and adds nothing to prompts."""

    EYE_LEVEL = "eye-level"
    HIGH_ANGLE = "high-angle"
    LOW_ANGLE = "low-angle"
    BIRDS_EYE = "birds-eye"
    DUTCH_ANGLE = "dutch-angle"
    CLOSE_UP = "close-up"
    WIDE_SHOT = "wide-shot"


class ImageStyle(_ChoiceEnum):
    """Image styles. PHOTOREALISTIC is the default and adds nothing to prompts."""

    PHOTOREALISTIC = "photorealistic"
    DIGITAL_ART = "digital-art"
    ANIME = "anime"
    WATERCOLOR = "watercolor"
    OIL_PAINTING = "oil-painting"
    RENDER_3D = "3d-render"
    MINIMALIST = "minimalist"
    VINTAGE = "vintage"
    NEON = "neon"


@dataclass(frozen=True)
class ReferenceImage:
    """An input image that biases generation (product or presenter role)."""

    data: bytes
    mime_type: str = DEFAULT_MIME_TYPE

    @classmethod
    def from_data_url(cls, value: str) -> "ReferenceImage":
        """Parse a data URL. Bare base64 strings are accepted as PNG."""
        match = DATA_URL_PATTERN.match(value.strip())
        if match:
            return cls(data=base64.b64decode(match.group("data")), mime_type=match.group("mime"))
        return cls(data=base64.b64decode(value.strip()))

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ReferenceImage":
        path = Path(path)
        mime_type, _ = mimetypes.guess_type(path.name)
        return cls(data=path.read_bytes(), mime_type=mime_type or DEFAULT_MIME_TYPE)

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def __repr__(self) -> str:
        return f"ReferenceImage(mime_type={self.mime_type!r}, size={len(self.data)})"


@dataclass(frozen=True)
class GenerationRequest:
    """A structured image generation request from the content studio.

    Style, camera angle and aspect ratio accept enum members or raw strings;
    unmapped raw values pass through the prompt enhancer as text.
    """

    prompt: str
    aspect_ratio: Optional[str] = None
    camera_angle: Optional[str] = None
    style: Optional[str] = None
    model: Optional[str] = None
    image_count: int = 1
    product_image: Optional[ReferenceImage] = None
    presenter_image: Optional[ReferenceImage] = None

    def __post_init__(self):
        if not self.prompt or not self.prompt.strip():
            raise ValueError("Prompt is required")
        if self.image_count < 1:
            raise ValueError(f"image_count must be a positive integer, got {self.image_count}")

    @property
    def reference_images(self) -> list[ReferenceImage]:
        """Present reference images, product first."""
        return [img for img in (self.product_image, self.presenter_image) if img is not None]

    @classmethod
    def from_dict(cls, data: dict) -> "GenerationRequest":
        """Build from the dashboard's JSON shape (camelCase, data-URL images)."""
        product = data.get("productImage")
        presenter = data.get("presenterImage")
        return cls(
            prompt=data.get("prompt", ""),
            aspect_ratio=data.get("aspectRatio"),
            camera_angle=data.get("cameraAngle"),
            style=data.get("imageStyle"),
            model=data.get("model"),
            image_count=data.get("imageCount") or 1,
            product_image=ReferenceImage.from_data_url(product) if product else None,
            presenter_image=ReferenceImage.from_data_url(presenter) if presenter else None,
        )


@dataclass(frozen=True)
class EmbeddedImage:
    """Generated image bytes carried inline in a result."""

    data: bytes
    mime_type: str = DEFAULT_MIME_TYPE

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{base64.b64encode(self.data).decode('ascii')}"

    def __repr__(self) -> str:
        return f"EmbeddedImage(mime_type={self.mime_type!r}, size={len(self.data)})"


@dataclass
class GenerationResult:
    """Uniform outcome of a generation call, whichever backend produced it."""

    success: bool
    image: Optional[EmbeddedImage] = None
    image_url: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    provider_metadata: dict = field(default_factory=dict)

    @classmethod
    def ok(
        cls,
        image: Optional[EmbeddedImage] = None,
        image_url: Optional[str] = None,
        **metadata,
    ) -> "GenerationResult":
        return cls(success=True, image=image, image_url=image_url, provider_metadata=metadata)

    @classmethod
    def failure(cls, error: GatewayError) -> "GenerationResult":
        metadata = {"provider": error.provider} if error.provider else {}
        return cls(success=False, error=error.message, error_kind=error.kind, provider_metadata=metadata)

    @property
    def has_output(self) -> bool:
        return self.image is not None or bool(self.image_url)

    def to_dict(self) -> dict:
        """Render the JSON shape the dashboard consumes."""
        if not self.success:
            return {"error": self.error or "Failed to generate image", "errorKind": self.error_kind}
        return {
            "image": self.image.data_url if self.image else self.image_url,
            "imageUrl": self.image_url,
            "provider": self.provider_metadata,
        }


@dataclass(frozen=True)
class ProviderDescriptor:
    """Describes a backend. `configured` is recomputed on every access."""

    provider_id: str
    display_name: str
    models: tuple[str, ...]
    credential_check: Callable[[], bool] = field(repr=False, compare=False)

    @property
    def configured(self) -> bool:
        return self.credential_check()

    def to_dict(self) -> dict:
        return {
            "type": self.provider_id,
            "name": self.display_name,
            "configured": self.configured,
            "models": list(self.models),
        }


class TaskStatus(Enum):
    """Lifecycle state of a task on an asynchronous backend."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @classmethod
    def from_flag(cls, flag) -> "TaskStatus":
        """Map the backend's integer flag. Unrecognized values count as pending."""
        return _STATUS_FLAGS.get(flag, cls.PENDING)


_STATUS_FLAGS = {0: TaskStatus.PENDING, 1: TaskStatus.SUCCEEDED, 2: TaskStatus.FAILED}


@dataclass
class AsyncTask:
    """A task being polled on an asynchronous backend. Lives for one poll loop."""

    task_id: str
    status: TaskStatus = TaskStatus.PENDING
    progress: Optional[str] = None
    result_urls: list[str] = field(default_factory=list)
    error_message: Optional[str] = None

    @classmethod
    def from_record(cls, task_id: str, data: dict) -> "AsyncTask":
        response = data.get("response")
        urls = response.get("result_urls") if isinstance(response, dict) else None
        return cls(
            task_id=task_id,
            status=TaskStatus.from_flag(data.get("successFlag")),
            progress=data.get("progress"),
            result_urls=[url for url in urls if isinstance(url, str)] if isinstance(urls, list) else [],
            error_message=data.get("errorMessage"),
        )

    @property
    def is_terminal(self) -> bool:
        return self.status is not TaskStatus.PENDING
