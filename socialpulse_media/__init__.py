"""
SocialPulse Media - image generation gateway for the SocialPulse dashboard.

One structured request in, one uniform result out, whichever backend did the work.
"""

from pathlib import Path

# Read version from VERSION file (single source of truth)
_version_file = Path(__file__).parent.parent / "VERSION"
if _version_file.exists():
    __version__ = _version_file.read_text().strip()
else:
    __version__ = "0.1.0"  # Fallback for installed package

from socialpulse_media.models import (
    AspectRatio,
    CameraAngle,
    ImageStyle,
    ReferenceImage,
    GenerationRequest,
    GenerationResult,
    ProviderDescriptor,
)
from socialpulse_media.config import GatewayConfiguration, BackendSettings
from socialpulse_media.prompting import enhance_prompt
from socialpulse_media.generators.manager import ProviderManager, create_gateway

__all__ = [
    "__version__",
    "AspectRatio",
    "CameraAngle",
    "ImageStyle",
    "ReferenceImage",
    "GenerationRequest",
    "GenerationResult",
    "ProviderDescriptor",
    "GatewayConfiguration",
    "BackendSettings",
    "enhance_prompt",
    "ProviderManager",
    "create_gateway",
]
