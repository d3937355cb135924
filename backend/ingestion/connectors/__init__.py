"""Platform clients."""

from .platform_base import PlatformClient
from .recorded_platform import RecordedPlatformClient

__all__ = [
    "PlatformClient",
    "RecordedPlatformClient",
]
