"""Resource providers for dockyard."""

from dockyard.providers.base import BaseProvider, ProviderStatus
from dockyard.providers.image import ImageProvider

__all__ = [
    "BaseProvider",
    "ProviderStatus",
    "ImageProvider",
]
