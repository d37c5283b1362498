"""Base provider interface."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

from dockyard.models.image import ImageSpec
from dockyard.models.record import ImageRecord


class ProviderStatus(Enum):
    """Provider resource status."""
    PRESENT = "present"
    ABSENT = "absent"
    UNKNOWN = "unknown"
    ERROR = "error"


class BaseProvider(ABC):
    """Create/read/update/delete contract of a reconciled resource."""

    @abstractmethod
    async def status(self, record: ImageRecord) -> ProviderStatus:
        """Check the current status of a recorded resource."""
        pass

    @abstractmethod
    async def create(self, resource: str, spec: ImageSpec) -> ImageRecord:
        """Bring the resource into existence and return its record."""
        pass

    @abstractmethod
    async def read(self, record: ImageRecord) -> Optional[ImageRecord]:
        """Refresh a record from live state; ``None`` if the resource is gone."""
        pass

    @abstractmethod
    async def update(self, record: ImageRecord, spec: ImageSpec) -> ImageRecord:
        """Apply in-place changes."""
        pass

    @abstractmethod
    async def delete(self, record: ImageRecord) -> None:
        """Destroy the resource."""
        pass

    @abstractmethod
    async def validate_spec(self, spec: ImageSpec) -> ImageSpec:
        """Validate and normalize the resource specification."""
        pass
