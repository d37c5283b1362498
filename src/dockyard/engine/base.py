"""Engine client interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from dockyard.core.translate import EngineBuildRequest


@dataclass(frozen=True)
class ImageInfo:
    """Identity of an image as known to the engine."""
    image_id: str
    repo_digest: str = ""


class EngineClient(ABC):
    """Operations the reconciler consumes from the container engine.

    Implementations raise ``EngineOperationFailed`` for engine-side errors.
    The reconciler borrows the client and never closes it.
    """

    @abstractmethod
    async def pull_image(self, name: str, platform: str = "") -> ImageInfo:
        """Pull ``name`` for ``platform`` (empty: engine default)."""
        pass

    @abstractmethod
    async def build_image(self, request: EngineBuildRequest) -> ImageInfo:
        """Build an image and return its identity."""
        pass

    @abstractmethod
    async def inspect_image(self, ref: str) -> Optional[ImageInfo]:
        """Look up an image by ID or name; ``None`` when it does not exist."""
        pass

    @abstractmethod
    async def remove_image(self, ref: str, force: bool = False) -> None:
        """Remove an image."""
        pass

    @abstractmethod
    async def cancel_build(self, build_id: str) -> None:
        """Ask the engine to abort the build started with ``build_id``."""
        pass

    def close(self) -> None:
        """Release connections held by the client."""
