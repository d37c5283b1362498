"""Container engine clients."""

from dockyard.engine.base import EngineClient, ImageInfo
from dockyard.engine.docker_client import DockerEngineClient

__all__ = [
    "EngineClient",
    "ImageInfo",
    "DockerEngineClient",
]
