"""Shared fixtures."""

import asyncio
import hashlib
from typing import Dict, List, Optional

import pytest

from dockyard.core.translate import EngineBuildRequest
from dockyard.engine.base import EngineClient, ImageInfo
from dockyard.exceptions import EngineOperationFailed


def _fake_id(seed: str) -> str:
    return "sha256:" + hashlib.sha256(seed.encode()).hexdigest()


class FakeEngine(EngineClient):
    """In-memory engine that records every call."""

    def __init__(self):
        self.images: Dict[str, ImageInfo] = {}
        self.calls: List[tuple] = []
        self.in_use: set = set()
        self.build_delay = 0.0
        self.build_error: Optional[str] = None

    def add_image(self, name: str, image_id: Optional[str] = None, repo_digest: str = "") -> ImageInfo:
        info = ImageInfo(image_id or _fake_id(name), repo_digest)
        self.images[name] = info
        self.images[info.image_id] = info
        return info

    def calls_of(self, kind: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == kind]

    async def pull_image(self, name: str, platform: str = "") -> ImageInfo:
        self.calls.append(("pull", name, platform))
        if name.startswith("missing"):
            raise EngineOperationFailed("pull", f"manifest for {name} not found", status_code=404)
        if name in self.images:
            return self.images[name]
        repo = name.split(":", 1)[0]
        return self.add_image(name, repo_digest=f"{repo}@{_fake_id('digest:' + name)}")

    async def build_image(self, request: EngineBuildRequest) -> ImageInfo:
        self.calls.append(("build", request))
        if self.build_delay:
            await asyncio.sleep(self.build_delay)
        if self.build_error:
            raise EngineOperationFailed("build", self.build_error)
        image_id = _fake_id("build:" + ",".join(request.tags))
        info = ImageInfo(image_id, "")
        self.images[image_id] = info
        for tag in request.tags:
            self.images[tag] = info
        return info

    async def inspect_image(self, ref: str) -> Optional[ImageInfo]:
        self.calls.append(("inspect", ref))
        return self.images.get(ref)

    async def remove_image(self, ref: str, force: bool = False) -> None:
        self.calls.append(("remove", ref, force))
        if ref in self.in_use and not force:
            raise EngineOperationFailed(
                "remove",
                f"conflict: unable to remove repository reference \"{ref}\" "
                "- container 0123abcd is using its referenced image",
                status_code=409,
            )
        info = self.images.pop(ref, None)
        if info is not None:
            self.images = {k: v for k, v in self.images.items() if v != info}

    async def cancel_build(self, build_id: str) -> None:
        self.calls.append(("cancel", build_id))


@pytest.fixture
def fake_engine():
    """Create an empty in-memory engine."""
    return FakeEngine()
