"""Image provider: reconciles one declared image against the engine."""

import logging
from typing import Optional

from dockyard.core.normalize import normalize
from dockyard.core.supervisor import Supervisor
from dockyard.core.translate import translate
from dockyard.engine.base import EngineClient, ImageInfo
from dockyard.exceptions import EngineOperationFailed
from dockyard.models.image import MUTABLE_FIELDS, ImageSpec
from dockyard.models.record import ImageRecord
from dockyard.providers.base import BaseProvider, ProviderStatus


logger = logging.getLogger(__name__)


class ImageProvider(BaseProvider):
    """Builds, pulls, refreshes and removes images.

    The engine client is borrowed and never closed here. No method writes
    state: callers persist the returned record only after the call succeeds,
    so a failed or interrupted build leaves nothing recorded.
    """

    def __init__(self, engine: EngineClient, supervisor: Optional[Supervisor] = None):
        """Initialize image provider."""
        self.engine = engine
        self.supervisor = supervisor or Supervisor(cancel_build=engine.cancel_build)

    async def validate_spec(self, spec: ImageSpec) -> ImageSpec:
        """Validate image specification."""
        return normalize(spec)

    async def status(self, record: ImageRecord) -> ProviderStatus:
        """Check if the recorded image still exists."""
        try:
            refreshed = await self.read(record)
        except EngineOperationFailed as e:
            logger.error(f"Error checking image {record.spec.name}: {e}")
            return ProviderStatus.ERROR
        return ProviderStatus.PRESENT if refreshed else ProviderStatus.ABSENT

    async def create(self, resource: str, spec: ImageSpec) -> ImageRecord:
        """Build or pull the image."""
        spec = await self.validate_spec(spec)

        if spec.build is not None:
            request = translate(spec.build, image_name=spec.name)
            logger.info(f"Building image {spec.name} from {request.context_ref}")
            info = await self.supervisor.run(
                "create", self.engine.build_image(request), build_id=request.build_id
            )
        else:
            logger.info(f"Pulling image {spec.name}")
            info = await self.supervisor.run(
                "create", self.engine.pull_image(spec.name, spec.platform)
            )

        self._check_info(spec, info)
        logger.info(f"Image {spec.name} present as {info.image_id}")
        return ImageRecord(
            resource=resource,
            image_id=info.image_id,
            repo_digest=info.repo_digest,
            spec=spec,
        )

    async def read(self, record: ImageRecord) -> Optional[ImageRecord]:
        """Refresh identity fields; never builds or pulls."""
        info = None
        if record.image_id:
            info = await self.engine.inspect_image(record.image_id)
        if info is None:
            info = await self.engine.inspect_image(record.spec.name)
            if info is not None:
                logger.info(f"Image {record.image_id} is gone, found {record.spec.name} as {info.image_id}")
        if info is None:
            logger.warning(f"Image {record.spec.name} no longer exists")
            return None
        return record.refreshed(info.image_id, info.repo_digest)

    async def update(self, record: ImageRecord, spec: ImageSpec) -> ImageRecord:
        """Apply delete-time flags. The engine is not touched."""
        changes = {name: getattr(spec, name) for name in MUTABLE_FIELDS}
        logger.debug(f"Updating {record.resource} in place: {changes}")

        async def _update():
            return record.with_spec(record.spec.model_copy(update=changes))

        return await self.supervisor.run("update", _update())

    async def delete(self, record: ImageRecord) -> None:
        """Remove the image unless it is kept locally."""
        spec = record.spec
        if spec.keep_locally:
            logger.info(f"Keeping image {spec.name} locally")
            return

        async def _remove():
            if await self.engine.inspect_image(spec.name) is None:
                logger.debug(f"Image {spec.name} already absent")
                return
            await self.engine.remove_image(spec.name, force=spec.force_remove)

        await self.supervisor.run("delete", _remove())
        logger.info(f"Image {spec.name} removed")

    def _check_info(self, spec: ImageSpec, info: Optional[ImageInfo]):
        if info is None or not info.image_id:
            raise EngineOperationFailed("create", f"engine returned no image ID for {spec.name}")
