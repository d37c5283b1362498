"""Configuration management for the agent."""

import asyncio
import hashlib
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError
from pydantic import ValidationError

from dockyard.core.normalize import normalize
from dockyard.exceptions import InvalidSpecification
from dockyard.models.config import DockyardConfig
from dockyard.models.image import ImageSpec


logger = logging.getLogger(__name__)


class ConfigManager:
    """Loads the main configuration and declared images.

    Layout::

        <config_dir>/config.yaml      main configuration (optional)
        <config_dir>/images/*.yaml    resource name -> image spec
    """

    def __init__(self, config_dir: Path):
        """Initialize configuration manager."""
        self.config_dir = Path(config_dir)
        self.yaml = YAML(typ="safe")
        self.config: Optional[DockyardConfig] = None
        self.images: Dict[str, ImageSpec] = {}
        self.errors: Dict[str, InvalidSpecification] = {}
        self._config_hashes: Dict[str, str] = {}
        self.unreadable: List[str] = []

    @property
    def complete(self) -> bool:
        """True when every images file could be parsed."""
        return not self.unreadable

    async def load(self):
        """Load all configuration files."""
        logger.info(f"Loading configuration from {self.config_dir}")
        self._config_hashes = {}
        await self._load_main_config()
        await self._load_images()
        logger.info(
            f"Configuration loaded: {len(self.images)} image(s), {len(self.errors)} invalid"
        )

    async def _load_main_config(self):
        """Load main configuration file."""
        config_file = self.config_dir / "config.yaml"
        if not config_file.exists():
            logger.warning(f"Main config not found, using defaults: {config_file}")
            self.config = DockyardConfig()
            return

        try:
            data = await self._read_yaml(config_file)
            self.config = DockyardConfig(**(data or {}))
            logger.debug(f"Loaded main config: {config_file}")
        except YAMLError as e:
            logger.error(f"Cannot parse main config {config_file}: {e}")
            raise InvalidSpecification(
                f"Cannot parse {config_file.name}: {e}", resource=config_file.name
            ) from e
        except ValidationError as e:
            logger.error(f"Invalid main config: {e}")
            raise

    async def _load_images(self):
        """Load and normalize declared images."""
        images_dir = self.config_dir / "images"
        self.images.clear()
        self.errors.clear()
        self.unreadable = []
        if not images_dir.exists():
            logger.warning(f"Images directory not found: {images_dir}")
            return

        for yaml_file in sorted(images_dir.glob("*.yaml")):
            try:
                data = await self._read_yaml(yaml_file)
            except YAMLError as e:
                key = f"images/{yaml_file.name}"
                logger.error(f"Cannot parse {yaml_file}: {e}")
                self.errors[key] = InvalidSpecification(f"Cannot parse YAML: {e}", resource=key)
                self.unreadable.append(key)
                continue
            if not data:
                continue
            if not isinstance(data, dict):
                logger.error(f"Error loading {yaml_file}: expected a mapping of images")
                continue
            for resource, raw in data.items():
                self._add_image(str(resource), raw, yaml_file)
            logger.debug(f"Loaded images from {yaml_file}")

    def _add_image(self, resource: str, raw: Any, source: Path):
        if resource in self.images or resource in self.errors:
            self.errors[resource] = InvalidSpecification(
                f"Image declared more than once (again in {source.name})", resource=resource
            )
            self.images.pop(resource, None)
            return
        if not isinstance(raw, dict):
            self.errors[resource] = InvalidSpecification(
                "Image specification must be a mapping", resource=resource
            )
            return
        try:
            self.images[resource] = normalize(raw)
        except InvalidSpecification as e:
            e.resource = resource
            logger.error(f"Invalid image {resource} in {source}: {e.message}")
            self.errors[resource] = e

    async def _read_yaml(self, file_path: Path) -> Any:
        """Read and parse a YAML file off the event loop."""
        content = await asyncio.to_thread(file_path.read_text)
        # Store hash for change detection
        self._config_hashes[str(file_path)] = hashlib.md5(content.encode()).hexdigest()
        return self.yaml.load(content)

    async def watch_for_changes(self) -> bool:
        """Check if configuration files have changed."""
        current = {}
        files = [self.config_dir / "config.yaml", *(self.config_dir / "images").glob("*.yaml")]
        for yaml_file in files:
            if not yaml_file.exists():
                continue
            content = yaml_file.read_text()
            current[str(yaml_file)] = hashlib.md5(content.encode()).hexdigest()
        return current != self._config_hashes

    def get_image_spec(self, resource: str) -> Optional[ImageSpec]:
        """Get image specification by resource name."""
        return self.images.get(resource)
