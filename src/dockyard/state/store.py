"""File-backed record store, one JSON document per resource."""

import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import quote

from pydantic import ValidationError

from dockyard.models.record import ImageRecord


logger = logging.getLogger(__name__)


class StateStore:
    """Persists ``ImageRecord``s under ``<state_dir>/images``.

    Writes go to a temporary file that replaces the target, so a record is
    either the previous version or the new one.
    """

    def __init__(self, state_dir: Path):
        self.root = Path(state_dir) / "images"

    def _path(self, resource: str) -> Path:
        return self.root / f"{quote(resource, safe='')}.json"

    def get(self, resource: str) -> Optional[ImageRecord]:
        """Load the record for ``resource``, if any."""
        path = self._path(resource)
        if not path.exists():
            return None
        return ImageRecord.model_validate_json(path.read_text())

    def put(self, record: ImageRecord) -> None:
        """Store ``record``, replacing any previous version."""
        self.root.mkdir(parents=True, exist_ok=True)
        path = self._path(record.resource)
        fd, tmp = tempfile.mkstemp(dir=self.root, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(record.model_dump_json(indent=2))
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        logger.debug(f"Stored record {record.resource} ({record.image_id})")

    def delete(self, resource: str) -> None:
        """Forget the record for ``resource``."""
        self._path(resource).unlink(missing_ok=True)
        logger.debug(f"Deleted record {resource}")

    def list(self) -> Dict[str, ImageRecord]:
        """All stored records keyed by resource."""
        records: Dict[str, ImageRecord] = {}
        if not self.root.exists():
            return records
        for path in sorted(self.root.glob("*.json")):
            try:
                record = ImageRecord.model_validate_json(path.read_text())
            except ValidationError as e:
                logger.error(f"Ignoring unreadable record {path}: {e}")
                continue
            records[record.resource] = record
        return records
