"""Recorded state models."""

import uuid
from datetime import datetime, timezone
from pydantic import BaseModel, Field

from dockyard.models.image import ImageSpec


def _new_id() -> str:
    return uuid.uuid4().hex


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ImageRecord(BaseModel):
    """Observed state of one image resource.

    ``image_id`` and ``repo_digest`` are derived from the engine and are only
    written by the reconciler after a successful step.
    """
    id: str = Field(default_factory=_new_id, description="Resource identity, generated once")
    resource: str = Field(..., description="Key of the resource in configuration")
    image_id: str = Field(..., description="Engine-assigned image ID")
    repo_digest: str = Field(default="", description="repo[:tag]@sha256:<hash>, may be empty")
    spec: ImageSpec = Field(..., description="Spec applied by the last successful step")
    updated_at: datetime = Field(default_factory=_now)

    class Config:
        """Pydantic config."""
        extra = "ignore"

    def refreshed(self, image_id: str, repo_digest: str) -> "ImageRecord":
        """Copy of this record with new identity fields."""
        if image_id == self.image_id and repo_digest == self.repo_digest:
            return self
        return self.model_copy(
            update={"image_id": image_id, "repo_digest": repo_digest, "updated_at": _now()}
        )

    def with_spec(self, spec: ImageSpec) -> "ImageRecord":
        """Copy of this record with a new applied spec."""
        return self.model_copy(update={"spec": spec, "updated_at": _now()})
