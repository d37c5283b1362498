"""Pydantic models for configuration and validation."""

from dockyard.models.config import DockyardConfig, AgentConfig, EngineConfig, TimeoutsConfig
from dockyard.models.image import (
    AuthConfigSpec,
    BuildSpec,
    FieldClass,
    ImageSpec,
    IMMUTABLE_FIELDS,
    MUTABLE_FIELDS,
    SecretSpec,
    UlimitSpec,
    classify_field,
)
from dockyard.models.record import ImageRecord

__all__ = [
    "DockyardConfig",
    "AgentConfig",
    "EngineConfig",
    "TimeoutsConfig",
    "AuthConfigSpec",
    "BuildSpec",
    "FieldClass",
    "ImageSpec",
    "IMMUTABLE_FIELDS",
    "MUTABLE_FIELDS",
    "SecretSpec",
    "UlimitSpec",
    "classify_field",
    "ImageRecord",
]
