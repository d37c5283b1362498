"""
Dockyard - declarative container image reconciliation.

Keeps images in a local container engine in line with declared specs:
builds or pulls what is missing, replaces what changed, removes what is gone,
and records image IDs and repo digests to detect drift.
"""

__version__ = "0.1.0"

from dockyard.exceptions import (
    DockyardError,
    EngineOperationFailed,
    InvalidSpecification,
    OperationTimeout,
    UnsupportedOption,
)
from dockyard.models.image import BuildSpec, ImageSpec
from dockyard.models.record import ImageRecord

__all__ = [
    "DockyardError",
    "EngineOperationFailed",
    "InvalidSpecification",
    "OperationTimeout",
    "UnsupportedOption",
    "BuildSpec",
    "ImageSpec",
    "ImageRecord",
]
