"""Diff a recorded image against its declared spec."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from dockyard.core.fingerprint import fingerprint_map, fingerprint_set
from dockyard.models.image import IMMUTABLE_FIELDS, MUTABLE_FIELDS, ImageSpec
from dockyard.models.record import ImageRecord


class PlanAction(str, Enum):
    """What a reconciliation pass does with one resource."""
    CREATE = "create"
    NOOP = "noop"
    UPDATE = "update"
    REPLACE = "replace"
    DELETE = "delete"


@dataclass
class Plan:
    """Planned action for one resource."""
    resource: str
    action: PlanAction
    desired: Optional[ImageSpec] = None
    recorded: Optional[ImageRecord] = None
    changed_fields: List[str] = field(default_factory=list)

    @property
    def touches_engine(self) -> bool:
        return self.action in (PlanAction.CREATE, PlanAction.REPLACE, PlanAction.DELETE)


def _changed_immutable(old: ImageSpec, new: ImageSpec) -> List[str]:
    changed = []
    for name in sorted(IMMUTABLE_FIELDS):
        if name == "pull_triggers":
            if fingerprint_set(old.pull_triggers) != fingerprint_set(new.pull_triggers):
                changed.append(name)
        elif name == "triggers":
            if fingerprint_map(old.triggers) != fingerprint_map(new.triggers):
                changed.append(name)
        elif getattr(old, name) != getattr(new, name):
            changed.append(name)
    return changed


def _changed_mutable(old: ImageSpec, new: ImageSpec) -> List[str]:
    return sorted(n for n in MUTABLE_FIELDS if getattr(old, n) != getattr(new, n))


def plan(
    resource: str,
    recorded: Optional[ImageRecord],
    desired: Optional[ImageSpec],
) -> Plan:
    """Decide the action for one resource.

    Any immutable difference forces a replacement; mutable-only differences
    become an in-place update. Triggers are compared by fingerprint.
    """
    if recorded is None and desired is None:
        raise ValueError(f"Nothing to plan for {resource}")
    if recorded is None:
        return Plan(resource, PlanAction.CREATE, desired=desired)
    if desired is None:
        return Plan(resource, PlanAction.DELETE, recorded=recorded)

    immutable = _changed_immutable(recorded.spec, desired)
    if immutable:
        return Plan(
            resource, PlanAction.REPLACE, desired, recorded,
            changed_fields=immutable + _changed_mutable(recorded.spec, desired),
        )
    mutable = _changed_mutable(recorded.spec, desired)
    if mutable:
        return Plan(resource, PlanAction.UPDATE, desired, recorded, changed_fields=mutable)
    return Plan(resource, PlanAction.NOOP, desired, recorded)
