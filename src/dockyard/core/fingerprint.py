"""Order-independent fingerprints for trigger sets and maps."""

import hashlib
from typing import Iterable, Mapping

from dockyard.models.image import IMMUTABLE_FIELDS, ImageSpec


def _digest(entries: Iterable[str]) -> str:
    h = hashlib.sha256()
    for entry in entries:
        data = entry.encode("utf-8")
        # Length prefix keeps ("ab", "c") distinct from ("a", "bc").
        h.update(len(data).to_bytes(8, "big"))
        h.update(data)
    return h.hexdigest()


def fingerprint_set(values: Iterable[str]) -> str:
    """Fingerprint a set of strings. Duplicates and order are ignored."""
    return _digest(sorted(set(values)))


def fingerprint_map(values: Mapping[str, str]) -> str:
    """Fingerprint a string map. Key order is ignored."""
    entries = []
    for key in sorted(values):
        entries.append(key)
        entries.append(values[key])
    return _digest(entries)


def spec_fingerprint(spec: ImageSpec) -> str:
    """Fingerprint all immutable fields of a spec."""
    data = spec.model_dump(mode="json", include=set(IMMUTABLE_FIELDS))
    data["pull_triggers"] = fingerprint_set(spec.pull_triggers)
    data["triggers"] = fingerprint_map(spec.triggers)
    flat = {}
    _flatten("", data, flat)
    return fingerprint_map(flat)


def _flatten(prefix: str, value, out: dict):
    if isinstance(value, dict):
        for k, v in value.items():
            _flatten(f"{prefix}.{k}" if prefix else k, v, out)
    elif isinstance(value, list):
        for i, v in enumerate(value):
            _flatten(f"{prefix}[{i}]", v, out)
    else:
        out[prefix] = "null" if value is None else repr(value)
