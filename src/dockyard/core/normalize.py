"""Normalization of declared image specifications."""

import logging
from typing import Any, Mapping, Union

from pydantic import ValidationError

from dockyard.exceptions import InvalidSpecification
from dockyard.models.image import BuildSpec, ImageSpec, SecretSpec


logger = logging.getLogger(__name__)


def _format_errors(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "<root>"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def _normalize_secret(secret: SecretSpec, index: int) -> SecretSpec:
    source = secret.resolved_source()
    if source is None:
        raise InvalidSpecification(
            f"Secret '{secret.id}' needs one of 'src' or 'env'",
            details={"field": f"build.secrets.{index}"},
        )
    kind, value = source
    if kind == "src" and secret.env:
        logger.debug(f"Secret {secret.id}: 'src' takes precedence over 'env'")
    return SecretSpec(id=secret.id, **{kind: value})


def _normalize_build(build: BuildSpec) -> BuildSpec:
    if not build.context.strip():
        raise InvalidSpecification(
            "Build context must not be empty", details={"field": "build.context"}
        )
    secrets = [_normalize_secret(s, i) for i, s in enumerate(build.secrets)]
    return build.model_copy(update={"secrets": secrets})


def normalize(raw: Union[Mapping[str, Any], ImageSpec]) -> ImageSpec:
    """Turn a declared spec into a validated ``ImageSpec``.

    Defaults come from the model fields. Secrets are reduced to their single
    resolved source. Pure: no engine access, no I/O.

    Raises:
        InvalidSpecification: on type errors, missing required fields, a
            secret without source, or both ``build`` and ``pull_triggers``.
    """
    if isinstance(raw, ImageSpec):
        raw = raw.model_dump()
    if not isinstance(raw, Mapping):
        raise InvalidSpecification(
            f"Image specification must be a mapping, got {type(raw).__name__}"
        )
    try:
        spec = ImageSpec.model_validate(dict(raw))
    except ValidationError as e:
        raise InvalidSpecification(
            f"Invalid image specification: {_format_errors(e)}",
            details={"errors": e.error_count()},
        ) from e

    if spec.build is not None and spec.pull_triggers:
        raise InvalidSpecification(
            "'build' and 'pull_triggers' are mutually exclusive",
            details={"field": "build"},
        )

    if spec.build is not None:
        spec = spec.model_copy(update={"build": _normalize_build(spec.build)})
    return spec
