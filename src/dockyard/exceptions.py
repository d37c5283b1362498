"""Error taxonomy for image reconciliation.

Every failure raised by the reconciliation core is one of four kinds:

    DockyardError (base)
    ├── InvalidSpecification - malformed or contradictory declared spec
    ├── UnsupportedOption - option only valid on a build path not selected
    ├── EngineOperationFailed - the engine rejected or failed an operation
    └── OperationTimeout - an operation exceeded its bounded duration

None of them are retried by the core. A failed step leaves the previously
recorded state untouched.
"""

from typing import Any, Dict, Optional


class DockyardError(Exception):
    """Base exception for all reconciliation errors.

    Attributes:
        message: Human-readable error description
        details: Additional context (engine detail, field names, ...)
        resource: Resource identifier the error relates to, if known
    """

    kind = "Error"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        resource: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.resource = resource

    def __str__(self) -> str:
        base_msg = self.message
        if self.resource:
            base_msg = f"[{self.resource}] {base_msg}"
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            base_msg = f"{base_msg} ({detail_str})"
        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging and CLI output."""
        return {
            "kind": self.kind,
            "message": self.message,
            "details": self.details,
            "resource": self.resource,
        }


class InvalidSpecification(DockyardError):
    """Malformed or contradictory declared specification.

    Detected before any engine call.
    """

    kind = "InvalidSpecification"


class UnsupportedOption(DockyardError):
    """A requested option is only valid on a build path that is not selected."""

    kind = "UnsupportedOption"

    def __init__(self, option: str, message: Optional[str] = None, **kwargs):
        super().__init__(
            message or f"Option '{option}' is not supported on this build path",
            **kwargs,
        )
        self.option = option


class EngineOperationFailed(DockyardError):
    """The engine rejected or failed an operation.

    The engine-provided message is kept verbatim in ``engine_message``.
    """

    kind = "EngineOperationFailed"

    def __init__(
        self,
        operation: str,
        engine_message: str,
        status_code: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(f"{operation} failed: {engine_message}", **kwargs)
        self.operation = operation
        self.engine_message = engine_message
        self.status_code = status_code


class OperationTimeout(DockyardError):
    """An operation exceeded its bounded duration and was cancelled."""

    kind = "Timeout"

    def __init__(self, operation: str, timeout: float, **kwargs):
        super().__init__(
            f"{operation} did not complete within {timeout:g}s", **kwargs
        )
        self.operation = operation
        self.timeout = timeout
