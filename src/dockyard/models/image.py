"""Image specification models."""

from enum import Enum
from typing import Dict, FrozenSet, List, Optional
from pydantic import BaseModel, Field, validator


class SecretSpec(BaseModel):
    """Build-time secret, mounted at /run/secrets/<id> by default."""
    id: str = Field(..., description="ID of the secret")
    src: Optional[str] = Field(None, description="File source, takes precedence over env")
    env: Optional[str] = Field(None, description="Environment variable source")

    class Config:
        """Pydantic config."""
        extra = "forbid"

    def resolved_source(self) -> Optional[tuple[str, str]]:
        """Return ``("src", path)`` or ``("env", var)``, src winning over env."""
        if self.src:
            return "src", self.src
        if self.env:
            return "env", self.env
        return None


class UlimitSpec(BaseModel):
    """Ulimit applied to build containers."""
    name: str = Field(..., description="Type of ulimit, e.g. nofile")
    soft: int
    hard: int

    class Config:
        """Pydantic config."""
        extra = "forbid"


class AuthConfigSpec(BaseModel):
    """Registry credentials for one host."""
    host_name: str = Field(..., description="Hostname of the registry")
    user_name: Optional[str] = None
    password: Optional[str] = None
    auth: Optional[str] = Field(None, description="Base64 auth token")
    email: Optional[str] = None
    server_address: Optional[str] = None
    identity_token: Optional[str] = None
    registry_token: Optional[str] = None

    class Config:
        """Pydantic config."""
        extra = "forbid"


class BuildSpec(BaseModel):
    """How to build an image.

    Every field is immutable: changing any of them replaces the image.
    """
    context: str = Field(..., description="Local build context path")
    dockerfile: str = Field(default="Dockerfile")
    tag: List[str] = Field(default_factory=list)
    remove: bool = Field(default=True, description="Remove intermediate containers")
    secrets: List[SecretSpec] = Field(default_factory=list)
    label: Dict[str, str] = Field(default_factory=dict)
    labels: Dict[str, str] = Field(default_factory=dict, description="Legacy label map")
    suppress_output: bool = False
    remote_context: Optional[str] = Field(None, description="Git or HTTP(S) context URI")
    no_cache: bool = False
    force_remove: bool = Field(default=False, description="Always remove intermediate containers")
    pull_parent: bool = False
    isolation: Optional[str] = None
    cpu_set_cpus: Optional[str] = None
    cpu_set_mems: Optional[str] = None
    cpu_shares: Optional[int] = None
    cpu_quota: Optional[int] = None
    cpu_period: Optional[int] = None
    memory: Optional[int] = None
    memory_swap: Optional[int] = None
    cgroup_parent: Optional[str] = None
    network_mode: Optional[str] = None
    shm_size: Optional[int] = None
    ulimit: List[UlimitSpec] = Field(default_factory=list)
    build_args: Dict[str, str] = Field(default_factory=dict)
    auth_config: List[AuthConfigSpec] = Field(default_factory=list)
    squash: bool = False
    cache_from: List[str] = Field(default_factory=list)
    security_opt: List[str] = Field(default_factory=list)
    extra_hosts: List[str] = Field(default_factory=list)
    target: Optional[str] = None
    session_id: Optional[str] = None
    platform: Optional[str] = None
    version: Optional[str] = Field(None, description="Version of the underlying builder")
    build_id: Optional[str] = Field(None, description="Identifier used to cancel the build")
    builder: Optional[str] = Field(None, description="Named buildx builder; unset selects the legacy builder")
    build_log_file: Optional[str] = Field(None, description="Where buildx output is written")

    class Config:
        """Pydantic config."""
        extra = "forbid"


class ImageSpec(BaseModel):
    """Desired state of one image resource."""
    name: str = Field(..., description="Image name, including tag or digest")
    build: Optional[BuildSpec] = None
    pull_triggers: List[str] = Field(default_factory=list)
    triggers: Dict[str, str] = Field(default_factory=dict)
    keep_locally: bool = False
    force_remove: bool = False
    platform: str = Field(default="")

    class Config:
        """Pydantic config."""
        extra = "forbid"

    @validator("name")
    def validate_name(cls, v):
        """Reject blank image names."""
        if not v.strip():
            raise ValueError("name must not be empty")
        return v

    @validator("pull_triggers")
    def dedupe_pull_triggers(cls, v):
        """Pull triggers are a set."""
        return sorted(set(v))


class FieldClass(str, Enum):
    """How a change to a field is applied."""
    IMMUTABLE = "immutable"
    MUTABLE = "mutable"


# Fields that only affect local bookkeeping at delete time.
MUTABLE_FIELDS: FrozenSet[str] = frozenset({"keep_locally", "force_remove"})
IMMUTABLE_FIELDS: FrozenSet[str] = frozenset(ImageSpec.model_fields) - MUTABLE_FIELDS


def classify_field(field_name: str) -> FieldClass:
    """Return the update class of an ``ImageSpec`` field."""
    if field_name in MUTABLE_FIELDS:
        return FieldClass.MUTABLE
    if field_name in IMMUTABLE_FIELDS:
        return FieldClass.IMMUTABLE
    raise KeyError(f"Unknown image field: {field_name}")
