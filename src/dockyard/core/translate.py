"""Translate a ``BuildSpec`` into an engine build request."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from dockyard.exceptions import UnsupportedOption
from dockyard.models.image import AuthConfigSpec, BuildSpec


logger = logging.getLogger(__name__)


class BuildPath(str, Enum):
    """Which build backend handles the request."""
    LEGACY = "legacy"
    BUILDX = "buildx"


@dataclass(frozen=True)
class SecretDescriptor:
    """One build secret with its resolved source."""
    id: str
    source: str  # "src" or "env"
    value: str

    def as_flag(self) -> str:
        return f"id={self.id},{self.source}={self.value}"


# Field names as the engine's X-Registry-Config expects them.
_AUTH_FIELDS = {
    "user_name": "username",
    "password": "password",
    "auth": "auth",
    "email": "email",
    "server_address": "serveraddress",
    "identity_token": "identitytoken",
    "registry_token": "registrytoken",
}


@dataclass
class EngineBuildRequest:
    """Fully resolved build request handed to the engine client."""
    path: BuildPath
    context: str
    dockerfile: str
    tags: List[str] = field(default_factory=list)
    remote_context: Optional[str] = None
    remove: bool = True
    force_remove: bool = False
    no_cache: bool = False
    pull_parent: bool = False
    suppress_output: bool = False
    squash: bool = False
    labels: Dict[str, str] = field(default_factory=dict)
    build_args: Dict[str, str] = field(default_factory=dict)
    auth_configs: Dict[str, Dict[str, str]] = field(default_factory=dict)
    secrets: List[SecretDescriptor] = field(default_factory=list)
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
    ulimits: List[Dict[str, object]] = field(default_factory=list)
    cache_from: List[str] = field(default_factory=list)
    security_opt: List[str] = field(default_factory=list)
    extra_hosts: List[str] = field(default_factory=list)
    target: Optional[str] = None
    session_id: Optional[str] = None
    platform: Optional[str] = None
    version: Optional[str] = None
    build_id: Optional[str] = None
    builder: Optional[str] = None
    log_file: Optional[str] = None

    @property
    def context_ref(self) -> str:
        """What the engine should build from."""
        return self.remote_context or self.context


def merge_labels(build: BuildSpec) -> Dict[str, str]:
    """Merge the legacy ``labels`` map with ``label``; ``label`` wins."""
    merged = dict(build.labels)
    merged.update(build.label)
    return merged


def auth_record(entry: AuthConfigSpec) -> Dict[str, str]:
    """Credential record for one registry host, populated fields only."""
    record = {}
    for attr, key in _AUTH_FIELDS.items():
        value = getattr(entry, attr)
        if value:
            record[key] = value
    return record


def translate(build: BuildSpec, image_name: Optional[str] = None) -> EngineBuildRequest:
    """Map a build spec onto an ``EngineBuildRequest``.

    ``image_name`` is appended to the tag list when given and not already
    present. Pure: the engine is only called by the reconciler.

    Raises:
        UnsupportedOption: secrets requested without a named builder.
    """
    path = BuildPath.BUILDX if build.builder else BuildPath.LEGACY

    secrets = []
    for secret in build.secrets:
        source = secret.resolved_source()
        if source is None:
            # normalize() rejects these; a raw BuildSpec may still carry one.
            continue
        secrets.append(SecretDescriptor(secret.id, *source))
    if secrets and path is BuildPath.LEGACY:
        raise UnsupportedOption(
            "secrets", "Build secrets require a named builder ('builder')"
        )

    remote_context = build.remote_context or None
    log_file = build.build_log_file or None
    if path is BuildPath.BUILDX:
        if remote_context:
            logger.debug("Ignoring remote_context, the named builder resolves the context")
        remote_context = None
    elif log_file:
        logger.debug("Ignoring build_log_file on the legacy build path")
        log_file = None

    tags = list(build.tag)
    if image_name and image_name not in tags:
        tags.append(image_name)

    return EngineBuildRequest(
        path=path,
        context=build.context,
        dockerfile=build.dockerfile,
        tags=tags,
        remote_context=remote_context,
        remove=build.remove,
        force_remove=build.force_remove,
        no_cache=build.no_cache,
        pull_parent=build.pull_parent,
        suppress_output=build.suppress_output,
        squash=build.squash,
        labels=merge_labels(build),
        build_args=dict(build.build_args),
        auth_configs={a.host_name: auth_record(a) for a in build.auth_config},
        secrets=secrets,
        isolation=build.isolation,
        cpu_set_cpus=build.cpu_set_cpus,
        cpu_set_mems=build.cpu_set_mems,
        cpu_shares=build.cpu_shares,
        cpu_quota=build.cpu_quota,
        cpu_period=build.cpu_period,
        memory=build.memory,
        memory_swap=build.memory_swap,
        cgroup_parent=build.cgroup_parent,
        network_mode=build.network_mode,
        shm_size=build.shm_size,
        ulimits=[{"Name": u.name, "Soft": u.soft, "Hard": u.hard} for u in build.ulimit],
        cache_from=list(build.cache_from),
        security_opt=list(build.security_opt),
        extra_hosts=list(build.extra_hosts),
        target=build.target,
        session_id=build.session_id,
        platform=build.platform,
        version=build.version,
        build_id=build.build_id,
        builder=build.builder,
        log_file=log_file,
    )
