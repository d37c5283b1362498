"""Named-builder (buildx) build path."""

import json
import logging
import os
import subprocess
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from dockyard.core.translate import EngineBuildRequest
from dockyard.exceptions import EngineOperationFailed
from dockyard.utils.process import stream_command


logger = logging.getLogger(__name__)

# Legacy-builder knobs that buildx has no flag for.
_UNSUPPORTED = (
    "isolation", "cpu_set_cpus", "cpu_set_mems", "cpu_shares", "cpu_quota",
    "cpu_period", "memory", "memory_swap", "security_opt",
)


def _user_config(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        return json.loads(path.read_text())
    except (OSError, ValueError) as e:
        logger.warning(f"Cannot read {path}, starting from an empty config: {e}")
        return {}


class BuildxBuilder:
    """Runs ``docker buildx build`` against a named builder."""

    def __init__(self, docker_binary: str = "docker"):
        self.docker_binary = docker_binary

    def command(self, request: EngineBuildRequest, iidfile: Path) -> List[str]:
        """Assemble the buildx command line for ``request``."""
        cmd = [self.docker_binary, "buildx", "build", "--builder", request.builder]

        dockerfile = Path(request.dockerfile)
        if not dockerfile.is_absolute():
            dockerfile = Path(request.context) / dockerfile
        cmd += ["--file", str(dockerfile)]

        for tag in request.tags:
            cmd += ["--tag", tag]
        for key, value in request.build_args.items():
            cmd += ["--build-arg", f"{key}={value}"]
        for key, value in request.labels.items():
            cmd += ["--label", f"{key}={value}"]
        for secret in request.secrets:
            cmd += ["--secret", secret.as_flag()]
        for ref in request.cache_from:
            cmd += ["--cache-from", ref]
        for host in request.extra_hosts:
            cmd += ["--add-host", host]
        for ulimit in request.ulimits:
            cmd += ["--ulimit", f"{ulimit['Name']}={ulimit['Soft']}:{ulimit['Hard']}"]

        if request.no_cache:
            cmd.append("--no-cache")
        if request.pull_parent:
            cmd.append("--pull")
        if request.suppress_output:
            cmd.append("--quiet")
        if request.target:
            cmd += ["--target", request.target]
        if request.platform:
            cmd += ["--platform", request.platform.lower()]
        if request.network_mode:
            cmd += ["--network", request.network_mode]
        if request.shm_size:
            cmd += ["--shm-size", str(request.shm_size)]
        if request.cgroup_parent:
            cmd += ["--cgroup-parent", request.cgroup_parent]

        cmd += ["--progress", "plain", "--load", "--iidfile", str(iidfile)]
        cmd.append(request.context)
        return cmd

    def _warn_unsupported(self, request: EngineBuildRequest):
        for name in _UNSUPPORTED:
            if getattr(request, name):
                logger.warning(f"Option '{name}' is ignored by named builder {request.builder}")

    def _env(self, request: EngineBuildRequest, workdir: Path) -> Optional[Dict[str, str]]:
        """Environment with a private DOCKER_CONFIG holding per-host credentials.

        The private directory starts from the user's config.json, so contexts,
        plugins and other registries keep working.
        """
        if not request.auth_configs:
            return None
        env = dict(os.environ)
        user_config = Path(env.get("DOCKER_CONFIG") or Path.home() / ".docker")
        config = _user_config(user_config / "config.json")

        auths = config.setdefault("auths", {})
        helpers = config.get("credHelpers", {})
        for host, record in request.auth_configs.items():
            auths[host] = dict(record)
            helpers.pop(host, None)
        if config.pop("credsStore", None):
            logger.warning("Ignoring credsStore for this build; only file credentials are available")

        config_dir = workdir / "docker-config"
        config_dir.mkdir()
        (config_dir / "config.json").write_text(json.dumps(config))
        for name in ("cli-plugins", "contexts"):
            if (user_config / name).is_dir():
                (config_dir / name).symlink_to(user_config / name, target_is_directory=True)

        # Builders stay where the user created them.
        env.setdefault("BUILDX_CONFIG", str(user_config / "buildx"))
        env["DOCKER_CONFIG"] = str(config_dir)
        return env

    async def build(self, request: EngineBuildRequest) -> str:
        """Build and load the image; return its image ID."""
        self._warn_unsupported(request)
        with tempfile.TemporaryDirectory(prefix="dockyard-buildx-") as tmp:
            workdir = Path(tmp)
            iidfile = workdir / "iid"
            cmd = self.command(request, iidfile)
            env = self._env(request, workdir)
            log_file = Path(request.log_file) if request.log_file else None

            logger.info(f"Building {', '.join(request.tags) or request.context} with builder {request.builder}")
            try:
                result = await stream_command(cmd, log_file=log_file, env=env)
            except (FileNotFoundError, subprocess.SubprocessError) as e:
                raise EngineOperationFailed("build", str(e)) from e

            if result.returncode != 0:
                raise EngineOperationFailed(
                    "build", result.stdout or f"buildx exited with {result.returncode}"
                )
            if not iidfile.exists():
                raise EngineOperationFailed("build", "buildx did not report an image ID")
            return iidfile.read_text().strip()
