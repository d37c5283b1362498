"""Engine client backed by the Docker SDK."""

import asyncio
import json
import logging
import re
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import docker
from docker import auth as docker_auth
from docker import utils as docker_utils
from docker.api.build import process_dockerfile
from docker.errors import APIError, DockerException, ImageNotFound

from dockyard.core.translate import BuildPath, EngineBuildRequest
from dockyard.engine.base import EngineClient, ImageInfo
from dockyard.engine.buildx import BuildxBuilder
from dockyard.exceptions import EngineOperationFailed


logger = logging.getLogger(__name__)

_BUILT_RE = re.compile(r"Successfully built ([0-9a-f]+)")


def _bool(value: bool) -> str:
    return "1" if value else "0"


def build_params(request: EngineBuildRequest) -> Dict[str, Any]:
    """Query parameters of ``POST /build`` for a legacy build."""
    params: Dict[str, Any] = {
        "t": list(request.tags),
        "dockerfile": request.dockerfile,
        "rm": _bool(request.remove),
    }
    if request.remote_context:
        params["remote"] = request.remote_context
    if request.suppress_output:
        params["q"] = "1"
    if request.no_cache:
        params["nocache"] = "1"
    if request.force_remove:
        params["forcerm"] = "1"
    if request.pull_parent:
        params["pull"] = "1"
    if request.squash:
        params["squash"] = "1"
    if request.security_opt:
        params["securityopt"] = list(request.security_opt)
    if request.extra_hosts:
        params["extrahosts"] = list(request.extra_hosts)

    passthrough = {
        "isolation": request.isolation,
        "cpusetcpus": request.cpu_set_cpus,
        "cpusetmems": request.cpu_set_mems,
        "cpushares": request.cpu_shares,
        "cpuquota": request.cpu_quota,
        "cpuperiod": request.cpu_period,
        "memory": request.memory,
        "memswap": request.memory_swap,
        "cgroupparent": request.cgroup_parent,
        "networkmode": request.network_mode,
        "shmsize": request.shm_size,
        "target": request.target,
        "session": request.session_id,
        "buildid": request.build_id,
        "version": request.version,
    }
    for key, value in passthrough.items():
        if value is not None and value != "":
            params[key] = value
    if request.platform:
        params["platform"] = request.platform.lower()

    json_params = {
        "ulimits": request.ulimits,
        "buildargs": request.build_args,
        "labels": request.labels,
        "cachefrom": request.cache_from,
    }
    for key, value in json_params.items():
        if value:
            params[key] = json.dumps(value)
    return params


def pick_repo_digest(name: str, repo_digests: Optional[Iterable[str]]) -> str:
    """Prefer the digest whose repository matches ``name``."""
    digests = list(repo_digests or [])
    if not digests:
        return ""
    repo, _ = docker_utils.parse_repository_tag(name)
    for digest in digests:
        if digest.split("@", 1)[0] == repo:
            return digest
    return digests[0]


def _check_stream(operation: str, chunks: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Drain a decoded progress stream, raising on the first error entry."""
    seen = []
    for chunk in chunks:
        if "error" in chunk:
            detail = chunk.get("errorDetail") or {}
            raise EngineOperationFailed(
                operation, detail.get("message") or chunk["error"], status_code=detail.get("code")
            )
        if "stream" in chunk:
            line = chunk["stream"].strip()
            if line:
                logger.debug(f"[{operation}] {line}")
        seen.append(chunk)
    return seen


def _built_image_id(chunks: List[Dict[str, Any]]) -> Optional[str]:
    for chunk in reversed(chunks):
        aux = chunk.get("aux")
        if isinstance(aux, dict) and aux.get("ID"):
            return aux["ID"]
        stream = chunk.get("stream", "")
        match = _BUILT_RE.search(stream)
        if match:
            return match.group(1)
        if stream.strip().startswith("sha256:"):
            return stream.strip()
    return None


class _Stream:
    """Streaming response shared by a worker thread and the task awaiting it.

    Closing the response makes the daemon abort the pull or build.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._response = None
        self.cancelled = False

    def attach(self, response):
        with self._lock:
            self._response = response
            if self.cancelled:
                response.close()

    def cancel(self):
        with self._lock:
            self.cancelled = True
            if self._response is not None:
                self._response.close()


class DockerEngineClient(EngineClient):
    """Talks to the local daemon through ``docker.DockerClient``.

    Blocking SDK calls run in worker threads so they do not stall the loop.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: int = 120,
        docker_binary: str = "docker",
        client: Optional[docker.DockerClient] = None,
    ):
        self._client = client
        self._base_url = base_url
        self._timeout = timeout
        self.buildx = BuildxBuilder(docker_binary)

    @property
    def client(self) -> docker.DockerClient:
        if self._client is None:
            try:
                if self._base_url:
                    self._client = docker.DockerClient(base_url=self._base_url, timeout=self._timeout)
                    logger.info(f"Connected to remote Docker: {self._base_url}")
                else:
                    self._client = docker.from_env(timeout=self._timeout)
                    logger.debug("Connected to local Docker daemon")
            except DockerException as e:
                raise EngineOperationFailed("connect", str(e)) from e
        return self._client

    @property
    def api(self) -> docker.APIClient:
        return self.client.api

    def close(self):
        """Close the underlying connection, for the owner of this client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    async def _streamed(self, operation: str, func, *args):
        """Run a streaming call in a worker, dropping its connection if cancelled."""
        stream = _Stream()
        try:
            return await asyncio.to_thread(func, *args, stream)
        except asyncio.CancelledError:
            logger.warning(f"{operation} cancelled, closing engine connection")
            stream.cancel()
            raise

    def _open_stream(self, stream: _Stream, path: str, **kwargs):
        response = self.api._post(self.api._url(path), stream=True, timeout=None, **kwargs)
        stream.attach(response)
        self.api._raise_for_status(response)
        return self.api._stream_helper(response, decode=True)

    async def pull_image(self, name: str, platform: str = "") -> ImageInfo:
        logger.info(f"Pulling image {name}" + (f" for {platform}" if platform else ""))
        await self._streamed("pull", self._pull, name, platform)
        info = await self.inspect_image(name)
        if info is None:
            raise EngineOperationFailed("pull", f"image {name} not found after pull")
        return info

    def _pull(self, name: str, platform: str, stream: _Stream):
        repository, tag = docker_utils.parse_repository_tag(name)
        params = {"fromImage": repository, "tag": tag or "latest"}
        if platform:
            params["platform"] = platform
        headers = {}
        registry, _ = docker_auth.resolve_repository_name(repository)
        header = docker_auth.get_config_header(self.api, registry)
        if header:
            headers["X-Registry-Auth"] = header
        try:
            _check_stream("pull", self._open_stream(stream, "/images/create", params=params, headers=headers))
        except APIError as e:
            raise EngineOperationFailed("pull", e.explanation or str(e), status_code=e.status_code) from e

    async def build_image(self, request: EngineBuildRequest) -> ImageInfo:
        if request.path is BuildPath.BUILDX:
            image_id = await self.buildx.build(request)
        else:
            image_id = await self._streamed("build", self._legacy_build, request)

        info = await self.inspect_image(image_id)
        if info is None:
            raise EngineOperationFailed("build", f"built image {image_id} is not known to the engine")
        return info

    def _context_tar(self, request: EngineBuildRequest):
        """Tar the local context; return the archive and the Dockerfile path inside it."""
        path = Path(request.context)
        if not path.is_dir():
            raise EngineOperationFailed("build", f"build context {path} is not a directory")
        exclude = []
        dockerignore = path / ".dockerignore"
        if dockerignore.exists():
            lines = dockerignore.read_text().splitlines()
            exclude = [line.strip() for line in lines if line.strip() and not line.startswith("#")]
        try:
            dockerfile = process_dockerfile(request.dockerfile, str(path))
        except OSError as e:
            raise EngineOperationFailed("build", f"cannot read Dockerfile: {e}") from e
        archive = docker_utils.tar(str(path), exclude=exclude, dockerfile=dockerfile)
        return archive, dockerfile[0]

    def _legacy_build(self, request: EngineBuildRequest, stream: _Stream) -> str:
        params = build_params(request)
        headers = {}
        if request.auth_configs:
            headers["X-Registry-Config"] = docker_auth.encode_header(request.auth_configs)

        context = None
        if not request.remote_context:
            context, params["dockerfile"] = self._context_tar(request)
            headers["Content-Type"] = "application/x-tar"

        logger.info(f"Building {', '.join(request.tags) or request.context_ref}")
        try:
            chunks = _check_stream(
                "build", self._open_stream(stream, "/build", data=context, params=params, headers=headers)
            )
        except APIError as e:
            raise EngineOperationFailed("build", e.explanation or str(e), status_code=e.status_code) from e
        finally:
            if context is not None:
                context.close()

        image_id = _built_image_id(chunks)
        if image_id is None:
            raise EngineOperationFailed("build", "engine did not report an image ID")
        return image_id

    async def inspect_image(self, ref: str) -> Optional[ImageInfo]:
        try:
            data = await asyncio.to_thread(self.api.inspect_image, ref)
        except ImageNotFound:
            return None
        except APIError as e:
            raise EngineOperationFailed("inspect", e.explanation or str(e), status_code=e.status_code) from e
        name = ref if not ref.startswith("sha256:") else (data.get("RepoTags") or [ref])[0]
        return ImageInfo(
            image_id=data["Id"],
            repo_digest=pick_repo_digest(name, data.get("RepoDigests")),
        )

    async def remove_image(self, ref: str, force: bool = False) -> None:
        logger.info(f"Removing image {ref}" + (" (forced)" if force else ""))
        try:
            await asyncio.to_thread(self.api.remove_image, ref, force=force)
        except ImageNotFound:
            logger.debug(f"Image {ref} already absent")
        except APIError as e:
            raise EngineOperationFailed("remove", e.explanation or str(e), status_code=e.status_code) from e

    async def cancel_build(self, build_id: str) -> None:
        def _cancel():
            response = self.api._post(self.api._url("/build/cancel"), params={"id": build_id})
            self.api._raise_for_status(response)

        try:
            await asyncio.to_thread(_cancel)
        except APIError as e:
            raise EngineOperationFailed("cancel", e.explanation or str(e), status_code=e.status_code) from e
