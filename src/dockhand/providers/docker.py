"""Docker client for managing containers through the Docker SDK."""

import asyncio
import logging
import os
import uuid
from typing import Any, Callable, Dict, List, Optional

import docker
from docker.errors import DockerException, ImageNotFound, NotFound
from docker.tls import TLSConfig
from docker.types import Ulimit as DockerUlimit
from pydantic import ValidationError

from dockhand.engine.errors import ClientError, ContainerStateError
from dockhand.models.config import DockerConfig
from dockhand.models.container import Container, ContainerName, ContainerSpec, ContainerState
from dockhand.providers.base import BaseClient


logger = logging.getLogger(__name__)

LABEL_ID = "dockhand-id"
LABEL_CONFIG = "dockhand-config"


class DockerClient(BaseClient):
    """Client for a single Docker daemon.

    Containers created by dockhand carry two labels: a random id used to find
    managed containers, and the JSON dump of their specification used to
    compare them with the manifest on the next run.
    """

    def __init__(self, config: Optional[DockerConfig] = None, global_: bool = False, api=None):
        """Initialize docker client."""
        self.config = config or DockerConfig()
        self.global_ = global_
        self._api = api

    @property
    def api(self) -> docker.DockerClient:
        """Docker SDK client, connected on first use."""
        if self._api is None:
            self._api = self._connect()
        return self._api

    def _connect(self) -> docker.DockerClient:
        host = self.config.host or os.environ.get("DOCKER_HOST")
        try:
            if not host:
                return docker.from_env(timeout=self.config.timeout)

            tls = None
            if self.config.tls_verify and self.config.cert_path:
                cert_path = os.path.expanduser(self.config.cert_path)
                tls = TLSConfig(
                    client_cert=(
                        os.path.join(cert_path, "cert.pem"),
                        os.path.join(cert_path, "key.pem"),
                    ),
                    ca_cert=os.path.join(cert_path, "ca.pem"),
                    verify=True,
                )
            return docker.DockerClient(base_url=host, timeout=self.config.timeout, tls=tls)
        except DockerException as e:
            raise ClientError(f"Cannot connect to docker daemon: {e}") from e

    async def _call(self, fn: Callable[..., Any], *args, **kwargs) -> Any:
        """Run a blocking SDK call in a thread."""
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except DockerException as e:
            raise ClientError(str(e)) from e

    async def _find(self, container: Container):
        """Return the SDK container object, or None if it does not exist."""
        ref = container.runtime_id or container.name.full_name
        try:
            return await asyncio.to_thread(self.api.containers.get, ref)
        except NotFound:
            return None
        except DockerException as e:
            raise ClientError(str(e)) from e

    async def info(self, advanced: bool = False) -> Dict[str, Any]:
        """Return daemon version details, plus the full daemon info if advanced."""
        result: Dict[str, Any] = {
            "host": self.config.host or os.environ.get("DOCKER_HOST") or "default",
            "tls_verify": self.config.tls_verify,
            "version": await self._call(self.api.version),
        }
        if advanced:
            result["info"] = await self._call(self.api.info)
        return result

    async def list_containers(self, global_: bool = False) -> List[Container]:
        """Return managed containers, or every container in global mode."""
        filters = {} if (global_ or self.global_) else {"label": LABEL_ID}
        items = await self._call(self.api.containers.list, all=True, filters=filters)
        logger.info(f"Gathering info about {len(items)} containers")
        return [self._from_docker(item) for item in items]

    async def fetch_image_ids(self, containers: List[Container]) -> None:
        """Resolve image references to the ids of the local images."""
        image_ids: Dict[str, Optional[str]] = {}
        for container in containers:
            image = container.spec.image
            if not image:
                continue

            if image not in image_ids:
                try:
                    item = await asyncio.to_thread(self.api.images.get, image)
                    image_ids[image] = item.id
                except ImageNotFound:
                    logger.debug(f"Image {image} is not present locally")
                    image_ids[image] = None
                except DockerException as e:
                    raise ClientError(f"Failed to inspect image {image}: {e}") from e

            container.image_id = image_ids[image]

    def _from_docker(self, item) -> Container:
        labels = item.labels or {}
        name = ContainerName.parse(item.name)

        spec = ContainerSpec()
        raw = labels.get(LABEL_CONFIG)
        if raw:
            try:
                spec = ContainerSpec.model_validate_json(raw)
            except ValidationError as e:
                logger.warning(f"Container {name} has unreadable configuration label: {e}")

        state = item.attrs.get("State", {})
        return Container(
            name=name,
            spec=spec,
            runtime_id=item.id,
            image_id=item.attrs.get("Image"),
            state=ContainerState(
                running=bool(state.get("Running", False)),
                exit_code=state.get("ExitCode", 0),
                error=state.get("Error", ""),
            ),
        )

    def create_options(self, container: Container) -> Dict[str, Any]:
        """Translate a container into keyword arguments for containers.create."""
        spec = container.spec

        labels = dict(spec.labels)
        labels[LABEL_ID] = uuid.uuid4().hex
        labels[LABEL_CONFIG] = spec.model_dump_json(exclude_defaults=True)

        options: Dict[str, Any] = {
            "image": spec.image,
            "name": container.name.full_name,
            "labels": labels,
            "command": spec.cmd or None,
            "entrypoint": spec.entrypoint or None,
            "environment": spec.env or None,
            "volumes": spec.volumes or None,
            "volumes_from": [n.full_name for n in spec.volumes_from] or None,
            "links": {n.full_name: n.link_alias for n in spec.links} or None,
            "dns": spec.dns or None,
            "network_mode": spec.net,
            "pid_mode": spec.pid,
            "hostname": spec.hostname,
            "domainname": spec.domainname,
            "user": spec.user,
            "working_dir": spec.workdir,
            "privileged": spec.privileged,
            "publish_all_ports": spec.publish_all_ports,
            "network_disabled": spec.network_disabled,
            "mem_limit": spec.memory,
            "memswap_limit": spec.memory_swap,
            "cpu_shares": spec.cpu_shares,
            "cpuset_cpus": spec.cpuset_cpus,
            "oom_kill_disable": spec.oom_kill_disable,
        }

        if spec.add_host:
            hosts = {}
            for entry in spec.add_host:
                host, _, ip = entry.partition(":")
                hosts[host] = ip
            options["extra_hosts"] = hosts

        if spec.ports:
            ports: Dict[str, List[Any]] = {}
            for binding in spec.ports:
                host_port = int(binding.host_port) if binding.host_port else None
                if binding.host_ip:
                    value = (binding.host_ip, host_port) if host_port else (binding.host_ip,)
                else:
                    value = host_port
                ports.setdefault(binding.port, []).append(value)
            options["ports"] = {
                port: values[0] if len(values) == 1 else values
                for port, values in ports.items()
            }

        if spec.restart is not None and spec.restart.name:
            options["restart_policy"] = {
                "Name": spec.restart.name,
                "MaximumRetryCount": spec.restart.maximum_retry_count,
            }

        if spec.ulimits:
            options["ulimits"] = [
                DockerUlimit(name=u.name, soft=u.soft, hard=u.hard) for u in spec.ulimits
            ]

        return {key: value for key, value in options.items() if value is not None}

    async def create_container(self, container: Container) -> None:
        """Create a container and start it unless it should only be created."""
        logger.info(f"Create container {container}")
        options = self.create_options(container)
        logger.debug(f"Creating container with options: {options}")

        created = await self._call(self.api.containers.create, **options)
        # reported by the plan summary
        container.runtime_id = created.id

        if container.spec.state != "created":
            await self._start(container, created)

    async def _start(self, container: Container, item) -> None:
        logger.info(f"Starting container {container} id:{item.id[:12]}")
        await self._call(item.start)

    async def remove_container(self, container: Container) -> None:
        """Stop and remove a container."""
        item = await self._find(container)
        if item is None:
            logger.debug(f"Container {container} already absent")
            return

        logger.info(f"Removing container {container} id:{item.id[:12]}")

        kill_timeout = container.spec.kill_timeout
        if kill_timeout:
            await self._call(item.stop, timeout=kill_timeout)

        keep_volumes = bool(container.spec.keep_volumes)
        await self._call(item.remove, force=True, v=not keep_volumes)

    async def ensure_container(self, container: Container) -> None:
        """Create the container if absent, start it if it should be running."""
        logger.info(f"Checking container exist {container}")
        item = await self._find(container)
        if item is None:
            await self.create_container(container)
            return

        if container.spec.running and item.status != "running":
            await self._start(container, item)

    async def wait_for_container(self, container: Container) -> None:
        """Wait for a run-once container and check its exit code."""
        item = await self._find(container)
        if item is None:
            raise ClientError(f"Container {container} does not exist")

        state = item.attrs.get("State", {})
        exit_code = state.get("ExitCode", 0)

        # long-running containers are never waited for
        if not container.spec.running and item.status == "running":
            logger.info(f"Waiting container to finish {container}")
            result = await self._call(item.wait)
            exit_code = result.get("StatusCode", 0)

        if exit_code != 0:
            raise ContainerStateError(container, exit_code, state.get("Error", ""))
