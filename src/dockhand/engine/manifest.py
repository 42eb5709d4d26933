"""Manifest loading.

A manifest is a YAML document, rendered through Jinja2 first:

    namespace: myapp
    containers:
      db:
        image: postgres:16
      web:
        image: myapp/web:{{ version }}
        links: db
"""

import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from jinja2 import TemplateError
from pydantic import BaseModel, Field, ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from dockhand.engine.errors import ManifestError
from dockhand.models.container import Container, ContainerName, ContainerSpec
from dockhand.utils.templates import merge_dicts, render_template


logger = logging.getLogger(__name__)

# alias -> canonical key, applied before extends
FIELD_ALIASES = {
    "command": "cmd",
    "link": "links",
    "label": "labels",
    "hosts": "add_host",
    "working_dir": "workdir",
    "environment": "env",
}

# keys merged key by key when extending; every other key is replaced
MERGED_FIELDS = ("labels", "env")


class Manifest(BaseModel):
    """Parsed manifest."""
    namespace: str = ""
    containers: Dict[str, ContainerSpec] = Field(default_factory=dict)
    source: str = ""

    def has_external_refs(self) -> bool:
        """Return True if any container depends on another namespace."""
        for spec in self.containers.values():
            names = [*spec.links, *spec.volumes_from, *spec.wait_for]
            if spec.net_container is not None:
                names.append(spec.net_container)
            if any(name.namespace != self.namespace for name in names):
                return True
        return False

    def get_containers(self) -> List[Container]:
        """Return the expected containers; names starting with '_' are templates."""
        containers = []
        for name in sorted(self.containers):
            if name.startswith("_"):
                continue
            containers.append(Container(
                name=ContainerName(namespace=self.namespace, name=name),
                spec=self.containers[name],
            ))
        return containers


def _as_mapping(value: Any) -> Any:
    # labels/env may be written as KEY=VALUE lists
    if isinstance(value, (list, tuple)):
        result = {}
        for item in value:
            key, _, val = str(item).partition("=")
            result[key] = val
        return result
    return value


def has_tag(image: str) -> bool:
    """Return True if the image reference carries a tag or a digest."""
    if "@" in image:
        return True
    # registry host may carry a port: registry:5000/app
    return ":" in image.rsplit("/", 1)[-1]


class ManifestLoader:
    """Reads manifests into Manifest objects."""

    def __init__(self, vars: Optional[Dict[str, Any]] = None, namespace: Optional[str] = None):
        self.vars = dict(vars or {})
        self.namespace = namespace
        self.yaml = YAML(typ="safe")

    async def load(self, path: str) -> Manifest:
        """Load a manifest file, '-' reads standard input."""
        if path == "-":
            source = "<STDIN>"
            basedir = Path.cwd()
            content = await asyncio.to_thread(sys.stdin.read)
        else:
            file_path = Path(path).absolute()
            if not file_path.exists():
                raise ManifestError(f"No such file or directory: {file_path}")
            source = str(file_path)
            basedir = file_path.parent
            try:
                content = await asyncio.to_thread(file_path.read_text)
            except OSError as e:
                raise ManifestError(f"Failed to open manifest {file_path}: {e}") from e

        logger.info(f"Reading manifest {source}")
        return self.loads(content, source=source, basedir=basedir)

    def loads(self, content: str, source: str = "<string>", basedir: Optional[Path] = None) -> Manifest:
        """Parse manifest text."""
        basedir = basedir or Path.cwd()

        try:
            rendered = render_template(content, **self.vars)
        except TemplateError as e:
            raise ManifestError(f"Failed to process manifest template {source}: {e}") from e

        try:
            data = self.yaml.load(rendered) or {}
        except YAMLError as e:
            raise ManifestError(f"Failed to parse YAML manifest {source}: {e}") from e

        if not isinstance(data, dict):
            raise ManifestError(f"Manifest {source} must be a mapping")

        namespace = self.namespace or data.get("namespace") or basedir.name
        raw_containers = data.get("containers") or {}
        if not isinstance(raw_containers, dict):
            raise ManifestError(f"'containers' in {source} must be a mapping")

        raw = {}
        for name, spec in raw_containers.items():
            if not isinstance(spec, dict):
                raise ManifestError(f"Invalid specification for container `{name}` in {source}")
            raw[str(name)] = self._apply_aliases(spec)

        containers = {}
        for name, spec in raw.items():
            spec = self._extend(name, spec, raw)
            self._validate_image(name, spec)
            try:
                parsed = ContainerSpec.model_validate(spec)
            except ValidationError as e:
                raise ManifestError(f"Invalid specification for container `{name}`: {e}") from e
            containers[name] = self._normalize(parsed, namespace, basedir)

        logger.debug(f"Loaded {len(containers)} containers in namespace '{namespace}'")
        return Manifest(namespace=namespace, containers=containers, source=source)

    def _apply_aliases(self, spec: Dict[str, Any]) -> Dict[str, Any]:
        result = dict(spec)
        for alias, field in FIELD_ALIASES.items():
            if alias in result:
                value = result.pop(alias)
                result.setdefault(field, value)
        for field in MERGED_FIELDS:
            if field in result:
                result[field] = _as_mapping(result[field])
        return result

    def _extend(self, name: str, spec: Dict[str, Any], raw: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
        parent_name = spec.get("extends")
        if not parent_name:
            return spec

        if parent_name == name:
            raise ManifestError(f"Container {name}: cannot extend from itself")
        if parent_name not in raw:
            raise ManifestError(f"Container {name}: cannot find container {parent_name} to extend from")
        parent = raw[parent_name]
        if parent.get("extends"):
            raise ManifestError(
                f"Container {name}: cannot extend from {parent_name}: multiple inheritance is not allowed"
            )

        base = {key: value for key, value in parent.items() if value is not None}
        child = {key: value for key, value in spec.items() if value is not None}
        merged = {key: value for key, value in base.items() if key not in MERGED_FIELDS}
        merged.update({key: value for key, value in child.items() if key not in MERGED_FIELDS})
        for field in MERGED_FIELDS:
            if field in base or field in child:
                merged[field] = merge_dicts(base.get(field) or {}, child.get(field) or {})
        return merged

    def _validate_image(self, name: str, spec: Dict[str, Any]):
        image = spec.get("image")
        if not image:
            raise ManifestError(f"Image should be specified for container: {name}")
        if not has_tag(str(image)):
            raise ManifestError(f"Image `{image}` for container `{name}`: image without tag is not allowed")

    def _normalize(self, spec: ContainerSpec, namespace: str, basedir: Path) -> ContainerSpec:
        spec = spec.with_namespace(namespace)
        expose = [port if "/" in port else f"{port}/tcp" for port in spec.expose]
        volumes = [self._resolve_volume(volume, basedir) for volume in spec.volumes]
        return spec.model_copy(update={"expose": expose, "volumes": volumes})

    def _resolve_volume(self, volume: str, basedir: Path) -> str:
        host, sep, rest = volume.partition(":")
        if not sep:
            # anonymous volume
            return volume
        if host.startswith("~"):
            host = os.path.expanduser(host)
        if not os.path.isabs(host):
            host = os.path.normpath(os.path.join(str(basedir), host))
        return f"{host}:{rest}"
