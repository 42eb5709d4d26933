"""Settings file handling."""

import asyncio
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from dockhand.engine.errors import DockhandError
from dockhand.models.config import DockhandConfig


logger = logging.getLogger(__name__)

CONFIG_ENV = "DOCKHAND_CONFIG"
DEFAULT_CONFIG = Path("~/.dockhand.yaml")


class ConfigManager:
    """Loads the optional dockhand settings file."""

    def __init__(self, config_file: Optional[Path] = None):
        """Initialize configuration manager."""
        self.config_file = Path(config_file) if config_file else None
        self.yaml = YAML(typ="safe")
        self.config: Optional[DockhandConfig] = None

    def resolve_path(self) -> Optional[Path]:
        """Return the settings file to read, or None when there is none.

        An explicit path or DOCKHAND_CONFIG must exist; the default file in
        the home directory is optional.
        """
        if self.config_file is not None:
            return self.config_file
        env_path = os.environ.get(CONFIG_ENV)
        if env_path:
            return Path(env_path)
        default = DEFAULT_CONFIG.expanduser()
        if default.exists():
            return default
        return None

    async def load(self) -> DockhandConfig:
        """Load configuration, falling back to defaults."""
        path = self.resolve_path()
        data: Dict[str, Any] = {}

        if path is not None:
            logger.debug(f"Loading configuration from {path}")
            if not path.exists():
                raise DockhandError(f"Config file not found: {path}")
            data = await self._read_yaml(path)

        docker_host = os.environ.get("DOCKER_HOST")
        if docker_host:
            data["docker"] = {**(data.get("docker") or {}), "host": docker_host}

        try:
            self.config = DockhandConfig(**data)
        except ValidationError as e:
            logger.error(f"Invalid config: {e}")
            raise DockhandError(f"Invalid config {path}: {e}") from e

        return self.config

    async def _read_yaml(self, file_path: Path) -> Dict[str, Any]:
        """Read and parse YAML file."""
        try:
            content = await asyncio.to_thread(file_path.read_text)
            data = self.yaml.load(content) or {}
        except (OSError, YAMLError) as e:
            raise DockhandError(f"Cannot read config {file_path}: {e}") from e
        if not isinstance(data, dict):
            raise DockhandError(f"Config {file_path} must be a mapping")
        return data
