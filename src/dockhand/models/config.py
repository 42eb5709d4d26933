"""Configuration models."""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class DockerConfig(BaseModel):
    """Docker daemon connection settings."""
    host: Optional[str] = Field(default=None, description="Daemon socket, e.g. unix:///var/run/docker.sock")
    timeout: int = Field(default=60, ge=1, description="Per-call deadline in seconds")
    tls_verify: bool = Field(default=False)
    cert_path: Optional[str] = None


class DockhandConfig(BaseModel):
    """Main configuration model."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    log_level: str = Field(default="INFO")
    docker: DockerConfig = Field(default_factory=DockerConfig)
    global_: bool = Field(
        default=False,
        alias="global",
        description="Consider every container on the host, not only managed ones",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()
