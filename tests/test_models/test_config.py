"""Tests for configuration models."""

import pytest
from pydantic import ValidationError

from dockhand.models.config import DockhandConfig, DockerConfig


def test_defaults():
    """Test default settings."""
    config = DockhandConfig()
    assert config.log_level == "INFO"
    assert config.docker.timeout == 60
    assert config.docker.host is None
    assert config.global_ is False


def test_log_level_uppercased():
    """Test the log level is uppercased."""
    assert DockhandConfig(log_level="debug").log_level == "DEBUG"


def test_invalid_log_level():
    """Test an unknown log level is rejected."""
    with pytest.raises(ValidationError):
        DockhandConfig(log_level="LOUD")


def test_global_alias():
    """Test the global key populates global_."""
    assert DockhandConfig(**{"global": True}).global_ is True
    assert DockhandConfig(global_=True).global_ is True


def test_timeout_must_be_positive():
    """Test a zero timeout is rejected."""
    with pytest.raises(ValidationError):
        DockerConfig(timeout=0)
