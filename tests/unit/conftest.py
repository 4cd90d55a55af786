"""Unit test fixtures for isolated, fast test execution.

This conftest provides fixtures specifically for unit tests that:
- Run in complete isolation (config files live under tmp_path)
- Execute quickly (no sleeps longer than a few milliseconds)
- Use the fakes from tests/infrastructure/mocks for all platform access

The root conftest provides the platform fakes (channel_source,
location_source, permission_subsystem) and a registry over them.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

import pytest


# =============================================================================
# Isolated Environment Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def config_manager():
    """A fresh ConfigManager, independent of the process singleton."""
    from apidemo.core.config_manager import ConfigManager
    return ConfigManager()


@pytest.fixture(scope="function")
def write_config(tmp_path: Path) -> Callable[[str], Path]:
    """Write a config file and return its path.

    Example:
        def test_reads_channels(write_config):
            path = write_config("channels = light\\n")
    """
    def _write(text: str, name: str = "config.txt") -> Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write


# =============================================================================
# Global State Reset
# =============================================================================

@pytest.fixture(scope="function")
def restore_root_logging():
    """Restore root handlers after a test reconfigures logging."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
