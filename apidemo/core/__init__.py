"""Shared infrastructure: logging, configuration and asyncio helpers."""

from .logging_utils import StructuredLogger, ensure_structured_logger, get_module_logger
from .logging_config import configure_logging
from .config_manager import ConfigManager, get_config_manager
from .preferences import ModulePreferences

__all__ = [
    "ConfigManager",
    "ModulePreferences",
    "StructuredLogger",
    "configure_logging",
    "ensure_structured_logger",
    "get_config_manager",
    "get_module_logger",
]
