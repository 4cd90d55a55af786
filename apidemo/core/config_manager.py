"""Reads ``key = value`` configuration files."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Dict, Iterable, Optional

import aiofiles

from .logging_utils import get_module_logger

logger = get_module_logger("ConfigManager")


class ConfigManager:

    @staticmethod
    def parse_config_lines(lines: Iterable[str]) -> Dict[str, str]:
        config: Dict[str, str] = {}

        for raw_line in lines:
            line = raw_line.strip()
            if not line or line.startswith('#'):
                continue
            if '=' not in line:
                continue

            key, value = line.split('=', 1)
            key = key.strip()
            value = value.strip()

            if '#' in value:
                value = value.split('#')[0].strip()

            if (value.startswith('"') and value.endswith('"')) or (value.startswith("'") and value.endswith("'")):
                value = value[1:-1]

            config[key] = value

        return config

    def read_config(self, config_path: Path) -> Dict[str, str]:
        config_path = Path(config_path)
        if not config_path.exists():
            logger.debug("Config %s not found; using defaults", config_path)
            return {}

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                return self.parse_config_lines(f)
        except OSError as e:
            logger.error("Failed to read config %s: %s", config_path, e)
            return {}

    async def read_config_async(self, config_path: Path) -> Dict[str, str]:
        config_path = Path(config_path)
        if not await asyncio.to_thread(config_path.exists):
            logger.debug("Config %s not found; using defaults", config_path)
            return {}

        try:
            async with aiofiles.open(config_path, 'r', encoding='utf-8') as f:
                lines = await f.readlines()
        except OSError as e:
            logger.error("Failed to read config %s: %s", config_path, e)
            return {}
        return self.parse_config_lines(lines)


_config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """Get the singleton ConfigManager instance."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


__all__ = ["ConfigManager", "get_config_manager"]
