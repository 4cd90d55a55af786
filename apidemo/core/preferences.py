"""Preference view over a ``key = value`` config file."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from .config_manager import ConfigManager, get_config_manager
from .logging_utils import get_module_logger

logger = get_module_logger(__name__)


class ModulePreferences:
    """Lightweight cached wrapper around ConfigManager for one config file."""

    def __init__(
        self,
        config_path: Path,
        *,
        config_manager: Optional[ConfigManager] = None,
        initial_data: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._config_path = Path(config_path)
        self._manager = config_manager or get_config_manager()
        self._cache: Dict[str, Any] = {}
        if initial_data is not None:
            self._cache = dict(initial_data)
        else:
            self.reload()

    @classmethod
    async def load_async(
        cls,
        config_path: Path,
        *,
        config_manager: Optional[ConfigManager] = None,
    ) -> "ModulePreferences":
        manager = config_manager or get_config_manager()
        data = await manager.read_config_async(Path(config_path))
        return cls(config_path, config_manager=manager, initial_data=data)

    @property
    def path(self) -> Path:
        return self._config_path

    def snapshot(self) -> Dict[str, Any]:
        return dict(self._cache)

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        return self._cache.get(key, default)

    def reload(self) -> Dict[str, Any]:
        self._cache = self._manager.read_config(self._config_path)
        logger.debug("Loaded %d preference values from %s", len(self._cache), self._config_path)
        return self.snapshot()


__all__ = ["ModulePreferences"]
