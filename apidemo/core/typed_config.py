"""Type coercion helpers for ``from_preferences()`` implementations."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Protocol


class PreferenceSource(Protocol):
    def get(self, key: str, default=None): ...


def get_pref_str(prefs: PreferenceSource, key: str, default: str) -> str:
    val = prefs.get(key)
    return str(val) if val is not None else default


def get_pref_float(prefs: PreferenceSource, key: str, default: float) -> float:
    val = prefs.get(key)
    if val is None:
        return default
    try:
        return float(val)
    except (ValueError, TypeError):
        return default


def get_pref_optional_float(
    prefs: PreferenceSource, key: str, default: Optional[float]
) -> Optional[float]:
    """Like get_pref_float, but an empty value or "none" means unset."""
    val = prefs.get(key)
    if val is None:
        return default
    text = str(val).strip().lower()
    if text in {"", "none", "off"}:
        return None
    try:
        return float(text)
    except ValueError:
        return default


def get_pref_bool(prefs: PreferenceSource, key: str, default: bool) -> bool:
    val = prefs.get(key)
    if val is None:
        return default
    if isinstance(val, bool):
        return val
    return str(val).strip().lower() in {"true", "1", "yes", "on"}


def get_pref_path(prefs: PreferenceSource, key: str, default: Optional[Path]) -> Optional[Path]:
    val = prefs.get(key)
    if val is None:
        return default
    text = str(val).strip()
    return Path(text) if text else default


def get_pref_list(prefs: PreferenceSource, key: str, default: tuple[str, ...]) -> tuple[str, ...]:
    val = prefs.get(key)
    if val is None:
        return default
    if isinstance(val, (list, tuple)):
        return tuple(str(item).strip() for item in val if str(item).strip())
    return tuple(part.strip() for part in str(val).split(",") if part.strip())


__all__ = [
    "PreferenceSource",
    "get_pref_bool",
    "get_pref_float",
    "get_pref_list",
    "get_pref_optional_float",
    "get_pref_path",
    "get_pref_str",
]
