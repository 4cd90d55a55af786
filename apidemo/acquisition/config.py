"""Typed configuration for the acquisition core."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional

from apidemo.core.typed_config import (
    PreferenceSource,
    get_pref_bool,
    get_pref_float,
    get_pref_list,
    get_pref_optional_float,
    get_pref_path,
    get_pref_str,
)

from .types import DEFAULT_CHANNELS, Capability, ChannelId, LocationProvider


@dataclass(slots=True)
class AcquisitionConfig:
    """Typed configuration for the acquisition core and its CLI."""

    # Sensors
    channels: tuple[str, ...] = field(
        default_factory=lambda: tuple(c.value for c in DEFAULT_CHANNELS)
    )

    # Position
    primary_provider: str = LocationProvider.GPS.value
    secondary_provider: str = LocationProvider.NETWORK.value
    position_timeout_s: Optional[float] = None

    # Permissions
    implicit_capabilities: tuple[str, ...] = (Capability.NOTIFICATIONS.value,)

    # Logging
    log_level: str = "info"
    log_file: Optional[Path] = None
    console_output: bool = True

    # Simulated platform
    sim_sensor_interval_s: float = 0.2
    sim_live_fix_delay_s: float = 1.5
    sim_origin_lat: float = 40.7608
    sim_origin_lon: float = -111.8910
    sim_cached_providers: tuple[str, ...] = ()
    sim_disabled_providers: tuple[str, ...] = ()

    @classmethod
    def from_preferences(
        cls, prefs: PreferenceSource, args: Any = None
    ) -> "AcquisitionConfig":
        """Build config from preferences with optional CLI overrides."""
        defaults = cls()

        config = cls(
            # Sensors
            channels=get_pref_list(prefs, "channels", defaults.channels),
            # Position
            primary_provider=get_pref_str(prefs, "primary_provider", defaults.primary_provider),
            secondary_provider=get_pref_str(prefs, "secondary_provider", defaults.secondary_provider),
            position_timeout_s=get_pref_optional_float(prefs, "position_timeout_s", defaults.position_timeout_s),
            # Permissions
            implicit_capabilities=get_pref_list(prefs, "implicit_capabilities", defaults.implicit_capabilities),
            # Logging
            log_level=get_pref_str(prefs, "log_level", defaults.log_level),
            log_file=get_pref_path(prefs, "log_file", defaults.log_file),
            console_output=get_pref_bool(prefs, "console_output", defaults.console_output),
            # Simulated platform
            sim_sensor_interval_s=get_pref_float(prefs, "sim.sensor_interval_s", defaults.sim_sensor_interval_s),
            sim_live_fix_delay_s=get_pref_float(prefs, "sim.live_fix_delay_s", defaults.sim_live_fix_delay_s),
            sim_origin_lat=get_pref_float(prefs, "sim.origin_lat", defaults.sim_origin_lat),
            sim_origin_lon=get_pref_float(prefs, "sim.origin_lon", defaults.sim_origin_lon),
            sim_cached_providers=get_pref_list(prefs, "sim.cached_providers", defaults.sim_cached_providers),
            sim_disabled_providers=get_pref_list(prefs, "sim.disabled_providers", defaults.sim_disabled_providers),
        )

        # Apply CLI argument overrides if provided
        if args is not None:
            config = config._apply_args_override(args)

        return config

    def _apply_args_override(self, args: Any) -> "AcquisitionConfig":
        """Apply CLI argument overrides to config values."""
        values = asdict(self)

        arg_mappings = {
            "channels": "channels",
            "timeout": "position_timeout_s",
            "log_level": "log_level",
            "log_file": "log_file",
            "console_output": "console_output",
            "interval": "sim_sensor_interval_s",
            "live_delay": "sim_live_fix_delay_s",
            "cached": "sim_cached_providers",
            "disabled": "sim_disabled_providers",
        }

        for arg_name, config_key in arg_mappings.items():
            if hasattr(args, arg_name):
                val = getattr(args, arg_name)
                if val is not None:
                    values[config_key] = tuple(val) if isinstance(val, list) else val

        return AcquisitionConfig(**values)

    # ------------------------------------------------------------------
    # Typed views

    @property
    def channel_ids(self) -> tuple[ChannelId, ...]:
        """Configured channels as ChannelId; raises ValueError on unknown names."""
        resolved = []
        for name in self.channels:
            try:
                resolved.append(ChannelId.coerce(name))
            except (KeyError, ValueError):
                raise ValueError(f"Unknown channel in configuration: {name!r}") from None
        return tuple(resolved)

    @property
    def primary(self) -> LocationProvider:
        return LocationProvider(self.primary_provider.strip().lower())

    @property
    def secondary(self) -> LocationProvider:
        return LocationProvider(self.secondary_provider.strip().lower())

    @property
    def implicit(self) -> frozenset[Capability]:
        return frozenset(Capability(name.strip().lower()) for name in self.implicit_capabilities)

    @property
    def cached_providers(self) -> tuple[LocationProvider, ...]:
        return tuple(LocationProvider(name.strip().lower()) for name in self.sim_cached_providers)

    @property
    def disabled_providers(self) -> tuple[LocationProvider, ...]:
        return tuple(LocationProvider(name.strip().lower()) for name in self.sim_disabled_providers)

    def to_dict(self) -> dict[str, Any]:
        """Export config values as dictionary."""
        return asdict(self)


__all__ = ["AcquisitionConfig"]
