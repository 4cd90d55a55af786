"""Data types shared by the acquisition core."""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class Capability(Enum):
    """Runtime-permission gated capabilities."""
    CAMERA = "camera"
    LOCATION = "location"
    NOTIFICATIONS = "notifications"


class PermissionState(Enum):
    """Platform-reported authorization state."""
    GRANTED = "granted"
    DENIED = "denied"


class DenialReason(Enum):
    USER_DECLINED = "USER_DECLINED"
    SUPERSEDED = "SUPERSEDED"
    PROMPT_UNAVAILABLE = "PROMPT_UNAVAILABLE"


class ChannelId(Enum):
    """Hardware channels the registry knows how to describe."""
    ACCEL = "accelerometer"
    GYRO = "gyroscope"
    LIGHT = "light"
    MAGNETOMETER = "magnetometer"
    PRESSURE = "pressure"
    PROXIMITY = "proximity"
    TEMPERATURE = "temperature"

    @property
    def arity(self) -> int:
        """Number of values carried by a reading of this channel."""
        return _CHANNEL_ARITY[self]

    @property
    def unit(self) -> str:
        return _CHANNEL_UNITS[self]

    @classmethod
    def coerce(cls, value: "ChannelId | str") -> "ChannelId":
        """Accept a ChannelId, its value ("light") or its name ("LIGHT")."""
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        try:
            return cls(text.lower())
        except ValueError:
            return cls[text.upper()]


_CHANNEL_ARITY = {
    ChannelId.ACCEL: 3,
    ChannelId.GYRO: 3,
    ChannelId.LIGHT: 1,
    ChannelId.MAGNETOMETER: 3,
    ChannelId.PRESSURE: 1,
    ChannelId.PROXIMITY: 1,
    ChannelId.TEMPERATURE: 1,
}

_CHANNEL_UNITS = {
    ChannelId.ACCEL: "m/s^2",
    ChannelId.GYRO: "rad/s",
    ChannelId.LIGHT: "lx",
    ChannelId.MAGNETOMETER: "uT",
    ChannelId.PRESSURE: "hPa",
    ChannelId.PROXIMITY: "cm",
    ChannelId.TEMPERATURE: "degC",
}

# Channels monitored when the caller does not name any
DEFAULT_CHANNELS = (ChannelId.ACCEL, ChannelId.GYRO, ChannelId.LIGHT)


@dataclass(frozen=True, slots=True)
class ChannelDescriptor:
    """Static description of one hardware channel."""

    channel_id: ChannelId
    vendor: str = ""
    power_draw_ma: float = 0.0
    version_code: int = 0
    available: bool = True
    name: str = ""

    @classmethod
    def missing(cls, channel_id: ChannelId) -> "ChannelDescriptor":
        """Placeholder for a channel the platform does not report."""
        return cls(channel_id=channel_id, available=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "channel": self.channel_id.value,
            "name": self.name,
            "vendor": self.vendor,
            "power_draw_ma": self.power_draw_ma,
            "version_code": self.version_code,
            "available": self.available,
        }


@dataclass(frozen=True, slots=True)
class Reading:
    """A single sample from one channel."""

    channel_id: ChannelId
    timestamp_monotonic: float
    values: tuple[float, ...]

    def __post_init__(self) -> None:
        values = tuple(float(v) for v in self.values)
        expected = self.channel_id.arity
        if len(values) != expected:
            raise ValueError(
                f"{self.channel_id.value} readings carry {expected} value(s), got {len(values)}"
            )
        object.__setattr__(self, "values", values)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp_monotonic,
            "values": list(self.values),
            "unit": self.channel_id.unit,
        }


class Snapshot(Mapping[ChannelId, Reading]):
    """Immutable view of the latest reading per channel.

    Keys follow subscription order and only include channels that have
    reported at least once. A new Snapshot replaces the previous one on
    every update.
    """

    __slots__ = ("_entries", "_sequence")

    def __init__(self, entries: Iterable[tuple[ChannelId, Reading]] = (), *, sequence: int = 0) -> None:
        self._entries: dict[ChannelId, Reading] = dict(entries)
        self._sequence = sequence

    @property
    def sequence(self) -> int:
        return self._sequence

    def __getitem__(self, key: ChannelId) -> Reading:
        return self._entries[key]

    def __iter__(self) -> Iterator[ChannelId]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        channels = ", ".join(cid.value for cid in self._entries)
        return f"Snapshot(seq={self._sequence}, channels=[{channels}])"

    def to_dict(self) -> dict[str, Any]:
        return {
            "sequence": self._sequence,
            "channels": {cid.value: reading.to_dict() for cid, reading in self._entries.items()},
        }


class LocationProvider(Enum):
    GPS = "gps"
    NETWORK = "network"


class FixSource(Enum):
    CACHED = "cached"
    LIVE = "live"


@dataclass(frozen=True, slots=True)
class PositionFix:
    """One resolved position."""

    latitude: float
    longitude: float
    provider: LocationProvider
    source: FixSource = FixSource.LIVE
    altitude: Optional[float] = None
    accuracy_m: Optional[float] = None
    speed_mps: Optional[float] = None
    bearing_deg: Optional[float] = None
    timestamp: Optional[float] = None

    def with_source(self, source: FixSource) -> "PositionFix":
        if source is self.source:
            return self
        return dataclasses.replace(self, source=source)

    def to_dict(self) -> dict[str, Any]:
        data = {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "provider": self.provider.value,
            "source": self.source.value,
        }
        for key in ("altitude", "accuracy_m", "speed_mps", "bearing_deg", "timestamp"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


@dataclass(frozen=True, slots=True)
class SubscriptionHandle:
    """Opaque token returned by a platform source for one subscription."""

    handle_id: int
    target: str


__all__ = [
    "Capability",
    "ChannelDescriptor",
    "ChannelId",
    "DEFAULT_CHANNELS",
    "DenialReason",
    "FixSource",
    "LocationProvider",
    "PermissionState",
    "PositionFix",
    "Reading",
    "Snapshot",
    "SubscriptionHandle",
]
