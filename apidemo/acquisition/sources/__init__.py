"""Platform collaborator interfaces and simulated implementations."""

from .base import (
    ChannelSource,
    FixCallback,
    LocationSource,
    PermissionSubsystem,
    PromptCallback,
    ReadingCallback,
)
from .simulated import (
    DEFAULT_INVENTORY,
    SimulatedChannelSource,
    SimulatedLocationSource,
    SimulatedPermissionSubsystem,
)

__all__ = [
    "ChannelSource",
    "DEFAULT_INVENTORY",
    "FixCallback",
    "LocationSource",
    "PermissionSubsystem",
    "PromptCallback",
    "ReadingCallback",
    "SimulatedChannelSource",
    "SimulatedLocationSource",
    "SimulatedPermissionSubsystem",
]
