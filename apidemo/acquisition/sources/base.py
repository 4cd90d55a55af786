"""Interfaces of the platform collaborators the acquisition core consumes.

Platform callbacks may run on any thread; the core hops them onto its
event loop before touching shared state.
"""

from __future__ import annotations

from typing import Callable, Optional, Protocol, Sequence, runtime_checkable

from ..types import (
    Capability,
    ChannelDescriptor,
    ChannelId,
    LocationProvider,
    PermissionState,
    PositionFix,
    Reading,
    SubscriptionHandle,
)

ReadingCallback = Callable[[Reading], None]
FixCallback = Callable[[PositionFix], None]
# ``None`` reports a prompt the platform interrupted without an answer
PromptCallback = Callable[[Optional[PermissionState]], None]


@runtime_checkable
class PermissionSubsystem(Protocol):
    """Platform permission store and consent prompt."""

    def current_state(self, capability: Capability) -> PermissionState:
        ...

    def prompt_user(self, capability: Capability, callback: PromptCallback) -> None:
        """Show the consent prompt; raise PromptUnavailable if it cannot be shown."""
        ...


@runtime_checkable
class ChannelSource(Protocol):
    """Hardware sensor inventory and event subscriptions."""

    def inventory(self) -> Sequence[ChannelDescriptor]:
        ...

    def subscribe(self, channel_id: ChannelId, on_reading: ReadingCallback) -> SubscriptionHandle:
        ...

    def unsubscribe(self, handle: SubscriptionHandle) -> None:
        ...


@runtime_checkable
class LocationSource(Protocol):
    """Location providers: cached fixes and live update subscriptions."""

    def provider_enabled(self, provider: LocationProvider) -> bool:
        """Whether the user or device currently has ``provider`` switched on."""
        ...

    def last_known_fix(self, provider: LocationProvider) -> Optional[PositionFix]:
        ...

    def subscribe_live(self, provider: LocationProvider, on_fix: FixCallback) -> SubscriptionHandle:
        """Subscribe with no minimum time or distance between updates."""
        ...

    def unsubscribe(self, handle: SubscriptionHandle) -> None:
        ...


__all__ = [
    "ChannelSource",
    "FixCallback",
    "LocationSource",
    "PermissionSubsystem",
    "PromptCallback",
    "ReadingCallback",
]
