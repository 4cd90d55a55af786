"""Asynchronous telemetry acquisition core.

Permission gating, sensor channel inventory, live reading merging,
position fallback resolution and owner-scoped session lifecycle.
"""

from .channels import ChannelRegistry
from .config import AcquisitionConfig
from .errors import (
    AcquisitionError,
    ChannelBusy,
    ChannelNotFound,
    ChannelUnavailable,
    NoFixAvailable,
    OwnerSuspended,
    PermissionDenied,
    PromptUnavailable,
    ProviderAccessError,
    SessionTerminated,
)
from .lifecycle import OwnerState, SessionLifecycle
from .merger import LiveReadingMerger
from .permissions import PermissionGate, PermissionResult
from .position import LivePositionSession, PositionFallbackResolver
from .session import CancellationToken, MonitoringSession, SessionKind, SessionState
from .types import (
    DEFAULT_CHANNELS,
    Capability,
    ChannelDescriptor,
    ChannelId,
    DenialReason,
    FixSource,
    LocationProvider,
    PermissionState,
    PositionFix,
    Reading,
    Snapshot,
    SubscriptionHandle,
)

__all__ = [
    "AcquisitionConfig",
    "AcquisitionError",
    "CancellationToken",
    "Capability",
    "ChannelBusy",
    "ChannelDescriptor",
    "ChannelId",
    "ChannelNotFound",
    "ChannelRegistry",
    "ChannelUnavailable",
    "DEFAULT_CHANNELS",
    "DenialReason",
    "FixSource",
    "LivePositionSession",
    "LiveReadingMerger",
    "LocationProvider",
    "MonitoringSession",
    "NoFixAvailable",
    "OwnerState",
    "OwnerSuspended",
    "PermissionDenied",
    "PermissionGate",
    "PermissionResult",
    "PermissionState",
    "PositionFallbackResolver",
    "PositionFix",
    "PromptUnavailable",
    "ProviderAccessError",
    "Reading",
    "SessionKind",
    "SessionLifecycle",
    "SessionState",
    "Snapshot",
    "SubscriptionHandle",
]
