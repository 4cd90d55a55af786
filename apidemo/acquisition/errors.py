"""Error taxonomy for the acquisition core.

Every error carries a ``reason`` code so callers can branch without
string matching. Nothing in the core retries; retry policy belongs to
the caller.
"""

from __future__ import annotations

from typing import Optional


class AcquisitionError(RuntimeError):
    """Base class for all acquisition-core failures."""

    reason = "ACQUISITION_ERROR"

    def __init__(self, message: str = "", *, reason: Optional[str] = None) -> None:
        super().__init__(message or self.__class__.__name__)
        if reason is not None:
            self.reason = reason


class PermissionDenied(AcquisitionError):
    reason = "PERMISSION_DENIED"

    def __init__(self, capability, message: str = "", *, reason: Optional[str] = None) -> None:
        self.capability = capability
        label = getattr(capability, "value", capability)
        super().__init__(message or f"Permission for {label} was not granted", reason=reason)


class PromptUnavailable(PermissionDenied):
    """The platform could not present a consent prompt (no foreground context)."""

    reason = "PROMPT_UNAVAILABLE"


class ChannelUnavailable(AcquisitionError):
    reason = "CHANNEL_UNAVAILABLE"


class ChannelNotFound(AcquisitionError, KeyError):
    reason = "CHANNEL_NOT_FOUND"

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else self.reason


class ChannelBusy(AcquisitionError):
    """A channel is already held by another session of the same owner."""

    reason = "CHANNEL_BUSY"


class SessionTerminated(AcquisitionError):
    """The session handle was stopped; a new session must be created."""

    reason = "SESSION_TERMINATED"


class OwnerSuspended(AcquisitionError):
    reason = "OWNER_SUSPENDED"


class NoFixAvailable(AcquisitionError):
    """The fallback chain was exhausted, timed out or cancelled."""

    reason = "NO_FIX_AVAILABLE"


class ProviderAccessError(AcquisitionError):
    """The platform failed while reading or subscribing to a location provider."""

    reason = "PROVIDER_ACCESS_ERROR"

    def __init__(self, provider, message: str = "", *, reason: Optional[str] = None) -> None:
        self.provider = provider
        label = getattr(provider, "value", provider)
        super().__init__(message or f"Location provider {label} is not accessible", reason=reason)


__all__ = [
    "AcquisitionError",
    "ChannelBusy",
    "ChannelNotFound",
    "ChannelUnavailable",
    "NoFixAvailable",
    "OwnerSuspended",
    "PermissionDenied",
    "PromptUnavailable",
    "ProviderAccessError",
    "SessionTerminated",
]
