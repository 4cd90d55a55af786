"""
Channel Registry - hardware channel inventory and per-owner channel claims.

The platform inventory is queried once and cached; hardware does not
change at runtime. Every known ChannelId has a descriptor: channels the
platform does not report get a placeholder with ``available=False``.
"""

from __future__ import annotations

from typing import Dict, Hashable, Optional, Tuple

from apidemo.core.logging_utils import get_module_logger

from .errors import ChannelBusy, ChannelNotFound, ChannelUnavailable
from .sources.base import ChannelSource
from .types import ChannelDescriptor, ChannelId

logger = get_module_logger("ChannelRegistry")


class ChannelRegistry:
    """Cached hardware inventory plus exclusive channel claims."""

    def __init__(self, source: ChannelSource):
        self._source = source
        self._descriptors: Optional[Dict[ChannelId, ChannelDescriptor]] = None
        # (owner_key, channel) -> holder
        self._claims: Dict[Tuple[Hashable, ChannelId], Hashable] = {}

    @property
    def source(self) -> ChannelSource:
        return self._source

    # =========================================================================
    # Inventory
    # =========================================================================

    def _inventory(self) -> Dict[ChannelId, ChannelDescriptor]:
        if self._descriptors is None:
            reported: Dict[ChannelId, ChannelDescriptor] = {}
            for descriptor in self._source.inventory():
                reported.setdefault(descriptor.channel_id, descriptor)

            # Enum order keeps listings stable regardless of platform order
            self._descriptors = {
                channel_id: reported.get(channel_id) or ChannelDescriptor.missing(channel_id)
                for channel_id in ChannelId
            }
            available = sum(1 for d in self._descriptors.values() if d.available)
            logger.info("Hardware inventory loaded: %d of %d channels available", available, len(ChannelId))
        return self._descriptors

    def list_available(self) -> Tuple[ChannelDescriptor, ...]:
        """Descriptors of the channels the platform can deliver."""
        return tuple(d for d in self._inventory().values() if d.available)

    def list_all(self) -> Tuple[ChannelDescriptor, ...]:
        """Descriptors for every known channel, including absent ones."""
        return tuple(self._inventory().values())

    def describe(self, channel_id: ChannelId | str) -> ChannelDescriptor:
        try:
            key = ChannelId.coerce(channel_id)
        except (KeyError, ValueError):
            raise ChannelNotFound(f"Unknown channel: {channel_id!r}") from None
        return self._inventory()[key]

    def require(self, channel_id: ChannelId | str) -> ChannelDescriptor:
        """Like describe(), but raise ChannelUnavailable for absent hardware."""
        descriptor = self.describe(channel_id)
        if not descriptor.available:
            raise ChannelUnavailable(f"{descriptor.channel_id.value} is not available on this device")
        return descriptor

    # =========================================================================
    # Claims
    # =========================================================================

    def claim(self, channel_id: ChannelId, owner_key: Hashable, holder: Hashable) -> None:
        """Reserve ``channel_id`` for ``holder`` within ``owner_key``.

        Re-claiming by the same holder is a no-op.
        """
        key = (owner_key, channel_id)
        current = self._claims.get(key)
        if current is not None and current != holder:
            raise ChannelBusy(
                f"{channel_id.value} is already held by {current!r} in owner {owner_key!r}"
            )
        self._claims[key] = holder

    def release(self, channel_id: ChannelId, owner_key: Hashable, holder: Hashable) -> None:
        key = (owner_key, channel_id)
        if self._claims.get(key) == holder:
            del self._claims[key]

    def holder_of(self, channel_id: ChannelId, owner_key: Hashable) -> Optional[Hashable]:
        return self._claims.get((owner_key, channel_id))


__all__ = ["ChannelRegistry"]
