"""
Permission Gate - runtime permission queries and coalesced consent prompts.

Only one consent prompt is on screen at a time. Concurrent requests for
the same capability share one pending prompt; requesting another
capability supersedes the prompt that is still open.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from apidemo.core.asyncio_utils import call_in_loop
from apidemo.core.logging_utils import get_module_logger

from .errors import PermissionDenied, PromptUnavailable
from .sources.base import PermissionSubsystem
from .types import Capability, DenialReason, PermissionState

logger = get_module_logger("PermissionGate")


@dataclass(frozen=True, slots=True)
class PermissionResult:
    """Outcome of a permission request."""

    capability: Capability
    granted: bool
    reason: Optional[DenialReason] = None

    @classmethod
    def allow(cls, capability: Capability) -> "PermissionResult":
        return cls(capability=capability, granted=True)

    @classmethod
    def deny(cls, capability: Capability, reason: DenialReason) -> "PermissionResult":
        return cls(capability=capability, granted=False, reason=reason)

    def raise_for_denial(self) -> "PermissionResult":
        """Raise PermissionDenied (or PromptUnavailable) unless granted."""
        if self.granted:
            return self
        if self.reason is DenialReason.PROMPT_UNAVAILABLE:
            raise PromptUnavailable(self.capability)
        raise PermissionDenied(
            self.capability,
            reason=self.reason.value if self.reason else None,
        )


class PermissionGate:
    """Tracks authorization state and drives the platform consent prompt.

    Usage:
        gate = PermissionGate(subsystem)

        if not gate.is_granted(Capability.LOCATION):
            result = await gate.request_and_await(Capability.LOCATION)
            result.raise_for_denial()
    """

    def __init__(
        self,
        subsystem: PermissionSubsystem,
        *,
        implicit: Iterable[Capability] = (),
    ):
        """
        Args:
            subsystem: Platform permission store and prompt.
            implicit: Capabilities the platform grants without a prompt
                (e.g. notifications on older platform releases).
        """
        self._subsystem = subsystem
        self._implicit = frozenset(implicit)
        self._pending: Dict[Capability, asyncio.Future] = {}
        self._prompt_count = 0

    @property
    def prompt_count(self) -> int:
        """Number of platform prompts issued so far."""
        return self._prompt_count

    def pending(self) -> frozenset:
        return frozenset(c for c, fut in self._pending.items() if not fut.done())

    def is_granted(self, capability: Capability) -> bool:
        if capability in self._implicit:
            return True
        return self._subsystem.current_state(capability) is PermissionState.GRANTED

    async def request_and_await(self, capability: Capability) -> PermissionResult:
        """Prompt for ``capability`` and wait for the user's answer.

        Returns immediately when already granted. A cancelled caller does
        not cancel the prompt for other callers waiting on it.
        """
        if self.is_granted(capability):
            return PermissionResult.allow(capability)

        pending = self._pending.get(capability)
        if pending is not None and not pending.done():
            logger.debug("Joining pending %s prompt", capability.value)
            return await asyncio.shield(pending)

        future = self._open_prompt(capability)
        return await asyncio.shield(future)

    def _open_prompt(self, capability: Capability) -> asyncio.Future:
        loop = asyncio.get_running_loop()

        for other, other_future in list(self._pending.items()):
            if other is not capability and not other_future.done():
                logger.info("%s prompt superseded by %s request", other.value, capability.value)
                self._settle(other, other_future, PermissionResult.deny(other, DenialReason.SUPERSEDED))

        future: asyncio.Future = loop.create_future()
        self._pending[capability] = future

        def _on_answer(state: Optional[PermissionState]) -> None:
            call_in_loop(loop, self._resolve_prompt, capability, future, state)

        self._prompt_count += 1
        logger.info("Requesting %s permission", capability.value)
        try:
            self._subsystem.prompt_user(capability, _on_answer)
        except PromptUnavailable:
            logger.warning("Cannot show %s prompt: no foreground context", capability.value)
            self._settle(
                capability,
                future,
                PermissionResult.deny(capability, DenialReason.PROMPT_UNAVAILABLE),
            )
        except BaseException:
            self._pending.pop(capability, None)
            raise
        return future

    def _resolve_prompt(
        self,
        capability: Capability,
        future: asyncio.Future,
        state: Optional[PermissionState],
    ) -> None:
        if future.done():
            logger.debug("Late %s prompt answer ignored", capability.value)
            return
        if state is PermissionState.GRANTED:
            result = PermissionResult.allow(capability)
        elif state is None:
            result = PermissionResult.deny(capability, DenialReason.SUPERSEDED)
        else:
            result = PermissionResult.deny(capability, DenialReason.USER_DECLINED)
        logger.info(
            "%s permission %s",
            capability.value,
            "granted" if result.granted else f"denied ({result.reason.value})",
        )
        self._settle(capability, future, result)

    def _settle(self, capability: Capability, future: asyncio.Future, result: PermissionResult) -> None:
        if not future.done():
            future.set_result(result)
        if self._pending.get(capability) is future:
            del self._pending[capability]


__all__ = ["PermissionGate", "PermissionResult"]
