"""
Session Lifecycle - binds monitoring sessions to an owning context.

An owner (a screen, a CLI run, a test) has one of three states:
- ACTIVE: sessions may be started
- SUSPENDED: every bound session was stopped; nothing new may start
- DESTROYED: terminal; all bindings were dropped

Suspension stops bound sessions synchronously, before ``suspend()``
returns. Resuming never restarts a stopped session; the caller starts a
new one explicitly.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from typing import Dict, Optional

from apidemo.core.logging_utils import get_module_logger

from .channels import ChannelRegistry
from .errors import OwnerSuspended
from .merger import LiveReadingMerger, SnapshotObserver
from .position import PositionFallbackResolver
from .session import CancellationToken, MonitoringSession, SessionKind
from .types import DEFAULT_CHANNELS, ChannelId, PositionFix


class OwnerState(Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    DESTROYED = "destroyed"


class SessionLifecycle:
    """Owner-scoped session bookkeeping.

    At most one ACTIVE session per SessionKind exists per owner; asking
    for another returns the existing one.

    Usage:
        lifecycle = SessionLifecycle("sensor-screen", registry=registry)
        merger = lifecycle.start_monitoring(observer=render)
        ...
        lifecycle.suspend()   # owner paused: listeners are gone on return
    """

    def __init__(
        self,
        name: str,
        *,
        registry: Optional[ChannelRegistry] = None,
        resolver: Optional[PositionFallbackResolver] = None,
    ):
        self.name = name
        self.logger = get_module_logger(f"SessionLifecycle.{name}")
        self._registry = registry
        self._resolver = resolver
        self._state = OwnerState.ACTIVE
        self._sessions: Dict[SessionKind, MonitoringSession] = {}

        if resolver is not None:
            resolver.owner_key = name

    # =========================================================================
    # State
    # =========================================================================

    @property
    def state(self) -> OwnerState:
        return self._state

    @property
    def resolver(self) -> Optional[PositionFallbackResolver]:
        return self._resolver

    def active_session(self, kind: SessionKind) -> Optional[MonitoringSession]:
        session = self._sessions.get(kind)
        if session is not None and session.is_active:
            return session
        return None

    def _ensure_active(self) -> None:
        if self._state is not OwnerState.ACTIVE:
            raise OwnerSuspended(f"Owner {self.name} is {self._state.value}; resume it first")

    # =========================================================================
    # Binding
    # =========================================================================

    def bind(self, session: MonitoringSession) -> MonitoringSession:
        """Tie ``session`` to this owner.

        Returns the already ACTIVE session of the same kind when there is
        one; ``session`` is then left untouched.
        """
        self._ensure_active()
        existing = self.active_session(session.kind)
        if existing is not None and existing is not session:
            self.logger.debug("Reusing active %s session", session.kind.value)
            return existing

        self._sessions[session.kind] = session
        session.add_stop_callback(self._forget)
        return session

    def _forget(self, session: MonitoringSession) -> None:
        if self._sessions.get(session.kind) is session:
            del self._sessions[session.kind]

    # =========================================================================
    # Entry points
    # =========================================================================

    def start_monitoring(
        self,
        channels: Iterable[ChannelId | str] = DEFAULT_CHANNELS,
        *,
        observer: Optional[SnapshotObserver] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> LiveReadingMerger:
        """Start (or return) this owner's sensor session."""
        self._ensure_active()
        existing = self.active_session(SessionKind.SENSOR)
        if existing is not None:
            self.logger.debug("Sensor session already active; returning it")
            return existing  # type: ignore[return-value]

        if self._registry is None:
            raise RuntimeError(f"Owner {self.name} has no channel registry")

        merger = LiveReadingMerger(
            self._registry,
            owner_key=self.name,
            name=f"{self.name}.sensors",
        )
        merger.start(channels, observer=observer, cancel=cancel)
        self.bind(merger)
        return merger

    async def resolve_position(
        self,
        *,
        timeout: Optional[float] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> PositionFix:
        """Resolve a fix through the owner's resolver."""
        self._ensure_active()
        if self._resolver is None:
            raise RuntimeError(f"Owner {self.name} has no position resolver")
        return await self._resolver.resolve(timeout=timeout, cancel=cancel)

    # =========================================================================
    # Owner transitions
    # =========================================================================

    def suspend(self) -> None:
        """Stop every bound session; returns after all listeners are gone."""
        if self._state is not OwnerState.ACTIVE:
            return
        self._state = OwnerState.SUSPENDED
        self._stop_all()
        self.logger.info("Owner suspended")

    def resume(self) -> None:
        """Allow new sessions again. Nothing is restarted automatically."""
        if self._state is OwnerState.SUSPENDED:
            self._state = OwnerState.ACTIVE
            self.logger.info("Owner resumed")

    def destroy(self) -> None:
        if self._state is OwnerState.DESTROYED:
            return
        self._stop_all()
        self._state = OwnerState.DESTROYED
        self._resolver = None
        self.logger.info("Owner destroyed")

    def _stop_all(self) -> None:
        for session in list(self._sessions.values()):
            session.stop()
        self._sessions.clear()
        if self._resolver is not None:
            self._resolver.stop()

    async def __aenter__(self) -> "SessionLifecycle":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.destroy()


__all__ = ["OwnerState", "SessionLifecycle"]
