"""Monitoring session state machine and cancellation tokens.

A session owns every subscription created by one ``start``/``resolve``
call. Stopping it releases all of them synchronously, even when some
releases fail; a partially torn down session would leak hardware
listeners.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Hashable, List, Optional

from apidemo.core.logging_utils import LoggerLike, ensure_structured_logger, get_module_logger

from .errors import SessionTerminated

logger = get_module_logger("Session")


class SessionState(Enum):
    IDLE = "idle"
    ACTIVE = "active"
    STOPPED = "stopped"  # terminal


class SessionKind(Enum):
    SENSOR = "sensor"
    POSITION = "position"


class CancellationToken:
    """Caller-held cancellation signal.

    ``cancel()`` runs every registered callback before it returns, so
    teardown attached to the token has completed once ``cancel()`` does.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._callbacks: Dict[int, Callable[[], None]] = {}
        self._ids = itertools.count(1)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        callbacks = list(self._callbacks.values())
        self._callbacks.clear()
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Cancellation callback %r failed", callback)

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register ``callback``; returns a function that unregisters it.

        A callback added to an already cancelled token runs immediately.
        """
        if self._cancelled:
            callback()
            return lambda: None
        key = next(self._ids)
        self._callbacks[key] = callback

        def _remove() -> None:
            self._callbacks.pop(key, None)

        return _remove


@dataclass
class _Subscription:
    handle: Any
    release: Callable[[], None]


class MonitoringSession:
    """Base class for sessions that hold platform subscriptions.

    State transitions:
    - IDLE -> ACTIVE: the subclass ``start`` succeeded
    - ACTIVE -> STOPPED: ``stop()``, cancellation or owner suspension
    - STOPPED is terminal: ``start`` raises SessionTerminated
    """

    kind: SessionKind = SessionKind.SENSOR

    def __init__(
        self,
        name: str,
        *,
        owner_key: Optional[Hashable] = None,
        logger: LoggerLike = None,
    ) -> None:
        self.name = name
        self.owner_key: Hashable = owner_key if owner_key is not None else f"{name}@{id(self):x}"
        self.logger = ensure_structured_logger(logger, fallback_name=name)
        self._state = SessionState.IDLE
        self._subscriptions: Dict[Hashable, _Subscription] = {}
        self._stop_callbacks: List[Callable[["MonitoringSession"], None]] = []
        self._detach_cancel: Optional[Callable[[], None]] = None

    # ------------------------------------------------------------------
    # State

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is SessionState.ACTIVE

    @property
    def subscriptions(self) -> frozenset:
        """Keys of the subscriptions currently held by this session."""
        return frozenset(self._subscriptions)

    def add_stop_callback(self, callback: Callable[["MonitoringSession"], None]) -> None:
        """Call ``callback(session)`` once the session has stopped."""
        if self._state is SessionState.STOPPED:
            callback(self)
            return
        self._stop_callbacks.append(callback)

    # ------------------------------------------------------------------
    # Subclass helpers

    def _begin(self) -> bool:
        """Transition IDLE -> ACTIVE.

        Returns False when already ACTIVE (start is then a no-op).
        """
        if self._state is SessionState.STOPPED:
            raise SessionTerminated(f"{self.name} was stopped; create a new session")
        if self._state is SessionState.ACTIVE:
            return False
        self._state = SessionState.ACTIVE
        self.logger.info("%s session started", self.kind.value)
        return True

    def _track(self, key: Hashable, handle: Any, release: Callable[[], None]) -> None:
        self._subscriptions[key] = _Subscription(handle=handle, release=release)

    def _release(self, key: Hashable) -> None:
        """Release one subscription; failures are logged, never raised."""
        sub = self._subscriptions.pop(key, None)
        if sub is None:
            return
        try:
            sub.release()
        except Exception:
            self.logger.exception("Failed to release subscription %s", key)

    def _watch(self, cancel: Optional["CancellationToken"]) -> None:
        if cancel is not None:
            self._detach_cancel = cancel.add_callback(self.stop)

    def _on_stopped(self) -> None:
        """Hook for subclasses; runs after subscriptions are released."""

    # ------------------------------------------------------------------
    # Teardown

    def stop(self) -> None:
        """Stop the session and release every subscription.

        Idempotent; a no-op on an IDLE or already STOPPED session.
        """
        if self._state is not SessionState.ACTIVE:
            return
        self._state = SessionState.STOPPED

        for key in list(self._subscriptions):
            self._release(key)

        if self._detach_cancel is not None:
            self._detach_cancel()
            self._detach_cancel = None

        self._on_stopped()
        self.logger.info("%s session stopped", self.kind.value)

        callbacks, self._stop_callbacks = self._stop_callbacks, []
        for callback in callbacks:
            try:
                callback(self)
            except Exception:
                self.logger.exception("Stop callback failed")


__all__ = [
    "CancellationToken",
    "MonitoringSession",
    "SessionKind",
    "SessionState",
]
