"""
Position Fallback Resolver - resolves one position fix through a fixed chain.

Resolution order:
1. cached fix from the primary provider
2. cached fix from the secondary provider
3. one-shot live subscription on the primary provider

There is no retry beyond this chain. A live subscription that never
fires keeps the call pending until the caller's timeout or cancellation
token ends it; no default duration is assumed.
"""

from __future__ import annotations

import asyncio
from typing import Dict, Hashable, Optional, Set

from apidemo.core.asyncio_utils import call_in_loop
from apidemo.core.logging_utils import LoggerLike, ensure_structured_logger

from .errors import AcquisitionError, NoFixAvailable, PermissionDenied, ProviderAccessError
from .permissions import PermissionGate
from .session import CancellationToken, MonitoringSession, SessionKind
from .sources.base import LocationSource
from .types import Capability, FixSource, LocationProvider, PositionFix


class LivePositionSession(MonitoringSession):
    """One-shot live subscription shared by every concurrent resolve() call.

    The first fix unsubscribes immediately and completes all waiters;
    later events from the platform are dropped. When the last waiter
    leaves before a fix arrives the subscription is torn down.
    """

    kind = SessionKind.POSITION

    def __init__(
        self,
        source: LocationSource,
        provider: LocationProvider,
        *,
        owner_key: Optional[Hashable] = None,
        logger: LoggerLike = None,
    ):
        super().__init__(f"LivePosition[{provider.value}]", owner_key=owner_key, logger=logger)
        self._source = source
        self._provider = provider
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._waiters: Set[asyncio.Future] = set()
        self._fix: Optional[PositionFix] = None

    @property
    def provider(self) -> LocationProvider:
        return self._provider

    @property
    def waiter_count(self) -> int:
        return len(self._waiters)

    def start(self) -> "LivePositionSession":
        if self.is_active:
            return self
        loop = asyncio.get_running_loop()
        self._begin()
        self._loop = loop
        try:
            handle = self._source.subscribe_live(self._provider, self._on_fix)
        except AcquisitionError:
            self.stop()
            raise
        except Exception as exc:
            self.stop()
            raise ProviderAccessError(self._provider) from exc

        def _release(handle=handle) -> None:
            self._source.unsubscribe(handle)

        if not self.is_active:
            # The platform delivered a fix from inside subscribe_live()
            _release()
            return self

        self._track(self._provider, handle, _release)
        self.logger.info("Waiting for first live fix from %s", self._provider.value)
        return self

    def attach(self) -> asyncio.Future:
        assert self._loop is not None, "start() must run before attach()"
        waiter = self._loop.create_future()
        if self.is_active:
            self._waiters.add(waiter)
        elif self._fix is not None:
            waiter.set_result(self._fix)
        else:
            waiter.set_exception(NoFixAvailable("Live resolution already stopped"))
        return waiter

    def detach(self, waiter: asyncio.Future) -> None:
        """Remove ``waiter``; stops the session when no waiter is left."""
        self._waiters.discard(waiter)
        if not self._waiters and self.is_active:
            self.logger.info("Live fix request abandoned; unsubscribing from %s", self._provider.value)
            self.stop()

    def _on_fix(self, fix: PositionFix) -> None:
        """Platform callback; may run on any thread."""
        if not self.is_active or self._loop is None:
            return
        call_in_loop(self._loop, self._deliver, fix)

    def _deliver(self, fix: PositionFix) -> None:
        if not self.is_active:
            self.logger.debug("Dropping live fix received after one-shot completion")
            return
        self._fix = fix.with_source(FixSource.LIVE)
        self.stop()

    def _on_stopped(self) -> None:
        # stop() may run on a foreign thread; waiters complete on their loop
        waiters, self._waiters = self._waiters, set()
        if waiters and self._loop is not None:
            call_in_loop(self._loop, self._settle, waiters, self._fix)

    def _settle(self, waiters: Set[asyncio.Future], fix: Optional[PositionFix]) -> None:
        for waiter in waiters:
            if waiter.done():
                continue
            if fix is not None:
                waiter.set_result(fix)
            else:
                waiter.set_exception(
                    NoFixAvailable(f"Live {self._provider.value} resolution stopped before a fix arrived")
                )


class PositionFallbackResolver:
    """Resolve a position via cached fixes, then a one-shot live update.

    Usage:
        resolver = PositionFallbackResolver(location_source)
        fix = await resolver.resolve(timeout=30.0)
    """

    def __init__(
        self,
        source: LocationSource,
        *,
        primary: LocationProvider = LocationProvider.GPS,
        secondary: LocationProvider = LocationProvider.NETWORK,
        gate: Optional[PermissionGate] = None,
        default_timeout: Optional[float] = None,
        owner_key: Optional[Hashable] = None,
        logger: LoggerLike = None,
    ):
        self._source = source
        self._primary = primary
        self._secondary = secondary
        self._gate = gate
        self._default_timeout = default_timeout
        self.owner_key: Hashable = owner_key if owner_key is not None else f"resolver@{id(self):x}"
        self.logger = ensure_structured_logger(logger, fallback_name="PositionFallbackResolver")
        self._live: Optional[LivePositionSession] = None

    @property
    def live_session(self) -> Optional[LivePositionSession]:
        """The pending live session, if a resolution is waiting on one."""
        return self._live

    @property
    def is_resolving(self) -> bool:
        return self._live is not None and self._live.is_active

    async def resolve(
        self,
        *,
        timeout: Optional[float] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> PositionFix:
        """Return a fix or raise NoFixAvailable.

        Raises:
            PermissionDenied: a gate was supplied and LOCATION is not granted.
            ProviderAccessError: the platform failed reading a provider.
            NoFixAvailable: timed out, cancelled or stopped before a live fix.
        """
        if self._gate is not None and not self._gate.is_granted(Capability.LOCATION):
            raise PermissionDenied(Capability.LOCATION)
        if cancel is not None and cancel.cancelled:
            raise NoFixAvailable("Resolution cancelled before it started", reason="CANCELLED")
        if timeout is None:
            timeout = self._default_timeout

        for provider in (self._primary, self._secondary):
            fix = self._cached_fix(provider)
            if fix is not None:
                self.logger.info("Using cached %s fix", provider.value)
                return fix.with_source(FixSource.CACHED)

        self.logger.info("No cached fix; requesting live updates from %s", self._primary.value)
        session = self._live_session()
        waiter = session.attach()

        detach_cancel = None
        if cancel is not None:
            detach_cancel = cancel.add_callback(lambda: self._abandon(session, waiter))

        try:
            if timeout is None:
                return await waiter
            return await asyncio.wait_for(waiter, timeout)
        except asyncio.TimeoutError:
            raise NoFixAvailable(f"No live fix within {timeout:g}s", reason="TIMEOUT") from None
        finally:
            if detach_cancel is not None:
                detach_cancel()
            session.detach(waiter)

    def provider_status(self) -> Dict[LocationProvider, bool]:
        """Enabled state of the primary and secondary providers.

        Informational only; the fallback chain queries both providers
        whatever their state.
        """
        status: Dict[LocationProvider, bool] = {}
        for provider in (self._primary, self._secondary):
            try:
                status[provider] = bool(self._source.provider_enabled(provider))
            except AcquisitionError:
                raise
            except Exception as exc:
                raise ProviderAccessError(provider) from exc
        return status

    def stop(self) -> None:
        """Abandon any pending live resolution; waiters get NoFixAvailable."""
        if self._live is not None:
            self._live.stop()

    # ------------------------------------------------------------------
    # Internal helpers

    def _cached_fix(self, provider: LocationProvider) -> Optional[PositionFix]:
        try:
            return self._source.last_known_fix(provider)
        except AcquisitionError:
            raise
        except Exception as exc:
            self.logger.error("Reading cached %s fix failed: %s", provider.value, exc)
            raise ProviderAccessError(provider) from exc

    def _live_session(self) -> LivePositionSession:
        if self._live is not None and self._live.is_active:
            self.logger.debug("Joining pending live resolution")
            return self._live

        session = LivePositionSession(
            self._source,
            self._primary,
            owner_key=self.owner_key,
            logger=self.logger.getChild("live"),
        )
        session.add_stop_callback(self._on_session_stopped)
        session.start()
        if session.is_active:
            self._live = session
        return session

    def _on_session_stopped(self, session: MonitoringSession) -> None:
        if self._live is session:
            self._live = None

    def _abandon(self, session: LivePositionSession, waiter: asyncio.Future) -> None:
        """Token callback; may run on any thread.

        The unsubscribe in ``detach`` happens before this returns, the
        waiter is failed on its own loop.
        """
        call_in_loop(waiter.get_loop(), _cancel_waiter, waiter)
        session.detach(waiter)


def _cancel_waiter(waiter: asyncio.Future) -> None:
    if not waiter.done():
        waiter.set_exception(NoFixAvailable("Resolution cancelled", reason="CANCELLED"))


__all__ = ["LivePositionSession", "PositionFallbackResolver"]
