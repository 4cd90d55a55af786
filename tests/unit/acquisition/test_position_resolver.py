"""Unit tests for PositionFallbackResolver."""

import asyncio
import threading

import pytest

from apidemo.acquisition.errors import NoFixAvailable, PermissionDenied, ProviderAccessError
from apidemo.acquisition.permissions import PermissionGate
from apidemo.acquisition.position import PositionFallbackResolver
from apidemo.acquisition.session import CancellationToken
from apidemo.acquisition.types import Capability, FixSource, LocationProvider, PermissionState
from tests.infrastructure.mocks.platform_mocks import make_fix

GPS = LocationProvider.GPS
NETWORK = LocationProvider.NETWORK


class TestCachedChain:
    """Test the cached part of the fallback chain."""

    @pytest.mark.asyncio
    async def test_primary_cached_fix_wins(self, location_source):
        location_source.cached[GPS] = make_fix(GPS, lat=1.0)
        location_source.cached[NETWORK] = make_fix(NETWORK, lat=2.0)
        resolver = PositionFallbackResolver(location_source)

        fix = await resolver.resolve()

        assert fix.latitude == 1.0
        assert fix.source is FixSource.CACHED
        assert location_source.cached_queries == [GPS]
        assert location_source.live_subscribe_calls == []

    @pytest.mark.asyncio
    async def test_secondary_cached_fix_used_when_primary_empty(self, location_source):
        location_source.cached[NETWORK] = make_fix(NETWORK, lat=2.0)
        resolver = PositionFallbackResolver(location_source)

        fix = await resolver.resolve()

        assert fix.provider is NETWORK
        assert fix.source is FixSource.CACHED
        assert location_source.cached_queries == [GPS, NETWORK]
        assert location_source.live_subscribe_calls == []

    @pytest.mark.asyncio
    async def test_provider_order_is_configurable(self, location_source):
        location_source.cached[GPS] = make_fix(GPS)
        location_source.cached[NETWORK] = make_fix(NETWORK)
        resolver = PositionFallbackResolver(location_source, primary=NETWORK, secondary=GPS)

        fix = await resolver.resolve()

        assert fix.provider is NETWORK

    @pytest.mark.asyncio
    async def test_cached_query_failure_raises_provider_error(self, location_source):
        location_source.fail_cached = OSError("location service unreachable")
        resolver = PositionFallbackResolver(location_source)

        with pytest.raises(ProviderAccessError) as excinfo:
            await resolver.resolve()

        assert excinfo.value.provider is GPS


class TestLiveFix:
    """Test the one-shot live subscription."""

    @pytest.mark.asyncio
    async def test_live_fix_is_returned_and_unsubscribed(self, location_source):
        resolver = PositionFallbackResolver(location_source)

        task = asyncio.create_task(resolver.resolve())
        await asyncio.sleep(0)
        assert location_source.live_subscribe_calls == [GPS]
        assert resolver.is_resolving

        location_source.emit_fix(make_fix(GPS, lat=3.0))
        fix = await task

        assert fix.latitude == 3.0
        assert fix.source is FixSource.LIVE
        assert location_source.active_subscriptions == 0
        assert not resolver.is_resolving

    @pytest.mark.asyncio
    async def test_later_live_events_are_never_delivered(self, location_source):
        resolver = PositionFallbackResolver(location_source)

        task = asyncio.create_task(resolver.resolve())
        await asyncio.sleep(0)
        callback = next(iter(location_source.callbacks.values()))

        callback(make_fix(GPS, lat=1.0))
        callback(make_fix(GPS, lat=9.0))

        assert (await task).latitude == 1.0
        assert len(location_source.unsubscribe_calls) == 1

    @pytest.mark.asyncio
    async def test_fix_delivered_during_subscribe(self, location_source):
        location_source.deliver_on_subscribe = make_fix(GPS, lat=4.0)
        resolver = PositionFallbackResolver(location_source)

        fix = await asyncio.wait_for(resolver.resolve(), 1.0)

        assert fix.latitude == 4.0
        assert location_source.active_subscriptions == 0
        assert resolver.live_session is None

    @pytest.mark.asyncio
    async def test_subscribe_failure_raises_provider_error(self, location_source):
        location_source.fail_subscribe = RuntimeError("provider disabled")
        resolver = PositionFallbackResolver(location_source)

        with pytest.raises(ProviderAccessError):
            await resolver.resolve()

        assert resolver.live_session is None

    @pytest.mark.asyncio
    async def test_concurrent_resolves_share_one_subscription(self, location_source):
        resolver = PositionFallbackResolver(location_source)

        first = asyncio.create_task(resolver.resolve())
        second = asyncio.create_task(resolver.resolve())
        await asyncio.sleep(0)

        assert location_source.live_subscribe_calls == [GPS]
        assert resolver.live_session.waiter_count == 2

        location_source.emit_fix(make_fix(GPS, lat=5.0))
        results = await asyncio.gather(first, second)

        assert [f.latitude for f in results] == [5.0, 5.0]
        assert location_source.active_subscriptions == 0


class TestAbandonment:
    """Test timeout, cancellation and stop teardown."""

    @pytest.mark.asyncio
    async def test_timeout_raises_no_fix_and_unsubscribes(self, location_source):
        resolver = PositionFallbackResolver(location_source)

        with pytest.raises(NoFixAvailable) as excinfo:
            await resolver.resolve(timeout=0.01)

        assert excinfo.value.reason == "TIMEOUT"
        assert location_source.active_subscriptions == 0
        assert len(location_source.unsubscribe_calls) == 1

    @pytest.mark.asyncio
    async def test_default_timeout_applies(self, location_source):
        resolver = PositionFallbackResolver(location_source, default_timeout=0.01)

        with pytest.raises(NoFixAvailable):
            await resolver.resolve()

        assert location_source.active_subscriptions == 0

    @pytest.mark.asyncio
    async def test_cancel_token_tears_down_synchronously(self, location_source):
        resolver = PositionFallbackResolver(location_source)
        token = CancellationToken()

        task = asyncio.create_task(resolver.resolve(cancel=token))
        await asyncio.sleep(0)
        assert location_source.active_subscriptions == 1

        token.cancel()
        assert location_source.active_subscriptions == 0

        with pytest.raises(NoFixAvailable) as excinfo:
            await task
        assert excinfo.value.reason == "CANCELLED"

    @pytest.mark.asyncio
    async def test_cancel_from_another_thread_wakes_resolve(self, location_source):
        resolver = PositionFallbackResolver(location_source)
        token = CancellationToken()
        loop = asyncio.get_running_loop()
        timer = threading.Timer(0.05, token.cancel)

        started = loop.time()
        timer.start()
        try:
            with pytest.raises(NoFixAvailable) as excinfo:
                await resolver.resolve(cancel=token, timeout=3.0)
        finally:
            timer.join()

        assert loop.time() - started < 1.0
        assert excinfo.value.reason == "CANCELLED"
        assert location_source.active_subscriptions == 0
        assert resolver.live_session is None

    @pytest.mark.asyncio
    async def test_already_cancelled_token_never_subscribes(self, location_source):
        resolver = PositionFallbackResolver(location_source)
        token = CancellationToken()
        token.cancel()

        with pytest.raises(NoFixAvailable):
            await resolver.resolve(cancel=token)

        assert location_source.live_subscribe_calls == []

    @pytest.mark.asyncio
    async def test_task_cancellation_unsubscribes(self, location_source):
        resolver = PositionFallbackResolver(location_source)

        task = asyncio.create_task(resolver.resolve())
        await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert location_source.active_subscriptions == 0

    @pytest.mark.asyncio
    async def test_subscription_kept_while_another_waiter_remains(self, location_source):
        resolver = PositionFallbackResolver(location_source)
        token = CancellationToken()

        leaving = asyncio.create_task(resolver.resolve(cancel=token))
        staying = asyncio.create_task(resolver.resolve())
        await asyncio.sleep(0)

        token.cancel()
        with pytest.raises(NoFixAvailable):
            await leaving
        assert location_source.active_subscriptions == 1

        location_source.emit_fix(make_fix(GPS, lat=6.0))
        assert (await staying).latitude == 6.0
        assert location_source.active_subscriptions == 0

    @pytest.mark.asyncio
    async def test_stop_fails_pending_resolutions(self, location_source):
        resolver = PositionFallbackResolver(location_source)

        task = asyncio.create_task(resolver.resolve())
        await asyncio.sleep(0)
        resolver.stop()

        assert location_source.active_subscriptions == 0
        with pytest.raises(NoFixAvailable):
            await task

    @pytest.mark.asyncio
    async def test_new_resolution_after_abandonment_resubscribes(self, location_source):
        resolver = PositionFallbackResolver(location_source)

        with pytest.raises(NoFixAvailable):
            await resolver.resolve(timeout=0.01)

        task = asyncio.create_task(resolver.resolve())
        await asyncio.sleep(0)
        location_source.emit_fix(make_fix(GPS, lat=7.0))

        assert (await task).latitude == 7.0
        assert location_source.live_subscribe_calls == [GPS, GPS]


class TestPermissionCheck:
    """Test the optional LOCATION permission check."""

    @pytest.mark.asyncio
    async def test_denied_location_raises(self, location_source, permission_subsystem):
        location_source.cached[GPS] = make_fix(GPS)
        gate = PermissionGate(permission_subsystem)
        resolver = PositionFallbackResolver(location_source, gate=gate)

        with pytest.raises(PermissionDenied) as excinfo:
            await resolver.resolve()

        assert excinfo.value.capability is Capability.LOCATION
        assert location_source.cached_queries == []

    @pytest.mark.asyncio
    async def test_granted_location_resolves(self, location_source, permission_subsystem):
        location_source.cached[GPS] = make_fix(GPS)
        permission_subsystem.states[Capability.LOCATION] = PermissionState.GRANTED
        resolver = PositionFallbackResolver(location_source, gate=PermissionGate(permission_subsystem))

        fix = await resolver.resolve()

        assert fix.source is FixSource.CACHED


class TestProviderStatus:
    """Test the provider enabled query."""

    def test_reports_primary_and_secondary(self, location_source):
        location_source.disabled.add(GPS)
        resolver = PositionFallbackResolver(location_source)

        assert resolver.provider_status() == {GPS: False, NETWORK: True}

    def test_platform_failure_raises_provider_error(self, location_source):
        class BrokenStatusSource(type(location_source)):
            def provider_enabled(self, provider):
                raise OSError("settings service unreachable")

        resolver = PositionFallbackResolver(BrokenStatusSource())

        with pytest.raises(ProviderAccessError) as excinfo:
            resolver.provider_status()

        assert excinfo.value.provider is GPS

    @pytest.mark.asyncio
    async def test_status_does_not_change_the_chain(self, location_source):
        location_source.disabled.update({GPS, NETWORK})
        location_source.cached[NETWORK] = make_fix(NETWORK)
        resolver = PositionFallbackResolver(location_source)

        fix = await resolver.resolve()

        assert fix.provider is NETWORK
        assert location_source.cached_queries == [GPS, NETWORK]
