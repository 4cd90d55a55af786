"""Simulated platform collaborators.

Back the CLI and demos on machines without sensor hardware. Sensor
values are baseline plus gaussian noise; live position fixes jitter
around a configured origin.
"""

from __future__ import annotations

import asyncio
import itertools
import time
from typing import Callable, Dict, Iterable, Mapping, Optional, Sequence, Set

import numpy as np

from apidemo.core.asyncio_utils import create_logged_task
from apidemo.core.logging_utils import get_module_logger

from ..errors import ChannelUnavailable, PromptUnavailable
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
from .base import FixCallback, PromptCallback, ReadingCallback

logger = get_module_logger("SimulatedPlatform")

_handle_ids = itertools.count(1)

# (baseline, noise sigma) per channel
_CHANNEL_PROFILES: Dict[ChannelId, tuple[tuple[float, ...], float]] = {
    ChannelId.ACCEL: ((0.0, 0.0, 9.81), 0.05),
    ChannelId.GYRO: ((0.0, 0.0, 0.0), 0.01),
    ChannelId.LIGHT: ((320.0,), 6.0),
    ChannelId.MAGNETOMETER: ((22.0, -5.0, 42.0), 0.4),
    ChannelId.PRESSURE: ((1013.25,), 0.2),
    ChannelId.PROXIMITY: ((5.0,), 0.0),
    ChannelId.TEMPERATURE: ((24.0,), 0.1),
}

DEFAULT_INVENTORY: tuple[ChannelDescriptor, ...] = (
    ChannelDescriptor(ChannelId.ACCEL, vendor="Bosch", power_draw_ma=0.18, version_code=1, name="BMI160 Accelerometer"),
    ChannelDescriptor(ChannelId.GYRO, vendor="Bosch", power_draw_ma=0.9, version_code=1, name="BMI160 Gyroscope"),
    ChannelDescriptor(ChannelId.LIGHT, vendor="ams", power_draw_ma=0.1, version_code=2, name="TSL2591 Light"),
    ChannelDescriptor(ChannelId.MAGNETOMETER, vendor="AKM", power_draw_ma=1.1, version_code=1, name="AK09918 Magnetometer"),
)


def _next_handle(target: str) -> SubscriptionHandle:
    return SubscriptionHandle(handle_id=next(_handle_ids), target=target)


class SimulatedChannelSource:
    """Emits noisy readings for each subscribed channel at a fixed interval."""

    def __init__(
        self,
        inventory: Optional[Sequence[ChannelDescriptor]] = None,
        *,
        interval: float = 0.2,
        seed: Optional[int] = None,
    ):
        self._inventory = tuple(inventory) if inventory is not None else DEFAULT_INVENTORY
        self._interval = interval
        self._rng = np.random.default_rng(seed)
        self._tasks: Dict[SubscriptionHandle, asyncio.Task] = {}
        self.inventory_calls = 0

    @property
    def active_subscriptions(self) -> int:
        return len(self._tasks)

    def inventory(self) -> Sequence[ChannelDescriptor]:
        self.inventory_calls += 1
        return self._inventory

    def sample(self, channel_id: ChannelId) -> Reading:
        baseline, sigma = _CHANNEL_PROFILES[channel_id]
        values = np.asarray(baseline) + self._rng.normal(0.0, sigma, size=len(baseline))
        return Reading(channel_id, time.monotonic(), tuple(values.tolist()))

    def subscribe(self, channel_id: ChannelId, on_reading: ReadingCallback) -> SubscriptionHandle:
        if not any(d.channel_id is channel_id and d.available for d in self._inventory):
            raise ChannelUnavailable(f"{channel_id.value} is not present on the simulated device")
        handle = _next_handle(channel_id.value)
        self._tasks[handle] = create_logged_task(
            self._emit_loop(channel_id, on_reading),
            logger=logger,
            context=f"sim.{channel_id.value}.{handle.handle_id}",
        )
        logger.debug("Simulated %s subscription %d opened", channel_id.value, handle.handle_id)
        return handle

    def unsubscribe(self, handle: SubscriptionHandle) -> None:
        task = self._tasks.pop(handle, None)
        if task is None:
            logger.debug("Unknown subscription handle %s", handle)
            return
        task.cancel()
        logger.debug("Simulated %s subscription %d closed", handle.target, handle.handle_id)

    async def _emit_loop(self, channel_id: ChannelId, on_reading: ReadingCallback) -> None:
        while True:
            await asyncio.sleep(self._interval)
            on_reading(self.sample(channel_id))


class SimulatedLocationSource:
    """Cached fixes on demand plus periodic live fixes around an origin.

    A disabled provider has no cached fix and its live subscription
    never fires.
    """

    def __init__(
        self,
        *,
        origin: tuple[float, float] = (40.7608, -111.8910),
        live_delay: float = 1.5,
        cached: Optional[Mapping[LocationProvider, PositionFix]] = None,
        disabled: Iterable[LocationProvider] = (),
        seed: Optional[int] = None,
    ):
        self._origin = origin
        self._live_delay = live_delay
        self._cached: Dict[LocationProvider, PositionFix] = dict(cached or {})
        self._disabled: Set[LocationProvider] = set(disabled)
        self._rng = np.random.default_rng(seed)
        self._tasks: Dict[SubscriptionHandle, asyncio.Task] = {}

    @property
    def active_subscriptions(self) -> int:
        return len(self._tasks)

    def set_enabled(self, provider: LocationProvider, enabled: bool) -> None:
        if enabled:
            self._disabled.discard(provider)
        else:
            self._disabled.add(provider)

    def provider_enabled(self, provider: LocationProvider) -> bool:
        return provider not in self._disabled

    def set_cached(self, provider: LocationProvider, fix: Optional[PositionFix]) -> None:
        if fix is None:
            self._cached.pop(provider, None)
        else:
            self._cached[provider] = fix

    def cache_origin(self, providers: Iterable[LocationProvider]) -> None:
        """Seed a cached fix at the origin for each of ``providers``."""
        for provider in providers:
            self._cached[provider] = self.generate_fix(provider, accuracy_m=50.0)

    def generate_fix(self, provider: LocationProvider, *, accuracy_m: float = 5.0) -> PositionFix:
        # ~10 m of jitter in degrees
        dlat, dlon = self._rng.normal(0.0, 1e-4, size=2)
        return PositionFix(
            latitude=float(self._origin[0] + dlat),
            longitude=float(self._origin[1] + dlon),
            provider=provider,
            altitude=float(1288.0 + self._rng.normal(0.0, 2.0)),
            accuracy_m=accuracy_m,
            speed_mps=0.0,
            timestamp=time.time(),
        )

    def last_known_fix(self, provider: LocationProvider) -> Optional[PositionFix]:
        if provider in self._disabled:
            return None
        return self._cached.get(provider)

    def subscribe_live(self, provider: LocationProvider, on_fix: FixCallback) -> SubscriptionHandle:
        handle = _next_handle(provider.value)
        self._tasks[handle] = create_logged_task(
            self._emit_loop(provider, on_fix),
            logger=logger,
            context=f"sim.location.{provider.value}.{handle.handle_id}",
        )
        logger.debug("Simulated live %s subscription %d opened", provider.value, handle.handle_id)
        return handle

    def unsubscribe(self, handle: SubscriptionHandle) -> None:
        task = self._tasks.pop(handle, None)
        if task is None:
            logger.debug("Unknown subscription handle %s", handle)
            return
        task.cancel()
        logger.debug("Simulated live %s subscription %d closed", handle.target, handle.handle_id)

    async def _emit_loop(self, provider: LocationProvider, on_fix: FixCallback) -> None:
        while True:
            await asyncio.sleep(self._live_delay)
            if provider in self._disabled:
                continue
            fix = self.generate_fix(provider)
            self._cached[provider] = fix
            on_fix(fix)


class SimulatedPermissionSubsystem:
    """Permission store whose prompt answers after a delay with a scripted state.

    An answer of ``None`` reports the prompt as interrupted.
    """

    def __init__(
        self,
        *,
        granted: Iterable[Capability] = (),
        answers: Optional[Mapping[Capability, Optional[PermissionState]]] = None,
        foreground: bool = True,
        answer_delay: float = 0.0,
    ):
        self._states: Dict[Capability, PermissionState] = {c: PermissionState.GRANTED for c in granted}
        self._answers: Dict[Capability, Optional[PermissionState]] = dict(answers or {})
        self.foreground = foreground
        self._answer_delay = answer_delay
        self.prompts_shown: list[Capability] = []

    def current_state(self, capability: Capability) -> PermissionState:
        return self._states.get(capability, PermissionState.DENIED)

    def set_state(self, capability: Capability, state: PermissionState) -> None:
        self._states[capability] = state

    def prompt_user(self, capability: Capability, callback: PromptCallback) -> None:
        if not self.foreground:
            raise PromptUnavailable(capability)
        self.prompts_shown.append(capability)
        answer = self._answers.get(capability, PermissionState.GRANTED)
        loop = asyncio.get_running_loop()
        loop.call_later(self._answer_delay, self._answer, capability, answer, callback)

    def _answer(
        self,
        capability: Capability,
        answer: Optional[PermissionState],
        callback: Callable[[Optional[PermissionState]], None],
    ) -> None:
        if answer is not None:
            self._states[capability] = answer
        callback(answer)


__all__ = [
    "DEFAULT_INVENTORY",
    "SimulatedChannelSource",
    "SimulatedLocationSource",
    "SimulatedPermissionSubsystem",
]
