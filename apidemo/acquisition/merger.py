"""
Live Reading Merger - merges asynchronous channel readings into snapshots.

Platform callbacks only enqueue readings. A single delivery task drains
the queue in arrival order, replaces the channel's entry, rebuilds the
Snapshot and hands it to the observer. Per-channel order is therefore
the order the platform delivered it; nothing is batched or dropped. A
reading whose timestamp goes backwards is still emitted and counted.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Iterable
from typing import Awaitable, Callable, Dict, Hashable, Optional, Union

from apidemo.core.asyncio_utils import call_in_loop, create_logged_task
from apidemo.core.logging_utils import LoggerLike

from .channels import ChannelRegistry
from .errors import ChannelNotFound
from .session import CancellationToken, MonitoringSession, SessionKind
from .types import DEFAULT_CHANNELS, ChannelId, Reading, Snapshot

SnapshotObserver = Callable[[Snapshot], Union[None, Awaitable[None]]]


def _ordered_channels(channels: Iterable[ChannelId | str]) -> list[ChannelId]:
    """Deduplicate requested channels, keeping caller order.

    Unordered collections (sets) fall back to declaration order so the
    resulting subscription order is deterministic.
    """
    coerced = []
    for channel in channels:
        try:
            coerced.append(ChannelId.coerce(channel))
        except (KeyError, ValueError):
            raise ChannelNotFound(f"Unknown channel: {channel!r}") from None
    if isinstance(channels, (set, frozenset)):
        declared = list(ChannelId)
        coerced.sort(key=declared.index)
    return list(dict.fromkeys(coerced))


class LiveReadingMerger(MonitoringSession):
    """Monitoring session that merges readings from several channels."""

    kind = SessionKind.SENSOR

    def __init__(
        self,
        registry: ChannelRegistry,
        *,
        observer: Optional[SnapshotObserver] = None,
        owner_key: Optional[Hashable] = None,
        name: str = "LiveReadingMerger",
        logger: LoggerLike = None,
    ):
        super().__init__(name, owner_key=owner_key, logger=logger)
        self._registry = registry
        self._source = registry.source
        self._observer = observer
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue[Reading]] = None
        self._pump_task: Optional[asyncio.Task] = None
        self._latest: Dict[ChannelId, Reading] = {}
        self._order: list[ChannelId] = []
        self._snapshot = Snapshot()
        self._emitted = 0
        self._out_of_order = 0

    # ------------------------------------------------------------------
    # Introspection

    @property
    def latest(self) -> Snapshot:
        """The most recently emitted Snapshot."""
        return self._snapshot

    @property
    def subscribed_channels(self) -> tuple[ChannelId, ...]:
        return tuple(c for c in self._order if c in self._subscriptions)

    @property
    def emitted_count(self) -> int:
        return self._emitted

    @property
    def out_of_order_count(self) -> int:
        """Readings whose timestamp went backwards; they are still emitted."""
        return self._out_of_order

    # ------------------------------------------------------------------
    # Lifecycle

    def start(
        self,
        channels: Iterable[ChannelId | str] = DEFAULT_CHANNELS,
        *,
        observer: Optional[SnapshotObserver] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> "LiveReadingMerger":
        """Subscribe to ``channels`` and begin emitting snapshots.

        Must be called from a running event loop. Unavailable channels are
        skipped. Returns ``self`` unchanged when already ACTIVE and raises
        SessionTerminated once stopped.
        """
        if self.is_active:
            self.logger.debug("start() ignored; session already active")
            return self

        loop = asyncio.get_running_loop()
        requested = _ordered_channels(channels)
        self._begin()

        if observer is not None:
            self._observer = observer
        self._loop = loop
        self._queue = asyncio.Queue()

        try:
            for channel_id in requested:
                self._subscribe_channel(channel_id)
        except BaseException:
            self.stop()
            raise

        if not self._subscriptions:
            self.logger.warning("No requested channel is available; session has nothing to merge")

        self._pump_task = create_logged_task(
            self._pump(),
            logger=self.logger,
            context=f"{self.name}.pump",
            loop=self._loop,
        )
        self._watch(cancel)
        return self

    def _subscribe_channel(self, channel_id: ChannelId) -> None:
        descriptor = self._registry.describe(channel_id)
        if not descriptor.available:
            self.logger.debug("Skipping unavailable channel %s", channel_id.value)
            return

        self._registry.claim(channel_id, self.owner_key, id(self))
        # Listed before subscribing so readings delivered inline are kept
        self._order.append(channel_id)
        try:
            handle = self._source.subscribe(channel_id, self._on_reading)
        except BaseException:
            self._order.remove(channel_id)
            self._registry.release(channel_id, self.owner_key, id(self))
            raise

        def _release(handle=handle, channel_id=channel_id) -> None:
            try:
                self._source.unsubscribe(handle)
            finally:
                self._registry.release(channel_id, self.owner_key, id(self))

        self._track(channel_id, handle, _release)
        self.logger.debug("Subscribed to %s (%s)", channel_id.value, descriptor.vendor or "unknown vendor")

    def _on_stopped(self) -> None:
        # stop() may run on a foreign thread; the pump and queue belong to the loop
        task, self._pump_task = self._pump_task, None
        loop = self._loop
        if loop is not None and not loop.is_closed():
            call_in_loop(loop, self._discard_pending, task)
        self.logger.debug(
            "Merged %d snapshot(s), %d out-of-order reading(s)",
            self._emitted,
            self._out_of_order,
        )

    def _discard_pending(self, task: Optional[asyncio.Task]) -> None:
        if task is not None:
            task.cancel()
        queue = self._queue
        if queue is not None:
            while not queue.empty():
                queue.get_nowait()
                queue.task_done()

    async def flush(self) -> None:
        """Wait until every reading queued so far has been delivered."""
        if self._queue is None or not self.is_active:
            return
        await self._queue.join()

    # ------------------------------------------------------------------
    # Event delivery

    def _on_reading(self, reading: Reading) -> None:
        """Platform callback; may run on any thread."""
        if not self.is_active or self._loop is None:
            return
        call_in_loop(self._loop, self._enqueue, reading)

    def _enqueue(self, reading: Reading) -> None:
        if not self.is_active or self._queue is None:
            return
        if reading.channel_id not in self._order:
            self.logger.debug("Ignoring reading for unsubscribed channel %s", reading.channel_id.value)
            return
        self._queue.put_nowait(reading)

    async def _pump(self) -> None:
        queue = self._queue
        assert queue is not None
        while True:
            reading = await queue.get()
            try:
                if self.is_active:
                    await self._apply(reading)
            finally:
                queue.task_done()

    async def _apply(self, reading: Reading) -> None:
        channel_id = reading.channel_id
        previous = self._latest.get(channel_id)
        if previous is not None and reading.timestamp_monotonic < previous.timestamp_monotonic:
            self._out_of_order += 1
            self.logger.warning(
                "Out-of-order %s reading (%.6f < %.6f)",
                channel_id.value,
                reading.timestamp_monotonic,
                previous.timestamp_monotonic,
            )

        self._latest[channel_id] = reading
        self._emitted += 1
        self._snapshot = Snapshot(
            ((cid, self._latest[cid]) for cid in self._order if cid in self._latest),
            sequence=self._emitted,
        )
        await self._emit(self._snapshot)

    async def _emit(self, snapshot: Snapshot) -> None:
        observer = self._observer
        if observer is None:
            return
        try:
            result = observer(snapshot)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception:
            self.logger.exception("Snapshot observer failed")


__all__ = ["LiveReadingMerger", "SnapshotObserver"]
