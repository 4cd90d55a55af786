"""apidemo command line entry point.

Every subcommand runs against the simulated platform and prints one JSON
object per line on stdout; logs go to stderr and the optional log file.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, Optional

from apidemo import __version__
from apidemo.acquisition import (
    AcquisitionConfig,
    AcquisitionError,
    CancellationToken,
    Capability,
    ChannelRegistry,
    NoFixAvailable,
    PermissionGate,
    PermissionState,
    PositionFallbackResolver,
    SessionLifecycle,
    Snapshot,
)
from apidemo.acquisition.sources import (
    SimulatedChannelSource,
    SimulatedLocationSource,
    SimulatedPermissionSubsystem,
)
from apidemo.cli.common import (
    add_common_cli_arguments,
    comma_list,
    install_exception_handlers,
    install_signal_handlers,
    load_config,
    remove_signal_handlers,
    setup_logging,
)
from apidemo.core.logging_utils import get_module_logger

logger = get_module_logger("Main")

_ANSWERS = {
    "granted": PermissionState.GRANTED,
    "denied": PermissionState.DENIED,
    "interrupted": None,
}


def emit(payload: dict[str, Any]) -> None:
    sys.stdout.write(json.dumps(payload, sort_keys=True) + "\n")
    sys.stdout.flush()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="apidemo",
        description="Telemetry acquisition demo on a simulated platform",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    add_common_cli_arguments(parser)

    subparsers = parser.add_subparsers(dest="command", required=True)

    channels = subparsers.add_parser("channels", help="List hardware channels")
    channels.add_argument("--all", action="store_true", help="Include channels the device lacks")

    sensors = subparsers.add_parser("sensors", help="Stream merged sensor snapshots")
    sensors.add_argument("--channels", type=comma_list, default=None, help="Comma separated channel names")
    sensors.add_argument("--count", type=int, default=10, help="Stop after this many snapshots (0 = until interrupted)")
    sensors.add_argument("--interval", type=float, default=None, help="Simulated sample interval in seconds")

    locate = subparsers.add_parser("locate", help="Resolve one position fix")
    locate.add_argument("--timeout", type=float, default=None, help="Seconds to wait for a live fix")
    locate.add_argument("--cached", type=comma_list, default=None, help="Providers holding a cached fix (gps,network)")
    locate.add_argument("--disabled", type=comma_list, default=None, help="Providers switched off (gps,network)")
    locate.add_argument("--live-delay", dest="live_delay", type=float, default=None, help="Simulated live fix delay")
    locate.add_argument("--no-permission", dest="grant_location", action="store_false", help="Start with location denied and prompt for it")
    locate.add_argument("--answer", choices=sorted(_ANSWERS), default="granted", help="Simulated prompt answer")

    permission = subparsers.add_parser("permission", help="Request a runtime permission")
    permission.add_argument("capability", choices=[c.value for c in Capability])
    permission.add_argument("--answer", choices=sorted(_ANSWERS), default="granted", help="Simulated prompt answer")
    permission.add_argument("--background", action="store_true", help="Simulate having no foreground context")

    return parser


# =========================================================================
# Subcommands
# =========================================================================

async def run_channels(args: argparse.Namespace, config: AcquisitionConfig) -> int:
    registry = ChannelRegistry(SimulatedChannelSource(interval=config.sim_sensor_interval_s))
    descriptors = registry.list_all() if args.all else registry.list_available()
    for descriptor in descriptors:
        emit({"event": "channel", **descriptor.to_dict()})
    return 0


async def run_sensors(args: argparse.Namespace, config: AcquisitionConfig) -> int:
    source = SimulatedChannelSource(interval=config.sim_sensor_interval_s)
    registry = ChannelRegistry(source)
    cancel = CancellationToken()
    done = asyncio.Event()
    cancel.add_callback(done.set)

    def on_snapshot(snapshot: Snapshot) -> None:
        emit({"event": "snapshot", **snapshot.to_dict()})
        if args.count and snapshot.sequence >= args.count:
            cancel.cancel()

    loop = asyncio.get_running_loop()
    install_signal_handlers(cancel.cancel, loop)
    try:
        async with SessionLifecycle("cli.sensors", registry=registry) as lifecycle:
            merger = lifecycle.start_monitoring(config.channel_ids, observer=on_snapshot, cancel=cancel)
            if not merger.subscribed_channels:
                emit({"event": "error", "reason": "CHANNEL_UNAVAILABLE", "message": "No requested channel is available"})
                return 1
            await done.wait()
            emit({
                "event": "stopped",
                "snapshots": merger.emitted_count,
                "out_of_order": merger.out_of_order_count,
            })
    finally:
        remove_signal_handlers(loop)
    return 0


async def run_locate(args: argparse.Namespace, config: AcquisitionConfig) -> int:
    location = SimulatedLocationSource(
        origin=(config.sim_origin_lat, config.sim_origin_lon),
        live_delay=config.sim_live_fix_delay_s,
        disabled=config.disabled_providers,
    )
    location.cache_origin(config.cached_providers)

    granted = (Capability.LOCATION,) if args.grant_location else ()
    subsystem = SimulatedPermissionSubsystem(
        granted=granted,
        answers={Capability.LOCATION: _ANSWERS[args.answer]},
    )
    gate = PermissionGate(subsystem, implicit=config.implicit)
    resolver = PositionFallbackResolver(
        location,
        primary=config.primary,
        secondary=config.secondary,
        gate=gate,
        default_timeout=config.position_timeout_s,
    )

    emit({"event": "providers", **{p.value: enabled for p, enabled in resolver.provider_status().items()}})

    if not gate.is_granted(Capability.LOCATION):
        result = await gate.request_and_await(Capability.LOCATION)
        emit({"event": "permission", "capability": result.capability.value,
              "granted": result.granted, "reason": result.reason.value if result.reason else None})
        if not result.granted:
            return 1

    cancel = CancellationToken()
    loop = asyncio.get_running_loop()
    install_signal_handlers(cancel.cancel, loop)
    try:
        async with SessionLifecycle("cli.locate", resolver=resolver) as lifecycle:
            fix = await lifecycle.resolve_position(cancel=cancel)
    except NoFixAvailable as exc:
        emit({"event": "error", "reason": exc.reason, "message": str(exc)})
        return 1
    finally:
        remove_signal_handlers(loop)

    emit({"event": "fix", **fix.to_dict()})
    return 0


async def run_permission(args: argparse.Namespace, config: AcquisitionConfig) -> int:
    capability = Capability(args.capability)
    subsystem = SimulatedPermissionSubsystem(
        answers={capability: _ANSWERS[args.answer]},
        foreground=not args.background,
    )
    gate = PermissionGate(subsystem, implicit=config.implicit)
    result = await gate.request_and_await(capability)
    emit({
        "event": "permission",
        "capability": capability.value,
        "granted": result.granted,
        "reason": result.reason.value if result.reason else None,
        "prompts": gate.prompt_count,
    })
    return 0 if result.granted else 1


_COMMANDS = {
    "channels": run_channels,
    "sensors": run_sensors,
    "locate": run_locate,
    "permission": run_permission,
}


async def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = await load_config(args)
    setup_logging(config)
    install_exception_handlers(logger.logger, asyncio.get_running_loop())
    logger.debug("Running %s with %s", args.command, config.to_dict())

    try:
        return await _COMMANDS[args.command](args, config)
    except (AcquisitionError, ValueError) as exc:
        logger.error("%s failed: %s", args.command, exc)
        emit({"event": "error", "reason": getattr(exc, "reason", "INVALID_ARGUMENT"), "message": str(exc)})
        return 2


def run(argv: Optional[list[str]] = None) -> int:
    try:
        return asyncio.run(main(argv))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(run())
