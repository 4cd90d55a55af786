from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from pathlib import Path
from typing import Any, Callable, Optional

from apidemo.acquisition.config import AcquisitionConfig
from apidemo.core.logging_config import configure_logging
from apidemo.core.paths import DEFAULT_CONFIG_PATH
from apidemo.core.preferences import ModulePreferences


LOG_LEVELS: dict[str, int] = {
    "critical": logging.CRITICAL,
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


def add_common_cli_arguments(
    parser: argparse.ArgumentParser,
    *,
    include_config: bool = True,
    include_console_control: bool = True,
) -> None:
    parser.add_argument(
        "--log-level",
        choices=sorted(LOG_LEVELS.keys()),
        default=None,
        help="Logging verbosity (overrides the config file)",
    )

    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Optional path to write structured logs",
    )

    if include_config:
        parser.add_argument(
            "--config",
            type=Path,
            default=DEFAULT_CONFIG_PATH,
            help="key = value configuration file",
        )

    if include_console_control:
        console_group = parser.add_mutually_exclusive_group()
        console_group.add_argument(
            "--console",
            dest="console_output",
            action="store_true",
            default=None,
            help="Log to stderr (in addition to any log file)",
        )
        console_group.add_argument(
            "--no-console",
            dest="console_output",
            action="store_false",
            help="Log to file only (no console output)",
        )


def comma_list(value: str) -> list[str]:
    """argparse type for ``a,b,c`` options."""
    return [part.strip() for part in value.split(",") if part.strip()]


async def load_config(args: Any) -> AcquisitionConfig:
    """Read the config file named by ``args.config`` and apply CLI overrides."""
    config_path = Path(getattr(args, "config", None) or DEFAULT_CONFIG_PATH)
    prefs = await ModulePreferences.load_async(config_path)
    return AcquisitionConfig.from_preferences(prefs, args)


def setup_logging(config: AcquisitionConfig) -> None:
    configure_logging(
        config.log_level,
        console=config.console_output,
        log_file=config.log_file,
    )


def install_exception_handlers(
    logger: logging.Logger,
    loop: Optional[asyncio.AbstractEventLoop] = None
) -> None:
    def handle_exception(exc_type, exc_value, exc_traceback):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return
        logger.critical(
            "Uncaught exception",
            exc_info=(exc_type, exc_value, exc_traceback)
        )

    sys.excepthook = handle_exception

    if loop is not None:
        def handle_asyncio_exception(loop, context):
            exception = context.get('exception')
            message = context.get('message', 'Unhandled asyncio exception')
            if exception:
                logger.error("Asyncio exception: %s", message, exc_info=exception)
            else:
                logger.error("Asyncio error: %s, context: %s", message, context)

        loop.set_exception_handler(handle_asyncio_exception)


def install_signal_handlers(on_signal: Callable[[], None], loop: asyncio.AbstractEventLoop) -> None:
    """Route SIGINT/SIGTERM to ``on_signal`` (typically a token's cancel)."""
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, on_signal)


def remove_signal_handlers(loop: asyncio.AbstractEventLoop) -> None:
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.remove_signal_handler(sig)


__all__ = [
    "LOG_LEVELS",
    "add_common_cli_arguments",
    "comma_list",
    "install_exception_handlers",
    "install_signal_handlers",
    "load_config",
    "remove_signal_handlers",
    "setup_logging",
]
