import argparse
import asyncio
import signal
import sys
from pathlib import Path
from typing import Optional

from thadm_host.app.context import AppContext
from thadm_host.core.config_manager import get_config_manager
from thadm_host.core.host_config import HostConfig
from thadm_host.core.logging_config import configure_logging
from thadm_host.core.logging_utils import get_module_logger
from thadm_host.core.paths import CONFIG_PATH, HOST_LOG_FILE, ensure_directories


logger = get_module_logger(__name__)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments with config file defaults."""
    config_manager = get_config_manager()
    config = HostConfig.from_config(config_manager.read_config(CONFIG_PATH), config_manager)

    parser = argparse.ArgumentParser(
        description="thadm host - supervises the thadm-recorder process"
    )

    parser.add_argument(
        "--store",
        dest="store_path",
        type=Path,
        default=config.store_path,
        help="Settings store written by the desktop shell (default: ~/.screenpipe/store.bin)"
    )

    parser.add_argument(
        "--worker-binary",
        type=str,
        default=config.worker_binary,
        help="Path to the thadm-recorder executable (default: search PATH)"
    )

    parser.add_argument(
        "--spawn",
        action="store_true",
        help="Start the recorder immediately"
    )

    parser.add_argument(
        "--api-host",
        type=str,
        default=config.api_host,
        help="Control API bind address (default: 127.0.0.1)"
    )

    parser.add_argument(
        "--api-port",
        type=int,
        default=config.api_port,
        help="Control API port"
    )

    parser.add_argument(
        "--no-api",
        dest="api_enabled",
        action="store_false",
        default=config.api_enabled,
        help="Do not start the control API"
    )

    parser.add_argument(
        "--log-level",
        choices=['debug', 'info', 'warning', 'error', 'critical'],
        default=config.log_level,
        help="Logging level (default: info)"
    )

    parser.add_argument(
        "--console",
        dest="console_output",
        action="store_true",
        default=config.console_output,
        help="Also log to console"
    )

    parser.add_argument(
        "--no-console",
        dest="console_output",
        action="store_false",
        help="Log to file only"
    )

    parser.add_argument(
        "--no-log-file",
        dest="log_to_file",
        action="store_false",
        default=config.log_to_file,
        help="Do not write logs/host.log"
    )

    args = parser.parse_args(argv)
    args.host_config = config
    return args


def _apply_cli_overrides(args: argparse.Namespace) -> HostConfig:
    config: HostConfig = args.host_config
    config.store_path = args.store_path
    config.worker_binary = args.worker_binary
    config.api_host = args.api_host
    config.api_port = args.api_port
    config.api_enabled = args.api_enabled
    config.log_level = args.log_level
    config.console_output = args.console_output
    config.log_to_file = args.log_to_file
    return config


async def main(argv: Optional[list[str]] = None) -> None:
    """
    Main entry point for the recorder host.

    Runs until SIGINT/SIGTERM, then stops the recorder, the monitor
    reconciler and the control API.
    """
    from thadm_host import __version__

    args = parse_args(argv)
    host_config = _apply_cli_overrides(args)

    ensure_directories()

    log_file = HOST_LOG_FILE if host_config.log_to_file else None
    configure_logging(
        host_config.log_level,
        force=True,
        console=host_config.console_output,
        log_file=log_file,
        sidecar_level=host_config.sidecar_log_level,
    )

    logger.info("=" * 60)
    logger.info("thadm host %s starting", __version__)
    logger.info("=" * 60)
    logger.info("Settings store: %s", host_config.store_path)
    if log_file:
        logger.info("Log file: %s", log_file)

    context = AppContext.from_host_config(host_config, version=__version__)
    shutdown_task: Optional[asyncio.Task] = None

    loop = asyncio.get_running_loop()

    def signal_handler():
        nonlocal shutdown_task
        if shutdown_task is None or shutdown_task.done():
            shutdown_task = asyncio.create_task(context.shutdown("signal"))

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except NotImplementedError:
            pass  # Windows doesn't support add_signal_handler

    try:
        await context.start(spawn=args.spawn)
        await context.wait_for_shutdown()
    except KeyboardInterrupt:
        await context.shutdown("keyboard interrupt")
    except Exception as e:
        logger.error("Unexpected error: %s", e, exc_info=True)
        await context.shutdown("exception")
    finally:
        if not context.is_stopped:
            await context.shutdown("finally block")

    logger.info("thadm host stopped")


def run(argv: Optional[list[str]] = None) -> int:
    try:
        asyncio.run(main(argv))
        return 0
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 130
    except Exception as exc:  # pragma: no cover - fatal guard
        print(f"Fatal error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(run())
