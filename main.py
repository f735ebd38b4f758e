#!/usr/bin/env python3
"""
Relay - Service Runner

Loads settings, starts the HTTP listener and blocks until SIGINT/SIGTERM,
then drains in-flight connections within the shutdown deadline.

Usage:
    python main.py                          # Read .env + environment
    python main.py --env-file config/.env   # Alternate override file
    python main.py --no-env-file            # Environment only
    python main.py --shutdown-timeout 10    # Override SHUTDOWN_TIMEOUT

Environment Variables:
    PORT: Listener address, e.g. ':3000'
    HOST: Informational host label
    ENV: Must be 'development' to start a server

Exit codes:
    0  Server stopped after a shutdown signal (a forced drain is only logged)
    1  Unsupported environment, startup failure or accept-loop failure
"""

import argparse
import asyncio
import sys
from typing import Optional

from app_settings import Settings, load_settings
from app_settings.settings import DEFAULT_ENV_FILE
from core.exceptions import RelayError
from core.lifecycle import LifecycleController
from core.shutdown import ShutdownSignal
from utils.logging import configure_logging, get_logger

logger = get_logger("relay")


async def serve(settings: Settings, controller: Optional[LifecycleController] = None) -> int:
    """Run the controller until a shutdown signal, returning an exit code."""
    controller = controller or LifecycleController(settings)
    shutdown_signal = ShutdownSignal()
    shutdown_signal.arm()
    try:
        await controller.run(shutdown_signal)
    except RelayError as exc:
        logger.error(f"[FATAL] {exc.error_code}: {exc.message}")
        return 1
    finally:
        shutdown_signal.disarm()
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="relay", description="Relay deployment control-plane server")
    parser.add_argument(
        "--env-file",
        default=DEFAULT_ENV_FILE,
        help=f"Override file loaded before the environment (default: {DEFAULT_ENV_FILE})",
    )
    parser.add_argument(
        "--no-env-file",
        dest="env_file",
        action="store_const",
        const=None,
        help="Do not read an override file",
    )
    parser.add_argument(
        "--shutdown-timeout",
        type=float,
        default=None,
        help="Drain deadline in seconds (overrides SHUTDOWN_TIMEOUT)",
    )
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    print("Relay starts!")
    settings = load_settings(args.env_file)
    if args.shutdown_timeout is not None:
        settings = settings.model_copy(update={"shutdown_timeout": args.shutdown_timeout})

    configure_logging(settings)
    logger.info(f"[CONFIG] env={settings.environment!r} port={settings.port!r} host={settings.host!r}")

    return asyncio.run(serve(settings))


if __name__ == "__main__":
    sys.exit(main())
