#!/usr/bin/env python3
"""
Billing Service.

Main entry point that serves the payment webhook and probe endpoints
until a termination signal arrives.

Usage:
    python main.py serve
    python main.py config [--list]

Environment variables:
    Run `python main.py config` for all configuration options.
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional

from api.billing_api import create_app
from config import CONFIG_GUIDE, Config, LoggingConfig
from services.lifecycle import LifecycleError, LifecycleManager
from services.status import StatusGuard
from version import version


def setup_logging(settings: LoggingConfig, name: str = 'billing') -> logging.Logger:
    """
    Build the service logger from the logging configuration.

    Returns:
        The configured logger, to be handed to the components that log
    """
    log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    log_level = getattr(logging, settings.level.upper(), logging.INFO)

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if settings.file:
        # Ensure log directory exists
        log_dir = os.path.dirname(settings.file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(settings.file))

    logger = logging.getLogger(name)
    logger.setLevel(log_level)
    logger.propagate = False
    for handler in handlers:
        handler.setFormatter(logging.Formatter(log_format))
        logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger('aiohttp').setLevel(logging.WARNING)
    logging.getLogger('asyncio').setLevel(logging.WARNING)

    return logger


def close_logging(logger: logging.Logger) -> None:
    """Flush and detach the handlers added by setup_logging."""
    for handler in list(logger.handlers):
        handler.flush()
        handler.close()
        logger.removeHandler(handler)


async def serve(conf: Config, logger: logging.Logger) -> int:
    """
    Run the billing service until it shuts down.

    Returns:
        Process exit code
    """
    logger.info("=" * 60)
    logger.info(f"Starting {conf.service.name} {version()}")
    logger.info("=" * 60)

    # Validate configuration
    errors = conf.validate()
    if errors:
        for error in errors:
            logger.error(f"Configuration error: {error}")
        return 1

    if conf.service.maintenance:
        logger.warning("Starting in maintenance mode")

    status = StatusGuard()
    app = create_app(
        status=status,
        service=conf.service,
        webhook=conf.webhook,
        log=logger
    )

    manager = LifecycleManager(
        app,
        host=conf.service.host,
        port=conf.service.port,
        status=status,
        logger=logger,
        drain_timeout=conf.service.shutdown_timeout
    )

    try:
        await manager.serve()
    except LifecycleError as e:
        logger.error(f"Service error: {e}", exc_info=True)
        return 1

    logger.info("Shutdown complete")
    return 0


def print_config_guide(list_mode: bool = False) -> None:
    """Print every supported environment variable with its default."""
    if list_mode:
        for name, default, description in CONFIG_GUIDE:
            print(name)
            print(f"  default: {default!r}")
            print(f"  {description}")
        return

    width = max(len(name) for name, _, _ in CONFIG_GUIDE)
    print(f"{'KEY':<{width}}    {'DEFAULT':<10}    DESCRIPTION")
    for name, default, description in CONFIG_GUIDE:
        print(f"{name:<{width}}    {default:<10}    {description}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='billing',
        description='Serve and manage the billing service'
    )
    parser.add_argument('--version', action='version', version=version())

    commands = parser.add_subparsers(dest='command')
    commands.add_parser(
        'serve',
        help='run the billing service configured from the environment'
    )
    config_cmd = commands.add_parser(
        'config',
        help='print the configuration guide'
    )
    config_cmd.add_argument(
        '-l', '--list',
        action='store_true',
        help='print in list mode instead of table mode'
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    if args.command == 'config':
        print_config_guide(args.list)
        return 0

    conf = Config()
    logger = setup_logging(conf.logging)
    try:
        return asyncio.run(serve(conf, logger))
    finally:
        close_logging(logger)


if __name__ == '__main__':
    sys.exit(main())
