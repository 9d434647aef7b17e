"""
Entry point for Till Bridge.

Usage:
    python -m till_bridge
    python -m till_bridge --tray-url ws://localhost:8182 --register 3
    python -m till_bridge --config ./till.json --debug
    till-bridge  (if installed via pip)

Command-line values apply to this run only; the config file is not rewritten.
"""

import argparse
import logging
from pathlib import Path

import uvicorn

from . import __version__
from .config import DEFAULT_PORT, BridgeConfig
from .server import create_app

# Third-party loggers that chatter at INFO on every request or frame
NOISY_LOGGERS = ('uvicorn.access', 'httpx', 'httpcore', 'websockets')


def setup_logging(level: str = 'info'):
    """Configure logging for the bridge."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s [%(name)s] %(levelname)s: %(message)s',
        datefmt='%H:%M:%S',
    )

    # Tray and backend traffic stays visible when debugging the bridge itself
    quiet_level = logging.INFO if numeric_level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog='till-bridge',
        description=f'Till Bridge v{__version__}: opens cash drawers through the local tray service',
    )

    server = parser.add_argument_group('agent server')
    server.add_argument('--port', '-p', type=int, help=f'Agent server port (default: {DEFAULT_PORT})')
    server.add_argument('--host', help='Bind address (default: 127.0.0.1)')

    drawer = parser.add_argument_group('drawer')
    drawer.add_argument('--tray-url', help='Tray service WebSocket URL')
    drawer.add_argument('--api-base', help='Backend base URL for certificate, signing and log endpoints')
    drawer.add_argument('--register', dest='current_register', help='Register id this till belongs to')
    drawer.add_argument(
        '--discovery', dest='discovery_mode', action='store_true', default=None,
        help='Report the printers the tray service sees to the backend at start-up',
    )

    parser.add_argument('--config', '-c', type=Path, help='Config file (default: platform config dir)')
    parser.add_argument(
        '--log-level',
        choices=['debug', 'info', 'warning', 'error'],
        help='Logging level',
    )
    parser.add_argument(
        '--debug', dest='debug_mode', action='store_true', default=None,
        help='Debug logging and verbose drawer diagnostics',
    )
    parser.add_argument('--version', '-v', action='version', version=f'till-bridge {__version__}')

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> BridgeConfig:
    """Load the config file and lay this run's flags over it."""
    config = BridgeConfig.from_file(args.config)
    config.override(
        port=args.port,
        host=args.host,
        tray_url=args.tray_url,
        api_base=args.api_base,
        current_register=args.current_register,
        discovery_mode=args.discovery_mode,
        debug_mode=args.debug_mode,
        log_level=args.log_level,
    )
    return config


def main(argv: list[str] | None = None):
    config = build_config(parse_args(argv))
    setup_logging(config.log_level)

    logger = logging.getLogger('till.bridge')
    logger.info(f"Till Bridge v{__version__}")
    logger.info(f"Config: {config.path}")
    logger.info(f"Tray service: {config.tray_url}, backend: {config.api_base}")
    if config.current_register:
        logger.info(f"Register {config.current_register} -> {config.get_printer() or 'system default printer'}")
    logger.info(f"Starting agent server on {config.host}:{config.port}")

    uvicorn.run(
        create_app(config),
        host=config.host,
        port=config.port,
        log_level=config.log_level,
        ws='websockets',
    )


if __name__ == '__main__':
    main()
