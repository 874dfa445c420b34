"""
Entry point for the cash drawer bridge.

Usage:
    python -m cashdrawer_bridge serve --port 12322
    python -m cashdrawer_bridge printers [--json]
    python -m cashdrawer_bridge open "EPSON TM-T20" [--pin 1] [--on 50] [--off 250]
    cashdrawer-bridge ...  (if installed via pip)
"""

import argparse
import asyncio
import json
import logging
import sys

from . import __version__
from .config import BridgeConfig


def setup_logging(level: str = 'info'):
    """Configure logging for the bridge."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s [%(name)s] %(levelname)s: %(message)s',
        datefmt='%H:%M:%S',
    )

    # Quiet down noisy loggers
    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='cashdrawer-bridge',
        description=f'Cash Drawer Bridge v{__version__}: open cash drawers through receipt printers',
    )
    parser.add_argument(
        '--log-level',
        choices=['debug', 'info', 'warning', 'error'],
        default=None,
        help='Logging level',
    )
    parser.add_argument(
        '--version', '-v',
        action='version',
        version=f'cashdrawer-bridge {__version__}',
    )

    commands = parser.add_subparsers(dest='command', required=True)

    serve = commands.add_parser('serve', help='Run the HTTP/WebSocket server')
    serve.add_argument('--port', '-p', type=int, default=None, help='Server port (default: from config)')
    serve.add_argument('--host', type=str, default=None, help='Bind address (default: 127.0.0.1)')

    printers = commands.add_parser('printers', help='List installed printers')
    printers.add_argument('--json', action='store_true', help='Print the list as JSON')

    kick = commands.add_parser('open', help='Open the cash drawer on a printer')
    kick.add_argument('printer', help='Printer name or device ID (usb:VID:PID, network:HOST:PORT)')
    kick.add_argument('--pin', type=int, default=None, help='Drawer pin, 0 or 1')
    kick.add_argument('--on', dest='pulse_on', type=int, default=None, help='Pulse on time, 0-255')
    kick.add_argument('--off', dest='pulse_off', type=int, default=None, help='Pulse off time, 0-255')

    return parser


def run_server(config: BridgeConfig, host: str | None, port: int | None, log_level: str):
    import uvicorn

    host = host or config.host
    port = port or config.port

    logger = logging.getLogger('cashdrawer.bridge')
    logger.info(f"Cash Drawer Bridge v{__version__}")
    logger.info(f"Config: {config.path}")
    logger.info(f"Starting server on {host}:{port}")

    uvicorn.run(
        'cashdrawer_bridge.server:app',
        host=host,
        port=port,
        log_level=log_level,
        ws='websockets',
    )


def list_printers(as_json: bool) -> int:
    from .drawer import get_available_printers

    printers = asyncio.run(get_available_printers())
    if as_json:
        print(json.dumps([p.to_dict() for p in printers], indent=2))
        return 0

    if not printers:
        print('No printers found.')
        return 0

    for p in printers:
        marker = '*' if p.default else ' '
        print(f"{marker} {p.name or '<unnamed>'}  [{p.status.value}]")
    return 0


def open_drawer(printer: str, pin: int | None, pulse_on: int | None, pulse_off: int | None) -> int:
    from .drawer import open_cash_drawer

    options = {'pin': pin, 'pulseOnTime': pulse_on, 'pulseOffTime': pulse_off}
    result = asyncio.run(open_cash_drawer(printer, options))
    if result.success:
        print(f"Cash drawer opened via {printer}")
        return 0

    print(f"Error {int(result.error_code)}: {result.error_message}", file=sys.stderr)
    return 1


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    config = BridgeConfig()
    log_level = args.log_level or config.log_level
    setup_logging(log_level)

    if args.command == 'serve':
        run_server(config, args.host, args.port, log_level)
        return 0
    if args.command == 'printers':
        return list_printers(args.json)
    return open_drawer(args.printer, args.pin, args.pulse_on, args.pulse_off)


if __name__ == '__main__':
    sys.exit(main())
