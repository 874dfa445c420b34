"""
Cash drawer control and printer listing.

open_cash_drawer() validates the target, builds the ESC/POS kick command
and hands it to a transport on a worker thread. Every failure comes back
as an OpenResult with a stable error code; nothing is raised to the
caller. get_available_printers() is best-effort and returns an empty
list when discovery fails.
"""

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from .command import DrawerOptions, encode
from .errors import (
    DEFAULT_MESSAGES,
    ErrorCode,
    IncompleteWriteError,
    InvalidArgumentError,
    InvalidNameError,
    VirtualPrinterError,
    map_failure,
)
from .hardware import Discovery, Transport, select_discovery, select_transport
from .hardware.transport import DOCUMENT_NAME
from .listing import PrinterInfo, parse
from .virtual import is_virtual

logger = logging.getLogger('cashdrawer.bridge.drawer')

MAX_PRINTER_NAME_LENGTH = 256
DEFAULT_TRANSPORT_TIMEOUT = 10.0
DEFAULT_DISCOVERY_TIMEOUT = 15.0


@dataclass(frozen=True)
class OpenResult:
    success: bool
    error_code: ErrorCode = ErrorCode.SUCCESS
    error_message: str = ''

    @classmethod
    def ok(cls) -> 'OpenResult':
        return cls(success=True)

    @classmethod
    def failure(cls, code: ErrorCode, message: str = '') -> 'OpenResult':
        return cls(success=False, error_code=code, error_message=message or DEFAULT_MESSAGES[code])

    @classmethod
    def from_exception(cls, exc: BaseException) -> 'OpenResult':
        code, message = map_failure(exc)
        return cls.failure(code, message)

    def to_dict(self) -> dict:
        return {
            'success': self.success,
            'errorCode': int(self.error_code),
            'errorMessage': self.error_message,
        }


def validate_printer_name(printer_name: Any) -> str:
    if not isinstance(printer_name, str):
        raise InvalidNameError()
    if not printer_name:
        raise InvalidArgumentError("Printer name cannot be empty")
    if len(printer_name) > MAX_PRINTER_NAME_LENGTH:
        raise InvalidArgumentError(
            f"Printer name too long. Maximum length is {MAX_PRINTER_NAME_LENGTH} characters"
        )
    return printer_name


def send_command(transport: Transport, printer_name: str, command: bytes):
    """
    Run one job through `transport`. Blocking; raises the TransportError
    of the furthest stage reached.
    """
    transport.open(printer_name)
    try:
        transport.start_document(DOCUMENT_NAME)
        transport.start_page()
        written = transport.write(command)
        if written != len(command):
            raise IncompleteWriteError(len(command), written)
    finally:
        try:
            transport.close()
        except Exception as e:
            logger.warning(f"Error closing printer '{printer_name}': {e}")


class DeviceGate:
    """Lock for one printer on one event loop, with a count of its users."""

    def __init__(self):
        self.lock = asyncio.Lock()
        self.users = 0


class CashDrawerBridge:
    """
    Drawer kicks and printer discovery against pluggable collaborators.

    Kicks to the same printer are serialized; different printers run
    concurrently on the default thread pool. A printer stays locked until
    its worker thread returns, even when the caller already gave up on
    it after a timeout.
    """

    def __init__(
        self,
        transport_factory: Callable[[str], Transport] | None = None,
        discovery: Discovery | None = None,
        default_options: DrawerOptions | None = None,
        transport_timeout: float | None = DEFAULT_TRANSPORT_TIMEOUT,
        discovery_timeout: float | None = DEFAULT_DISCOVERY_TIMEOUT,
    ):
        self._transport_factory = transport_factory or select_transport
        self._discovery = discovery
        self._default_options = default_options or DrawerOptions()
        self._transport_timeout = transport_timeout
        self._discovery_timeout = discovery_timeout
        # (event loop, case-folded printer name) -> gate; dropped when unused
        self._device_gates: dict[tuple[asyncio.AbstractEventLoop, str], DeviceGate] = {}

    @classmethod
    def from_config(cls, config) -> 'CashDrawerBridge':
        """Build a bridge from a BridgeConfig."""
        backend = config.backend
        try:
            default_options = DrawerOptions.from_mapping(config.drawer_defaults)
        except InvalidArgumentError as e:
            logger.warning(f"Ignoring drawer defaults from config: {e}")
            default_options = DrawerOptions()

        return cls(
            transport_factory=lambda name: select_transport(name, backend),
            discovery=select_discovery(
                backend,
                source=config.discovery_source,
                include_devices=config.discover_devices,
            ),
            default_options=default_options,
            transport_timeout=config.transport_timeout,
            discovery_timeout=config.discovery_timeout,
        )

    @property
    def discovery(self) -> Discovery:
        if self._discovery is None:
            self._discovery = select_discovery()
        return self._discovery

    def _leave_gate(self, key, gate: DeviceGate):
        gate.users -= 1
        if gate.users == 0 and self._device_gates.get(key) is gate:
            del self._device_gates[key]

    def _kick(self, printer_name: str, command: bytes):
        transport = self._transport_factory(printer_name)
        send_command(transport, printer_name, command)

    async def _kick_serialized(self, printer_name: str, command: bytes):
        """
        Run the kick on a worker thread while holding the printer's gate.

        The gate is released by the worker's completion, not by the
        awaiting coroutine, so a timed-out kick still blocks the next one.
        """
        loop = asyncio.get_running_loop()
        key = (loop, printer_name.casefold())
        gate = self._device_gates.get(key)
        if gate is None:
            gate = self._device_gates[key] = DeviceGate()
        gate.users += 1

        try:
            await gate.lock.acquire()
        except BaseException:
            self._leave_gate(key, gate)
            raise

        try:
            future = loop.run_in_executor(None, self._kick, printer_name, command)
        except BaseException:
            gate.lock.release()
            self._leave_gate(key, gate)
            raise

        def finished(f: asyncio.Future):
            gate.lock.release()
            self._leave_gate(key, gate)
            if not f.cancelled() and f.exception() is not None:
                logger.debug(f"Kick on {printer_name} finished with {type(f.exception()).__name__}")

        future.add_done_callback(finished)
        await asyncio.wait_for(asyncio.shield(future), timeout=self._transport_timeout)

    async def open_cash_drawer(self, printer_name: Any, options: Mapping | DrawerOptions | None = None) -> OpenResult:
        """Open the cash drawer connected to `printer_name`."""
        try:
            name = validate_printer_name(printer_name)
            if isinstance(options, DrawerOptions):
                drawer_options = options
            else:
                drawer_options = DrawerOptions.from_mapping(options, self._default_options)
            if is_virtual(name):
                raise VirtualPrinterError(name)
        except Exception as e:
            result = OpenResult.from_exception(e)
            logger.warning(f"Drawer kick rejected: {result.error_message}")
            return result

        command = encode(drawer_options)

        try:
            await self._kick_serialized(name, command)
        except asyncio.TimeoutError:
            # The worker thread keeps running and keeps the printer locked
            result = OpenResult.failure(
                ErrorCode.OTHER_ERROR,
                f"Timed out after {self._transport_timeout}s waiting for printer '{name}'",
            )
        except Exception as e:
            result = OpenResult.from_exception(e)
        else:
            logger.info(f"Cash drawer opened via {name} (pin {drawer_options.pin})")
            return OpenResult.ok()

        logger.warning(f"Drawer error on {name}: [{int(result.error_code)}] {result.error_message}")
        return result

    async def get_available_printers(self) -> list[PrinterInfo]:
        """List installed printers. Returns [] if discovery fails."""
        loop = asyncio.get_running_loop()
        try:
            discovery = self.discovery
            raw = await asyncio.wait_for(
                loop.run_in_executor(None, discovery.list_printers),
                timeout=self._discovery_timeout,
            )
            printers = parse(raw)
        except Exception as e:
            logger.error(f"Printer discovery failed: {type(e).__name__}: {e}")
            return []

        logger.info(f"Found {len(printers)} printer(s)")
        return printers


# ─── Module-level API ───────────────────────────────────────────────────────

_default_bridge: CashDrawerBridge | None = None


def get_bridge() -> CashDrawerBridge:
    """Return the process-wide bridge, built from the user config on first use."""
    global _default_bridge

    if _default_bridge is None:
        from .config import BridgeConfig

        try:
            _default_bridge = CashDrawerBridge.from_config(BridgeConfig())
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Config unavailable, using defaults: {e}")
            _default_bridge = CashDrawerBridge()
    return _default_bridge


def set_bridge(bridge: CashDrawerBridge | None):
    """Replace the process-wide bridge (None rebuilds it from config)."""
    global _default_bridge
    _default_bridge = bridge


async def open_cash_drawer(printer_name: Any, options: Mapping | DrawerOptions | None = None) -> OpenResult:
    """Open the cash drawer connected to `printer_name`."""
    try:
        bridge = get_bridge()
    except Exception as e:
        logger.error(f"Bridge unavailable: {type(e).__name__}: {e}")
        return OpenResult.from_exception(e)
    return await bridge.open_cash_drawer(printer_name, options)


async def get_available_printers() -> list[PrinterInfo]:
    """List printers installed on this host."""
    try:
        bridge = get_bridge()
    except Exception as e:
        logger.error(f"Bridge unavailable: {type(e).__name__}: {e}")
        return []
    return await bridge.get_available_printers()
