"""
Printer discovery for printers installed on the host.

Each backend returns the raw listing (table text or structured records);
cashdrawer_bridge.listing turns it into PrinterInfo records.
"""

import logging
import os
import platform
import re
import subprocess
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from typing import Any

from ..listing import parse_table, status_from_win32_flags

logger = logging.getLogger('cashdrawer.bridge.discovery')

# Well-known ESC/POS printer USB vendor IDs
KNOWN_PRINTER_VENDORS = {
    0x04B8: 'Epson',
    0x0519: 'Star Micronics',
    0x0DD4: 'Custom',
    0x0FE6: 'Bixolon',
    0x0493: 'Citizen',
    0x20D1: 'Sewoo',
    0x0416: 'Winbond (POS)',
    0x1FC9: 'NXP (POS)',
    0x28E9: 'Rongta',
    0x0C2E: 'Munbyn',
}

# Default ESC/POS network port
ESCPOS_NETWORK_PORT = 9100

COMMAND_TIMEOUT = 10

Listing = str | list[Mapping]


class Discovery(ABC):
    """Source of a raw printer listing."""

    @abstractmethod
    def list_printers(self) -> Listing:
        ...


def _run(args: list[str]) -> subprocess.CompletedProcess:
    # Force untranslated output so the parsers see stable keywords
    env = dict(os.environ, LC_ALL='C', LANG='C')
    return subprocess.run(
        args,
        capture_output=True,
        text=True,
        timeout=COMMAND_TIMEOUT,
        env=env,
    )


# ─── Windows spooler ────────────────────────────────────────────────────────

class Win32Discovery(Discovery):
    """
    Windows printers, either from EnumPrinters (native) or from the
    `wmic printer get` table (text).
    """

    def __init__(self, source: str = 'native'):
        if source not in ('native', 'text'):
            raise ValueError(f"Unknown discovery source: {source}")
        self.source = source

    def list_printers(self) -> Listing:
        if self.source == 'text':
            return self._list_text()
        return self._list_native()

    def _list_text(self) -> str:
        result = _run(['wmic', 'printer', 'get', 'Name,Default,Status'])
        result.check_returncode()
        return result.stdout

    def _list_native(self) -> list[dict]:
        import win32print

        flags = win32print.PRINTER_ENUM_LOCAL | win32print.PRINTER_ENUM_CONNECTIONS
        entries = win32print.EnumPrinters(flags, None, 2)

        try:
            default_name = win32print.GetDefaultPrinter()
        except Exception as e:
            # Raised when no default printer is configured
            logger.debug(f"No default printer: {e}")
            default_name = None

        records = []
        for entry in entries:
            name = entry.get('pPrinterName') or ''
            records.append({
                'name': name,
                'default': bool(name) and name == default_name,
                'status': status_from_win32_flags(entry.get('Status', 0) or 0),
            })
        return records


# ─── CUPS (macOS / Linux) ───────────────────────────────────────────────────

_LPSTAT_PRINTER = re.compile(r'^printer\s+(?P<name>\S+)\s+(?P<state>is idle|now printing|disabled)')
_LPSTAT_DEFAULT = re.compile(r'^system default destination:\s*(?P<name>\S+)')

_LPSTAT_STATES = {
    'is idle': 'idle',
    'now printing': 'printing',
    'disabled': 'stopped',
}


def parse_lpstat(text: str) -> list[dict]:
    """
    Parse `lpstat -p -d` output into structured records.

        printer Receipt is idle.  enabled since Mon 01 Jan 2024 10:00:00
        printer Kitchen disabled since Mon 01 Jan 2024 10:00:00 -
        system default destination: Receipt
    """
    records = []
    default_name = None

    for line in text.splitlines():
        line = line.strip()
        match = _LPSTAT_PRINTER.match(line)
        if match:
            records.append({
                'name': match.group('name'),
                'status': _LPSTAT_STATES[match.group('state')],
            })
            continue
        match = _LPSTAT_DEFAULT.match(line)
        if match:
            default_name = match.group('name')

    for record in records:
        record['default'] = record['name'] == default_name
    return records


class CupsDiscovery(Discovery):
    """CUPS destinations via lpstat."""

    def list_printers(self) -> Listing:
        result = _run(['lpstat', '-p', '-d'])
        records = parse_lpstat(result.stdout)
        if result.returncode != 0 and not records:
            # lpstat exits non-zero when no destinations are configured
            logger.warning(f"lpstat returned {result.returncode}: {result.stderr.strip()}")
        return records


# ─── Direct ESC/POS devices ─────────────────────────────────────────────────

class DeviceDiscovery(Discovery):
    """
    ESC/POS printers reachable without a spooler, reported by device ID
    ('usb:0x04b8:0x0202', 'network:192.168.1.100:9100') so the ID can be
    handed straight back to open_cash_drawer.
    """

    def __init__(self, mdns_wait: float = 1.5):
        self.mdns_wait = mdns_wait

    def list_printers(self) -> Listing:
        records = []
        records.extend(self._discover_usb())
        records.extend(self._discover_mdns())
        return records

    def _discover_usb(self) -> list[dict]:
        records = []

        try:
            import usb.core
        except ImportError:
            logger.warning("pyusb not available, skipping USB discovery")
            return records

        try:
            devices = usb.core.find(find_all=True)
            if devices is None:
                return records

            for device in devices:
                vendor_name = KNOWN_PRINTER_VENDORS.get(device.idVendor)
                if vendor_name is None:
                    continue  # Not a known printer vendor

                printer_id = f"usb:{device.idVendor:#06x}:{device.idProduct:#06x}"
                records.append({'name': printer_id, 'default': False, 'status': 'ready'})
                logger.debug(f"Found USB printer: {vendor_name} ({printer_id})")

        except Exception as e:
            logger.error(f"USB discovery error: {e}")

        return records

    def _discover_mdns(self) -> list[dict]:
        records = []

        try:
            from zeroconf import ServiceBrowser, Zeroconf
            import time
        except ImportError:
            logger.debug("zeroconf not available, skipping mDNS discovery")
            return records

        found = []

        class Listener:
            def add_service(self, zc, type_, name):
                info = zc.get_service_info(type_, name)
                if info:
                    found.append(info)

            def remove_service(self, zc, type_, name):
                pass

            def update_service(self, zc, type_, name):
                pass

        try:
            zc = Zeroconf()
        except Exception as e:
            logger.error(f"mDNS discovery error: {e}")
            return records

        try:
            listener = Listener()
            # Raw socket printing service
            ServiceBrowser(zc, '_pdl-datastream._tcp.local.', listener)

            # Wait a bit for responses
            time.sleep(self.mdns_wait)

            for info in found:
                addresses = info.parsed_addresses()
                if not addresses:
                    continue

                port = info.port or ESCPOS_NETWORK_PORT
                printer_id = f"network:{addresses[0]}:{port}"
                if any(r['name'] == printer_id for r in records):
                    continue
                records.append({'name': printer_id, 'default': False, 'status': 'ready'})
                logger.debug(f"Found mDNS printer: {info.name} at {printer_id}")

        except Exception as e:
            logger.error(f"mDNS discovery error: {e}")
        finally:
            zc.close()

        return records


# ─── Composition ────────────────────────────────────────────────────────────

class CompositeDiscovery(Discovery):
    """Concatenate several backends; a failing backend contributes nothing."""

    def __init__(self, discoveries: Iterable[Discovery]):
        self.discoveries = list(discoveries)

    def list_printers(self) -> Listing:
        records: list[Mapping] = []
        for discovery in self.discoveries:
            try:
                listing = discovery.list_printers()
            except Exception as e:
                logger.error(f"{type(discovery).__name__} failed: {e}")
                continue

            if isinstance(listing, str):
                records.extend(parse_table(listing))
            else:
                records.extend(listing)
        return records


def select_discovery(
    backend: str = 'auto',
    source: str = 'native',
    include_devices: bool = False,
) -> Discovery:
    """Pick the discovery backend for this host."""
    if backend == 'auto':
        backend = 'win32' if platform.system() == 'Windows' else 'cups'

    if backend == 'win32':
        discovery: Discovery = Win32Discovery(source=source)
    elif backend == 'cups':
        discovery = CupsDiscovery()
    elif backend == 'escpos':
        return DeviceDiscovery()
    else:
        raise ValueError(f"Unknown backend: {backend}")

    if include_devices:
        return CompositeDiscovery([discovery, DeviceDiscovery()])
    return discovery


# ─── Device IDs ─────────────────────────────────────────────────────────────

DEVICE_ID_PREFIXES = ('usb:', 'network:')


def is_device_id(name: str) -> bool:
    return name.lower().startswith(DEVICE_ID_PREFIXES)


def parse_printer_id(printer_id: str) -> tuple[str, dict[str, Any]]:
    """
    Parse a device ID into type and connection parameters.

    Examples:
        'usb:0x04b8:0x0202'    → ('usb', {'vendor_id': 0x04b8, 'product_id': 0x0202})
        'network:192.168.1.100:9100' → ('network', {'host': '192.168.1.100', 'port': 9100})
    """
    parts = printer_id.split(':', 1)
    ptype = parts[0].lower()
    rest = parts[1] if len(parts) > 1 else ''

    if ptype == 'usb':
        vid, pid = rest.split(':')
        return 'usb', {'vendor_id': int(vid, 16), 'product_id': int(pid, 16)}
    elif ptype == 'network':
        host_port = rest.rsplit(':', 1)
        host = host_port[0]
        port = int(host_port[1]) if len(host_port) > 1 else ESCPOS_NETWORK_PORT
        if not host:
            raise ValueError(f"Missing host in printer ID: {printer_id}")
        return 'network', {'host': host, 'port': port}
    else:
        raise ValueError(f"Unknown printer type: {ptype}")


def connect_printer(printer_id: str) -> Any:
    """Connect to a device by its ID and return an escpos printer instance."""
    from escpos.printer import Usb, Network

    ptype, params = parse_printer_id(printer_id)

    if ptype == 'usb':
        return Usb(params['vendor_id'], params['product_id'])
    return Network(params['host'], port=params['port'])
