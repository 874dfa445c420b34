"""
Byte transports that deliver a command to a printer.

A transport goes through the same stages on every platform:

    open(name) → start_document(doc) → start_page() → write(data) → close()

Each stage raises the matching TransportError subclass so the caller can
report how far the job got.
"""

import logging
import os
import platform
import subprocess
import tempfile
from abc import ABC, abstractmethod
from typing import Any

from ..errors import (
    PrinterOpenError,
    PrinterWriteError,
    StartDocumentError,
    StartPageError,
)
from .discovery import COMMAND_TIMEOUT, connect_printer, is_device_id

logger = logging.getLogger('cashdrawer.bridge.transport')

DOCUMENT_NAME = 'Open Cash Drawer'


class Transport(ABC):
    """One print job on one printer."""

    @abstractmethod
    def open(self, printer_name: str):
        ...

    @abstractmethod
    def start_document(self, document_name: str = DOCUMENT_NAME):
        ...

    @abstractmethod
    def start_page(self):
        ...

    @abstractmethod
    def write(self, data: bytes) -> int:
        """Send `data`, returning the number of bytes the printer accepted."""

    @abstractmethod
    def close(self):
        """Release everything acquired so far. Safe to call more than once."""


def _win_error(exc: Exception) -> str:
    # pywintypes.error carries (winerror, funcname, strerror)
    code = getattr(exc, 'winerror', None)
    text = getattr(exc, 'strerror', None) or str(exc)
    if code is None:
        return text
    return f"{code} ({text})"


# ─── Windows spooler ────────────────────────────────────────────────────────

class Win32Transport(Transport):
    """RAW job through the Windows print spooler (pywin32)."""

    def __init__(self):
        self._handle = None
        self._doc_started = False
        self._page_started = False
        self._printer_name = ''

    def open(self, printer_name: str):
        try:
            import win32print
        except ImportError as e:
            raise PrinterOpenError("win32print (pywin32) is required to print on Windows") from e

        self._printer_name = printer_name
        try:
            self._handle = win32print.OpenPrinter(printer_name)
        except Exception as e:
            raise PrinterOpenError(
                f"Failed to open printer '{printer_name}'. Windows Error: {_win_error(e)}. "
                "Make sure the printer is installed and accessible."
            ) from e

    def start_document(self, document_name: str = DOCUMENT_NAME):
        import win32print

        try:
            win32print.StartDocPrinter(self._handle, 1, (document_name, None, 'RAW'))
        except Exception as e:
            raise StartDocumentError(f"Failed to start print job. Windows Error: {_win_error(e)}") from e
        self._doc_started = True

    def start_page(self):
        import win32print

        try:
            win32print.StartPagePrinter(self._handle)
        except Exception as e:
            raise StartPageError(f"Failed to start page. Windows Error: {_win_error(e)}") from e
        self._page_started = True

    def write(self, data: bytes) -> int:
        import win32print

        try:
            return win32print.WritePrinter(self._handle, data)
        except Exception as e:
            raise PrinterWriteError(f"Failed to write to printer. Windows Error: {_win_error(e)}") from e

    def close(self):
        if self._handle is None:
            return

        import win32print

        try:
            if self._page_started:
                win32print.EndPagePrinter(self._handle)
            if self._doc_started:
                win32print.EndDocPrinter(self._handle)
        finally:
            self._page_started = False
            self._doc_started = False
            handle, self._handle = self._handle, None
            win32print.ClosePrinter(handle)


# ─── CUPS (macOS / Linux) ───────────────────────────────────────────────────

class CupsTransport(Transport):
    """
    RAW job through CUPS. The command is written to a spool file and
    submitted with `lp -o raw`; submission failures are reported as a
    failed job start.
    """

    def __init__(self):
        self._printer_name = ''
        self._document_name = DOCUMENT_NAME
        self._spool_path: str | None = None

    def open(self, printer_name: str):
        try:
            result = subprocess.run(
                ['lpstat', '-p', printer_name],
                capture_output=True,
                text=True,
                timeout=COMMAND_TIMEOUT,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise PrinterOpenError(f"Cannot query CUPS for '{printer_name}': {e}") from e

        if result.returncode != 0:
            raise PrinterOpenError(
                f"Printer not found: '{printer_name}'. Check printer name and installation."
            )
        self._printer_name = printer_name

    def start_document(self, document_name: str = DOCUMENT_NAME):
        self._document_name = document_name

    def start_page(self):
        pass

    def write(self, data: bytes) -> int:
        try:
            fd, self._spool_path = tempfile.mkstemp(prefix='drawer_cmd_')
            with os.fdopen(fd, 'wb') as f:
                written = f.write(data)
        except OSError as e:
            raise PrinterWriteError(f"Failed to write command to temporary file: {e}") from e

        if written != len(data):
            return written

        try:
            result = subprocess.run(
                ['lp', '-d', self._printer_name, '-o', 'raw', '-t', self._document_name, self._spool_path],
                capture_output=True,
                text=True,
                timeout=COMMAND_TIMEOUT,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise StartDocumentError(f"Failed to send print job to '{self._printer_name}': {e}") from e

        if result.returncode != 0:
            raise StartDocumentError(
                f"Failed to send print job to '{self._printer_name}': {result.stderr.strip()}"
            )
        logger.debug(f"lp: {result.stdout.strip()}")
        return written

    def close(self):
        path, self._spool_path = self._spool_path, None
        if path is None:
            return
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass


# ─── Direct ESC/POS devices ─────────────────────────────────────────────────

class EscposTransport(Transport):
    """Raw bytes straight to a USB or network device via python-escpos."""

    def __init__(self):
        self._printer: Any = None

    def open(self, printer_name: str):
        try:
            printer = connect_printer(printer_name)
            printer.open()
        except ImportError as e:
            raise PrinterOpenError("python-escpos is required for direct device printing") from e
        except Exception as e:
            raise PrinterOpenError(f"Failed to open device '{printer_name}': {e}") from e
        self._printer = printer

    def start_document(self, document_name: str = DOCUMENT_NAME):
        pass

    def start_page(self):
        pass

    def write(self, data: bytes) -> int:
        try:
            self._printer._raw(data)
        except Exception as e:
            raise PrinterWriteError(f"Failed to write to device: {e}") from e
        return len(data)

    def close(self):
        printer, self._printer = self._printer, None
        if printer is not None:
            printer.close()


def select_transport(printer_name: str, backend: str = 'auto') -> Transport:
    """Pick the transport for `printer_name`. Device IDs always go direct."""
    if backend == 'escpos' or is_device_id(printer_name):
        return EscposTransport()
    if backend == 'win32':
        return Win32Transport()
    if backend == 'cups':
        return CupsTransport()
    if backend == 'auto':
        if platform.system() == 'Windows':
            return Win32Transport()
        return CupsTransport()
    raise ValueError(f"Unknown backend: {backend}")
