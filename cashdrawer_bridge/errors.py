"""
Error taxonomy for cash drawer operations.

Every failure that can happen while kicking a drawer is reported to the
caller as one of the numeric codes below. The values are persisted and
compared by callers, so they never change and are never reused.
"""

import asyncio
import logging
from enum import IntEnum

logger = logging.getLogger('cashdrawer.bridge.errors')


class ErrorCode(IntEnum):
    SUCCESS = 0
    INVALID_ARGUMENT = 1000
    OPEN_ERROR = 1001
    START_DOC_ERROR = 1002
    START_PAGE_ERROR = 1003
    WRITE_ERROR = 1004
    INCOMPLETE_WRITE = 1005
    INVALID_NAME = 1006
    OTHER_ERROR = 1007
    VIRTUAL_BLOCKED = 1008


DEFAULT_MESSAGES = {
    ErrorCode.SUCCESS: '',
    ErrorCode.INVALID_ARGUMENT: 'Invalid argument.',
    ErrorCode.OPEN_ERROR: 'Failed to open printer.',
    ErrorCode.START_DOC_ERROR: 'Failed to start print job.',
    ErrorCode.START_PAGE_ERROR: 'Failed to start page.',
    ErrorCode.WRITE_ERROR: 'Failed to write to printer.',
    ErrorCode.INCOMPLETE_WRITE: 'Not all bytes were written to printer.',
    ErrorCode.INVALID_NAME: 'printerName must be a string.',
    ErrorCode.OTHER_ERROR: 'Failed to open Cash Drawer.',
    ErrorCode.VIRTUAL_BLOCKED: 'Cannot open cash drawer on a virtual printer.',
}


# ─── Structured failures ────────────────────────────────────────────────────

class DrawerError(Exception):
    """Base class for failures that carry their own error code."""

    code = ErrorCode.OTHER_ERROR

    def __init__(self, message: str = ''):
        super().__init__(message or DEFAULT_MESSAGES[self.code])


class InvalidArgumentError(DrawerError, ValueError):
    code = ErrorCode.INVALID_ARGUMENT


class InvalidNameError(DrawerError, TypeError):
    code = ErrorCode.INVALID_NAME


class VirtualPrinterError(DrawerError):
    code = ErrorCode.VIRTUAL_BLOCKED

    def __init__(self, printer_name: str):
        self.printer_name = printer_name
        super().__init__(
            f"Cannot open cash drawer on virtual printer '{printer_name}'. "
            "Please use a physical receipt printer."
        )


class TransportError(DrawerError):
    """A stage of the transport collaborator failed."""


class PrinterOpenError(TransportError):
    code = ErrorCode.OPEN_ERROR


class StartDocumentError(TransportError):
    code = ErrorCode.START_DOC_ERROR


class StartPageError(TransportError):
    code = ErrorCode.START_PAGE_ERROR


class PrinterWriteError(TransportError):
    code = ErrorCode.WRITE_ERROR


class IncompleteWriteError(TransportError):
    code = ErrorCode.INCOMPLETE_WRITE

    def __init__(self, expected: int, written: int):
        self.expected = expected
        self.written = written
        super().__init__(
            f"Not all bytes were written to printer. "
            f"Expected: {expected}, Written: {written}"
        )


# ─── Mapping ────────────────────────────────────────────────────────────────

def map_failure(failure: BaseException) -> tuple[ErrorCode, str]:
    """
    Translate any failure into an (error code, message) pair.

    Structured DrawerError instances keep their own code. Anything else,
    including timeouts and errors raised by third-party libraries, falls
    into OTHER_ERROR. The exception's own text is kept when it has one.
    """
    if isinstance(failure, DrawerError):
        code = failure.code
    else:
        code = ErrorCode.OTHER_ERROR

    try:
        message = str(failure)
    except Exception:
        message = ''

    if not message and isinstance(failure, asyncio.TimeoutError):
        message = 'Timed out waiting for the printer.'

    if not message:
        message = DEFAULT_MESSAGES[code]

    if code is ErrorCode.OTHER_ERROR and not isinstance(failure, DrawerError):
        logger.debug(f"Unclassified failure {type(failure).__name__}: {message}")

    return code, message
