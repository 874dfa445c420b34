"""Trigger cash drawers through receipt printers and list installed printers."""

__version__ = '0.1.0'

from .command import DrawerOptions, encode  # noqa: E402
from .drawer import (  # noqa: E402
    CashDrawerBridge,
    OpenResult,
    get_available_printers,
    open_cash_drawer,
)
from .errors import ErrorCode  # noqa: E402
from .listing import PrinterInfo, PrinterStatus  # noqa: E402

__all__ = [
    'CashDrawerBridge',
    'DrawerOptions',
    'ErrorCode',
    'OpenResult',
    'PrinterInfo',
    'PrinterStatus',
    'encode',
    'get_available_printers',
    'open_cash_drawer',
]
