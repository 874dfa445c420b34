"""
Printer listing parser and normalizer.

The OS reports installed printers in different shapes: a whitespace
aligned table from a command such as `wmic printer get`, or structured
records from a native enumeration call. Both are normalized here into
PrinterInfo records with a fixed status vocabulary.
"""

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger('cashdrawer.bridge.listing')


class PrinterStatus(str, Enum):
    OK = 'OK'
    IDLE = 'IDLE'
    OFFLINE = 'OFFLINE'
    UNKNOWN = 'UNKNOWN'


# Raw status text (lower-cased) -> normalized status
STATUS_TABLE = {
    'ok': PrinterStatus.OK,
    'ready': PrinterStatus.OK,
    'printing': PrinterStatus.OK,
    'processing': PrinterStatus.OK,
    'idle': PrinterStatus.IDLE,
    'offline': PrinterStatus.OFFLINE,
    'stopped': PrinterStatus.OFFLINE,
    'stopped printing': PrinterStatus.OFFLINE,
    'no contact': PrinterStatus.OFFLINE,
    'lost comm': PrinterStatus.OFFLINE,
}

# Bits of PRINTER_INFO_2.Status (winspool.h)
WIN32_STATUS_PAUSED = 0x00000001
WIN32_STATUS_OFFLINE = 0x00000080

# Two or more spaces, or any tab, separate columns
_COLUMN_SPLIT = re.compile(r'\s{2,}|\t+')
_RULE_LINE = re.compile(r'^[-\s]+$')


@dataclass(frozen=True)
class PrinterInfo:
    name: str | None
    default: bool = False
    status: PrinterStatus = PrinterStatus.UNKNOWN

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'default': self.default,
            'status': self.status.value,
        }


# ─── Field normalization ────────────────────────────────────────────────────

def status_from_text(raw: Any) -> PrinterStatus:
    """Look up a raw status string; anything unrecognized is UNKNOWN."""
    if isinstance(raw, PrinterStatus):
        return raw
    if not isinstance(raw, str):
        return PrinterStatus.UNKNOWN
    return STATUS_TABLE.get(raw.strip().lower(), PrinterStatus.UNKNOWN)


def status_from_win32_flags(flags: int) -> PrinterStatus:
    """Map a Windows spooler status bit mask."""
    if flags == 0:
        return PrinterStatus.OK
    if flags & WIN32_STATUS_OFFLINE:
        return PrinterStatus.OFFLINE
    if flags & WIN32_STATUS_PAUSED:
        return PrinterStatus.IDLE
    return PrinterStatus.UNKNOWN


def parse_default(raw: Any) -> bool:
    """Convert the raw default flag. Text must be exactly 'TRUE' to count."""
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        return raw.strip() == 'TRUE'
    return False


def _clean_name(raw: Any) -> str | None:
    if raw is None:
        return None
    name = str(raw).strip()
    return name or None


def normalize_record(record: Mapping) -> PrinterInfo:
    """Normalize one structured record. Keys are matched case-insensitively."""
    fields = {str(key).strip().lower(): value for key, value in record.items()}
    return PrinterInfo(
        name=_clean_name(fields.get('name')),
        default=parse_default(fields.get('default')),
        status=status_from_text(fields.get('status')),
    )


# ─── Tabular text ───────────────────────────────────────────────────────────

def _split_columns(line: str) -> list[str]:
    return [cell for cell in _COLUMN_SPLIT.split(line.strip()) if cell]


def parse_table(text: str) -> list[dict]:
    """
    Split whitespace-aligned table output into one dict per data row.

    The first non-empty line is the header. Short rows get None for the
    missing columns; extra cells are dropped.
    """
    lines = [line for line in text.splitlines() if line.strip()]
    lines = [line for line in lines if not _RULE_LINE.match(line)]
    if not lines:
        return []

    headers = [header.lower() for header in _split_columns(lines[0])]
    rows = []
    for line in lines[1:]:
        cells = _split_columns(line)
        if len(cells) != len(headers):
            logger.debug(f"Row has {len(cells)} column(s), expected {len(headers)}: {line!r}")
        row = {header: None for header in headers}
        row.update(zip(headers, cells))
        rows.append(row)
    return rows


def parse(raw: str | bytes | Iterable[Mapping] | None) -> list[PrinterInfo]:
    """
    Turn a raw printer listing into PrinterInfo records.

    `raw` is either table text or an iterable of structured records.
    Row order is preserved. Malformed rows still yield a record; only an
    empty payload yields an empty list.
    """
    if raw is None:
        return []

    if isinstance(raw, bytes):
        raw = raw.decode('utf-8', errors='replace')

    if isinstance(raw, str):
        records = parse_table(raw)
    else:
        records = list(raw)

    printers = []
    for record in records:
        if isinstance(record, PrinterInfo):
            printers.append(record)
        elif isinstance(record, Mapping):
            printers.append(normalize_record(record))
        else:
            logger.debug(f"Skipping unrecognized listing entry: {record!r}")
            printers.append(PrinterInfo(name=None))
    return printers
