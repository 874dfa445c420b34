"""
Virtual printer detection.

Virtual printers (PDF writers, XPS, fax, OneNote) accept any bytes and
report success without a drawer attached, so a kick sent to one would
look like it worked. They are rejected before any I/O happens.
"""

# Matched case-insensitively as substrings of the full printer name
VIRTUAL_PRINTER_FRAGMENTS = (
    'microsoft print to pdf',
    'microsoft xps document writer',
    'onenote',
    'send to onenote',
    'fax',
    'adobe pdf',
    'cute pdf',
    'cutepdf',
    'bullzip pdf',
    'foxit pdf',
    'pdf24',
    'dopdf',
    'pdfcreator',
    'pdf',
    'xps',
    'document writer',
)


def is_virtual(name: str) -> bool:
    """Return True if `name` looks like a virtual (non-physical) printer."""
    lowered = name.casefold()
    return any(fragment in lowered for fragment in VIRTUAL_PRINTER_FRAGMENTS)
