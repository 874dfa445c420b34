from .discovery import Discovery, select_discovery
from .transport import Transport, select_transport

__all__ = ['Discovery', 'Transport', 'select_discovery', 'select_transport']
