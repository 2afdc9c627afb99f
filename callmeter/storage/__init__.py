"""
Storage layer for CallMeter.

Provides the address-based provider over the logs, plans and rules tables.
"""

from .addresses import AddressKind, ResolvedAddress, content_uri, resolve_address
from .errors import UnrecognizedAddress, UnsupportedOperation
from .notifier import ChangeNotifier, RowCursor
from .provider import DataProvider, get_provider, reset_provider

__all__ = [
    "AddressKind",
    "ChangeNotifier",
    "DataProvider",
    "ResolvedAddress",
    "RowCursor",
    "UnrecognizedAddress",
    "UnsupportedOperation",
    "content_uri",
    "get_provider",
    "reset_provider",
    "resolve_address",
]
