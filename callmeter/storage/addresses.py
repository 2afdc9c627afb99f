"""
Address space of the usage store.

Addresses look like ``content://<authority>/logs`` or
``content://<authority>/logs/42``; the bare path (``logs/42``) is accepted
too. Raw strings are resolved once into a closed enumeration so the
provider never re-matches patterns.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import UnrecognizedAddress
from .schema import LOGS as LOGS_TABLE, PLANS as PLANS_TABLE, RULES as RULES_TABLE, TableSchema

AUTHORITY = "de.ub0r.android.callmeter.provider"
SCHEME = "content"
CONTENT_PREFIX = f"{SCHEME}://{AUTHORITY}/"


class AddressKind(Enum):
    """Registered address patterns."""
    LOGS = (LOGS_TABLE, False, "vnd.android.cursor.dir/vnd.ub0r.log")
    LOGS_ID = (LOGS_TABLE, True, "vnd.android.cursor.item/vnd.ub0r.log")
    PLANS = (PLANS_TABLE, False, "vnd.android.cursor.dir/vnd.ub0r.plan")
    PLANS_ID = (PLANS_TABLE, True, "vnd.android.cursor.item/vnd.ub0r.plan")
    RULES = (RULES_TABLE, False, "vnd.android.cursor.dir/vnd.ub0r.rule")
    RULES_ID = (RULES_TABLE, True, "vnd.android.cursor.item/vnd.ub0r.rule")

    def __init__(self, table: TableSchema, is_item: bool, mime_type: str):
        self.table = table
        self.is_item = is_item
        self.mime_type = mime_type


_KINDS = {(kind.table.name, kind.is_item): kind for kind in AddressKind}


@dataclass(frozen=True)
class ResolvedAddress:
    """An address matched against the dispatch table."""
    kind: AddressKind
    item_id: Optional[int] = None

    @property
    def table(self) -> TableSchema:
        return self.kind.table

    @property
    def is_item(self) -> bool:
        return self.kind.is_item

    @property
    def uri(self) -> str:
        return content_uri(self.table.name, self.item_id)

    @property
    def collection_uri(self) -> str:
        return content_uri(self.table.name)


def content_uri(table: str, item_id: Optional[int] = None) -> str:
    """Build the full address of a collection or one of its items."""
    if item_id is None:
        return CONTENT_PREFIX + table
    return f"{CONTENT_PREFIX}{table}/{item_id}"


LOGS_URI = content_uri(LOGS_TABLE.name)
PLANS_URI = content_uri(PLANS_TABLE.name)
RULES_URI = content_uri(RULES_TABLE.name)


def resolve_address(address: str) -> ResolvedAddress:
    """Resolve a raw address into its registered pattern.

    Args:
        address: Full content URI or bare path

    Returns:
        ResolvedAddress with the matched kind and, for items, the row id

    Raises:
        UnrecognizedAddress: If the address matches no registered pattern
    """
    if not isinstance(address, str):
        raise UnrecognizedAddress(repr(address))

    path = address
    if "://" in address:
        if not address.startswith(CONTENT_PREFIX):
            raise UnrecognizedAddress(address)
        path = address[len(CONTENT_PREFIX):]

    segments = path.strip("/").split("/")
    if len(segments) == 1:
        kind = _KINDS.get((segments[0], False))
        if kind is not None:
            return ResolvedAddress(kind)
    elif len(segments) == 2 and segments[1].isascii() and segments[1].isdigit():
        kind = _KINDS.get((segments[0], True))
        if kind is not None:
            return ResolvedAddress(kind, int(segments[1]))

    raise UnrecognizedAddress(address)
