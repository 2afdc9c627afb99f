"""
URI-addressed access to the usage store.

The provider resolves an address to one of the three tables, restricts
projections to the table's whitelist and runs a single statement per call.
Only querying and deleting logs are supported; the write path used by
classification lives in the repository module.
"""

import logging
from typing import Any, Mapping, Optional, Sequence

from .addresses import AddressKind, ResolvedAddress, resolve_address
from .db import DatabaseHelper
from .errors import UnsupportedOperation
from .notifier import ChangeNotifier, RowCursor
from .schema import DATABASE_NAME, DATABASE_VERSION, ID, TableSchema, quote

logger = logging.getLogger(__name__)


class DataProvider:
    """Query and delete interface over the logs, plans and rules tables."""

    def __init__(
        self,
        db_path: str = DATABASE_NAME,
        version: int = DATABASE_VERSION,
        notifier: Optional[ChangeNotifier] = None
    ):
        """Create a provider; the database is opened lazily on first use.

        Args:
            db_path: Path to SQLite database file
            version: Schema version the database is brought to
            notifier: Registry used for change notification
        """
        self.helper = DatabaseHelper(db_path, version)
        self.notifier = notifier or ChangeNotifier()

    @property
    def db_path(self) -> str:
        return self.helper.db_path

    def get_type(self, address: str) -> str:
        """MIME type of the collection or item at `address`.

        Raises:
            UnrecognizedAddress: If the address matches no registered pattern
        """
        return resolve_address(address).kind.mime_type

    def query(
        self,
        address: str,
        projection: Optional[Sequence[str]] = None,
        selection: Optional[str] = None,
        selection_args: Optional[Sequence[Any]] = None,
        sort_order: Optional[str] = None
    ) -> RowCursor:
        """Query the table named by `address`.

        Requested columns outside the table's whitelist are dropped. An item
        address adds an ``_id`` constraint ANDed with `selection`.

        Args:
            address: Collection or item address
            projection: Columns to return (all whitelisted columns if empty)
            selection: Raw SQL predicate, applied verbatim
            selection_args: Values bound to the predicate's placeholders
            sort_order: Raw ORDER BY clause; natural order if empty

        Returns:
            RowCursor watching `address` for changes

        Raises:
            UnrecognizedAddress: If the address matches no registered pattern
            sqlite3.Error: Propagated without modification
        """
        resolved = resolve_address(address)
        columns = _project(resolved.table, projection)
        where, params = _build_where(resolved, selection, selection_args)

        sql = f"SELECT {', '.join(quote(c) for c in columns)} FROM {quote(resolved.table.name)}"
        if where:
            sql += f" WHERE {where}"
        if sort_order:
            sql += f" ORDER BY {sort_order}"

        conn = self.helper.open()
        try:
            rows = conn.execute(sql, params).fetchall()
        finally:
            conn.close()

        cursor = RowCursor(columns, rows)
        cursor.set_notification_address(self.notifier, resolved.uri)
        return cursor

    def delete(
        self,
        address: str,
        selection: Optional[str] = None,
        selection_args: Optional[Sequence[Any]] = None
    ) -> int:
        """Delete log rows matching `selection`.

        Only the logs collection accepts deletes.

        Returns:
            Number of rows deleted

        Raises:
            UnrecognizedAddress: If the address matches no registered pattern
            UnsupportedOperation: For any address other than the logs collection
            sqlite3.Error: Propagated without modification
        """
        resolved = resolve_address(address)
        if resolved.kind is not AddressKind.LOGS:
            raise UnsupportedOperation("delete", address)

        sql = f"DELETE FROM {quote(resolved.table.name)}"
        if selection:
            sql += f" WHERE {selection}"

        conn = self.helper.open()
        try:
            # Write lock first; concurrent deletes wait on the busy timeout
            conn.isolation_level = None
            conn.execute("BEGIN IMMEDIATE")
            try:
                deleted = conn.execute(sql, list(selection_args or ())).rowcount
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise
        finally:
            conn.close()

        logger.debug("deleted %d row(s) from %s", deleted, resolved.table.name)
        self.notifier.notify_change(resolved.uri)
        return deleted

    def insert(self, address: str, values: Optional[Mapping[str, Any]] = None) -> str:
        """Not supported; always raises UnsupportedOperation."""
        raise UnsupportedOperation("insert", address)

    def update(
        self,
        address: str,
        values: Optional[Mapping[str, Any]] = None,
        selection: Optional[str] = None,
        selection_args: Optional[Sequence[Any]] = None
    ) -> int:
        """Not supported; always raises UnsupportedOperation."""
        raise UnsupportedOperation("update", address)

    def close(self) -> None:
        self.helper.close()


def _project(table: TableSchema, projection: Optional[Sequence[str]]) -> Sequence[str]:
    whitelist = table.column_names
    if not projection:
        return whitelist
    allowed = [column for column in projection if column in whitelist]
    dropped = [column for column in projection if column not in whitelist]
    if dropped:
        logger.debug("dropping unknown columns for %s: %s", table.name, dropped)
    return allowed or whitelist


def _build_where(
    resolved: ResolvedAddress,
    selection: Optional[str],
    selection_args: Optional[Sequence[Any]]
):
    conditions = []
    params = list(selection_args or ())
    if selection:
        conditions.append(f"({selection})")
    if resolved.is_item:
        conditions.append(f"{quote(ID)} = ?")
        params.append(resolved.item_id)
    return " AND ".join(conditions), params


# Global provider instance
_default_provider: Optional[DataProvider] = None


def get_provider(db_path: Optional[str] = None, version: int = DATABASE_VERSION) -> DataProvider:
    """Get the process-wide provider, creating it on first call.

    Args:
        db_path: Path to SQLite database file, used only on first call

    Returns:
        The shared DataProvider
    """
    global _default_provider
    if _default_provider is None:
        _default_provider = DataProvider(db_path or DATABASE_NAME, version)
    return _default_provider


def reset_provider() -> None:
    """Close and forget the process-wide provider."""
    global _default_provider
    if _default_provider is not None:
        _default_provider.close()
    _default_provider = None
