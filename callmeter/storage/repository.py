"""
Repository pattern for data access.

Direct read/write access used by the classification side. The provider
refuses inserts, so log entries and rules are written here; passing a
notifier keeps cursors handed out by the provider honest.
"""

from typing import List, Optional

from .addresses import LOGS_URI, RULES_URI
from .db import DatabaseHelper
from .models import LogEntry, Plan, Rule
from .notifier import ChangeNotifier
from .schema import DATABASE_NAME, DATABASE_VERSION, LOGS, PLANS, RULES, quote


def _insert_sql(table, columns) -> str:
    return (
        f"INSERT INTO {quote(table.name)} "
        f"({', '.join(quote(c) for c in columns)}) "
        f"VALUES ({', '.join('?' for _ in columns)})"
    )


_LOG_COLUMNS = (
    "_plan_id", "_rule_id", "type", "direction", "amount",
    "bill_amount", "remote", "roamed", "cost",
)
_RULE_COLUMNS = ("_plan_id", "rule_name", "not", "what", "what0", "what1")

INSERT_LOG_SQL = _insert_sql(LOGS, _LOG_COLUMNS)
INSERT_RULE_SQL = _insert_sql(RULES, _RULE_COLUMNS)


def _log_params(entry: LogEntry) -> tuple:
    return (
        entry.plan_id,
        entry.rule_id,
        int(entry.type),
        int(entry.direction),
        entry.amount,
        entry.bill_amount,
        entry.remote,
        int(entry.roamed),
        entry.cost,
    )


def insert_log_entry(
    entry: LogEntry,
    db_path: str = DATABASE_NAME,
    notifier: Optional[ChangeNotifier] = None,
    version: int = DATABASE_VERSION
) -> int:
    """Insert a single log entry.

    Args:
        entry: The usage to record; its id is ignored
        db_path: Path to SQLite database file
        notifier: Notified about the logs collection after the write
        version: Schema version the database is brought to

    Returns:
        Row id assigned to the entry
    """
    conn = DatabaseHelper(db_path, version).open()
    try:
        with conn:
            row_id = conn.execute(INSERT_LOG_SQL, _log_params(entry)).lastrowid
    finally:
        conn.close()
    if notifier is not None:
        notifier.notify_change(LOGS_URI)
    return row_id


def insert_log_entries(
    entries: List[LogEntry],
    db_path: str = DATABASE_NAME,
    notifier: Optional[ChangeNotifier] = None,
    version: int = DATABASE_VERSION
) -> None:
    """Insert multiple log entries atomically.

    All entries are inserted in a single transaction; on failure nothing
    is written.

    Args:
        entries: Usages to record
        db_path: Path to SQLite database file
        notifier: Notified about the logs collection after the write
        version: Schema version the database is brought to
    """
    if not entries:
        return

    conn = DatabaseHelper(db_path, version).open()
    try:
        conn.execute("BEGIN TRANSACTION")
        for entry in entries:
            conn.execute(INSERT_LOG_SQL, _log_params(entry))
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
    if notifier is not None:
        notifier.notify_change(LOGS_URI)


def insert_rule(
    rule: Rule,
    db_path: str = DATABASE_NAME,
    notifier: Optional[ChangeNotifier] = None,
    version: int = DATABASE_VERSION
) -> int:
    """Insert a rule and return its row id."""
    conn = DatabaseHelper(db_path, version).open()
    try:
        with conn:
            row_id = conn.execute(INSERT_RULE_SQL, (
                rule.plan_id,
                rule.name,
                int(rule.negate),
                rule.what,
                rule.what0,
                rule.what1,
            )).lastrowid
    finally:
        conn.close()
    if notifier is not None:
        notifier.notify_change(RULES_URI)
    return row_id


def fetch_log_entries(
    log_type: Optional[int] = None,
    plan_id: Optional[int] = None,
    db_path: str = DATABASE_NAME,
    version: int = DATABASE_VERSION
) -> List[LogEntry]:
    """Fetch log entries in insertion order, optionally filtered.

    Args:
        log_type: Optional filter for a usage category
        plan_id: Optional filter for the plan entries were billed in
        db_path: Path to SQLite database file
        version: Schema version the database is brought to

    Returns:
        List of log entries ordered by id
    """
    conn = DatabaseHelper(db_path, version).open()
    try:
        query = f"SELECT * FROM {quote(LOGS.name)}"
        params = []
        conditions = []

        if log_type is not None:
            conditions.append('"type" = ?')
            params.append(int(log_type))
        if plan_id is not None:
            conditions.append('"_plan_id" = ?')
            params.append(plan_id)

        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += ' ORDER BY "_id"'

        return [LogEntry.from_row(row) for row in conn.execute(query, params).fetchall()]
    finally:
        conn.close()


def fetch_plans(db_path: str = DATABASE_NAME, version: int = DATABASE_VERSION) -> List[Plan]:
    """Fetch all plans in display order."""
    conn = DatabaseHelper(db_path, version).open()
    try:
        rows = conn.execute(f'SELECT * FROM {quote(PLANS.name)} ORDER BY "_id"').fetchall()
        return [Plan.from_row(row) for row in rows]
    finally:
        conn.close()


def fetch_rules(
    plan_id: Optional[int] = None,
    db_path: str = DATABASE_NAME,
    version: int = DATABASE_VERSION
) -> List[Rule]:
    """Fetch rules, optionally only those owned by `plan_id`."""
    conn = DatabaseHelper(db_path, version).open()
    try:
        query = f"SELECT * FROM {quote(RULES.name)}"
        params = []
        if plan_id is not None:
            query += ' WHERE "_plan_id" = ?'
            params.append(plan_id)
        query += ' ORDER BY "_id"'
        return [Rule.from_row(row) for row in conn.execute(query, params).fetchall()]
    finally:
        conn.close()
