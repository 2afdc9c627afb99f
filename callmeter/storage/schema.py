"""
Schema definitions for the usage store.

Each table is described by a fixed, ordered tuple of columns. That tuple is
both the DDL source and the projection whitelist handed to query callers.
"""

import logging
import sqlite3
from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Tuple

logger = logging.getLogger(__name__)

DATABASE_NAME = "callmeter.db"
DATABASE_VERSION = 1


class LogType(IntEnum):
    """Usage categories. Negative values are display-only plan rows."""
    MIXED = -1
    TITLE = -2
    SPACING = -3
    CALL = 1
    SMS = 2
    MMS = 3
    DATA = 4

    @property
    def is_usage(self) -> bool:
        return self.value > 0


class Direction(IntEnum):
    """Direction of a logged usage."""
    IN = 1
    OUT = 2


@dataclass(frozen=True)
class Column:
    """A single column: name and SQLite type clause."""
    name: str
    sql_type: str


@dataclass(frozen=True)
class TableSchema:
    """Fixed column layout of one table."""
    name: str
    columns: Tuple[Column, ...]

    @property
    def column_names(self) -> Tuple[str, ...]:
        """Projection whitelist, in declared order."""
        return tuple(column.name for column in self.columns)

    def create_sql(self) -> str:
        clauses = ", ".join(
            f"{quote(column.name)} {column.sql_type}" for column in self.columns
        )
        return f"CREATE TABLE IF NOT EXISTS {quote(self.name)} ({clauses})"

    def drop_sql(self) -> str:
        return f"DROP TABLE IF EXISTS {quote(self.name)}"


def quote(identifier: str) -> str:
    """Quote an identifier; `limit` and `not` are SQL keywords."""
    return '"' + identifier.replace('"', '""') + '"'


ID = "_id"
PRIMARY_KEY = "INTEGER PRIMARY KEY AUTOINCREMENT"

LOGS = TableSchema(
    name="logs",
    columns=(
        Column(ID, PRIMARY_KEY),
        Column("_plan_id", "INTEGER"),
        Column("_rule_id", "INTEGER"),
        Column("type", "INTEGER"),
        Column("direction", "INTEGER"),
        Column("amount", "INTEGER"),
        Column("bill_amount", "INTEGER"),
        Column("remote", "TEXT"),
        Column("roamed", "INTEGER"),
        Column("cost", "INTEGER"),
    ),
)

PLANS = TableSchema(
    name="plans",
    columns=(
        Column(ID, PRIMARY_KEY),
        Column("plan_name", "TEXT"),
        Column("shortname", "TEXT"),
        Column("plan_type", "INTEGER"),
        Column("limit_type", "INTEGER"),
        Column("limit", "INTEGER"),
        Column("billmode", "TEXT"),
        Column("billday", "INTEGER"),
        Column("billperiod", "INTEGER"),
        Column("cost_per_item", "INTEGER"),
        Column("cost_per_amount", "INTEGER"),
        Column("cost_per_item_in_limit", "INTEGER"),
        Column("cost_per_plan", "INTEGER"),
    ),
)

RULES = TableSchema(
    name="rules",
    columns=(
        Column(ID, PRIMARY_KEY),
        Column("_plan_id", "INTEGER"),
        Column("rule_name", "TEXT"),
        Column("not", "INTEGER"),
        Column("what", "INTEGER"),
        Column("what0", "INTEGER"),
        Column("what1", "INTEGER"),
    ),
)

TABLES: Dict[str, TableSchema] = {
    LOGS.name: LOGS,
    PLANS.name: PLANS,
    RULES.name: RULES,
}

# Default grouped display order for the plan list: (name, shortname, type)
PLAN_SEED: Tuple[Tuple[str, str, LogType], ...] = (
    ("Calls", "Calls", LogType.TITLE),
    ("Calls", "Calls", LogType.CALL),
    ("space", "-", LogType.SPACING),
    ("SMS", "SMS", LogType.TITLE),
    ("SMS in", "In", LogType.SMS),
    ("SMS out", "Out", LogType.SMS),
    ("space", "-", LogType.SPACING),
    ("Data/UMTS", "Data", LogType.TITLE),
    ("Data", "Data", LogType.DATA),
)


def create_tables(conn: sqlite3.Connection) -> None:
    """Create all tables and seed the plan list."""
    logger.info("create database")
    for table in TABLES.values():
        logger.info("create table: %s", table.name)
        conn.execute(table.create_sql())
    if conn.execute(f"SELECT COUNT(*) FROM {quote(PLANS.name)}").fetchone()[0]:
        logger.info("plans already present, skipping seed")
        return
    conn.executemany(
        f"INSERT INTO {quote(PLANS.name)} "
        f"({quote('plan_name')}, {quote('shortname')}, {quote('plan_type')}) "
        "VALUES (?, ?, ?)",
        [(name, shortname, int(plan_type)) for name, shortname, plan_type in PLAN_SEED],
    )


def drop_tables(conn: sqlite3.Connection) -> None:
    for table in TABLES.values():
        logger.warning("Upgrading table: %s", table.name)
        conn.execute(table.drop_sql())


def ensure_schema(
    conn: sqlite3.Connection,
    current_version: int,
    target_version: int = DATABASE_VERSION
) -> None:
    """Bring the schema from `current_version` to `target_version`.

    Version 0 means a new database: tables are created and plans seeded.
    Any older non-zero version is upgraded destructively: every table is
    dropped, recreated and reseeded. Equal versions are a no-op.

    The caller owns the transaction; nothing is committed here.

    Args:
        conn: Open SQLite connection
        current_version: Version found on disk (0 for a new database)
        target_version: Version the code expects

    Raises:
        ValueError: If current_version is newer than target_version
        sqlite3.Error: Propagated without modification
    """
    if current_version > target_version:
        raise ValueError(
            f"Can't downgrade database from version {current_version} "
            f"to {target_version}"
        )
    if current_version == target_version:
        return
    if current_version == 0:
        create_tables(conn)
        return
    logger.warning(
        "Upgrading database from version %d to %d, which will destroy all old data",
        current_version, target_version
    )
    drop_tables(conn)
    create_tables(conn)
