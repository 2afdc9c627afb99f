"""
Data models for storage layer.

Typed views of rows in the logs, plans and rules tables.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .schema import Direction, LogType


@dataclass(frozen=True)
class LogEntry:
    """One metered usage: a call, message or data session.

    Plan and rule stay empty until classification has matched the entry.
    """
    type: LogType
    direction: Direction
    amount: int
    bill_amount: int = 0
    remote: Optional[str] = None
    roamed: bool = False
    cost: int = 0
    plan_id: Optional[int] = None
    rule_id: Optional[int] = None
    id: Optional[int] = None

    def __post_init__(self):
        if not LogType(self.type).is_usage:
            raise ValueError(f"log type must be a usage category, got {self.type}")
        if self.amount < 0:
            raise ValueError("amount cannot be negative")

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "LogEntry":
        return cls(
            id=row["_id"],
            plan_id=row["_plan_id"],
            rule_id=row["_rule_id"],
            type=LogType(row["type"]),
            direction=Direction(row["direction"]),
            amount=row["amount"],
            bill_amount=row["bill_amount"],
            remote=row["remote"],
            roamed=bool(row["roamed"]),
            cost=row["cost"],
        )


@dataclass(frozen=True)
class Plan:
    """Billing plan, or a title/spacer row of the plan list."""
    name: str
    shortname: str
    type: LogType
    limit_type: Optional[int] = None
    limit: Optional[int] = None
    billmode: Optional[str] = None
    billday: Optional[int] = None
    billperiod: Optional[int] = None
    cost_per_item: Optional[int] = None
    cost_per_amount: Optional[int] = None
    cost_per_item_in_limit: Optional[int] = None
    cost_per_plan: Optional[int] = None
    id: Optional[int] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Plan":
        return cls(
            id=row["_id"],
            name=row["plan_name"],
            shortname=row["shortname"],
            type=LogType(row["plan_type"]),
            limit_type=row["limit_type"],
            limit=row["limit"],
            billmode=row["billmode"],
            billday=row["billday"],
            billperiod=row["billperiod"],
            cost_per_item=row["cost_per_item"],
            cost_per_amount=row["cost_per_amount"],
            cost_per_item_in_limit=row["cost_per_item_in_limit"],
            cost_per_plan=row["cost_per_plan"],
        )


@dataclass(frozen=True)
class Rule:
    """Predicate matching log entries to a plan."""
    plan_id: int
    name: str
    what: int
    what0: Optional[int] = None
    what1: Optional[int] = None
    negate: bool = False
    id: Optional[int] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Rule":
        return cls(
            id=row["_id"],
            plan_id=row["_plan_id"],
            name=row["rule_name"],
            negate=bool(row["not"]),
            what=row["what"],
            what0=row["what0"],
            what1=row["what1"],
        )
