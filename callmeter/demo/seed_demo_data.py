# callmeter/demo/seed_demo_data.py

from typing import Optional

from callmeter.storage.models import LogEntry
from callmeter.storage.notifier import ChangeNotifier
from callmeter.storage.repository import insert_log_entries
from callmeter.storage.schema import DATABASE_NAME, DATABASE_VERSION, Direction, LogType

DEMO_LOGS = [
    LogEntry(
        type=LogType.CALL,
        direction=Direction.OUT,
        amount=185,
        bill_amount=240,
        remote="+4917012345678",
        cost=36
    ),
    LogEntry(
        type=LogType.CALL,
        direction=Direction.IN,
        amount=62,
        bill_amount=62,
        remote="+4930123456"
    ),
    LogEntry(
        type=LogType.SMS,
        direction=Direction.OUT,
        amount=1,
        bill_amount=1,
        remote="+4917012345678",
        cost=9
    ),
    LogEntry(
        type=LogType.SMS,
        direction=Direction.IN,
        amount=1,
        bill_amount=1,
        remote="+4915198765432"
    ),
    LogEntry(
        type=LogType.DATA,
        direction=Direction.IN,
        amount=5242880,
        bill_amount=5242880,
        roamed=True,
        cost=250  # roaming
    ),
]


def seed_demo_logs(
    db_path: str = DATABASE_NAME,
    notifier: Optional[ChangeNotifier] = None,
    version: int = DATABASE_VERSION
) -> int:
    """Insert the demo log entries and return how many were written."""
    insert_log_entries(DEMO_LOGS, db_path, notifier, version)
    return len(DEMO_LOGS)


if __name__ == "__main__":
    count = seed_demo_logs()
    print(f"Inserted {count} demo log entries")
