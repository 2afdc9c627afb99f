"""
Unit tests for the data provider.

Tests querying with projections and filters, restricted deletes and the
refused insert/update operations.
"""

import os
import sqlite3
import tempfile
import threading

import pytest

from callmeter.storage.addresses import LOGS_URI, content_uri
from callmeter.storage.errors import UnrecognizedAddress, UnsupportedOperation
from callmeter.storage.models import LogEntry, Rule
from callmeter.storage.provider import DataProvider, get_provider, reset_provider
from callmeter.storage.repository import insert_log_entries, insert_rule
from callmeter.storage.schema import LOGS, PLANS, RULES, Direction, LogType


def _log(log_type=LogType.CALL, direction=Direction.OUT, amount=60, **kwargs):
    return LogEntry(type=log_type, direction=direction, amount=amount, **kwargs)


@pytest.fixture
def db_path():
    with tempfile.TemporaryDirectory() as temp_dir:
        yield os.path.join(temp_dir, "test.db")


@pytest.fixture
def provider(db_path):
    provider = DataProvider(db_path)
    yield provider
    provider.close()


@pytest.fixture
def five_logs(db_path):
    """Seed five log rows: two SMS, three calls."""
    insert_log_entries([
        _log(amount=30, remote="111"),
        _log(LogType.SMS, amount=1, remote="222"),
        _log(amount=90, remote="333", cost=15),
        _log(LogType.SMS, Direction.IN, amount=1, remote="444"),
        _log(direction=Direction.IN, amount=45, remote="555"),
    ], db_path)


class TestQuery:
    """Test queries against each table."""

    def test_all_columns_by_default(self, provider):
        """Test an empty projection returns the whole whitelist in order."""
        assert provider.query("logs").columns == LOGS.column_names
        assert provider.query("plans").columns == PLANS.column_names
        assert provider.query("rules").columns == RULES.column_names
        assert provider.query("plans", []).columns == PLANS.column_names

    def test_projection_subset(self, provider, five_logs):
        """Test requested columns come back in the requested order."""
        cursor = provider.query("logs", ["remote", "_id"])
        assert cursor.columns == ("remote", "_id")
        assert list(cursor)[0] == ("111", 1)

    def test_unknown_columns_dropped(self, provider, five_logs):
        """Test columns outside the whitelist never reach the result."""
        cursor = provider.query("logs", ["remote", "plan_name", "sqlite_version()", "rowid"])
        assert cursor.columns == ("remote",)

    def test_only_unknown_columns(self, provider):
        """Test a projection of only unknown columns falls back to the whitelist."""
        cursor = provider.query("rules", ["password", "1; DROP TABLE logs"])
        assert cursor.columns == RULES.column_names
        assert len(provider.query("logs")) == 0

    @pytest.mark.parametrize("address", ["logs", "plans", "rules", "logs/1", "plans/2"])
    def test_never_exposes_foreign_columns(self, provider, address):
        """Test every result's columns are within its table's whitelist."""
        table = address.split("/")[0]
        whitelist = {"logs": LOGS, "plans": PLANS, "rules": RULES}[table].column_names
        cursor = provider.query(address, ["_id", "cost", "plan_name", "what", "nonexistent"])
        assert set(cursor.columns) <= set(whitelist)

    def test_item_address_filters_by_id(self, provider, five_logs):
        """Test an item address yields only the row with that id."""
        cursor = provider.query("logs/3")
        rows = cursor.to_dicts()
        assert len(rows) == 1
        assert rows[0]["_id"] == 3
        assert rows[0]["remote"] == "333"

    def test_item_address_missing_row(self, provider, five_logs):
        """Test an item address for a missing id yields nothing."""
        assert len(provider.query("logs/42")) == 0

    def test_item_address_and_selection(self, provider, five_logs):
        """Test the id constraint is ANDed with the caller's filter."""
        assert len(provider.query("logs/3", selection="type = ?", selection_args=[1])) == 1
        assert len(provider.query("logs/3", selection="type = ?", selection_args=[2])) == 0

    def test_item_address_with_or_selection(self, provider, five_logs):
        """Test an OR in the caller's filter cannot widen an item query."""
        cursor = provider.query("logs/3", ["_id"], "type = 2 OR type = 1")
        assert list(cursor) == [(3,)]

    def test_full_uri(self, provider):
        """Test full content URIs work like bare paths."""
        assert len(provider.query(content_uri("plans", 2))) == 1

    def test_selection_args_bound(self, provider, five_logs):
        """Test filter arguments are bound, not interpolated."""
        cursor = provider.query("logs", ["remote"], "remote = ?", ["222"])
        assert list(cursor) == [("222",)]
        cursor = provider.query("logs", ["remote"], "remote = ?", ["x' OR '1'='1"])
        assert len(cursor) == 0

    def test_natural_order_without_sort(self, provider, five_logs):
        """Test rows come back in insertion order when no sort is given."""
        cursor = provider.query("logs", ["_id"], sort_order="")
        assert [row[0] for row in cursor] == [1, 2, 3, 4, 5]

    def test_sort_order(self, provider, five_logs):
        """Test a sort order is applied."""
        cursor = provider.query("logs", ["amount"], "type = ?", [1], "amount DESC")
        assert [row[0] for row in cursor] == [90, 45, 30]

    def test_rules_query(self, provider, db_path):
        """Test rules rows are returned with their owning plan."""
        insert_rule(Rule(plan_id=2, name="outgoing", what=3, what0=2, negate=True), db_path)
        rows = provider.query("rules/1").to_dicts()
        assert rows[0]["_plan_id"] == 2
        assert rows[0]["rule_name"] == "outgoing"
        assert rows[0]["not"] == 1

    def test_unrecognized_address(self, provider):
        """Test querying an unknown address fails."""
        with pytest.raises(UnrecognizedAddress):
            provider.query("usage")

    def test_malformed_selection_propagates(self, provider):
        """Test database errors reach the caller unwrapped."""
        with pytest.raises(sqlite3.OperationalError):
            provider.query("logs", selection="no_such_column = 1")


class TestDelete:
    """Test deletion of log rows."""

    def test_delete_matching_rows(self, provider, five_logs):
        """Test exactly the matching rows are removed."""
        deleted = provider.delete("logs", "type = ?", [2])
        assert deleted == 2
        cursor = provider.query("logs", ["type"])
        assert len(cursor) == 3
        assert all(row[0] == 1 for row in cursor)

    def test_delete_all(self, provider, five_logs):
        """Test deleting without a filter empties the table."""
        assert provider.delete(LOGS_URI) == 5
        assert len(provider.query("logs")) == 0

    def test_delete_nothing_matches(self, provider, five_logs):
        """Test a filter matching nothing deletes nothing."""
        assert provider.delete("logs", "amount > ?", [10000]) == 0
        assert len(provider.query("logs")) == 5

    @pytest.mark.parametrize("address", ["plans", "rules", "plans/1", "rules/1", "logs/1"])
    def test_delete_other_addresses_refused(self, provider, address):
        """Test only the logs collection accepts deletes."""
        with pytest.raises(UnsupportedOperation) as exc_info:
            provider.delete(address)
        assert exc_info.value.operation == "delete"
        assert len(provider.query("plans")) == 9

    def test_delete_unrecognized_address(self, provider):
        """Test deleting at an unknown address fails as unrecognized."""
        with pytest.raises(UnrecognizedAddress):
            provider.delete("usage")

    def test_concurrent_disjoint_deletes(self, provider, db_path):
        """Test concurrent deletes with disjoint filters sum to the total."""
        insert_log_entries(
            [_log(amount=i) for i in range(50)]
            + [_log(LogType.SMS, amount=i) for i in range(30)],
            db_path,
        )
        results = {}
        errors = []

        def worker(name, log_type):
            try:
                results[name] = provider.delete("logs", "type = ?", [log_type])
            except Exception as e:  # surfaced through the assertion below
                errors.append(e)

        threads = [
            threading.Thread(target=worker, args=("calls", 1)),
            threading.Thread(target=worker, args=("sms", 2)),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert results == {"calls": 50, "sms": 30}
        assert len(provider.query("logs")) == 0


class TestUnsupportedWrites:
    """Test insert and update are always refused."""

    @pytest.mark.parametrize("address", [
        "logs", "logs/1", "plans", "plans/1", "rules", "rules/1", "unknown",
    ])
    @pytest.mark.parametrize("values", [None, {}, {"amount": 5}, {"bogus": object()}])
    def test_insert_refused(self, provider, address, values):
        """Test insert raises for every address and value set."""
        with pytest.raises(UnsupportedOperation) as exc_info:
            provider.insert(address, values)
        assert exc_info.value.operation == "insert"

    @pytest.mark.parametrize("address", [
        "logs", "logs/1", "plans", "plans/1", "rules", "rules/1", "unknown",
    ])
    @pytest.mark.parametrize("values", [None, {}, {"cost": 0}])
    def test_update_refused(self, provider, address, values):
        """Test update raises for every address and value set."""
        with pytest.raises(UnsupportedOperation) as exc_info:
            provider.update(address, values, "_id = ?", [1])
        assert exc_info.value.operation == "update"

    def test_refused_writes_leave_data(self, provider, db_path):
        """Test refused writes neither create nor change rows."""
        with pytest.raises(UnsupportedOperation):
            provider.insert("logs", {"type": 1})
        with pytest.raises(UnsupportedOperation):
            provider.update("plans", {"plan_name": "changed"})
        assert len(provider.query("logs")) == 0
        assert provider.query("plans/1", ["plan_name"]).to_dicts() == [{"plan_name": "Calls"}]


class TestSharedProvider:
    """Test the process-wide provider."""

    def test_get_provider_is_shared(self, db_path):
        """Test repeated calls return the same provider."""
        reset_provider()
        try:
            first = get_provider(db_path)
            assert get_provider() is first
            assert first.db_path == db_path
        finally:
            reset_provider()

    def test_reset_provider(self, db_path):
        """Test reset drops the shared provider."""
        reset_provider()
        first = get_provider(db_path)
        reset_provider()
        try:
            assert get_provider(db_path) is not first
        finally:
            reset_provider()

    def test_lazy_open(self, db_path):
        """Test the database file appears only on first access."""
        provider = DataProvider(db_path)
        assert not os.path.exists(db_path)
        provider.query("plans")
        assert os.path.exists(db_path)
