"""
Change notification for query results.

Cursors register themselves under the address they were queried from.
A mutation through the provider notifies that address, marking the
cursors stale. Consumers are expected to re-query; results never
refresh themselves.

Cursors are held weakly: a cursor dropped without `close()` disappears
from the registry once it is garbage collected.
"""

import logging
import threading
import weakref
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from .addresses import ResolvedAddress, resolve_address

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[str], None]


@dataclass(frozen=True, eq=False)
class ObserverHandle:
    """Registration returned by `ChangeNotifier.register`."""
    address: ResolvedAddress
    ref: Callable[[], Optional[ChangeCallback]]
    notify_for_descendants: bool = False

    @property
    def callback(self) -> Optional[ChangeCallback]:
        """The registered callback, or None once its owner was collected."""
        return self.ref()

    @property
    def is_alive(self) -> bool:
        return self.ref() is not None

    def matches(self, changed: ResolvedAddress) -> bool:
        if self.address.table.name != changed.table.name:
            return False
        if self.address == changed:
            return True
        # A collection change reaches every item below it
        if not changed.is_item:
            return True
        return not self.address.is_item and self.notify_for_descendants


class ChangeNotifier:
    """Observer registry keyed by address."""

    def __init__(self):
        self._observers: List[ObserverHandle] = []
        self._lock = threading.Lock()

    def register(
        self,
        address: str,
        callback: ChangeCallback,
        notify_for_descendants: bool = False,
        weak: bool = False
    ) -> ObserverHandle:
        """Register `callback` for changes at `address`.

        Args:
            address: Collection or item address to watch
            callback: Called with the changed address
            notify_for_descendants: Collection observers also hear item changes
            weak: Hold a bound-method callback through a weak reference

        Raises:
            UnrecognizedAddress: If the address matches no registered pattern
            TypeError: If `weak` is set and callback is not a bound method
        """
        resolved = resolve_address(address)
        if weak:
            ref = weakref.WeakMethod(callback)
        else:
            ref = lambda: callback  # noqa: E731
        handle = ObserverHandle(resolved, ref, notify_for_descendants)
        with self._lock:
            self._observers.append(handle)
        return handle

    def unregister(self, handle: ObserverHandle) -> None:
        with self._lock:
            if handle in self._observers:
                self._observers.remove(handle)

    def notify_change(self, address: str) -> int:
        """Invoke every live observer interested in a change at `address`.

        Returns:
            Number of observers notified
        """
        changed = resolve_address(address)
        with self._lock:
            self._prune()
            targets = [handle for handle in self._observers if handle.matches(changed)]
        notified = 0
        for handle in targets:
            callback = handle.callback
            if callback is not None:
                callback(changed.uri)
                notified += 1
        logger.debug("notify %s: %d observer(s)", changed.uri, notified)
        return notified

    def observer_count(self) -> int:
        with self._lock:
            self._prune()
            return len(self._observers)

    def _prune(self) -> None:
        self._observers = [handle for handle in self._observers if handle.is_alive]


class RowCursor:
    """Result of a query: column names plus the fetched rows.

    The cursor watches its notification address once one is set. After a
    change notification `is_stale` turns true and registered observers
    are called; the rows themselves are left as fetched.
    """

    def __init__(self, columns: Sequence[str], rows: Sequence[Tuple[Any, ...]]):
        self.columns: Tuple[str, ...] = tuple(columns)
        self._rows: List[Tuple[Any, ...]] = [tuple(row) for row in rows]
        self._stale = False
        self._closed = False
        self._observers: List[ChangeCallback] = []
        self._notifier: Optional[ChangeNotifier] = None
        self._handle: Optional[ObserverHandle] = None

    def __iter__(self) -> Iterator[Tuple[Any, ...]]:
        return iter(self._rows)

    def __len__(self) -> int:
        return len(self._rows)

    def __enter__(self) -> "RowCursor":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def count(self) -> int:
        return len(self._rows)

    @property
    def is_stale(self) -> bool:
        return self._stale

    @property
    def is_closed(self) -> bool:
        return self._closed

    def get_column_index(self, column: str) -> int:
        """Index of `column` in each row.

        Raises:
            ValueError: If the cursor has no such column
        """
        try:
            return self.columns.index(column)
        except ValueError:
            raise ValueError(f"column '{column}' does not exist")

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [dict(zip(self.columns, row)) for row in self._rows]

    def set_notification_address(self, notifier: ChangeNotifier, address: str) -> None:
        """Watch `address` for changes, replacing any previous watch."""
        self._unwatch()
        self._notifier = notifier
        self._handle = notifier.register(address, self._on_change, weak=True)

    def register_observer(self, callback: ChangeCallback) -> None:
        self._observers.append(callback)

    def unregister_observer(self, callback: ChangeCallback) -> None:
        if callback in self._observers:
            self._observers.remove(callback)

    def close(self) -> None:
        """Stop watching for changes and drop observers."""
        self._unwatch()
        self._observers.clear()
        self._closed = True

    def _unwatch(self) -> None:
        if self._notifier is not None and self._handle is not None:
            self._notifier.unregister(self._handle)
        self._notifier = None
        self._handle = None

    def _on_change(self, uri: str) -> None:
        self._stale = True
        for callback in list(self._observers):
            callback(uri)
