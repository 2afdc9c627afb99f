"""
Errors raised by the usage store.

Database errors from sqlite3 are never wrapped; only addressing and
operation restrictions have their own types.
"""


class UnrecognizedAddress(ValueError):
    """Raised when an address matches none of the registered patterns."""

    def __init__(self, address: str):
        super().__init__(f"Unknown URI: {address}")
        self.address = address


class UnsupportedOperation(Exception):
    """Raised for operations the store refuses: insert, update, and
    delete on anything but the logs collection."""

    def __init__(self, operation: str, address: str):
        super().__init__(f"{operation} not supported for {address}")
        self.operation = operation
        self.address = address
