"""
CallMeter usage store.

Persistent storage of metered calls, messages and data sessions together
with the billing plans and rules they are classified into.
"""

__version__ = "0.1.0"
