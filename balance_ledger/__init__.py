"""
Balance Ledger

Bank accounts with balance use and cancel operations. Every balance change
is validated against the account and its owner and recorded as an
immutable transaction carrying the resulting balance snapshot.
"""

__version__ = "1.0.0"
