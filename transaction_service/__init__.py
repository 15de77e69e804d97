"""
Transaction Service

Accounts and payments over an HTTP API. Balances are exact Decimals,
never negative, and every money movement is applied as a single
all-or-nothing unit of work that records one payment.
"""

__version__ = "1.0.0"
