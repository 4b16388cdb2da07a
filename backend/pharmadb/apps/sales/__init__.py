"""
Sales module.

Append-only sale ledger and the engine that checks, decrements and records
a sale in one transaction.
"""

from . import models  # noqa: F401
