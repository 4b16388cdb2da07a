"""
Audit module.

Append-only record of who changed the catalog and who recorded which sale.
"""

from . import models  # noqa: F401
