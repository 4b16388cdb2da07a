"""
Catalog module.

Medications on the shelf: price, quantity on hand, expiry.
"""

from . import models  # noqa: F401
