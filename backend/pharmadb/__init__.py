# backend/pharmadb/__init__.py
"""
Pharmacy inventory ledger.

Model classes live in pharmadb/apps/*/models.py; `database.init_models()`
imports them all so Alembic and Base.metadata.create_all() see every table.
"""
