from __future__ import annotations

import pharmadb.apps
from pharmadb import database
from pharmadb.apps.audit import services as audit_services


def test_apps_is_a_regular_package():
    assert pharmadb.apps.__file__ is not None
    assert audit_services.__name__ == "pharmadb.apps.audit.services"


def test_database_exposes_only_split_engines():
    assert not hasattr(database, "engine")
    assert not hasattr(database, "SessionLocal")
    assert database.get_db is database.get_write_db
