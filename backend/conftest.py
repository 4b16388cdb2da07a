from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parent
sys.path.append(str(ROOT))

os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["DATABASE_WRITE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ.pop("DATABASE_READ_URL", None)

from pharmadb.database import Base, get_read_db, get_write_db  # noqa: E402
from pharmadb.apps.audit import models as audit_models  # noqa: E402
from pharmadb.apps.catalog import models as catalog_models  # noqa: E402
from pharmadb.apps.sales import models as sales_models  # noqa: E402

LEDGER_TABLES = [
    catalog_models.Item.__table__,
    sales_models.SaleRecord.__table__,
    audit_models.AuditEvent.__table__,
]


def _session_factory(engine):
    return sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )


@pytest.fixture()
def db_session():
    engine = create_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(bind=engine, tables=LEDGER_TABLES)
    TestingSession = _session_factory(engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture()
def file_db(tmp_path):
    """
    File-backed SQLite for tests that need several connections at once.
    Yields a session factory; each thread opens its own session.
    """
    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'ledger.sqlite3'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine, tables=LEDGER_TABLES)
    try:
        yield _session_factory(engine)
    finally:
        engine.dispose()


@pytest.fixture()
def client():
    from fastapi.testclient import TestClient

    from pharmadb.main import app

    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine, tables=LEDGER_TABLES)
    TestingSession = _session_factory(engine)

    def _override_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_write_db] = _override_db
    app.dependency_overrides[get_read_db] = _override_db
    try:
        with TestClient(app, raise_server_exceptions=False) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
        engine.dispose()
