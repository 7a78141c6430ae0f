"""Shared test fixtures."""

import pytest
from sqlalchemy import BigInteger, Integer, create_engine, event
from sqlalchemy.orm import Session

from amm_core.db.base import Base

# Register all tables on Base.metadata
import amm_core.db.tables  # noqa: F401


@pytest.fixture
def db_session():
    """In-memory SQLite session with all tables created.

    Strips schemas and patches BigInteger→Integer for SQLite compatibility.
    """
    engine = create_engine("sqlite:///:memory:")

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, _rec):
        dbapi_conn.execute("PRAGMA foreign_keys=ON")

    # SQLite doesn't support schemas or BigInteger autoincrement
    for table in Base.metadata.tables.values():
        table.schema = None
        for col in table.columns:
            if isinstance(col.type, BigInteger):
                col.type = Integer()

    Base.metadata.create_all(engine)

    session = Session(engine)
    yield session
    session.close()
    engine.dispose()


class FakeClock:
    """Settable clock for time-dependent state machines."""

    def __init__(self, t: float = 0.0) -> None:
        self.t = t

    def __call__(self) -> float:
        return self.t


@pytest.fixture
def clock():
    return FakeClock()
