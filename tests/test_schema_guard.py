import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import StaticPool

from app.db.schema_guard import read_or_empty
from app.db.session import make_session_factory
from app.services import billing_queries


@pytest.fixture
def bare_db():
    eng = create_engine("sqlite://",
                        connect_args={"check_same_thread": False},
                        poolclass=StaticPool)
    session = make_session_factory(eng)()
    yield session
    session.close()
    eng.dispose()


def test_reads_on_missing_tables_are_empty(bare_db):
    assert billing_queries.list_invoices(bare_db) == []
    assert billing_queries.list_payments(bare_db) == []
    assert billing_queries.list_medicines(bare_db) == []
    assert billing_queries.list_dispensing_history(bare_db) == []


def test_other_database_errors_propagate(bare_db):
    with pytest.raises(OperationalError):
        read_or_empty(bare_db,
                      lambda: bare_db.execute(text("SELEC 1")).all(), [])
