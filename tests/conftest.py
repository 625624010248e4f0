import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")

from datetime import datetime  # noqa: E402
from decimal import Decimal  # noqa: E402
from types import SimpleNamespace  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.api.deps import get_db  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.db.session import make_engine, make_session_factory  # noqa: E402
from app.main import app  # noqa: E402
from app.models import (  # noqa: E402
    Doctor,
    Medicine,
    Patient,
    Prescription,
    PrescriptionItem,
    TestRequest,
    User,
)
from app.utils.jwt import create_access_token  # noqa: E402


def seed_hospital(db) -> SimpleNamespace:
    """Users for every role, two patients, stock, a prescription and lab tests."""
    users = {
        "admin": User(name="Admin", email="admin@t.local", role="admin"),
        "staff": User(name="Desk Staff", email="staff@t.local", role="staff"),
        "pharmacist": User(name="Pharma", email="ph@t.local",
                           role="pharmacist"),
        "lab": User(name="Lab Tech", email="lab@t.local",
                    role="lab_technician"),
        "doctor": User(name="Dr. Rao", email="doc@t.local", role="doctor"),
        "patient": User(name="Arun Kumar", email="arun@t.local",
                        role="patient"),
        "other_patient": User(name="Meena", email="meena@t.local",
                              role="patient"),
    }
    db.add_all(users.values())
    db.flush()

    doctor = Doctor(user_id=users["doctor"].id, specialization="General")
    patient = Patient(user_id=users["patient"].id)
    other = Patient(user_id=users["other_patient"].id)
    db.add_all([doctor, patient, other])
    db.flush()

    amox = Medicine(name="Amoxicillin", quantity=50, unit_price=Decimal("2.00"))
    unpriced = Medicine(name="Sample Syrup", quantity=20, unit_price=None)
    db.add_all([amox, unpriced])
    db.flush()

    rx = Prescription(patient_id=patient.id, doctor_id=doctor.id)
    rx.items = [PrescriptionItem(medicine_id=amox.id, quantity=15)]
    db.add(rx)

    completed = TestRequest(patient_id=patient.id,
                            doctor_id=doctor.id,
                            test_type="Lipid Panel",
                            status="completed",
                            created_at=datetime(2026, 1, 5, 9, 0))
    pending = TestRequest(patient_id=patient.id,
                          doctor_id=doctor.id,
                          test_type="Thyroid Profile",
                          status="pending")
    db.add_all([completed, pending])
    db.commit()

    return SimpleNamespace(
        user_ids={k: u.id for k, u in users.items()},
        roles={k: u.role for k, u in users.items()},
        patient_id=patient.id,
        other_patient_id=other.id,
        doctor_id=doctor.id,
        amox_id=amox.id,
        unpriced_id=unpriced.id,
        rx_id=rx.id,
        rx_item_id=rx.items[0].id,
        completed_test_id=completed.id,
        pending_test_id=pending.id,
    )


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def hospital(db):
    return seed_hospital(db)


@pytest.fixture
def client(session_factory):

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def headers(hospital):
    """headers("pharmacist") -> Authorization header for that seeded user."""

    def _headers(who: str):
        token = create_access_token(user_id=hospital.user_ids[who],
                                    role=hospital.roles[who])
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def shared_engine(tmp_path):
    """
    Engine whose connections are independent, for multi-threaded tests.

    MySQL when TEST_MYSQL_URL is set (real row locks); otherwise a file
    SQLite database where every transaction starts with BEGIN IMMEDIATE,
    so the whole database write lock stands in for FOR UPDATE.
    """
    url = os.environ.get("TEST_MYSQL_URL")
    if url:
        eng = make_engine(url)
        Base.metadata.drop_all(eng)
    else:
        eng = create_engine(
            f"sqlite:///{tmp_path / 'billing.db'}",
            connect_args={
                "check_same_thread": False,
                "timeout": 30
            },
        )

        @event.listens_for(eng, "connect")
        def _driver_autocommit(dbapi_conn, _record):
            dbapi_conn.isolation_level = None

        @event.listens_for(eng, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    Base.metadata.create_all(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture
def shared_factory(shared_engine):
    return make_session_factory(shared_engine)


@pytest.fixture
def shared_hospital(shared_factory):
    db = shared_factory()
    try:
        return seed_hospital(db)
    finally:
        db.close()
