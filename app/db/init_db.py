# app/db/init_db.py
from __future__ import annotations

import argparse
import logging
from decimal import Decimal

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from app.db.base import Base
from app.db.session import SessionLocal, engine
from app.models import (
    Doctor,
    Medicine,
    Patient,
    Prescription,
    PrescriptionItem,
    TestRequest,
    User,
)

logger = logging.getLogger(__name__)


def create_tables(eng: Engine) -> None:
    existing = set(inspect(eng).get_table_names())
    Base.metadata.create_all(bind=eng)
    created = sorted(set(Base.metadata.tables) - existing)
    logger.info("Tables created: %s", created or "none")


def seed_demo(db: Session) -> None:
    """
    Small demo data set; safe to run multiple times (skips when users exist).
    """
    if db.query(User).first():
        logger.info("Demo seed skipped: users already present")
        return

    admin = User(name="Admin", email="admin@hospital.local", role="admin")
    pharm = User(name="Priya Pharmacist",
                 email="pharmacy@hospital.local",
                 role="pharmacist")
    tech = User(name="Lab Tech", email="lab@hospital.local",
                role="lab_technician")
    doc_user = User(name="Dr. Rao", email="rao@hospital.local", role="doctor")
    pat_user = User(name="Arun Kumar",
                    email="arun@hospital.local",
                    role="patient")
    db.add_all([admin, pharm, tech, doc_user, pat_user])
    db.flush()

    doctor = Doctor(user_id=doc_user.id, specialization="General Medicine")
    patient = Patient(user_id=pat_user.id, gender="male")
    db.add_all([doctor, patient])
    db.flush()

    amox = Medicine(name="Amoxicillin",
                    generic_name="Amoxicillin",
                    quantity=50,
                    unit_price=Decimal("2.00"))
    para = Medicine(name="Paracetamol",
                    generic_name="Acetaminophen",
                    quantity=200,
                    unit_price=Decimal("0.50"))
    db.add_all([amox, para])
    db.flush()

    rx = Prescription(patient_id=patient.id, doctor_id=doctor.id)
    rx.items = [
        PrescriptionItem(medicine_id=amox.id, dosage="1-0-1", quantity=10),
        PrescriptionItem(medicine_id=para.id, dosage="SOS", quantity=6),
    ]
    db.add(rx)
    db.add(
        TestRequest(patient_id=patient.id,
                    doctor_id=doctor.id,
                    test_type="Complete Blood Count",
                    status="completed"))
    db.commit()
    logger.info("Demo data seeded")


def main() -> None:
    parser = argparse.ArgumentParser(description="Create billing tables")
    parser.add_argument("--seed-demo",
                        action="store_true",
                        help="insert demo users, stock and a prescription")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    create_tables(engine)

    if args.seed_demo:
        db = SessionLocal()
        try:
            seed_demo(db)
        finally:
            db.close()


if __name__ == "__main__":
    main()
