# FILE: app/services/billing_queries.py
from __future__ import annotations

from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload, selectinload

from app.db.schema_guard import read_or_empty
from app.models.billing import Invoice, Payment
from app.models.patient import Patient
from app.models.pharmacy import (
    DispensingRecord,
    Medicine,
    Prescription,
    PrescriptionItem,
)
from app.services.billing_errors import NotFound


def display_status(inv: Invoice, today: Optional[date] = None) -> str:
    """'overdue' is derived at read time; never stored by billing."""
    today = today or date.today()
    if inv.status == "pending" and inv.due_date and inv.due_date < today:
        return "overdue"
    return inv.status


def patient_for_user(db: Session, user_id: int) -> Patient:
    patient = db.query(Patient).filter(Patient.user_id == int(user_id)).first()
    if not patient:
        raise NotFound("Patient profile not found")
    return patient


def list_invoices(db: Session,
                  patient_id: Optional[int] = None) -> List[Invoice]:

    def _q():
        q = db.query(Invoice).options(
            joinedload(Invoice.patient).joinedload(Patient.user))
        if patient_id:
            q = q.filter(Invoice.patient_id == int(patient_id))
        return q.order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()

    return read_or_empty(db, _q, [])


def get_invoice(db: Session,
                invoice_id: int,
                patient_id: Optional[int] = None) -> Invoice:
    q = db.query(Invoice).options(selectinload(Invoice.payments)).filter(
        Invoice.id == int(invoice_id))
    if patient_id is not None:
        q = q.filter(Invoice.patient_id == int(patient_id))
    inv = q.first()
    if not inv:
        raise NotFound("Invoice not found")
    return inv


def list_payments(db: Session) -> List[Payment]:

    def _q():
        return (db.query(Payment).options(
            joinedload(Payment.invoice).joinedload(Invoice.patient)).order_by(
                Payment.payment_date.desc(), Payment.id.desc()).all())

    return read_or_empty(db, _q, [])


def list_medicines(db: Session) -> List[Medicine]:
    return read_or_empty(
        db, lambda: db.query(Medicine).order_by(Medicine.name.asc()).all(),
        [])


def list_dispensing_history(db: Session) -> List[DispensingRecord]:

    def _q():
        return (db.query(DispensingRecord).options(
            joinedload(DispensingRecord.medicine),
            joinedload(DispensingRecord.pharmacist),
            joinedload(DispensingRecord.prescription).joinedload(
                Prescription.patient),
        ).order_by(DispensingRecord.dispensed_at.desc(),
                   DispensingRecord.id.desc()).all())

    return read_or_empty(db, _q, [])


def list_prescriptions(db: Session, limit: int = 100) -> List[Prescription]:
    """Dispensing picker: newest prescriptions with their lines."""

    def _q():
        return (db.query(Prescription).options(
            joinedload(Prescription.patient),
            joinedload(Prescription.doctor),
            selectinload(Prescription.items).joinedload(
                PrescriptionItem.medicine),
        ).order_by(Prescription.prescription_date.desc(),
                   Prescription.id.desc()).limit(int(limit)).all())

    return read_or_empty(db, _q, [])
