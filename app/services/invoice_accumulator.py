# FILE: app/services/invoice_accumulator.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import Select, select
from sqlalchemy.orm import Session, lazyload

from app.models.billing import Invoice
from app.models.patient import Patient
from app.services.billing_errors import BillingValidationError, NotFound
from app.services.billing_math import add_amounts, append_charge_line, money2

logger = logging.getLogger(__name__)


@dataclass
class InvoiceAction:
    """Outcome of posting one charge line."""

    type: str  # created | updated
    invoice_id: int
    amount_appended: Decimal
    updated_total: Decimal

    def as_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "invoiceId": self.invoice_id,
            "amountAppended": self.amount_appended,
            "updatedTotal": self.updated_total,
        }


# ---------------- lock statements ----------------


def patient_lock_stmt(patient_id: int) -> Select:
    # lock the patient row only, not the joined users row
    return (select(Patient).options(lazyload(Patient.user)).where(
        Patient.id == int(patient_id)).with_for_update())


def pending_invoice_lock_stmt(patient_id: int) -> Select:
    # newest pending first; id breaks created_at ties
    return (select(Invoice).where(
        Invoice.patient_id == int(patient_id),
        Invoice.status == "pending",
    ).order_by(Invoice.created_at.desc(),
               Invoice.id.desc()).limit(1).with_for_update())


def invoice_lock_stmt(invoice_id: int,
                      patient_id: Optional[int] = None) -> Select:
    stmt = select(Invoice).where(Invoice.id == int(invoice_id))
    if patient_id is not None:
        stmt = stmt.where(Invoice.patient_id == int(patient_id))
    return stmt.with_for_update()


def _locked_first(db: Session, stmt: Select):
    # populate_existing: rows already in the identity map are re-read under the lock
    return db.execute(stmt.execution_options(
        populate_existing=True)).scalars().first()


def lock_patient(db: Session, patient_id: int) -> Patient:
    """
    Serializes every charge for one patient; taken after the domain row
    (medicine / test request) and before the invoice row.
    """
    patient = _locked_first(db, patient_lock_stmt(patient_id))
    if not patient:
        raise NotFound("Patient not found")
    return patient


def lock_pending_invoice(db: Session, patient_id: int) -> Optional[Invoice]:
    return _locked_first(db, pending_invoice_lock_stmt(patient_id))


def lock_invoice(db: Session,
                 invoice_id: int,
                 patient_id: Optional[int] = None) -> Optional[Invoice]:
    return _locked_first(db, invoice_lock_stmt(invoice_id, patient_id))


def require_patient(db: Session, patient_id: Optional[int]) -> Patient:
    """Plain existence check, no lock."""
    if not patient_id:
        raise BillingValidationError("Patient is required")
    patient = db.get(Patient, int(patient_id))
    if not patient:
        raise NotFound("Patient not found")
    return patient


# ---------------- accumulation ----------------


def _charge_line(line: Optional[str], default_line: Optional[str]) -> str:
    text = (line or "").strip() or (default_line or "").strip()
    if not text:
        raise BillingValidationError("Charge description is required")
    return text


def append_to_invoice(inv: Invoice, *, delta: Decimal,
                      line: str) -> InvoiceAction:
    """
    Add one charge line to an already locked invoice.
    amount = round(amount + delta, 2); description gains one trailing line.
    """
    inv.amount = add_amounts(inv.amount, delta)
    inv.description = append_charge_line(inv.description, line)
    return InvoiceAction(
        type="updated",
        invoice_id=int(inv.id),
        amount_appended=delta,
        updated_total=money2(inv.amount),
    )


def accumulate_charge(
    db: Session,
    *,
    patient_id: int,
    delta: Decimal,
    line: Optional[str] = None,
    default_line: Optional[str] = None,
    due_date: Optional[date] = None,
) -> InvoiceAction:
    """
    Post a charge onto the patient's open invoice, or open a new one.

    Caller owns the transaction. `delta` must already be validated
    (billing_math.charge_delta).
    """
    text = _charge_line(line, default_line)

    lock_patient(db, patient_id)
    inv = lock_pending_invoice(db, patient_id)

    if inv is not None:
        action = append_to_invoice(inv, delta=delta, line=text)
        db.flush()
        logger.debug("Appended %s to invoice %s (total %s)", delta, inv.id,
                     action.updated_total)
        return action

    inv = Invoice(
        patient_id=int(patient_id),
        amount=money2(delta),
        description=text,
        due_date=due_date,
        status="pending",
    )
    db.add(inv)
    db.flush()  # get inv.id
    logger.debug("Opened invoice %s for patient %s with %s", inv.id,
                 patient_id, delta)
    return InvoiceAction(
        type="created",
        invoice_id=int(inv.id),
        amount_appended=delta,
        updated_total=money2(delta),
    )
