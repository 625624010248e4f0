# FILE: app/services/billing_orchestrator.py
"""
Charge-producing transactions.

Each public function is one unit of work on the caller's session:
input validation and existence checks first (no locks), then row locks
in a fixed order

    prescription -> medicine -> prescription item -> patient -> invoice
    test request -> patient -> invoice

then the writes, then commit. Any failure rolls back everything.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.billing import Invoice
from app.models.lab import TestRequest
from app.models.pharmacy import (
    DispensingRecord,
    Prescription,
    PrescriptionItem,
)
from app.services.billing_errors import (
    BillingValidationError,
    Conflict,
    NotBillable,
    NotFound,
)
from app.services.billing_math import (
    add_amounts,
    charge_delta,
    positive_int,
    parse_due_date,
)
from app.services.invoice_accumulator import (
    InvoiceAction,
    accumulate_charge,
    append_to_invoice,
    lock_invoice,
    require_patient,
)
from app.services.inventory_guard import issue_stock
from app.services.unit_of_work import transaction

logger = logging.getLogger(__name__)


@dataclass
class DispenseResult:
    record: DispensingRecord
    invoice_action: InvoiceAction
    remaining_stock: int
    charge_amount: Decimal


def _required_id(v, what: str) -> int:
    try:
        n = int(v)
    except (TypeError, ValueError):
        raise BillingValidationError(f"{what} is required")
    if n <= 0:
        raise BillingValidationError(f"{what} is required")
    return n


# ---------------- lab billing ----------------


def lab_test_lock_stmt(test_id: int):
    return select(TestRequest).where(
        TestRequest.id == int(test_id)).with_for_update()


def bill_lab_test(
    db: Session,
    *,
    test_id: int,
    amount,
    description: Optional[str] = None,
    due_date=None,
) -> tuple[InvoiceAction, TestRequest]:
    test_id = _required_id(test_id, "Test request")
    delta = charge_delta(amount)
    due = parse_due_date(due_date)

    with transaction(db, "lab billing"):
        found = db.get(TestRequest, test_id)
        if not found:
            raise NotFound("Test request not found")
        require_patient(db, found.patient_id)

        test = db.execute(
            lab_test_lock_stmt(test_id).execution_options(
                populate_existing=True)).scalars().first()
        if not test:
            raise NotFound("Test request not found")
        if (test.status or "").lower() != "completed":
            raise NotBillable(
                f"Only completed lab tests can be billed (status={test.status})"
            )

        action = accumulate_charge(
            db,
            patient_id=test.patient_id,
            delta=delta,
            line=description,
            default_line=f"Lab charge: {test.test_type}",
            due_date=due,
        )

        test.billing_amount = add_amounts(test.billing_amount,
                                          delta,
                                          what="Billed amount")
        test.billing_invoice_id = action.invoice_id
        test.billed_at = datetime.utcnow()
        db.flush()

    logger.info("Lab test %s billed %s -> invoice %s (%s, total %s)",
                test_id, delta, action.invoice_id, action.type,
                action.updated_total)
    return action, test


# ---------------- pharmacy dispensing ----------------


def prescription_lock_stmt(prescription_id: int):
    return select(Prescription).where(
        Prescription.id == int(prescription_id)).with_for_update()


def _recompute_rx_status(db: Session, rx: Prescription) -> None:
    # sibling lines may have been dispensed by another transaction since
    # rx.items was loaded; the prescription lock keeps this read current
    items = db.execute(
        select(PrescriptionItem).where(
            PrescriptionItem.prescription_id == rx.id).execution_options(
                populate_existing=True)).scalars().all()
    active = [i for i in items if (i.status or "pending") != "cancelled"]
    if active and all(i.status == "fully_dispensed" for i in active):
        rx.status = "fully_dispensed"
    elif any(i.status in ("partially_dispensed", "fully_dispensed")
             for i in active):
        rx.status = "partially_dispensed"


def _post_to_rx_item(db: Session, *, rx: Prescription, item_id: int,
                     medicine_id: int, quantity: int) -> PrescriptionItem:
    item = db.execute(
        select(PrescriptionItem).where(
            PrescriptionItem.id == int(item_id)).with_for_update().
        execution_options(populate_existing=True)).scalars().first()
    if not item or item.prescription_id != rx.id:
        raise NotFound("Prescription item not found")
    if item.medicine_id != int(medicine_id):
        raise BillingValidationError("Prescription item medicine mismatch")

    ordered = int(item.quantity or 0)
    new_dispensed = int(item.dispensed_qty or 0) + int(quantity)
    if new_dispensed > ordered:
        raise Conflict("Dispense exceeds prescribed quantity",
                       extra={
                           "prescribed": ordered,
                           "dispensed": int(item.dispensed_qty or 0)
                       })

    item.dispensed_qty = new_dispensed
    item.status = ("fully_dispensed"
                   if new_dispensed == ordered else "partially_dispensed")
    db.flush()
    _recompute_rx_status(db, rx)
    return item


def dispense_medicine(
    db: Session,
    *,
    prescription_id: int,
    medicine_id: int,
    quantity,
    dispensed_by: Optional[int] = None,
    prescription_item_id: Optional[int] = None,
    bill_amount=None,
    description: Optional[str] = None,
    due_date=None,
) -> DispenseResult:
    """
    Decrement stock, record the dispense and post its charge, atomically.
    """
    prescription_id = _required_id(prescription_id, "Prescription")
    medicine_id = _required_id(medicine_id, "Medicine")
    qty = positive_int(quantity)
    if bill_amount is not None:
        charge_delta(bill_amount, what="Bill amount")
    due = parse_due_date(due_date)

    with transaction(db, "dispensing"):
        rx = db.get(Prescription, prescription_id)
        if not rx:
            raise NotFound("Prescription not found")
        require_patient(db, rx.patient_id)

        # serializes dispenses against one prescription (status rollup)
        rx = db.execute(
            prescription_lock_stmt(prescription_id).execution_options(
                populate_existing=True)).scalars().first()
        if not rx:
            raise NotFound("Prescription not found")

        issue = issue_stock(db,
                            medicine_id=medicine_id,
                            quantity=qty,
                            bill_amount=bill_amount)

        if prescription_item_id:
            _post_to_rx_item(db,
                             rx=rx,
                             item_id=prescription_item_id,
                             medicine_id=medicine_id,
                             quantity=qty)

        record = DispensingRecord(
            prescription_id=rx.id,
            medicine_id=issue.medicine.id,
            prescription_item_id=prescription_item_id or None,
            quantity_dispensed=qty,
            dispensed_by=dispensed_by,
        )
        db.add(record)
        db.flush()

        action = accumulate_charge(
            db,
            patient_id=rx.patient_id,
            delta=issue.charge_amount,
            line=description,
            default_line=f"Pharmacy charge: {issue.medicine.name} x{qty}",
            due_date=due,
        )

    logger.info(
        "Dispensed %s x%s for prescription %s (stock left %s) -> invoice %s (%s, total %s)",
        issue.medicine.name, qty, rx.id, issue.remaining_stock,
        action.invoice_id, action.type, action.updated_total)
    return DispenseResult(
        record=record,
        invoice_action=action,
        remaining_stock=issue.remaining_stock,
        charge_amount=issue.charge_amount,
    )


# ---------------- manual invoices ----------------


def amend_invoice(
    db: Session,
    *,
    invoice_id: int,
    amount,
    description: Optional[str] = None,
) -> InvoiceAction:
    """Ad-hoc charge on one specific invoice (not 'latest pending')."""
    invoice_id = _required_id(invoice_id, "Invoice")
    delta = charge_delta(amount)
    line = (description or "").strip() or "Additional charge"

    with transaction(db, "invoice amendment"):
        inv = lock_invoice(db, invoice_id)
        if not inv:
            raise NotFound("Invoice not found")
        if inv.status != "pending":
            raise Conflict(
                f"Only pending invoices can be amended (status={inv.status})")
        action = append_to_invoice(inv, delta=delta, line=line)
        db.flush()

    logger.info("Invoice %s amended by %s (total %s)", invoice_id, delta,
                action.updated_total)
    return action


def open_invoice(
    db: Session,
    *,
    patient_id: int,
    amount,
    description: Optional[str] = None,
    due_date=None,
) -> Invoice:
    """Explicit invoice creation; always a new pending row."""
    total = charge_delta(amount)
    due = parse_due_date(due_date)

    with transaction(db, "invoice creation"):
        require_patient(db, patient_id)
        inv = Invoice(
            patient_id=int(patient_id),
            amount=total,
            description=(description or "").strip() or None,
            due_date=due,
            status="pending",
        )
        db.add(inv)
        db.flush()

    logger.info("Invoice %s created for patient %s (%s)", inv.id, patient_id,
                total)
    return inv
