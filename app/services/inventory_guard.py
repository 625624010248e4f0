# FILE: app/services/inventory_guard.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.pharmacy import DispensingRecord, Medicine, PrescriptionItem
from app.services.billing_errors import (
    BillingValidationError,
    Conflict,
    InsufficientStock,
    NotFound,
)
from app.services.billing_math import (
    D,
    money2,
    charge_delta,
    non_negative_int,
    unit_price_or_none,
)
from app.services.unit_of_work import transaction

logger = logging.getLogger(__name__)


@dataclass
class StockIssue:
    medicine: Medicine
    quantity: int
    remaining_stock: int
    charge_amount: Decimal


def medicine_lock_stmt(medicine_id: int) -> Select:
    return select(Medicine).where(
        Medicine.id == int(medicine_id)).with_for_update()


def lock_medicine(db: Session, medicine_id: int) -> Medicine:
    med = db.execute(
        medicine_lock_stmt(medicine_id).execution_options(
            populate_existing=True)).scalars().first()
    if not med:
        raise NotFound("Medicine not found")
    return med


def dispense_charge(med: Medicine,
                    quantity: int,
                    bill_amount=None) -> Decimal:
    """
    Explicit bill_amount wins; otherwise unit_price * quantity.
    No price and no amount -> reject (a dispense is never left unbilled).
    """
    if bill_amount is not None:
        return charge_delta(bill_amount, what="Bill amount")

    unit_price = D(med.unit_price)
    if unit_price <= 0:
        raise BillingValidationError(
            f"Medicine '{med.name}' has no unit price; provide a bill amount")
    return charge_delta(unit_price * Decimal(int(quantity)),
                        what="Charge amount")


def issue_stock(
    db: Session,
    *,
    medicine_id: int,
    quantity: int,
    bill_amount=None,
) -> StockIssue:
    """
    Lock the medicine row, check quantity, price the dispense and decrement.

    Every check runs before the decrement, so a rejected request leaves
    the row untouched. Caller owns the transaction.
    """
    med = lock_medicine(db, medicine_id)

    on_hand = int(med.quantity or 0)
    if on_hand < int(quantity):
        raise InsufficientStock(
            "Insufficient stock for the requested quantity",
            extra={
                "available": on_hand,
                "requested": int(quantity)
            },
        )

    amount = dispense_charge(med, quantity, bill_amount)

    med.quantity = on_hand - int(quantity)
    db.flush()

    return StockIssue(
        medicine=med,
        quantity=int(quantity),
        remaining_stock=max(on_hand - int(quantity), 0),
        charge_amount=money2(amount),
    )


def low_stock(db: Session, threshold: Optional[int] = None):
    limit = settings.LOW_STOCK_THRESHOLD if threshold is None else int(threshold)
    return (db.query(Medicine).filter(Medicine.quantity <= limit).order_by(
        Medicine.quantity.asc(), Medicine.name.asc()).all())


def _text_or_none(v) -> Optional[str]:
    return (v or "").strip() or None


def _medicine_name(v) -> str:
    name = (v or "").strip()
    if not name:
        raise BillingValidationError("Medicine name is required")
    return name


def add_medicine(db: Session, **fields) -> Medicine:
    qty = non_negative_int(fields.get("quantity"))
    price = unit_price_or_none(fields.get("unit_price"))

    with transaction(db, "medicine creation"):
        med = Medicine(
            name=_medicine_name(fields.get("name")),
            generic_name=_text_or_none(fields.get("generic_name")),
            batch_number=_text_or_none(fields.get("batch_number")),
            expiry_date=fields.get("expiry_date"),
            quantity=qty,
            unit_price=price,
        )
        db.add(med)
        db.flush()

    logger.info("Medicine %s added (%s on hand)", med.id, qty)
    return med


def update_medicine(db: Session, medicine_id: int, **fields) -> Medicine:
    """
    Partial update / restock. Only keys present in `fields` are written.

    Takes the same row lock as dispensing, so a restock never overwrites a
    concurrent decrement with a stale quantity.
    """
    values = {}
    if "name" in fields:
        values["name"] = _medicine_name(fields["name"])
    for key in ("generic_name", "batch_number"):
        if key in fields:
            values[key] = _text_or_none(fields[key])
    if "expiry_date" in fields:
        values["expiry_date"] = fields["expiry_date"]
    if "quantity" in fields:
        values["quantity"] = non_negative_int(fields["quantity"])
    if "unit_price" in fields:
        values["unit_price"] = unit_price_or_none(fields["unit_price"])

    with transaction(db, "medicine update"):
        med = lock_medicine(db, medicine_id)
        for key, value in values.items():
            setattr(med, key, value)
        db.flush()

    logger.info("Medicine %s updated: %s", medicine_id, sorted(values))
    return med


def delete_medicine(db: Session, medicine_id: int) -> None:
    """Only a medicine no prescription or dispense refers to can be removed."""
    with transaction(db, "medicine deletion"):
        med = lock_medicine(db, medicine_id)
        in_use = db.query(DispensingRecord.id).filter(
            DispensingRecord.medicine_id == med.id).first() or db.query(
                PrescriptionItem.id).filter(
                    PrescriptionItem.medicine_id == med.id).first()
        if in_use:
            raise Conflict(
                "Medicine has prescriptions or dispensing records and cannot be deleted"
            )
        db.delete(med)
        db.flush()

    logger.info("Medicine %s deleted", medicine_id)
