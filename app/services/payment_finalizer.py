# FILE: app/services/payment_finalizer.py
from __future__ import annotations

import logging
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.billing import Invoice, Payment
from app.services.billing_errors import AlreadyPaid, Conflict, NotFound
from app.services.billing_math import (
    money2,
    charge_delta,
    normalize_payment_method,
)
from app.services.invoice_accumulator import lock_invoice
from app.services.unit_of_work import transaction

logger = logging.getLogger(__name__)


def finalize_payment(
    db: Session,
    *,
    invoice_id: int,
    payment_method: Optional[str] = None,
    amount=None,
    owner_patient_id: Optional[int] = None,
) -> Tuple[Invoice, Payment]:
    """
    pending -> paid, with exactly one Payment row.

    owner_patient_id scopes the lookup for patient-initiated payments; an
    invoice owned by someone else is reported as not found.
    amount overrides the paid amount, otherwise the invoice total is used.
    """
    method = normalize_payment_method(payment_method,
                                      settings.DEFAULT_PAYMENT_METHOD)
    override = charge_delta(amount, what="Payment amount") \
        if amount is not None else None

    with transaction(db, "payment"):
        # lock before the status check; two payers cannot both see 'pending'
        inv = lock_invoice(db, invoice_id, owner_patient_id)
        if not inv:
            raise NotFound("Invoice not found")
        if inv.status == "paid":
            raise AlreadyPaid("Invoice is already paid")
        if inv.status == "cancelled":
            raise Conflict("Cancelled invoices cannot be paid")

        pay = Payment(
            invoice_id=inv.id,
            amount_paid=override if override is not None else money2(
                inv.amount),
            payment_method=method,
        )
        inv.status = "paid"
        db.add(pay)
        db.flush()

    logger.info("Invoice %s paid: %s via %s", inv.id, pay.amount_paid,
                pay.payment_method)
    return inv, pay
