# FILE: app/api/routes_billing.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import Principal, get_db, require_roles
from app.api.response import failure_as_500, ok
from app.models.billing import Invoice, Payment
from app.schemas.billing import (
    InvoiceAmendIn,
    InvoiceCreateIn,
    InvoiceDetailOut,
    InvoiceOut,
    PaymentHistoryOut,
    PaymentIn,
    PaymentOut,
)
from app.services.billing_errors import BillingValidationError
from app.services.billing_orchestrator import amend_invoice, open_invoice
from app.services.billing_queries import (
    display_status,
    get_invoice,
    list_invoices,
    list_payments,
)
from app.services.payment_finalizer import finalize_payment

logger = logging.getLogger(__name__)

router = APIRouter()

billing_user = require_roles("staff")


def invoice_row(inv: Invoice) -> Dict[str, Any]:
    patient = getattr(inv, "patient", None)
    return InvoiceOut(
        id=int(inv.id),
        patient_id=int(inv.patient_id),
        patient_name=patient.name if patient else None,
        amount=inv.amount,
        description=inv.description,
        charge_lines=inv.charge_lines,
        due_date=inv.due_date,
        status=inv.status,
        display_status=display_status(inv),
        created_at=inv.created_at,
    ).model_dump()


def invoice_detail(inv: Invoice) -> Dict[str, Any]:
    return InvoiceDetailOut(
        **invoice_row(inv),
        payments=[PaymentOut.model_validate(p) for p in inv.payments],
    ).model_dump()


def payment_row(pay: Payment) -> Dict[str, Any]:
    inv = pay.invoice
    patient = getattr(inv, "patient", None)
    return PaymentHistoryOut(
        id=int(pay.id),
        invoice_id=int(pay.invoice_id),
        amount_paid=pay.amount_paid,
        payment_method=pay.payment_method,
        payment_date=pay.payment_date,
        patient_id=inv.patient_id if inv else None,
        patient_name=patient.name if patient else None,
        invoice_amount=inv.amount if inv else None,
    ).model_dump()


# ---------------- invoices ----------------


@router.get("/invoices")
def invoices(
        patient_id: Optional[int] = Query(default=None),
        db: Session = Depends(get_db),
        user: Principal = Depends(billing_user),
):
    with failure_as_500("Failed to fetch invoices"):
        return [invoice_row(i) for i in list_invoices(db, patient_id)]


@router.get("/invoices/{invoice_id}")
def invoice_by_id(
        invoice_id: int,
        db: Session = Depends(get_db),
        user: Principal = Depends(billing_user),
):
    with failure_as_500("Failed to fetch invoice"):
        return invoice_detail(get_invoice(db, invoice_id))


@router.post("/invoices", status_code=201)
def create_invoice(
        payload: InvoiceCreateIn,
        db: Session = Depends(get_db),
        user: Principal = Depends(billing_user),
):
    if not payload.patient_id or payload.amount is None:
        raise BillingValidationError("Patient and amount are required")

    with failure_as_500("Failed to create invoice"):
        inv = open_invoice(
            db,
            patient_id=payload.patient_id,
            amount=payload.amount,
            description=payload.description,
            due_date=payload.due_date,
        )
        return ok("Invoice created successfully",
                  status_code=201,
                  invoice_id=inv.id)


@router.patch("/invoices/{invoice_id}")
def update_invoice(
        invoice_id: int,
        payload: InvoiceAmendIn,
        db: Session = Depends(get_db),
        user: Principal = Depends(billing_user),
):
    with failure_as_500("Failed to update invoice"):
        action = amend_invoice(
            db,
            invoice_id=invoice_id,
            amount=payload.amount,
            description=payload.description,
        )
        return ok(
            "Invoice updated successfully",
            invoiceAction=action.as_dict(),
            invoice=invoice_detail(get_invoice(db, invoice_id)),
        )


# ---------------- payments ----------------


@router.get("/payments")
def payments(
        db: Session = Depends(get_db),
        user: Principal = Depends(billing_user),
):
    with failure_as_500("Failed to fetch payments"):
        return [payment_row(p) for p in list_payments(db)]


@router.post("/payments", status_code=201)
def record_payment(
        payload: PaymentIn,
        db: Session = Depends(get_db),
        user: Principal = Depends(billing_user),
):
    if not payload.invoice_id:
        raise BillingValidationError("Invoice is required")

    with failure_as_500("Failed to record payment"):
        inv, pay = finalize_payment(
            db,
            invoice_id=payload.invoice_id,
            payment_method=payload.payment_method,
            amount=payload.amount_paid,
        )
        return ok(
            "Payment recorded successfully",
            status_code=201,
            payment=PaymentOut.model_validate(pay).model_dump(),
            invoice=invoice_detail(get_invoice(db, inv.id)),
        )
