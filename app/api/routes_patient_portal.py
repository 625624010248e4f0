# FILE: app/api/routes_patient_portal.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from app.api.deps import Principal, get_db, require_roles
from app.api.response import failure_as_500, ok
from app.api.routes_billing import invoice_detail, invoice_row
from app.schemas.billing import PatientPayIn
from app.services.billing_queries import (
    get_invoice,
    list_invoices,
    patient_for_user,
)
from app.services.payment_finalizer import finalize_payment

router = APIRouter()

patient_user = require_roles("patient")


@router.get("/invoices")
def my_invoices(
        db: Session = Depends(get_db),
        user: Principal = Depends(patient_user),
):
    with failure_as_500("Failed to load invoices"):
        patient = patient_for_user(db, user.id)
        return [invoice_row(i) for i in list_invoices(db, patient.id)]


@router.get("/invoices/{invoice_id}")
def my_invoice(
        invoice_id: int,
        db: Session = Depends(get_db),
        user: Principal = Depends(patient_user),
):
    with failure_as_500("Failed to load invoice"):
        patient = patient_for_user(db, user.id)
        return invoice_detail(get_invoice(db, invoice_id, patient.id))


@router.post("/invoices/{invoice_id}/pay")
def pay_my_invoice(
        invoice_id: int,
        payload: Optional[PatientPayIn] = Body(default=None),
        db: Session = Depends(get_db),
        user: Principal = Depends(patient_user),
):
    """Pay the full current total of one of the caller's own invoices."""
    with failure_as_500("Failed to process payment"):
        patient = patient_for_user(db, user.id)
        inv, _pay = finalize_payment(
            db,
            invoice_id=invoice_id,
            payment_method=payload.payment_method if payload else None,
            owner_patient_id=patient.id,
        )
        return ok("Payment recorded successfully",
                  invoice=invoice_detail(get_invoice(db, inv.id, patient.id)))
