# app/api/routes_pharmacy.py
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import Principal, get_db, require_roles
from app.api.response import failure_as_500, ok
from app.models.pharmacy import DispensingRecord, Prescription
from app.schemas.pharmacy import (
    DispenseIn,
    DispensingRecordOut,
    MedicineIn,
    MedicineOut,
    MedicineUpdateIn,
    PrescriptionItemOut,
    PrescriptionOut,
)
from app.services.billing_orchestrator import dispense_medicine
from app.services.billing_queries import (
    list_dispensing_history,
    list_medicines,
    list_prescriptions,
)
from app.services.inventory_guard import (
    add_medicine,
    delete_medicine,
    low_stock,
    update_medicine,
)

router = APIRouter()

pharmacy_user = require_roles("pharmacist")


def dispensing_row(rec: DispensingRecord) -> Dict[str, Any]:
    rx = rec.prescription
    patient = rx.patient if rx else None
    return DispensingRecordOut(
        id=int(rec.id),
        prescription_id=int(rec.prescription_id),
        prescription_item_id=rec.prescription_item_id,
        medicine_id=int(rec.medicine_id),
        medicine_name=rec.medicine.name if rec.medicine else None,
        quantity_dispensed=int(rec.quantity_dispensed),
        dispensed_by=rec.dispensed_by,
        pharmacist_name=rec.pharmacist.name if rec.pharmacist else None,
        patient_id=patient.id if patient else None,
        patient_name=patient.name if patient else None,
        dispensed_at=rec.dispensed_at,
    ).model_dump()


def prescription_row(rx: Prescription) -> Dict[str, Any]:
    return PrescriptionOut(
        id=int(rx.id),
        prescription_date=rx.prescription_date,
        status=rx.status,
        patient_id=int(rx.patient_id),
        patient_name=rx.patient.name if rx.patient else None,
        doctor_id=rx.doctor_id,
        doctor_name=rx.doctor.name if rx.doctor else None,
        items=[
            PrescriptionItemOut(
                id=int(i.id),
                medicine_id=int(i.medicine_id),
                medicine_name=i.medicine.name if i.medicine else None,
                dosage=i.dosage,
                quantity=int(i.quantity or 0),
                dispensed_qty=int(i.dispensed_qty or 0),
                status=i.status,
            ) for i in rx.items
        ],
    ).model_dump()


# ---------------- stock ----------------


@router.get("/medicines")
def medicines(
        db: Session = Depends(get_db),
        user: Principal = Depends(pharmacy_user),
):
    with failure_as_500("Failed to fetch medicines"):
        return [
            MedicineOut.model_validate(m).model_dump()
            for m in list_medicines(db)
        ]


@router.post("/medicines", status_code=201)
def create_medicine(
        payload: MedicineIn,
        db: Session = Depends(get_db),
        user: Principal = Depends(pharmacy_user),
):
    with failure_as_500("Failed to add medicine"):
        med = add_medicine(db, **payload.model_dump())
        return ok("Medicine added successfully",
                  status_code=201,
                  medicine=MedicineOut.model_validate(med).model_dump())


@router.get("/low-stock")
def low_stock_medicines(
        threshold: Optional[int] = Query(default=None, ge=0),
        db: Session = Depends(get_db),
        user: Principal = Depends(pharmacy_user),
):
    with failure_as_500("Failed to fetch low stock medicines"):
        return [
            MedicineOut.model_validate(m).model_dump()
            for m in low_stock(db, threshold)
        ]


@router.put("/medicines/{medicine_id}")
def edit_medicine(
        medicine_id: int,
        payload: MedicineUpdateIn,
        db: Session = Depends(get_db),
        user: Principal = Depends(pharmacy_user),
):
    """Edit or restock; only the fields sent are changed."""
    with failure_as_500("Failed to update medicine"):
        med = update_medicine(db, medicine_id,
                              **payload.model_dump(exclude_unset=True))
        return ok("Medicine updated successfully",
                  medicine=MedicineOut.model_validate(med).model_dump())


@router.delete("/medicines/{medicine_id}")
def remove_medicine(
        medicine_id: int,
        db: Session = Depends(get_db),
        user: Principal = Depends(pharmacy_user),
):
    with failure_as_500("Failed to delete medicine"):
        delete_medicine(db, medicine_id)
        return ok("Medicine deleted successfully")


# ---------------- dispense ----------------


@router.get("/dispensing-history")
def dispensing_history(
        db: Session = Depends(get_db),
        user: Principal = Depends(pharmacy_user),
):
    with failure_as_500("Failed to fetch dispensing history"):
        return [dispensing_row(r) for r in list_dispensing_history(db)]


@router.get("/prescriptions")
def prescriptions(
        db: Session = Depends(get_db),
        user: Principal = Depends(pharmacy_user),
):
    with failure_as_500("Failed to fetch prescriptions"):
        return [prescription_row(rx) for rx in list_prescriptions(db)]


@router.post("/dispense", status_code=201)
def dispense(
        payload: DispenseIn,
        db: Session = Depends(get_db),
        user: Principal = Depends(pharmacy_user),
):
    """
    Decrement stock, record the dispense and charge the patient's open
    invoice (created when none is pending), in one transaction.
    """
    with failure_as_500("Failed to dispense medicine"):
        result = dispense_medicine(
            db,
            prescription_id=payload.prescription_id,
            medicine_id=payload.medicine_id,
            quantity=payload.quantity,
            dispensed_by=user.id,
            prescription_item_id=payload.prescription_item_id,
            bill_amount=payload.bill_amount,
            description=payload.description,
            due_date=payload.due_date,
        )
        return ok(
            "Medicine dispensed successfully",
            status_code=201,
            record=dispensing_row(result.record),
            invoiceAction=result.invoice_action.as_dict(),
            remainingStock=result.remaining_stock,
            chargeAmount=result.charge_amount,
        )
