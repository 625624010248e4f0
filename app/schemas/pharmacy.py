from __future__ import annotations
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

# -------- Stock --------


class MedicineIn(BaseModel):
    name: str
    generic_name: Optional[str] = None
    batch_number: Optional[str] = None
    expiry_date: Optional[date] = None
    quantity: int = 0
    unit_price: Optional[Decimal] = None

    @field_validator("name")
    @classmethod
    def _name(cls, v):
        if not (v or "").strip():
            raise ValueError("Medicine name is required")
        return v.strip()


class MedicineUpdateIn(BaseModel):
    # partial: only fields sent are written (restock = {"quantity": n})
    name: Optional[str] = None
    generic_name: Optional[str] = None
    batch_number: Optional[str] = None
    expiry_date: Optional[date] = None
    quantity: Optional[int] = None
    unit_price: Optional[Decimal] = None


class MedicineOut(BaseModel):
    id: int
    name: str
    generic_name: Optional[str] = None
    batch_number: Optional[str] = None
    expiry_date: Optional[date] = None
    quantity: int
    unit_price: Optional[Decimal] = None

    model_config = ConfigDict(from_attributes=True)


# -------- Dispense --------


class DispenseIn(BaseModel):
    prescription_id: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("prescription_id", "prescriptionId"))
    medicine_id: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("medicine_id",
                                                    "medicineId"))
    quantity: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("quantity", "quantity_dispensed"))
    prescription_item_id: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("prescription_item_id",
                                      "prescriptionItemId"))
    # explicit charge; defaults to unit_price * quantity
    bill_amount: Optional[Decimal] = Field(
        default=None, validation_alias=AliasChoices("bill_amount",
                                                    "billAmount"))
    description: Optional[str] = None
    due_date: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("due_date", "dueDate"))


class DispensingRecordOut(BaseModel):
    id: int
    prescription_id: int
    prescription_item_id: Optional[int] = None
    medicine_id: int
    medicine_name: Optional[str] = None
    quantity_dispensed: int
    dispensed_by: Optional[int] = None
    pharmacist_name: Optional[str] = None
    patient_id: Optional[int] = None
    patient_name: Optional[str] = None
    dispensed_at: Optional[datetime] = None


# -------- Prescriptions (dispensing picker) --------


class PrescriptionItemOut(BaseModel):
    id: int
    medicine_id: int
    medicine_name: Optional[str] = None
    dosage: Optional[str] = None
    quantity: int
    dispensed_qty: int
    status: str


class PrescriptionOut(BaseModel):
    id: int
    prescription_date: Optional[datetime] = None
    status: str
    patient_id: int
    patient_name: Optional[str] = None
    doctor_id: Optional[int] = None
    doctor_name: Optional[str] = None
    items: List[PrescriptionItemOut] = []
