# FILE: app/schemas/billing.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class InvoiceCreateIn(BaseModel):
    patient_id: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("patient_id", "patientId"))
    amount: Optional[Decimal] = None
    description: Optional[str] = None
    due_date: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("due_date", "dueDate"))


class InvoiceAmendIn(BaseModel):
    # positive delta added to the current total
    amount: Optional[Decimal] = None
    description: Optional[str] = None


class PaymentIn(BaseModel):
    invoice_id: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("invoice_id", "invoiceId"))
    amount_paid: Optional[Decimal] = Field(
        default=None,
        validation_alias=AliasChoices("amount_paid", "amountPaid", "amount"),
    )
    payment_method: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("payment_method", "paymentMethod"),
    )


class PatientPayIn(BaseModel):
    payment_method: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("paymentMethod", "payment_method"),
    )


class PaymentOut(BaseModel):
    id: int
    invoice_id: int
    amount_paid: Decimal
    payment_method: str
    payment_date: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PaymentHistoryOut(PaymentOut):
    patient_id: Optional[int] = None
    patient_name: Optional[str] = None
    invoice_amount: Optional[Decimal] = None


class InvoiceOut(BaseModel):
    id: int
    patient_id: int
    patient_name: Optional[str] = None
    amount: Decimal
    description: Optional[str] = None
    charge_lines: List[str] = []
    due_date: Optional[date] = None
    status: str
    display_status: str
    created_at: Optional[datetime] = None


class InvoiceDetailOut(InvoiceOut):
    payments: List[PaymentOut] = []
