# FILE: app/schemas/lab.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class TestStatusIn(BaseModel):
    status: Optional[str] = None


class LabReportIn(BaseModel):
    report_data: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("reportData",
                                                    "report_data"))
    report_file_path: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("reportFilePath", "report_file_path"))


class TestRequestIn(BaseModel):
    patient_id: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("patient_id", "patientId"))
    doctor_id: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("doctor_id", "doctorId"))
    test_type: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("test_type", "testType"))
    description: Optional[str] = None
    status: Optional[str] = None


class LabBillIn(BaseModel):
    amount: Optional[Decimal] = None
    description: Optional[str] = None
    due_date: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("due_date", "dueDate"))


class TestRequestOut(BaseModel):
    id: int
    patient_id: int
    doctor_id: Optional[int] = None
    test_type: str
    description: Optional[str] = None
    status: str
    billing_amount: Decimal
    billing_invoice_id: Optional[int] = None
    billed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class LabReportOut(BaseModel):
    id: int
    test_request_id: int
    report_data: Optional[str] = None
    report_file_path: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TestRequestDetailOut(TestRequestOut):
    patient_name: Optional[str] = None
    doctor_name: Optional[str] = None
    report: Optional[LabReportOut] = None
