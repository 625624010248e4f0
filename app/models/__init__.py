# app/models/__init__.py
from .user import User
from .patient import Patient, Doctor
from .billing import Invoice, Payment
from .pharmacy import Medicine, Prescription, PrescriptionItem, DispensingRecord
from .lab import TestRequest, LabReport

__all__ = [
    "User",
    "Patient",
    "Doctor",
    "Invoice",
    "Payment",
    "Medicine",
    "Prescription",
    "PrescriptionItem",
    "DispensingRecord",
    "TestRequest",
    "LabReport",
]
