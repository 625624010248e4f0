from __future__ import annotations
from datetime import datetime
from sqlalchemy import (Column, Integer, String, DateTime, Date, Text,
                        ForeignKey, Numeric, CheckConstraint, Index)
from sqlalchemy.orm import relationship
from app.db.base import Base

# -------------------------
# Stock
# -------------------------


class Medicine(Base):
    __tablename__ = "medicines"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_medicines_quantity_nonneg"),
        Index("ix_medicines_name", "name"),
    )

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    generic_name = Column(String(200), nullable=True)
    batch_number = Column(String(60), nullable=True)
    expiry_date = Column(Date, nullable=True)

    quantity = Column(Integer, nullable=False, default=0)
    unit_price = Column(Numeric(12, 2), nullable=True)  # per unit

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime,
                        default=datetime.utcnow,
                        onupdate=datetime.utcnow)


# -------------------------
# Prescriptions (header + structured lines)
# -------------------------


class Prescription(Base):
    __tablename__ = "prescriptions"

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer,
                        ForeignKey("patients.id"),
                        index=True,
                        nullable=False)
    doctor_id = Column(Integer,
                       ForeignKey("doctors.id"),
                       index=True,
                       nullable=True)
    notes = Column(Text, nullable=True)
    # new | partially_dispensed | fully_dispensed | cancelled
    status = Column(String(30), nullable=False, default="new")
    prescription_date = Column(DateTime, default=datetime.utcnow)

    patient = relationship("Patient")
    doctor = relationship("Doctor")
    items = relationship("PrescriptionItem",
                         back_populates="prescription",
                         cascade="all, delete-orphan",
                         order_by="PrescriptionItem.id")


class PrescriptionItem(Base):
    __tablename__ = "prescription_items"

    id = Column(Integer, primary_key=True)
    prescription_id = Column(Integer,
                             ForeignKey("prescriptions.id"),
                             index=True,
                             nullable=False)
    medicine_id = Column(Integer,
                         ForeignKey("medicines.id"),
                         index=True,
                         nullable=False)
    dosage = Column(String(120), nullable=True)  # 1-0-1 after food
    quantity = Column(Integer, nullable=False, default=0)
    dispensed_qty = Column(Integer, nullable=False, default=0)
    # pending | partially_dispensed | fully_dispensed | cancelled
    status = Column(String(30), nullable=False, default="pending")

    prescription = relationship("Prescription", back_populates="items")
    medicine = relationship("Medicine")


class DispensingRecord(Base):
    __tablename__ = "dispensing_records"

    id = Column(Integer, primary_key=True)
    prescription_id = Column(Integer,
                             ForeignKey("prescriptions.id"),
                             index=True,
                             nullable=False)
    medicine_id = Column(Integer,
                         ForeignKey("medicines.id"),
                         index=True,
                         nullable=False)
    prescription_item_id = Column(Integer,
                                  ForeignKey("prescription_items.id"),
                                  nullable=True)
    quantity_dispensed = Column(Integer, nullable=False)
    dispensed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    dispensed_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    medicine = relationship("Medicine")
    prescription = relationship("Prescription")
    pharmacist = relationship("User")
