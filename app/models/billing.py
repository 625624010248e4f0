# FILE: app/models/billing.py
from __future__ import annotations

from datetime import datetime
from sqlalchemy import (
    Column,
    Integer,
    String,
    Numeric,
    Date,
    DateTime,
    Index,
    ForeignKey,
    Text,
)
from sqlalchemy.orm import relationship
from app.db.base import Base

INVOICE_STATUSES = ("pending", "paid", "overdue", "cancelled")


class Invoice(Base):
    """
    One patient bill.

    Charges (lab, pharmacy, manual) accumulate on the patient's most recent
    `pending` invoice:
    - amount: running total, 2-place currency
    - description: one charge line per row, newline separated

    Status flow handled here: pending -> paid.
    `overdue` is only a read-time label (see display_status).
    """

    __tablename__ = "invoices"
    __table_args__ = (Index("ix_invoices_patient_status_created",
                            "patient_id", "status", "created_at"), )

    id = Column(Integer, primary_key=True, index=True)

    patient_id = Column(
        Integer,
        ForeignKey("patients.id"),
        nullable=False,
        index=True,
    )

    amount = Column(Numeric(12, 2), nullable=False, default=0)
    description = Column(Text, nullable=True)
    due_date = Column(Date, nullable=True)

    # pending | paid | overdue | cancelled
    status = Column(String(16), nullable=False, default="pending")

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    patient = relationship("Patient", back_populates="invoices")
    payments = relationship(
        "Payment",
        back_populates="invoice",
        order_by="Payment.payment_date.desc()",
    )

    @property
    def charge_lines(self) -> list[str]:
        return [
            ln for ln in (self.description or "").split("\n") if ln.strip()
        ]


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer,
                        ForeignKey("invoices.id"),
                        nullable=False,
                        index=True)

    amount_paid = Column(Numeric(12, 2), nullable=False)
    # lower_snake token: online | cash | credit_card | ...
    payment_method = Column(String(40), nullable=False, default="online")
    payment_date = Column(DateTime, default=datetime.utcnow, nullable=False)

    invoice = relationship("Invoice", back_populates="payments")
