# FILE: app/models/lab.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Numeric,
    DateTime,
    ForeignKey,
)
from sqlalchemy.orm import relationship

from app.db.base import Base

TEST_STATUSES = ("pending", "in-progress", "completed", "cancelled")


class TestRequest(Base):
    __tablename__ = "test_requests"
    __test__ = False  # not a pytest class

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer,
                        ForeignKey("patients.id"),
                        nullable=False,
                        index=True)
    doctor_id = Column(Integer,
                       ForeignKey("doctors.id"),
                       nullable=True,
                       index=True)

    test_type = Column(String(160), nullable=False)
    description = Column(Text, nullable=True)
    # pending | in-progress | completed | cancelled
    status = Column(String(20), nullable=False, default="pending")

    # billing stamp (sum of every lab charge posted for this test)
    billing_amount = Column(Numeric(12, 2), nullable=False, default=0)
    billing_invoice_id = Column(Integer,
                                ForeignKey("invoices.id"),
                                nullable=True)
    billed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    patient = relationship("Patient")
    doctor = relationship("Doctor")
    report = relationship("LabReport",
                          back_populates="test_request",
                          uselist=False)


class LabReport(Base):
    __tablename__ = "lab_reports"

    id = Column(Integer, primary_key=True, index=True)
    test_request_id = Column(Integer,
                             ForeignKey("test_requests.id"),
                             unique=True,
                             nullable=False)
    report_data = Column(Text, nullable=True)
    report_file_path = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    test_request = relationship("TestRequest", back_populates="report")
