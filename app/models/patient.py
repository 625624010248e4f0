# FILE: app/models/patient.py
from sqlalchemy import (
    Column,
    Integer,
    String,
    Date,
    DateTime,
    func,
    ForeignKey,
)
from sqlalchemy.orm import relationship

from app.db.base import Base


class Patient(Base):
    __tablename__ = "patients"
    __table_args__ = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer,
                     ForeignKey("users.id"),
                     unique=True,
                     nullable=False)

    gender = Column(String(16), nullable=True)
    dob = Column(Date, nullable=True)
    blood_group = Column(String(8), nullable=True)
    address = Column(String(255), nullable=True)

    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", lazy="joined")
    invoices = relationship("Invoice",
                            back_populates="patient",
                            order_by="Invoice.created_at.desc()")

    @property
    def name(self) -> str:
        return self.user.name if self.user else ""


class Doctor(Base):
    __tablename__ = "doctors"
    __table_args__ = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer,
                     ForeignKey("users.id"),
                     unique=True,
                     nullable=False)
    specialization = Column(String(120), nullable=True)

    user = relationship("User", lazy="joined")

    @property
    def name(self) -> str:
        return self.user.name if self.user else ""
