from sqlalchemy import Column, Integer, String, Boolean, DateTime, func
from app.db.base import Base

ROLES = (
    "admin",
    "doctor",
    "patient",
    "pharmacist",
    "lab_technician",
    "staff",
)


class User(Base):
    __tablename__ = "users"
    __table_args__ = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=False)
    email = Column(String(191), unique=True,
                   nullable=False)  # <= 191, no index=True
    phone = Column(String(20), nullable=True)

    # admin | doctor | patient | pharmacist | lab_technician | staff
    role = Column(String(32), nullable=False, default="patient")
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, server_default=func.now())
