# app/db/base.py
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """All hospital tables (users, patients, invoices, stock, lab) inherit from this."""
    pass


# Import all models so metadata is complete for create_all()
from app.models import (  # noqa: F401,E402
    user,
    patient,
    billing,
    pharmacy,
    lab,
)
