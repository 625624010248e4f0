# app/services/billing_math.py
from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from app.services.billing_errors import BillingValidationError

Q2 = Decimal("0.01")

# Numeric(12, 2) and signed INT column limits
MAX_AMOUNT = Decimal("9999999999.99")
MAX_QUANTITY = 2_147_483_647

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def D(x) -> Decimal:
    try:
        return Decimal(str(x or 0))
    except (InvalidOperation, ValueError):
        return Decimal("0")


def money2(x) -> Decimal:
    return D(x).quantize(Q2, rounding=ROUND_HALF_UP)


def _quantize_amount(d: Decimal, what: str) -> Decimal:
    # quantize itself raises InvalidOperation past the context precision
    try:
        d = d.quantize(Q2, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise BillingValidationError(f"{what} is out of range")
    if d > MAX_AMOUNT:
        raise BillingValidationError(f"{what} cannot exceed {MAX_AMOUNT}")
    return d


def add_amounts(total, delta: Decimal, *, what: str = "Invoice total") -> Decimal:
    """round(total + delta, 2), refusing a result the column cannot hold."""
    new_total = money2(D(total) + delta)
    if new_total > MAX_AMOUNT:
        raise BillingValidationError(f"{what} cannot exceed {MAX_AMOUNT}")
    return new_total


def charge_delta(x, *, what: str = "Amount") -> Decimal:
    """
    Validate a charge amount: finite and > 0, rounded to 2 places.
    Sub-cent drift (19.999 -> 20.00) is rounded, not rejected.
    """
    if x is None or isinstance(x, bool):
        raise BillingValidationError(f"{what} is required")
    try:
        d = Decimal(str(x))
    except (InvalidOperation, ValueError):
        raise BillingValidationError(f"{what} must be a number")
    if not d.is_finite():
        raise BillingValidationError(f"{what} must be a finite number")
    d = _quantize_amount(d, what)
    if d <= 0:
        raise BillingValidationError(f"{what} must be greater than zero")
    return d


def positive_int(x, *, what: str = "Quantity") -> int:
    if x is None or isinstance(x, bool):
        raise BillingValidationError(f"{what} is required")
    try:
        d = Decimal(str(x))
    except (InvalidOperation, ValueError):
        raise BillingValidationError(f"{what} must be a whole number")
    if not d.is_finite() or d != d.to_integral_value():
        raise BillingValidationError(f"{what} must be a whole number")
    n = int(d)
    if n <= 0:
        raise BillingValidationError(f"{what} must be greater than zero")
    return n


def non_negative_int(x, *, what: str = "Quantity") -> int:
    if x is None or x == "":
        return 0
    if isinstance(x, bool):
        raise BillingValidationError(f"{what} must be a whole number")
    try:
        d = Decimal(str(x))
    except (InvalidOperation, ValueError):
        raise BillingValidationError(f"{what} must be a whole number")
    if not d.is_finite() or d != d.to_integral_value():
        raise BillingValidationError(f"{what} must be a whole number")
    if d < 0:
        raise BillingValidationError(f"{what} cannot be negative")
    if d > MAX_QUANTITY:
        raise BillingValidationError(f"{what} cannot exceed {MAX_QUANTITY}")
    return int(d)


def unit_price_or_none(x, *, what: str = "Unit price") -> Optional[Decimal]:
    """None / '' stay unset; otherwise a finite, non-negative 2-place price."""
    if x is None or x == "":
        return None
    if isinstance(x, bool):
        raise BillingValidationError(f"{what} must be a number")
    try:
        d = Decimal(str(x))
    except (InvalidOperation, ValueError):
        raise BillingValidationError(f"{what} must be a number")
    if not d.is_finite():
        raise BillingValidationError(f"{what} must be a finite number")
    d = _quantize_amount(d, what)
    if d < 0:
        raise BillingValidationError(f"{what} cannot be negative")
    return d


def parse_due_date(v) -> Optional[date]:
    """Accepts None / '' / date / 'YYYY-MM-DD'."""
    if v is None or v == "":
        return None
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    s = str(v).strip()
    if not _DATE_RE.match(s):
        raise BillingValidationError("Due date must be in YYYY-MM-DD format")
    try:
        return datetime.strptime(s, "%Y-%m-%d").date()
    except ValueError:
        raise BillingValidationError("Due date is not a valid calendar date")


def normalize_payment_method(method, default: str = "online") -> str:
    """'Credit Card ' -> 'credit_card'; blank -> default."""
    if not isinstance(method, str) or not method.strip():
        return default
    return re.sub(r"\s+", "_", method.strip().lower())


def append_charge_line(existing: Optional[str], line: str) -> str:
    return f"{existing or ''}\n{line}".strip()
