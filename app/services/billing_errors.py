# FILE: app/services/billing_errors.py
from __future__ import annotations

from typing import Optional


class BillingError(Exception):
    """
    Typed failure raised by the billing / inventory core.

    status_code -> HTTP status used by the API layer
    code        -> short machine token returned as `error`
    """

    status_code: int = 400
    code: str = "billing_error"

    def __init__(self,
                 msg: str,
                 status_code: Optional[int] = None,
                 extra: Optional[dict] = None):
        super().__init__(msg)
        self.msg = msg
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra


class BillingValidationError(BillingError):
    status_code = 400
    code = "validation_error"


class NotFound(BillingError):
    status_code = 404
    code = "not_found"


class Conflict(BillingError):
    status_code = 409
    code = "conflict"


class InsufficientStock(Conflict):
    status_code = 400
    code = "insufficient_stock"


class AlreadyPaid(Conflict):
    code = "already_paid"


class NotBillable(Conflict):
    code = "not_billable"
