"""Charges accumulate on the patient's single open invoice."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from app.models import Invoice
from app.services.billing_errors import BillingValidationError, Conflict, NotFound
from app.services.billing_math import charge_delta
from app.services.billing_orchestrator import amend_invoice, open_invoice
from app.services.invoice_accumulator import accumulate_charge
from app.services.payment_finalizer import finalize_payment
from app.services.unit_of_work import transaction


def _charge(db, patient_id, amount, line, **kw):
    with transaction(db, "test charge"):
        return accumulate_charge(db,
                                 patient_id=patient_id,
                                 delta=charge_delta(amount),
                                 line=line,
                                 **kw)


def _pending(db, patient_id):
    return db.query(Invoice).filter(Invoice.patient_id == patient_id,
                                    Invoice.status == "pending").all()


class TestAccumulation:

    def test_first_charge_creates_invoice(self, db, hospital):
        action = _charge(db,
                         hospital.patient_id,
                         "12.50",
                         "X-ray",
                         due_date=date(2026, 12, 1))

        assert action.type == "created"
        assert action.amount_appended == Decimal("12.50")
        assert action.updated_total == Decimal("12.50")

        inv = db.get(Invoice, action.invoice_id)
        assert inv.status == "pending"
        assert inv.description == "X-ray"
        assert inv.due_date == date(2026, 12, 1)

    def test_sum_and_order_preserved(self, db, hospital):
        amounts = ["10.10", "0.20", "5", "7.333"]
        lines = ["Consult", "Dressing", "Injection", "Drip"]
        actions = [
            _charge(db, hospital.patient_id, a, ln)
            for a, ln in zip(amounts, lines)
        ]

        assert [a.type for a in actions] == ["created"] + ["updated"] * 3
        assert len({a.invoice_id for a in actions}) == 1

        db.expire_all()
        (inv, ) = _pending(db, hospital.patient_id)
        assert inv.amount == Decimal("22.63")
        assert inv.charge_lines == lines
        assert actions[-1].updated_total == Decimal("22.63")

    def test_default_line_used_when_blank(self, db, hospital):
        action = _charge(db,
                         hospital.patient_id,
                         3,
                         "   ",
                         default_line="Lab charge: CBC")
        assert db.get(Invoice, action.invoice_id).description == "Lab charge: CBC"

    def test_no_line_at_all_is_rejected(self, db, hospital):
        with pytest.raises(BillingValidationError):
            _charge(db, hospital.patient_id, 3, None)
        assert _pending(db, hospital.patient_id) == []

    def test_unknown_patient(self, db, hospital):
        with pytest.raises(NotFound):
            _charge(db, 9999, 3, "Consult")

    def test_targets_most_recent_pending(self, db, hospital):
        old = Invoice(patient_id=hospital.patient_id,
                      amount=Decimal("1.00"),
                      status="pending",
                      created_at=datetime(2025, 1, 1))
        new = Invoice(patient_id=hospital.patient_id,
                      amount=Decimal("2.00"),
                      status="pending",
                      created_at=datetime(2026, 1, 1))
        db.add_all([old, new])
        db.commit()

        action = _charge(db, hospital.patient_id, 1, "Consult")
        assert action.invoice_id == new.id
        assert action.updated_total == Decimal("3.00")

    def test_paid_invoice_is_not_reused(self, db, hospital):
        first = _charge(db, hospital.patient_id, 5, "Consult")
        finalize_payment(db, invoice_id=first.invoice_id)

        second = _charge(db, hospital.patient_id, 4, "Follow-up")
        assert second.type == "created"
        assert second.invoice_id != first.invoice_id

    def test_patients_do_not_share_invoices(self, db, hospital):
        a = _charge(db, hospital.patient_id, 5, "Consult")
        b = _charge(db, hospital.other_patient_id, 5, "Consult")
        assert a.invoice_id != b.invoice_id


class TestAmendment:

    def test_amend_specific_invoice(self, db, hospital):
        inv = open_invoice(db,
                           patient_id=hospital.patient_id,
                           amount="40",
                           description="Room")
        action = amend_invoice(db,
                               invoice_id=inv.id,
                               amount="9.99",
                               description="Linen")
        assert action.type == "updated"
        assert action.updated_total == Decimal("49.99")

        db.expire_all()
        assert db.get(Invoice, inv.id).charge_lines == ["Room", "Linen"]

    def test_amend_paid_invoice_conflicts(self, db, hospital):
        inv = open_invoice(db, patient_id=hospital.patient_id, amount="40")
        finalize_payment(db, invoice_id=inv.id)

        with pytest.raises(Conflict):
            amend_invoice(db, invoice_id=inv.id, amount=1)

        db.expire_all()
        assert db.get(Invoice, inv.id).amount == Decimal("40.00")

    @pytest.mark.parametrize("amount", [0, -3, "NaN"])
    def test_amend_requires_positive_delta(self, db, hospital, amount):
        inv = open_invoice(db, patient_id=hospital.patient_id, amount="40")
        with pytest.raises(BillingValidationError):
            amend_invoice(db, invoice_id=inv.id, amount=amount)

    def test_amend_missing_invoice(self, db, hospital):
        with pytest.raises(NotFound):
            amend_invoice(db, invoice_id=424242, amount=1)

    def test_amend_past_column_limit_rejected(self, db, hospital):
        inv = open_invoice(db,
                           patient_id=hospital.patient_id,
                           amount="9999999999.99")
        with pytest.raises(BillingValidationError):
            amend_invoice(db, invoice_id=inv.id, amount=1)

        db.expire_all()
        assert db.get(Invoice, inv.id).amount == Decimal("9999999999.99")
        assert db.get(Invoice, inv.id).charge_lines == []


def test_open_invoice_validates_due_date(db, hospital):
    with pytest.raises(BillingValidationError):
        open_invoice(db,
                     patient_id=hospital.patient_id,
                     amount=10,
                     due_date="12/31/2026")
    assert _pending(db, hospital.patient_id) == []
