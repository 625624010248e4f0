from decimal import Decimal

import pytest

from app.models import Invoice, LabReport
from app.models.lab import TestRequest as LabTest
from app.services.billing_errors import (
    BillingValidationError,
    NotBillable,
    NotFound,
)
from app.services import billing_orchestrator
from app.services.billing_orchestrator import bill_lab_test, dispense_medicine
from app.services.lab_workflow import (
    create_test_request,
    get_report,
    list_tests,
    normalize_test_status,
    update_test_status,
    upload_report,
)


class TestBillLabTest:

    def test_completed_test_opens_invoice(self, db, hospital):
        action, test = bill_lab_test(db,
                                     test_id=hospital.completed_test_id,
                                     amount="15")
        assert action.type == "created"
        assert action.updated_total == Decimal("15.00")

        db.expire_all()
        test = db.get(LabTest, hospital.completed_test_id)
        assert test.billing_amount == Decimal("15.00")
        assert test.billing_invoice_id == action.invoice_id
        assert test.billed_at is not None
        assert db.get(Invoice, action.invoice_id).description == \
            "Lab charge: Lipid Panel"

    def test_lab_charge_joins_pharmacy_invoice(self, db, hospital):
        dispense_medicine(db,
                          prescription_id=hospital.rx_id,
                          medicine_id=hospital.amox_id,
                          quantity=10)
        action, _ = bill_lab_test(db,
                                  test_id=hospital.completed_test_id,
                                  amount="15.00",
                                  description="Lipid panel (fasting)")

        assert action.type == "updated"
        assert action.updated_total == Decimal("35.00")
        db.expire_all()
        assert db.get(Invoice, action.invoice_id).charge_lines == [
            "Pharmacy charge: Amoxicillin x10", "Lipid panel (fasting)"
        ]

    def test_rebilling_accumulates_on_test(self, db, hospital):
        bill_lab_test(db, test_id=hospital.completed_test_id, amount=10)
        bill_lab_test(db, test_id=hospital.completed_test_id, amount=2.5)
        db.expire_all()
        test = db.get(LabTest, hospital.completed_test_id)
        assert test.billing_amount == Decimal("12.50")

    def test_pending_test_not_billable(self, db, hospital):
        with pytest.raises(NotBillable) as ei:
            bill_lab_test(db, test_id=hospital.pending_test_id, amount=15)
        assert ei.value.status_code == 409
        assert db.query(Invoice).count() == 0

    def test_unknown_test(self, db, hospital):
        with pytest.raises(NotFound):
            bill_lab_test(db, test_id=31337, amount=15)

    def test_missing_patient_rejected_before_test_lock(self, db, hospital,
                                                       monkeypatch):
        orphan = LabTest(patient_id=9999, test_type="CBC", status="completed")
        db.add(orphan)
        db.commit()

        locked = []
        real = billing_orchestrator.lab_test_lock_stmt

        def _spy(test_id):
            locked.append(test_id)
            return real(test_id)

        monkeypatch.setattr(billing_orchestrator, "lab_test_lock_stmt", _spy)

        with pytest.raises(NotFound, match="Patient not found"):
            bill_lab_test(db, test_id=orphan.id, amount=15)
        assert locked == []
        assert db.query(Invoice).count() == 0

    @pytest.mark.parametrize("amount", [0, -1, None, "free"])
    def test_amount_validated(self, db, hospital, amount):
        with pytest.raises(BillingValidationError):
            bill_lab_test(db, test_id=hospital.completed_test_id, amount=amount)
        assert db.query(Invoice).count() == 0


class TestLabWorkflow:

    def test_status_normalized(self):
        assert normalize_test_status("In Progress") == "in-progress"
        with pytest.raises(BillingValidationError):
            normalize_test_status("done")

    def test_report_upload_makes_test_billable(self, db, hospital):
        update_test_status(db, hospital.pending_test_id, "in progress")
        report = upload_report(db,
                               hospital.pending_test_id,
                               report_data="TSH 2.1 mIU/L")
        assert report.test_request_id == hospital.pending_test_id

        action, _ = bill_lab_test(db,
                                  test_id=hospital.pending_test_id,
                                  amount=40)
        assert action.type == "created"

    def test_report_upload_is_upsert(self, db, hospital):
        upload_report(db, hospital.completed_test_id, report_data="v1")
        upload_report(db, hospital.completed_test_id, report_data="v2")
        reports = db.query(LabReport).all()
        assert [r.report_data for r in reports] == ["v2"]

    def test_create_request_then_bill(self, db, hospital):
        test = create_test_request(db,
                                   patient_id=hospital.patient_id,
                                   doctor_id=hospital.doctor_id,
                                   test_type=" CBC ",
                                   description="Fasting")
        assert (test.test_type, test.status) == ("CBC", "pending")

        with pytest.raises(NotBillable):
            bill_lab_test(db, test_id=test.id, amount=12)

        upload_report(db, test.id, report_data="Hb 13.5")
        action, _ = bill_lab_test(db, test_id=test.id, amount=12)
        assert action.updated_total == Decimal("12.00")

    @pytest.mark.parametrize("fields, error", [
        ({"patient_id": None}, BillingValidationError),
        ({"test_type": " "}, BillingValidationError),
        ({"patient_id": 9999}, NotFound),
        ({"doctor_id": 9999}, NotFound),
        ({"status": "done"}, BillingValidationError),
    ])
    def test_create_request_validation(self, db, hospital, fields, error):
        kw = dict(patient_id=hospital.patient_id,
                  doctor_id=hospital.doctor_id,
                  test_type="CBC")
        kw.update(fields)
        with pytest.raises(error):
            create_test_request(db, **kw)
        assert db.query(LabTest).count() == 2

    def test_list_filters_by_status(self, db, hospital):
        assert [t.test_type for t in list_tests(db)] == [
            "Thyroid Profile", "Lipid Panel"
        ]
        assert [t.test_type for t in list_tests(db, "completed")
                ] == ["Lipid Panel"]
        assert len(list_tests(db, "all")) == 2
        with pytest.raises(BillingValidationError):
            list_tests(db, "done")

    def test_report_lookup(self, db, hospital):
        with pytest.raises(NotFound, match="Lab report not found"):
            get_report(db, hospital.completed_test_id)
        upload_report(db, hospital.completed_test_id, report_data="LDL 110")
        assert get_report(db, hospital.completed_test_id).report_data == "LDL 110"
