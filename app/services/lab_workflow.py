# FILE: app/services/lab_workflow.py
from __future__ import annotations

import re
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from app.db.schema_guard import read_or_empty
from app.models.lab import TEST_STATUSES, LabReport, TestRequest
from app.models.patient import Doctor
from app.services.billing_errors import BillingValidationError, NotFound
from app.services.invoice_accumulator import require_patient
from app.services.unit_of_work import transaction


def normalize_test_status(status) -> str:
    """'In Progress' -> 'in-progress'."""
    s = re.sub(r"\s+", "-", str(status or "").strip().lower())
    if s not in TEST_STATUSES:
        raise BillingValidationError("Invalid status provided")
    return s


def _with_people(q):
    return q.options(
        joinedload(TestRequest.patient),
        joinedload(TestRequest.doctor),
        joinedload(TestRequest.report),
    )


def get_test(db: Session, test_id: int) -> TestRequest:
    test = _with_people(db.query(TestRequest)).filter(
        TestRequest.id == int(test_id)).first()
    if not test:
        raise NotFound("Test request not found")
    return test


def list_tests(db: Session, status: Optional[str] = None) -> List[TestRequest]:
    """Newest first; status 'all' / blank means no filter."""
    wanted = None
    if status and str(status).strip().lower() != "all":
        wanted = normalize_test_status(status)

    def _q():
        q = _with_people(db.query(TestRequest))
        if wanted:
            q = q.filter(TestRequest.status == wanted)
        return q.order_by(TestRequest.created_at.desc(),
                          TestRequest.id.desc()).all()

    return read_or_empty(db, _q, [])


def create_test_request(
    db: Session,
    *,
    patient_id,
    doctor_id,
    test_type: Optional[str],
    description: Optional[str] = None,
    status: Optional[str] = None,
) -> TestRequest:
    test_type = (test_type or "").strip()
    if not patient_id or not doctor_id or not test_type:
        raise BillingValidationError("Missing required fields")
    new_status = normalize_test_status(status) if status else "pending"

    with transaction(db, "test request creation"):
        require_patient(db, patient_id)
        if not db.get(Doctor, int(doctor_id)):
            raise NotFound("Doctor not found")
        test = TestRequest(
            patient_id=int(patient_id),
            doctor_id=int(doctor_id),
            test_type=test_type,
            description=(description or "").strip() or None,
            status=new_status,
        )
        db.add(test)
        db.flush()
    return test


def update_test_status(db: Session, test_id: int, status) -> TestRequest:
    new_status = normalize_test_status(status)
    with transaction(db, "test status update"):
        test = get_test(db, test_id)
        test.status = new_status
    return test


def get_report(db: Session, test_id: int) -> LabReport:
    report = db.query(LabReport).filter(
        LabReport.test_request_id == int(test_id)).first()
    if not report:
        raise NotFound("Lab report not found")
    return report


def upload_report(
    db: Session,
    test_id: int,
    *,
    report_data: Optional[str] = None,
    report_file_path: Optional[str] = None,
) -> LabReport:
    """Upsert the report and mark the test completed (makes it billable)."""
    with transaction(db, "lab report upload"):
        test = get_test(db, test_id)
        report = db.query(LabReport).filter(
            LabReport.test_request_id == test.id).first()
        if report:
            report.report_data = report_data
            report.report_file_path = report_file_path
            report.created_at = datetime.utcnow()
        else:
            report = LabReport(
                test_request_id=test.id,
                report_data=report_data,
                report_file_path=report_file_path,
            )
            db.add(report)
        test.status = "completed"
        db.flush()
    return report
