# FILE: app/api/routes_lab.py
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import Principal, get_db, require_roles
from app.api.response import failure_as_500, ok
from app.models.lab import TestRequest
from app.schemas.lab import (
    LabBillIn,
    LabReportIn,
    LabReportOut,
    TestRequestDetailOut,
    TestRequestIn,
    TestRequestOut,
    TestStatusIn,
)
from app.services.billing_orchestrator import bill_lab_test
from app.services.lab_workflow import (
    create_test_request,
    get_report,
    get_test,
    list_tests,
    update_test_status,
    upload_report,
)

router = APIRouter()

lab_user = require_roles("lab_technician", "staff")


def test_row(test: TestRequest) -> Dict[str, Any]:
    return TestRequestDetailOut(
        **TestRequestOut.model_validate(test).model_dump(),
        patient_name=test.patient.name if test.patient else None,
        doctor_name=test.doctor.name if test.doctor else None,
        report=LabReportOut.model_validate(test.report)
        if test.report else None,
    ).model_dump()


# ---------------- test requests ----------------


@router.get("/tests")
def tests(
        status: Optional[str] = Query(default=None),
        db: Session = Depends(get_db),
        user: Principal = Depends(lab_user),
):
    with failure_as_500("Failed to fetch test requests"):
        return [test_row(t) for t in list_tests(db, status)]


@router.post("/tests", status_code=201)
def create_test(
        payload: TestRequestIn,
        db: Session = Depends(get_db),
        user: Principal = Depends(lab_user),
):
    with failure_as_500("Failed to create test request"):
        test = create_test_request(
            db,
            patient_id=payload.patient_id,
            doctor_id=payload.doctor_id,
            test_type=payload.test_type,
            description=payload.description,
            status=payload.status,
        )
        return ok("Test request created successfully",
                  status_code=201,
                  test=test_row(get_test(db, test.id)))


@router.get("/tests/{test_id}")
def test_by_id(
        test_id: int,
        db: Session = Depends(get_db),
        user: Principal = Depends(lab_user),
):
    with failure_as_500("Failed to fetch test request"):
        return test_row(get_test(db, test_id))


@router.put("/tests/{test_id}")
def set_test_status(
        test_id: int,
        payload: TestStatusIn,
        db: Session = Depends(get_db),
        user: Principal = Depends(lab_user),
):
    with failure_as_500("Failed to update test status"):
        test = update_test_status(db, test_id, payload.status)
        return ok("Test status updated successfully",
                  test=TestRequestOut.model_validate(test).model_dump())


# ---------------- reports ----------------


@router.get("/tests/{test_id}/report")
def report_for_test(
        test_id: int,
        db: Session = Depends(get_db),
        user: Principal = Depends(lab_user),
):
    with failure_as_500("Failed to fetch lab report"):
        return LabReportOut.model_validate(get_report(db, test_id)).model_dump()


@router.post("/tests/{test_id}/report", status_code=201)
def create_report(
        test_id: int,
        payload: LabReportIn,
        db: Session = Depends(get_db),
        user: Principal = Depends(lab_user),
):
    with failure_as_500("Failed to upload lab report"):
        report = upload_report(
            db,
            test_id,
            report_data=payload.report_data,
            report_file_path=payload.report_file_path,
        )
        return ok("Lab report uploaded successfully",
                  status_code=201,
                  report=LabReportOut.model_validate(report).model_dump())


# ---------------- billing ----------------


@router.post("/tests/{test_id}/bill")
def bill_test(
        test_id: int,
        payload: LabBillIn,
        db: Session = Depends(get_db),
        user: Principal = Depends(lab_user),
):
    """Charge a completed test onto the patient's open invoice."""
    with failure_as_500("Failed to bill lab test"):
        action, test = bill_lab_test(
            db,
            test_id=test_id,
            amount=payload.amount,
            description=payload.description,
            due_date=payload.due_date,
        )
        return ok(
            "Lab test billed successfully",
            invoiceAction=action.as_dict(),
            test=TestRequestOut.model_validate(test).model_dump(),
        )
