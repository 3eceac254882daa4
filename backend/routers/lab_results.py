import math
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session, selectinload

from backend.database import get_db, unit_of_work
from backend.models.lab_order import LabOrder
from backend.models.lab_report import LabReport
from backend.models.lab_result import LabResult
from backend.models.user import User
from backend.routers.deps import get_current_user, require_roles
from backend.routers.serializers import (
    normal_range,
    report_to_dict,
    result_to_dict,
    user_brief,
)
from backend.schemas.lab import LabReportReview, LabResultCreate, ReportStatus, ResultStatus
from backend.services import lab_service
from backend.services.lab_queue import day_bounds

router = APIRouter(prefix="/api/v1/lab", tags=["lab"])


def _load_result(db: Session, result_id: int) -> LabResult:
    return (
        db.query(LabResult)
        .options(selectinload(LabResult.order), selectinload(LabResult.test))
        .filter(LabResult.id == result_id)
        .one()
    )


def _page(total: int, page: int, limit: int) -> dict:
    return {"totalCount": total, "currentPage": page, "totalPages": math.ceil(total / limit) if total else 0}


@router.post("/results", status_code=201)
def enter_result(
    payload: LabResultCreate,
    db: Session = Depends(get_db),
    technician: User = Depends(require_roles("Technician")),
):
    with unit_of_work(db):
        result = lab_service.enter_lab_result(db, technician, payload)
        result_id = result.id

    return {
        "success": True,
        "message": "Lab result entered successfully",
        "result": result_to_dict(_load_result(db, result_id)),
    }


@router.get("/results")
def list_results(
    patient_id: str | None = Query(default=None, alias="patientId"),
    order_id: str | None = Query(default=None, alias="orderId"),
    status: ResultStatus | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
    _: User = Depends(require_roles("Doctor", "Technician", "Admin")),
):
    query = db.query(LabResult)
    if patient_id and patient_id != "all":
        query = query.filter(LabResult.patient_id == patient_id)
    if order_id:
        query = query.join(LabOrder, LabOrder.id == LabResult.order_id).filter(LabOrder.order_number == order_id)
    if status:
        query = query.filter(LabResult.status == status)

    total = query.count()
    rows = (
        query.options(selectinload(LabResult.order), selectinload(LabResult.test))
        .order_by(LabResult.performed_at.is_(None), LabResult.performed_at.desc(), LabResult.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "success": True,
        "count": len(rows),
        **_page(total, page, limit),
        "results": [result_to_dict(r) for r in rows],
    }


@router.patch("/results/{result_id}/verify")
def verify_result(
    result_id: int,
    db: Session = Depends(get_db),
    reviewer: User = Depends(require_roles("Doctor", "Admin")),
):
    with unit_of_work(db):
        lab_service.verify_lab_result(db, reviewer, result_id)

    return {"success": True, "message": "Lab result verified", "result": result_to_dict(_load_result(db, result_id))}


@router.get("/reports")
def list_reports(
    patient_id: str | None = Query(default=None, alias="patientId"),
    status: ReportStatus | None = None,
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
    _: User = Depends(require_roles("Doctor", "Technician", "Admin")),
):
    query = db.query(LabReport)
    if patient_id and patient_id != "all":
        query = query.filter(LabReport.patient_id == patient_id)
    if status:
        query = query.filter(LabReport.status == status)
    start, end = day_bounds(start_date, end_date)
    if start:
        query = query.filter(LabReport.reported_at >= start)
    if end:
        query = query.filter(LabReport.reported_at <= end)

    total = query.count()
    rows = (
        query.options(selectinload(LabReport.order))
        .order_by(LabReport.reported_at.desc(), LabReport.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "success": True,
        "count": len(rows),
        **_page(total, page, limit),
        "reports": [report_to_dict(r) for r in rows],
    }


@router.get("/reports/{order_id}")
def get_report(
    order_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    order = lab_service.get_order(db, order_id)
    if current_user.role == "Patient" and order.patient_id != current_user.id:
        raise HTTPException(status_code=403, detail="Forbidden. This lab report belongs to another patient.")

    results = {
        r.test_id: r
        for r in db.query(LabResult).options(selectinload(LabResult.test)).filter(LabResult.order_id == order.id)
    }
    tests = []
    for line in order.tests:
        result = results.get(line.test_id)
        tests.append(
            {
                "testId": line.test_id,
                "testName": line.test.test_name,
                "category": line.test.category,
                "status": line.status,
                "result": result_to_dict(result) if result else None,
                "normalRange": normal_range(line.test),
            }
        )

    return {
        "success": True,
        "report": {
            "order": {
                "orderId": order.order_number,
                "orderedAt": order.ordered_at.isoformat(),
                "completedAt": order.completed_at.isoformat() if order.completed_at else None,
                "status": order.status,
            },
            "patient": user_brief(order.patient),
            "doctor": user_brief(order.doctor),
            "clinicalInfo": order.clinical_info,
            "tests": tests,
            "labReport": report_to_dict(order.report) if order.report else None,
        },
    }


@router.patch("/reports/{order_id}")
def review_report(
    order_id: str,
    payload: LabReportReview,
    db: Session = Depends(get_db),
    reviewer: User = Depends(require_roles("Doctor", "Admin")),
):
    with unit_of_work(db):
        report = lab_service.review_lab_report(db, reviewer, order_id, payload)
        report_id = report.id

    report = db.query(LabReport).options(selectinload(LabReport.order)).filter(LabReport.id == report_id).one()
    return {"success": True, "message": "Lab report reviewed", "report": report_to_dict(report)}
