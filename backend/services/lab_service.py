"""Lab workflow rules: order intake, result entry, status rollup and report synthesis.

Functions here only flush. The caller owns the transaction (see
``backend.database.unit_of_work``) so a use case is written completely or not
at all.
"""

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session, selectinload

from backend.errors import BadRequestError, NotFoundError
from backend.models.lab_order import TEST_STATUSES, LabOrder, LabOrderTest
from backend.models.lab_report import LabReport
from backend.models.lab_result import REPORTABLE_RESULT_STATUSES, LabResult
from backend.models.lab_test import LabTest
from backend.models.user import User
from backend.schemas.lab import LabOrderCreate, LabReportReview, LabResultCreate
from backend.services.flagging import classify_value, describe_value, format_reference_range

logger = logging.getLogger(__name__)

READY_FOR_RESULT_STATUSES = ("Collected", "InProgress")
ABNORMAL_FLAGS = ("Abnormal", "High", "Low")


def get_order(db: Session, order_number: str) -> LabOrder:
    order = (
        db.query(LabOrder)
        .options(selectinload(LabOrder.tests).selectinload(LabOrderTest.test))
        .filter(LabOrder.order_number == order_number)
        .first()
    )
    if not order:
        raise NotFoundError("Lab order not found")
    return order


def create_lab_order(db: Session, doctor: User, payload: LabOrderCreate) -> LabOrder:
    if not payload.patient_id:
        raise BadRequestError("Patient ID is required")
    if not payload.tests:
        raise BadRequestError("At least one test must be selected")

    test_ids = [item.test_id for item in payload.tests]
    if len(set(test_ids)) != len(test_ids):
        raise BadRequestError("Each test can only be ordered once per order")

    catalog = db.query(LabTest).filter(LabTest.id.in_(test_ids), LabTest.is_active.is_(True)).all()
    if len(catalog) != len(test_ids):
        raise BadRequestError("Some tests are invalid or inactive")

    patient = db.query(User).filter(User.id == payload.patient_id).first()
    if not patient:
        raise NotFoundError("Patient not found")

    total_amount = sum((Decimal(test.price) for test in catalog), Decimal("0"))

    order = LabOrder(
        patient_id=patient.id,
        doctor_id=doctor.id,
        encounter_id=payload.encounter_id or None,
        clinical_info=payload.clinical_info,
        total_amount=total_amount,
        status="Pending",
        ordered_at=datetime.utcnow(),
        tests=[
            LabOrderTest(
                test_id=item.test_id,
                priority=item.priority,
                instructions=item.instructions or "",
                status="Ordered",
            )
            for item in payload.tests
        ],
    )
    db.add(order)
    db.flush()
    order.order_number = f"LAB{order.id:06d}"

    create_lab_results_from_order(db, order)
    logger.info(
        "Created lab order %s with %d tests, total %s",
        order.order_number,
        len(order.tests),
        order.total_amount,
    )
    return order


def create_lab_results_from_order(db: Session, order: LabOrder) -> list[LabResult]:
    """Create one empty Pending result per ordered test that has none yet."""
    existing = {
        test_id
        for (test_id,) in db.query(LabResult.test_id).filter(LabResult.order_id == order.id).all()
    }
    created = []
    for line in order.tests:
        if line.test_id in existing:
            continue
        test = line.test
        placeholder = LabResult(
            order_id=order.id,
            test_id=line.test_id,
            patient_id=order.patient_id,
            value=None,
            unit=test.range_unit or "",
            is_abnormal=False,
            flag="Normal",
            reference_range=format_reference_range(test),
            status="Pending",
        )
        db.add(placeholder)
        created.append(placeholder)
    db.flush()
    if created:
        logger.info("Created %d result placeholders for %s", len(created), order.order_number)
    return created


def _find_result(db: Session, order: LabOrder, test_id: int) -> LabResult | None:
    return (
        db.query(LabResult)
        .filter(LabResult.order_id == order.id, LabResult.test_id == test_id)
        .first()
    )


def _find_report(db: Session, order: LabOrder) -> LabReport | None:
    return db.query(LabReport).filter(LabReport.order_id == order.id).first()


def _assert_order_open(order: LabOrder) -> None:
    if order.status in ("Completed", "Cancelled"):
        raise BadRequestError(f"Lab order is already {order.status.lower()}")


def _mark_started(order: LabOrder) -> None:
    if order.status == "Pending" and any(line.status != "Ordered" for line in order.tests):
        order.status = "InProgress"


def update_test_status(
    db: Session, order_number: str, test_id: int, status: str, notes: str | None = None
) -> LabOrder:
    if status not in TEST_STATUSES:
        raise BadRequestError("Invalid status")

    order = (
        db.query(LabOrder)
        .options(selectinload(LabOrder.tests))
        .filter(LabOrder.order_number == order_number)
        .first()
    )
    line = order.find_line(test_id) if order else None
    if not line:
        raise NotFoundError("Order or test not found")
    _assert_order_open(order)

    now = datetime.utcnow()
    line.status = status
    if notes is not None:
        line.notes = notes
    if status == "Collected":
        line.collected_at = now
    elif status == "Completed":
        line.completed_at = now
    elif status == "Cancelled":
        result = _find_result(db, order, test_id)
        if result and result.status == "Pending":
            result.status = "Cancelled"

    _mark_started(order)
    order.touch()
    db.flush()

    update_lab_queue(db, order)
    if order.status != "Completed" and _find_report(db, order) is not None:
        # a cancelled line changes totalTests of the Preliminary report
        create_or_update_lab_report(db, order)
    return order


def enter_lab_result(db: Session, technician: User, payload: LabResultCreate) -> LabResult:
    order = (
        db.query(LabOrder)
        .options(selectinload(LabOrder.tests).selectinload(LabOrderTest.test), selectinload(LabOrder.patient))
        .filter(LabOrder.order_number == payload.order_id)
        .first()
    )
    line = order.find_line(payload.test_id) if order else None
    if not line:
        raise NotFoundError("Order or test not found")
    if line.status not in READY_FOR_RESULT_STATUSES:
        raise BadRequestError("Test is not ready for result entry")

    test = line.test
    submitted = payload.result
    flag, is_abnormal = classify_value(
        test,
        submitted.value,
        gender=order.patient.gender if order.patient else None,
        requested_flag=submitted.flag,
    )

    result = _find_result(db, order, line.test_id)
    if result is None:
        result = LabResult(order_id=order.id, test_id=line.test_id, patient_id=order.patient_id)
        db.add(result)

    now = datetime.utcnow()
    result.technician_id = technician.id
    result.value = submitted.value
    result.unit = submitted.unit if submitted.unit is not None else (test.range_unit or "")
    result.flag = flag
    result.is_abnormal = is_abnormal
    result.reference_range = format_reference_range(test)
    result.interpretation = payload.interpretation
    result.comments = payload.comments
    result.methodology = payload.methodology
    result.instrument = payload.instrument
    result.status = "Completed"
    result.performed_at = now

    line.status = "Completed"
    line.completed_at = now
    _mark_started(order)
    order.touch()
    db.flush()

    update_lab_queue(db, order)
    if order.status != "Completed":
        # keep a Preliminary report in step with partially completed orders
        create_or_update_lab_report(db, order)
    return result


def update_lab_queue(db: Session, order: LabOrder) -> LabOrder:
    """Close the order once every test line is Completed or Cancelled.

    The transition is one-way; a completed order is never reopened here.
    """
    if order.all_tests_closed and order.status != "Completed":
        order.status = "Completed"
        order.completed_at = datetime.utcnow()
        db.flush()
        logger.info("Lab order %s completed", order.order_number)
        create_or_update_lab_report(db, order)
    return order


def generate_clinical_summary(results: list[LabResult]) -> str:
    normal = [r for r in results if r.flag == "Normal"]
    abnormal = [r for r in results if r.flag != "Normal"]

    lines = ["Laboratory Results Summary:", ""]
    if normal:
        lines.append(f"Normal Results ({len(normal)}):")
        for r in normal:
            lines.append(f"- {r.test.test_name}: {describe_value(r.value, r.unit)}")
        lines.append("")
    if abnormal:
        lines.append(f"Abnormal Results ({len(abnormal)}):")
        for r in abnormal:
            lines.append(f"- {r.test.test_name}: {describe_value(r.value, r.unit)} ({r.flag})")
            if r.interpretation:
                lines.append(f"  Interpretation: {r.interpretation}")
        lines.append("")
    else:
        lines.append("All test results are within normal limits.")
    lines.append("")
    lines.append("Please correlate with clinical findings.")
    return "\n".join(lines)


def reportable_results(db: Session, order: LabOrder) -> list[LabResult]:
    """Results that count towards the report; cancelled tests are left out."""
    return (
        db.query(LabResult)
        .options(selectinload(LabResult.test))
        .filter(LabResult.order_id == order.id, LabResult.status != "Cancelled")
        .order_by(LabResult.id)
        .all()
    )


def summary_counts(results: list[LabResult]) -> dict[str, int]:
    completed = [r for r in results if r.status in REPORTABLE_RESULT_STATUSES]
    return {
        "total_tests": len(results),
        "completed_tests": len(completed),
        "abnormal_results": sum(1 for r in completed if r.flag in ABNORMAL_FLAGS),
        "critical_results": sum(1 for r in completed if r.flag == "Critical"),
    }


def expected_report_status(counts: dict[str, int], current: str | None = None) -> str:
    """Final once every reportable test is completed, else Preliminary.

    A doctor's review survives re-synthesis as long as the report stays final.
    """
    status = "Final" if counts["completed_tests"] == counts["total_tests"] else "Preliminary"
    if status == "Final" and current == "Reviewed":
        return "Reviewed"
    return status


def create_or_update_lab_report(db: Session, order: LabOrder) -> LabReport | None:
    results = reportable_results(db, order)
    completed = [r for r in results if r.status in REPORTABLE_RESULT_STATUSES]
    if not completed:
        return None

    counts = summary_counts(results)
    test_results = [
        {
            "testId": r.test_id,
            "resultId": r.id,
            "summary": f"{r.test.test_name}: {describe_value(r.value, r.unit)} ({r.flag})",
        }
        for r in completed
    ]
    abnormal_findings = [
        {
            "testName": r.test.test_name,
            "finding": describe_value(r.value, r.unit),
            "significance": r.interpretation or "See clinical correlation",
        }
        for r in completed
        if r.is_abnormal or r.flag != "Normal"
    ]

    report = _find_report(db, order)
    if report is None:
        report = LabReport(
            order_id=order.id,
            patient_id=order.patient_id,
            doctor_id=order.doctor_id,
            created_by=order.doctor_id,
        )
        db.add(report)

    for field, value in counts.items():
        setattr(report, field, value)
    report.test_results = test_results
    report.abnormal_findings = abnormal_findings
    report.clinical_summary = generate_clinical_summary(completed)
    report.status = expected_report_status(counts, report.status)
    report.updated_at = datetime.utcnow()
    db.flush()
    if report.report_number is None:
        report.report_number = f"RPT{report.id:06d}"
        db.flush()

    logger.info(
        "Synthesized %s report for %s (%d/%d completed, %d abnormal)",
        report.status,
        order.order_number,
        report.completed_tests,
        report.total_tests,
        report.abnormal_results,
    )
    return report


def verify_lab_result(db: Session, reviewer: User, result_id: int) -> LabResult:
    result = db.query(LabResult).filter(LabResult.id == result_id).first()
    if not result:
        raise NotFoundError("Lab result not found")
    if result.status not in REPORTABLE_RESULT_STATUSES:
        raise BadRequestError("Only completed results can be verified")

    result.status = "Reviewed"
    result.verified_by = reviewer.id
    result.verified_at = datetime.utcnow()
    db.flush()

    order = db.get(LabOrder, result.order_id)
    create_or_update_lab_report(db, order)
    return result


def review_lab_report(db: Session, reviewer: User, order_number: str, payload: LabReportReview) -> LabReport:
    """Record the doctor's diagnosis and recommendations on a final report."""
    order = get_order(db, order_number)
    report = _find_report(db, order)
    if report is None:
        raise NotFoundError("Lab report not found")
    if report.status not in ("Final", "Reviewed"):
        raise BadRequestError("Only final lab reports can be reviewed")

    if payload.final_diagnosis is not None:
        report.final_diagnosis = payload.final_diagnosis
    if payload.recommendations is not None:
        report.recommendations = payload.recommendations
    now = datetime.utcnow()
    report.status = "Reviewed"
    report.reviewed_by = reviewer.id
    report.reviewed_at = now
    report.updated_at = now
    db.flush()
    logger.info("Lab report %s reviewed by %s", report.report_number, reviewer.id)
    return report
