from datetime import date, datetime

from backend.models.lab_order import LabOrder, LabOrderTest
from backend.models.lab_report import LabReport
from backend.models.lab_result import LabResult
from backend.models.lab_test import LabTest
from backend.models.user import User


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value else None


def user_brief(user: User | None) -> dict | None:
    if user is None:
        return None
    return {
        "id": user.id,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "gender": user.gender,
        "dateOfBirth": _iso(user.date_of_birth),
        "department": user.department,
    }


def normal_range(test: LabTest) -> dict:
    return {
        "min": test.range_min,
        "max": test.range_max,
        "unit": test.range_unit,
        "textRange": test.range_text,
        "gender": test.range_gender,
    }


def lab_test_to_dict(test: LabTest) -> dict:
    return {
        "id": test.id,
        "testCode": test.test_code,
        "testName": test.test_name,
        "category": test.category,
        "department": test.department,
        "normalRange": normal_range(test),
        "price": float(test.price),
        "turnaroundTime": test.turnaround_time,
        "specimen": test.specimen,
        "instructions": test.instructions,
        "isActive": test.is_active,
    }


def order_line_to_dict(line: LabOrderTest) -> dict:
    test = line.test
    return {
        "id": line.id,
        "testId": line.test_id,
        "testName": test.test_name if test else "Unknown Test",
        "category": test.category if test else "Unknown",
        "specimen": test.specimen if test else "Unknown",
        "turnaroundTime": test.turnaround_time if test else None,
        "priority": line.priority,
        "instructions": line.instructions,
        "status": line.status,
        "notes": line.notes,
        "collectedAt": _iso(line.collected_at),
        "completedAt": _iso(line.completed_at),
    }


def order_to_dict(order: LabOrder) -> dict:
    return {
        "orderId": order.order_number,
        "patient": user_brief(order.patient),
        "doctor": user_brief(order.doctor),
        "encounterId": order.encounter_id,
        "clinicalInfo": order.clinical_info,
        "totalAmount": float(order.total_amount),
        "status": order.status,
        "orderedAt": _iso(order.ordered_at),
        "completedAt": _iso(order.completed_at),
        "tests": [order_line_to_dict(line) for line in order.tests],
    }


def result_to_dict(result: LabResult) -> dict:
    return {
        "id": result.id,
        "orderId": result.order.order_number if result.order else None,
        "testId": result.test_id,
        "testName": result.test.test_name if result.test else None,
        "patientId": result.patient_id,
        "technicianId": result.technician_id,
        "result": {
            "value": result.value,
            "unit": result.unit,
            "isAbnormal": result.is_abnormal,
            "flag": result.flag,
        },
        "referenceRange": result.reference_range,
        "interpretation": result.interpretation,
        "comments": result.comments,
        "methodology": result.methodology,
        "instrument": result.instrument,
        "status": result.status,
        "performedAt": _iso(result.performed_at),
        "verifiedBy": result.verified_by,
        "verifiedAt": _iso(result.verified_at),
    }


def report_to_dict(report: LabReport) -> dict:
    return {
        "reportId": report.report_number,
        "orderId": report.order.order_number if report.order else None,
        "patientId": report.patient_id,
        "doctorId": report.doctor_id,
        "summary": report.summary,
        "testResults": report.test_results,
        "abnormalFindings": report.abnormal_findings,
        "clinicalSummary": report.clinical_summary,
        "finalDiagnosis": report.final_diagnosis,
        "recommendations": report.recommendations,
        "reviewedBy": report.reviewed_by,
        "reviewedAt": _iso(report.reviewed_at),
        "status": report.status,
        "reportedAt": _iso(report.reported_at),
        "updatedAt": _iso(report.updated_at),
    }
