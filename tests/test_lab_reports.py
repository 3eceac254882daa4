from backend.models.lab_order import LabOrder
from backend.models.lab_report import LabReport
from backend.services import lab_service


def _order(db_session, order_number: str) -> LabOrder:
    return db_session.query(LabOrder).filter(LabOrder.order_number == order_number).one()


def test_synthesis_is_idempotent(place_order, advance, enter_result, db_session):
    order = place_order("GLU001", "TSH001")
    advance(order["orderId"], "GLU001", "Collected")
    advance(order["orderId"], "TSH001", "Collected")
    enter_result(order["orderId"], "GLU001", 150, interpretation="Consistent with hyperglycemia")
    enter_result(order["orderId"], "TSH001", 2.0)

    first = db_session.query(LabReport).one()
    snapshot = (first.report_number, first.summary, first.test_results, first.abnormal_findings, first.clinical_summary)

    lab_order = _order(db_session, order["orderId"])
    again = lab_service.create_or_update_lab_report(db_session, lab_order)
    db_session.commit()

    assert db_session.query(LabReport).count() == 1
    assert again.id == first.id
    assert (again.report_number, again.summary, again.test_results, again.abnormal_findings, again.clinical_summary) == snapshot


def test_report_counts_and_findings(place_order, advance, enter_result, db_session):
    order = place_order("GLU001", "TSH001", "CBC001")
    for code in ("GLU001", "TSH001", "CBC001"):
        advance(order["orderId"], code, "Collected")
    enter_result(order["orderId"], "GLU001", 150, interpretation="Consistent with hyperglycemia")
    enter_result(order["orderId"], "TSH001", 0.1)
    enter_result(order["orderId"], "CBC001", "Within normal limits")

    report = db_session.query(LabReport).one()
    db_session.refresh(report)
    assert report.status == "Final"
    assert report.summary == {"totalTests": 3, "completedTests": 3, "abnormalResults": 2, "criticalResults": 0}
    assert [f["testName"] for f in report.abnormal_findings] == [
        "Fasting Blood Glucose",
        "Thyroid Stimulating Hormone (TSH)",
    ]
    assert report.abnormal_findings[0]["significance"] == "Consistent with hyperglycemia"
    assert report.abnormal_findings[1]["significance"] == "See clinical correlation"
    assert len(report.test_results) == 3
    assert report.test_results[0]["summary"] == "Fasting Blood Glucose: 150 mg/dL (High)"


def test_clinical_summary_text(place_order, advance, enter_result, db_session):
    order = place_order("GLU001", "TSH001")
    advance(order["orderId"], "GLU001", "Collected")
    advance(order["orderId"], "TSH001", "Collected")
    enter_result(order["orderId"], "GLU001", 150, interpretation="Consistent with hyperglycemia")
    enter_result(order["orderId"], "TSH001", 2.0)

    summary = db_session.query(LabReport).one().clinical_summary
    assert summary.startswith("Laboratory Results Summary:")
    assert "Normal Results (1):\n- Thyroid Stimulating Hormone (TSH): 2.0 mIU/L" in summary
    assert "Abnormal Results (1):\n- Fasting Blood Glucose: 150 mg/dL (High)" in summary
    assert "  Interpretation: Consistent with hyperglycemia" in summary
    assert summary.endswith("Please correlate with clinical findings.")


def test_all_normal_summary(place_order, advance, enter_result, db_session):
    order = place_order("GLU001")
    advance(order["orderId"], "GLU001", "Collected")
    enter_result(order["orderId"], "GLU001", 80)

    summary = db_session.query(LabReport).one().clinical_summary
    assert "All test results are within normal limits." in summary
    assert "Abnormal Results" not in summary


def test_cancelled_tests_are_left_out_of_report(place_order, advance, enter_result, db_session):
    order = place_order("GLU001", "TSH001")
    advance(order["orderId"], "GLU001", "Collected")
    enter_result(order["orderId"], "GLU001", 90)
    advance(order["orderId"], "TSH001", "Cancelled")

    report = db_session.query(LabReport).one()
    db_session.refresh(report)
    assert report.status == "Final"
    assert report.total_tests == 1
    assert report.completed_tests == 1


def test_no_report_without_completed_results(place_order, advance, db_session):
    order = place_order("GLU001")
    advance(order["orderId"], "GLU001", "Cancelled")

    assert _order(db_session, order["orderId"]).status == "Completed"
    assert db_session.query(LabReport).count() == 0


def test_report_view_for_order(client, place_order, advance, enter_result, doctor_headers):
    order = place_order("GLU001", "TSH001")
    advance(order["orderId"], "GLU001", "Collected")
    enter_result(order["orderId"], "GLU001", 60)

    response = client.get(f"/api/v1/lab/reports/{order['orderId']}", headers=doctor_headers)
    assert response.status_code == 200
    report = response.json()["report"]
    assert report["order"]["orderId"] == order["orderId"]
    assert report["patient"]["lastName"] == "Doe"
    assert report["clinicalInfo"] == "Routine check-up"
    tests = {t["testName"]: t for t in report["tests"]}
    assert tests["Fasting Blood Glucose"]["result"]["result"]["flag"] == "Low"
    assert tests["Fasting Blood Glucose"]["normalRange"] == {
        "min": 70.0,
        "max": 100.0,
        "unit": "mg/dL",
        "textRange": None,
        "gender": "All",
    }
    assert tests["Thyroid Stimulating Hormone (TSH)"]["result"]["status"] == "Pending"
    assert report["labReport"]["status"] == "Preliminary"


def test_patient_sees_only_own_report(client, place_order, user_factory, patient_headers, db_session):
    own = place_order("GLU001")
    other_patient = user_factory("Patient", gender="Male")
    other = place_order("GLU001", patient_id=other_patient.id)

    assert client.get(f"/api/v1/lab/reports/{own['orderId']}", headers=patient_headers).status_code == 200
    forbidden = client.get(f"/api/v1/lab/reports/{other['orderId']}", headers=patient_headers)
    assert forbidden.status_code == 403
    assert forbidden.json()["code"] == "FORBIDDEN"


def test_list_reports(client, place_order, advance, enter_result, admin_headers):
    order = place_order("GLU001")
    advance(order["orderId"], "GLU001", "Collected")
    enter_result(order["orderId"], "GLU001", 90)

    payload = client.get("/api/v1/lab/reports", params={"status": "Final"}, headers=admin_headers).json()
    assert payload["totalCount"] == 1
    assert payload["reports"][0]["orderId"] == order["orderId"]
    assert payload["reports"][0]["summary"]["completedTests"] == 1

    empty = client.get("/api/v1/lab/reports", params={"status": "Preliminary"}, headers=admin_headers).json()
    assert empty["totalCount"] == 0


def test_cancelling_a_line_refreshes_preliminary_report(place_order, advance, enter_result, db_session):
    order = place_order("GLU001", "TSH001", "ESR001")
    advance(order["orderId"], "GLU001", "Collected")
    enter_result(order["orderId"], "GLU001", 90)
    report = db_session.query(LabReport).one()
    assert report.total_tests == 3

    assert advance(order["orderId"], "TSH001", "Cancelled").status_code == 200

    db_session.refresh(report)
    assert _order(db_session, order["orderId"]).status == "InProgress"
    assert report.status == "Preliminary"
    assert report.total_tests == 2
    assert report.completed_tests == 1


def test_doctor_reviews_final_report(client, place_order, advance, enter_result, doctor_headers, doctor):
    order = place_order("GLU001")
    advance(order["orderId"], "GLU001", "Collected")
    result_id = enter_result(order["orderId"], "GLU001", 150).json()["result"]["id"]

    response = client.patch(
        f"/api/v1/lab/reports/{order['orderId']}",
        json={"finalDiagnosis": "Type 2 diabetes mellitus", "recommendations": "Repeat HbA1c in 3 months"},
        headers=doctor_headers,
    )
    assert response.status_code == 200, response.text
    reviewed = response.json()["report"]
    assert reviewed["status"] == "Reviewed"
    assert reviewed["finalDiagnosis"] == "Type 2 diabetes mellitus"
    assert reviewed["reviewedBy"] == doctor.id
    assert reviewed["reviewedAt"] is not None

    # verifying a result re-synthesizes the report but keeps the review
    assert client.patch(f"/api/v1/lab/results/{result_id}/verify", headers=doctor_headers).status_code == 200
    report = client.get(f"/api/v1/lab/reports/{order['orderId']}", headers=doctor_headers).json()["report"]["labReport"]
    assert report["status"] == "Reviewed"
    assert report["finalDiagnosis"] == "Type 2 diabetes mellitus"
    assert report["recommendations"] == "Repeat HbA1c in 3 months"
    assert report["summary"]["abnormalResults"] == 1


def test_review_requires_final_report(client, place_order, advance, enter_result, doctor_headers, tech_headers):
    order = place_order("GLU001", "TSH001")
    url = f"/api/v1/lab/reports/{order['orderId']}"
    body = {"finalDiagnosis": "Pending workup"}

    missing = client.patch(url, json=body, headers=doctor_headers)
    assert missing.status_code == 404
    assert missing.json()["message"] == "Lab report not found"

    advance(order["orderId"], "GLU001", "Collected")
    enter_result(order["orderId"], "GLU001", 90)
    preliminary = client.patch(url, json=body, headers=doctor_headers)
    assert preliminary.status_code == 400
    assert preliminary.json()["message"] == "Only final lab reports can be reviewed"

    assert client.patch(url, json=body, headers=tech_headers).status_code == 403
