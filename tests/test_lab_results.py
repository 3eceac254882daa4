from decimal import Decimal

from backend.models.lab_report import LabReport
from backend.models.lab_result import LabResult
from backend.models.lab_test import LabTest


def _result_for(db_session, result_id: int) -> LabResult:
    result = db_session.get(LabResult, result_id)
    db_session.refresh(result)
    return result


def test_result_rejected_until_specimen_collected(place_order, enter_result, db_session):
    order = place_order("GLU001")

    response = enter_result(order["orderId"], "GLU001", 85)
    assert response.status_code == 400
    assert response.json()["message"] == "Test is not ready for result entry"

    results = db_session.query(LabResult).all()
    assert len(results) == 1
    assert results[0].status == "Pending"
    assert results[0].value is None
    assert results[0].technician_id is None


def test_result_for_unknown_order_or_test(place_order, enter_result):
    order = place_order("GLU001")
    assert enter_result("LAB999999", "GLU001", 85).status_code == 404
    assert enter_result(order["orderId"], "TSH001", 1.2).status_code == 404


def test_numeric_results_are_flagged_against_range(client, place_order, advance, enter_result):
    cases = [(65, "Low", True), (120, "High", True), (85, "Normal", False), (70, "Normal", False)]
    for value, flag, abnormal in cases:
        order = place_order("GLU001")
        advance(order["orderId"], "GLU001", "Collected")

        response = enter_result(order["orderId"], "GLU001", value)
        assert response.status_code == 201, response.text
        result = response.json()["result"]
        assert result["result"]["flag"] == flag
        assert result["result"]["isAbnormal"] is abnormal
        assert result["result"]["unit"] == "mg/dL"
        assert result["referenceRange"] == "70-100 mg/dL"
        assert result["status"] == "Completed"


def test_text_range_keeps_requested_flag(place_order, advance, enter_result):
    order = place_order("CBC001")
    advance(order["orderId"], "CBC001", "InProgress")

    response = enter_result(
        order["orderId"],
        "CBC001",
        {"wbc": 13.2, "hemoglobin": 11.1},
        flag="Abnormal",
        interpretation="Leukocytosis with mild anemia",
    )
    assert response.status_code == 201
    result = response.json()["result"]
    assert result["result"]["flag"] == "Abnormal"
    assert result["result"]["isAbnormal"] is True
    assert result["result"]["value"] == {"wbc": 13.2, "hemoglobin": 11.1}


def test_result_fills_existing_placeholder(place_order, advance, enter_result, db_session):
    order = place_order("TSH001")
    placeholder_id = db_session.query(LabResult.id).scalar()
    advance(order["orderId"], "TSH001", "Collected")

    response = enter_result(order["orderId"], "TSH001", 2.1, methodology="CLIA", instrument="Cobas e411")
    assert response.json()["result"]["id"] == placeholder_id
    assert db_session.query(LabResult).count() == 1

    result = _result_for(db_session, placeholder_id)
    assert result.value == 2.1
    assert result.methodology == "CLIA"
    assert result.performed_at is not None


def test_partial_results_give_preliminary_report(place_order, advance, enter_result, db_session):
    order = place_order("GLU001", "TSH001")
    advance(order["orderId"], "GLU001", "Collected")
    enter_result(order["orderId"], "GLU001", 90)

    report = db_session.query(LabReport).one()
    assert report.status == "Preliminary"
    assert report.total_tests == 2
    assert report.completed_tests == 1
    assert report.report_number.startswith("RPT")


def test_two_test_order_end_to_end(client, db_session, doctor_headers, tech_headers, patient, advance, enter_result):
    test_a = LabTest(
        test_code="NA001", test_name="Serum Sodium", category="Chemistry", range_min=135, range_max=145,
        range_unit="mmol/L", price=Decimal("15.00"), turnaround_time=1, specimen="Blood",
    )
    test_b = LabTest(
        test_code="K001", test_name="Serum Potassium", category="Chemistry", range_min=3.5, range_max=5.1,
        range_unit="mmol/L", price=Decimal("20.00"), turnaround_time=1, specimen="Blood",
    )
    db_session.add_all([test_a, test_b])
    db_session.commit()

    created = client.post(
        "/api/v1/lab/orders",
        json={"patientId": patient.id, "tests": [{"testId": test_a.id}, {"testId": test_b.id}]},
        headers=doctor_headers,
    )
    assert created.status_code == 201
    order = created.json()["order"]
    order_id = order["orderId"]
    assert order["totalAmount"] == 35.0
    assert [line["status"] for line in order["tests"]] == ["Ordered", "Ordered"]
    assert db_session.query(LabResult).filter(LabResult.status == "Pending").count() == 2

    for test in (test_a, test_b):
        client.patch(
            f"/api/v1/lab/orders/{order_id}/tests/{test.id}/status",
            json={"status": "Collected"},
            headers=tech_headers,
        )

    first = client.post(
        "/api/v1/lab/results",
        json={"orderId": order_id, "testId": test_a.id, "result": {"value": 140}},
        headers=tech_headers,
    )
    assert first.status_code == 201
    after_first = client.get(f"/api/v1/lab/orders/{order_id}", headers=tech_headers).json()["order"]
    assert after_first["status"] in ("Pending", "InProgress")
    assert after_first["tests"][0]["status"] == "Completed"

    second = client.post(
        "/api/v1/lab/results",
        json={"orderId": order_id, "testId": test_b.id, "result": {"value": 4.2}},
        headers=tech_headers,
    )
    assert second.status_code == 201
    after_second = client.get(f"/api/v1/lab/orders/{order_id}", headers=tech_headers).json()["order"]
    assert after_second["status"] == "Completed"
    assert after_second["completedAt"] is not None

    report = client.get(f"/api/v1/lab/reports/{order_id}", headers=doctor_headers).json()["report"]["labReport"]
    assert report["status"] == "Final"
    assert report["summary"]["totalTests"] == 2
    assert report["summary"]["completedTests"] == 2
    assert report["summary"]["abnormalResults"] == 0


def test_completed_line_cannot_take_second_result(place_order, advance, enter_result):
    order = place_order("GLU001", "TSH001")
    advance(order["orderId"], "GLU001", "Collected")
    assert enter_result(order["orderId"], "GLU001", 90).status_code == 201

    again = enter_result(order["orderId"], "GLU001", 95)
    assert again.status_code == 400


def test_list_results_filters_and_paginates(client, place_order, advance, enter_result, tech_headers):
    first = place_order("GLU001", "TSH001")
    advance(first["orderId"], "GLU001", "Collected")
    enter_result(first["orderId"], "GLU001", 88)

    response = client.get("/api/v1/lab/results", params={"status": "Completed"}, headers=tech_headers)
    payload = response.json()
    assert payload["totalCount"] == 1
    assert payload["results"][0]["orderId"] == first["orderId"]

    paged = client.get(
        "/api/v1/lab/results", params={"orderId": first["orderId"], "limit": 1, "page": 2}, headers=tech_headers
    ).json()
    assert paged["totalCount"] == 2
    assert paged["totalPages"] == 2
    assert paged["count"] == 1


def test_doctor_verifies_completed_result(client, place_order, advance, enter_result, doctor_headers, db_session):
    order = place_order("GLU001")
    advance(order["orderId"], "GLU001", "Collected")
    result_id = enter_result(order["orderId"], "GLU001", 130).json()["result"]["id"]

    response = client.patch(f"/api/v1/lab/results/{result_id}/verify", headers=doctor_headers)
    assert response.status_code == 200
    verified = response.json()["result"]
    assert verified["status"] == "Reviewed"
    assert verified["verifiedBy"] is not None

    report = db_session.query(LabReport).one()
    db_session.refresh(report)
    assert report.status == "Final"
    assert report.abnormal_results == 1


def test_pending_result_cannot_be_verified(client, place_order, doctor_headers, db_session):
    place_order("GLU001")
    result_id = db_session.query(LabResult.id).scalar()
    response = client.patch(f"/api/v1/lab/results/{result_id}/verify", headers=doctor_headers)
    assert response.status_code == 400


def test_technician_cannot_verify(client, place_order, tech_headers, db_session):
    place_order("GLU001")
    result_id = db_session.query(LabResult.id).scalar()
    assert client.patch(f"/api/v1/lab/results/{result_id}/verify", headers=tech_headers).status_code == 403


def test_non_finite_values_are_rejected_before_writing(
    client, place_order, advance, tech_headers, catalog, db_session
):
    order = place_order("GLU001", "CBC001")
    advance(order["orderId"], "GLU001", "Collected")
    advance(order["orderId"], "CBC001", "Collected")

    # 1e999 is valid JSON but overflows to an infinite float
    bodies = [
        '{"orderId": "%s", "testId": %d, "result": {"value": 1e999}}' % (order["orderId"], catalog["GLU001"].id),
        '{"orderId": "%s", "testId": %d, "result": {"value": {"wbc": -1e999}}}'
        % (order["orderId"], catalog["CBC001"].id),
    ]
    for body in bodies:
        response = client.post(
            "/api/v1/lab/results",
            content=body,
            headers={**tech_headers, "Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    assert {r.status for r in db_session.query(LabResult).all()} == {"Pending"}
    assert db_session.query(LabReport).count() == 0
    assert client.get(f"/api/v1/lab/reports/{order['orderId']}", headers=tech_headers).status_code == 200
    assert client.get("/api/v1/lab/results", headers=tech_headers).status_code == 200
