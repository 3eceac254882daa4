from decimal import Decimal

from backend.models.lab_test import LabTest
from backend.seed.lab_test_seed import LAB_TESTS, upsert_lab_tests
from backend.services.catalog import search_lab_tests


def test_seed_is_idempotent(db_session):
    assert upsert_lab_tests(db_session) == len(LAB_TESTS)
    db_session.commit()
    assert upsert_lab_tests(db_session) == 0
    db_session.commit()

    assert db_session.query(LabTest).count() == len(LAB_TESTS)
    glucose = db_session.query(LabTest).filter(LabTest.test_code == "GLU001").one()
    assert glucose.price == Decimal("12.00")
    assert (glucose.range_min, glucose.range_max, glucose.range_unit) == (70, 100, "mg/dL")


def test_list_orders_by_category_then_name(db_session, catalog):
    tests = search_lab_tests(db_session)
    keys = [(t.category, t.test_name) for t in tests]
    assert keys == sorted(keys)
    assert len(tests) == len(LAB_TESTS)


def test_inactive_tests_are_hidden(db_session, catalog):
    catalog["CT001"].is_active = False
    db_session.commit()

    codes = {t.test_code for t in search_lab_tests(db_session, category="Radiology")}
    assert codes == {"XRAY001"}


def test_fuzzy_search_by_name_and_code(db_session, catalog):
    by_name = search_lab_tests(db_session, search="glucose")
    assert by_name[0].test_code == "GLU001"

    by_code = search_lab_tests(db_session, search="TSH001")
    assert by_code[0].test_code == "TSH001"

    typo = search_lab_tests(db_session, search="lipid pannel")
    assert typo[0].test_code == "LIPID001"


def test_search_without_match(db_session, catalog):
    assert search_lab_tests(db_session, search="zzqqxxw") == []


def test_tests_endpoint(client, catalog, patient_headers):
    response = client.get("/api/v1/lab/tests", params={"category": "Immunology"}, headers=patient_headers)
    assert response.status_code == 200
    payload = response.json()
    assert payload["count"] == 2
    tsh = next(t for t in payload["tests"] if t["testCode"] == "TSH001")
    assert tsh["price"] == 18.0
    assert tsh["normalRange"]["unit"] == "mIU/L"
    assert tsh["turnaroundTime"] == 6


def test_tests_endpoint_rejects_unknown_category(client, catalog, patient_headers):
    response = client.get("/api/v1/lab/tests", params={"category": "Astrology"}, headers=patient_headers)
    assert response.status_code == 400
