from backend.models.lab_order import LabOrder
from backend.models.lab_report import LabReport
from backend.models.lab_result import LabResult
from backend.scripts.check_lab_consistency import check_consistency


def _order(db_session, order_number: str) -> LabOrder:
    return db_session.query(LabOrder).filter(LabOrder.order_number == order_number).one()


def test_clean_database_reports_nothing(place_order, advance, enter_result, db_session):
    order = place_order("GLU001", "TSH001")
    advance(order["orderId"], "GLU001", "Collected")
    enter_result(order["orderId"], "GLU001", 90)

    result = check_consistency(db_session)
    assert result.total == 0


def test_missing_placeholders_are_recreated(place_order, db_session):
    order = place_order("GLU001", "TSH001")
    db_session.query(LabResult).delete()
    db_session.commit()

    dry_run = check_consistency(db_session)
    db_session.rollback()
    assert dry_run.missing_placeholders == [order["orderId"]]
    assert db_session.query(LabResult).count() == 0

    check_consistency(db_session, apply=True)
    db_session.commit()
    assert db_session.query(LabResult).filter(LabResult.status == "Pending").count() == 2


def test_stale_order_status_is_completed(place_order, db_session):
    order = place_order("GLU001")
    lab_order = _order(db_session, order["orderId"])
    lab_order.tests[0].status = "Cancelled"
    db_session.commit()

    result = check_consistency(db_session, apply=True)
    db_session.commit()
    assert result.stale_order_status == [order["orderId"]]
    db_session.refresh(lab_order)
    assert lab_order.status == "Completed"
    assert lab_order.completed_at is not None


def test_started_order_moves_to_in_progress(place_order, db_session):
    order = place_order("GLU001", "TSH001")
    lab_order = _order(db_session, order["orderId"])
    lab_order.tests[0].status = "Collected"
    db_session.commit()

    check_consistency(db_session, apply=True)
    db_session.commit()
    db_session.refresh(lab_order)
    assert lab_order.status == "InProgress"


def test_missing_and_stale_reports_are_rebuilt(place_order, advance, enter_result, db_session):
    missing = place_order("GLU001")
    advance(missing["orderId"], "GLU001", "Collected")
    enter_result(missing["orderId"], "GLU001", 90)
    stale = place_order("TSH001")
    advance(stale["orderId"], "TSH001", "Collected")
    enter_result(stale["orderId"], "TSH001", 9.9)

    db_session.query(LabReport).filter(LabReport.order_id == _order(db_session, missing["orderId"]).id).delete()
    stale_report = db_session.query(LabReport).filter(LabReport.order_id == _order(db_session, stale["orderId"]).id).one()
    stale_report.abnormal_results = 0
    db_session.commit()

    result = check_consistency(db_session, apply=True)
    db_session.commit()
    assert result.missing_reports == [missing["orderId"]]
    assert result.stale_reports == [stale["orderId"]]

    assert db_session.query(LabReport).count() == 2
    db_session.refresh(stale_report)
    assert stale_report.abnormal_results == 1
    assert check_consistency(db_session).total == 0


def test_completed_order_with_open_lines_is_reopened(place_order, db_session):
    order = place_order("GLU001", "TSH001")
    lab_order = _order(db_session, order["orderId"])
    lab_order.status = "Completed"
    db_session.commit()

    dry_run = check_consistency(db_session)
    db_session.rollback()
    assert dry_run.stale_order_status == [order["orderId"]]

    check_consistency(db_session, apply=True)
    db_session.commit()
    db_session.refresh(lab_order)
    assert lab_order.status == "InProgress"
    assert lab_order.completed_at is None
    assert check_consistency(db_session).total == 0


def test_report_status_is_compared_with_completion(place_order, advance, enter_result, db_session):
    order = place_order("GLU001")
    advance(order["orderId"], "GLU001", "Collected")
    enter_result(order["orderId"], "GLU001", 90)

    report = db_session.query(LabReport).one()
    report.status = "Preliminary"
    db_session.commit()

    result = check_consistency(db_session, apply=True)
    db_session.commit()
    assert result.stale_reports == [order["orderId"]]
    db_session.refresh(report)
    assert report.status == "Final"
