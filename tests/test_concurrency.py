import pytest
from sqlalchemy import text
from sqlalchemy.orm.exc import StaleDataError

from backend.models.lab_order import LabOrder
from backend.services import lab_service


def test_order_version_bumps_on_line_change(place_order, advance, db_session):
    order = place_order("CBC001", "GLU001")
    lab_order = db_session.query(LabOrder).filter(LabOrder.order_number == order["orderId"]).one()
    before = lab_order.version_id

    advance(order["orderId"], "GLU001", "Collected")
    db_session.refresh(lab_order)
    assert lab_order.version_id == before + 1


def test_concurrent_writer_is_rejected(place_order, db_session, catalog):
    order = place_order("CBC001", "GLU001")
    lab_order = db_session.query(LabOrder).filter(LabOrder.order_number == order["orderId"]).one()

    db_session.execute(
        text("UPDATE lab_orders SET version_id = version_id + 1 WHERE id = :id"),
        {"id": lab_order.id},
    )

    with pytest.raises(StaleDataError):
        lab_service.update_test_status(db_session, order["orderId"], catalog["GLU001"].id, "Collected")
    db_session.rollback()


def test_conflict_maps_to_409(client, place_order, tech_headers, catalog, monkeypatch):
    order = place_order("GLU001")

    def stale(*_args, **_kwargs):
        raise StaleDataError("UPDATE statement on table 'lab_orders' expected to update 1 row(s); 0 were matched.")

    monkeypatch.setattr(lab_service, "update_test_status", stale)
    response = client.patch(
        f"/api/v1/lab/orders/{order['orderId']}/tests/{catalog['GLU001'].id}/status",
        json={"status": "Collected"},
        headers=tech_headers,
    )
    assert response.status_code == 409
    payload = response.json()
    assert payload["code"] == "CONFLICT"
    assert payload["success"] is False
