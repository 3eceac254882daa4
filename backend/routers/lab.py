from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from backend.database import get_db, unit_of_work
from backend.models.user import User
from backend.routers.deps import get_current_user, require_roles
from backend.routers.serializers import lab_test_to_dict, order_to_dict
from backend.schemas.lab import LabOrderCreate, OrderStatus, Priority, TestCategory, TestStatus, TestStatusUpdate
from backend.services import lab_service
from backend.services.catalog import search_lab_tests
from backend.services.lab_queue import build_lab_queue, day_bounds, lab_statistics

router = APIRouter(prefix="/api/v1/lab", tags=["lab"])


@router.get("/tests")
def list_tests(
    category: TestCategory | None = None,
    search: str | None = None,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    tests = search_lab_tests(db, category=category, search=search)
    return {"success": True, "count": len(tests), "tests": [lab_test_to_dict(t) for t in tests]}


@router.post("/orders", status_code=201)
def create_order(
    payload: LabOrderCreate,
    db: Session = Depends(get_db),
    doctor: User = Depends(require_roles("Doctor")),
):
    with unit_of_work(db):
        order = lab_service.create_lab_order(db, doctor, payload)
        order_number = order.order_number

    order = lab_service.get_order(db, order_number)
    return {"success": True, "message": "Lab order created successfully", "order": order_to_dict(order)}


@router.get("/orders/{order_id}")
def get_order(
    order_id: str,
    db: Session = Depends(get_db),
    _: User = Depends(require_roles("Doctor", "Technician", "Admin")),
):
    order = lab_service.get_order(db, order_id)
    return {"success": True, "order": order_to_dict(order)}


@router.get("/queue")
def lab_queue(
    status: OrderStatus | None = None,
    test_status: TestStatus | None = Query(default=None, alias="testStatus"),
    priority: Priority | None = None,
    category: TestCategory | None = None,
    db: Session = Depends(get_db),
    _: User = Depends(require_roles("Doctor", "Technician", "Admin")),
):
    orders = build_lab_queue(db, status=status, test_status=test_status, priority=priority, category=category)
    return {"success": True, "count": len(orders), "orders": [order_to_dict(o) for o in orders]}


@router.patch("/orders/{order_id}/tests/{test_id}/status")
def update_test_status(
    order_id: str,
    test_id: int,
    payload: TestStatusUpdate,
    db: Session = Depends(get_db),
    _: User = Depends(require_roles("Technician", "Admin")),
):
    with unit_of_work(db):
        lab_service.update_test_status(db, order_id, test_id, payload.status, payload.notes)

    order = lab_service.get_order(db, order_id)
    return {"success": True, "message": "Test status updated successfully", "order": order_to_dict(order)}


@router.get("/stats")
def stats(
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
    db: Session = Depends(get_db),
    _: User = Depends(require_roles("Admin", "Technician")),
):
    start, end = day_bounds(start_date, end_date)
    return {"success": True, **lab_statistics(db, start, end)}
