from collections import defaultdict
from datetime import date, datetime, time

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from backend.models.lab_order import LabOrder, LabOrderTest
from backend.models.lab_test import LabTest

ACTIVE_ORDER_STATUSES = ("Pending", "InProgress")
PRIORITY_RANK = {"STAT": 0, "Urgent": 1, "Routine": 2}


def day_bounds(start: date | None, end: date | None) -> tuple[datetime | None, datetime | None]:
    """Turn an inclusive date range into datetime bounds."""
    return (
        datetime.combine(start, time.min) if start else None,
        datetime.combine(end, time.max) if end else None,
    )


def _urgency(order: LabOrder) -> int:
    lowest = len(PRIORITY_RANK)
    return min((PRIORITY_RANK.get(line.priority, lowest) for line in order.tests), default=lowest)


def build_lab_queue(
    db: Session,
    status: str | None = None,
    test_status: str | None = None,
    priority: str | None = None,
    category: str | None = None,
) -> list[LabOrder]:
    """Orders waiting on the lab, most urgent first.

    ``status`` filters on the order-level status and defaults to the active
    ones; ``test_status``, ``priority`` and ``category`` keep orders that have
    at least one matching test line.
    """
    query = db.query(LabOrder).options(
        selectinload(LabOrder.tests).selectinload(LabOrderTest.test),
        selectinload(LabOrder.patient),
        selectinload(LabOrder.doctor),
    )
    if status:
        query = query.filter(LabOrder.status == status)
    else:
        query = query.filter(LabOrder.status.in_(ACTIVE_ORDER_STATUSES))
    if test_status:
        query = query.filter(LabOrder.tests.any(LabOrderTest.status == test_status))
    if priority:
        query = query.filter(LabOrder.tests.any(LabOrderTest.priority == priority))
    if category:
        query = query.filter(LabOrder.tests.any(LabOrderTest.test.has(LabTest.category == category)))

    orders = query.all()
    orders.sort(key=lambda order: (_urgency(order), order.ordered_at))
    return orders


def lab_statistics(db: Session, start: datetime | None = None, end: datetime | None = None) -> dict:
    query = db.query(LabOrder)
    if start:
        query = query.filter(LabOrder.ordered_at >= start)
    if end:
        query = query.filter(LabOrder.ordered_at <= end)

    totals = query.with_entities(
        func.count(LabOrder.id),
        func.coalesce(func.sum(LabOrder.total_amount), 0),
    ).one()
    by_status: dict[str, int] = defaultdict(int)
    for order_status, count in query.with_entities(LabOrder.status, func.count(LabOrder.id)).group_by(LabOrder.status):
        by_status[order_status] = count

    category_rows = (
        query.join(LabOrderTest, LabOrderTest.order_id == LabOrder.id)
        .join(LabTest, LabTest.id == LabOrderTest.test_id)
        .with_entities(LabTest.category, func.count(LabOrderTest.id))
        .group_by(LabTest.category)
        .order_by(LabTest.category)
        .all()
    )

    return {
        "stats": {
            "totalOrders": totals[0],
            "completedOrders": by_status["Completed"],
            "pendingOrders": by_status["Pending"],
            "inProgressOrders": by_status["InProgress"],
            "totalRevenue": float(totals[1] or 0),
        },
        "categoryStats": [{"category": category, "count": count} for category, count in category_rows],
    }
