#!/usr/bin/env python3
"""Find (and optionally repair) lab orders whose derived state has drifted."""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass, field

from sqlalchemy.orm import Session, selectinload

from backend.database import SessionLocal
from backend.logging import configure_logging
from backend.models.lab_order import LabOrder, LabOrderTest
from backend.models.lab_report import LabReport
from backend.models.lab_result import LabResult
from backend.services import lab_service

logger = logging.getLogger(__name__)


@dataclass
class ConsistencyResult:
    missing_placeholders: list[str] = field(default_factory=list)
    stale_order_status: list[str] = field(default_factory=list)
    missing_reports: list[str] = field(default_factory=list)
    stale_reports: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return (
            len(self.missing_placeholders)
            + len(self.stale_order_status)
            + len(self.missing_reports)
            + len(self.stale_reports)
        )


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Check lab orders for missing result placeholders, stale statuses and stale reports."
    )
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Repair what was found. Without this flag, runs in dry-run mode.",
    )
    return parser.parse_args()


def _expected_status(order: LabOrder) -> str:
    if order.status == "Cancelled":
        return order.status
    if order.all_tests_closed:
        return "Completed"
    # a Completed order with open lines is reopened
    if order.status == "Completed" or any(line.status != "Ordered" for line in order.tests):
        return "InProgress"
    return order.status


def check_consistency(db: Session, *, apply: bool = False) -> ConsistencyResult:
    """Scan every order. With ``apply`` the fixes are flushed; the caller commits."""
    result = ConsistencyResult()
    orders = (
        db.query(LabOrder)
        .options(selectinload(LabOrder.tests).selectinload(LabOrderTest.test))
        .order_by(LabOrder.id)
        .all()
    )

    for order in orders:
        existing = {
            test_id for (test_id,) in db.query(LabResult.test_id).filter(LabResult.order_id == order.id).all()
        }
        if any(line.test_id not in existing for line in order.tests):
            result.missing_placeholders.append(order.order_number)
            if apply:
                lab_service.create_lab_results_from_order(db, order)

        expected = _expected_status(order)
        if expected != order.status:
            result.stale_order_status.append(order.order_number)
            logger.warning("Order %s is %s but its tests say %s", order.order_number, order.status, expected)
            if apply:
                if expected == "Completed":
                    lab_service.update_lab_queue(db, order)
                else:
                    if order.status == "Completed":
                        order.completed_at = None
                    order.status = expected
                    db.flush()

        results = lab_service.reportable_results(db, order)
        counts = lab_service.summary_counts(results)
        report = db.query(LabReport).filter(LabReport.order_id == order.id).first()
        if report is None:
            if order.status == "Completed" and counts["completed_tests"]:
                result.missing_reports.append(order.order_number)
                if apply:
                    lab_service.create_or_update_lab_report(db, order)
        elif any(
            getattr(report, name) != value for name, value in counts.items()
        ) or report.status != lab_service.expected_report_status(counts, report.status):
            result.stale_reports.append(order.order_number)
            logger.warning("Report %s disagrees with the results of %s", report.report_number, order.order_number)
            if apply:
                lab_service.create_or_update_lab_report(db, order)

    return result


def main() -> int:
    args = _parse_args()
    configure_logging()

    db = SessionLocal()
    try:
        result = check_consistency(db, apply=args.apply)
        if args.apply:
            db.commit()
        else:
            db.rollback()
    finally:
        db.close()

    mode = "APPLY" if args.apply else "DRY-RUN"
    print(f"[{mode}] lab consistency summary")
    print(f"  missing_placeholders: {len(result.missing_placeholders)}")
    print(f"  stale_order_status: {len(result.stale_order_status)}")
    print(f"  missing_reports: {len(result.missing_reports)}")
    print(f"  stale_reports: {len(result.stale_reports)}")

    if result.total and not args.apply:
        print("Re-run with --apply to repair.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
