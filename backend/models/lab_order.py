from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.database import Base

ORDER_STATUSES = ("Pending", "InProgress", "Completed", "Cancelled")
TEST_STATUSES = ("Ordered", "Collected", "InProgress", "Completed", "Cancelled")
PRIORITIES = ("Routine", "Urgent", "STAT")

# Test lines in these states no longer hold an order open.
CLOSED_TEST_STATUSES = ("Completed", "Cancelled")


class LabOrder(Base):
    __tablename__ = "lab_orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_number: Mapped[str | None] = mapped_column(String(16), unique=True, index=True, nullable=True)
    patient_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True, nullable=False)
    doctor_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True, nullable=False)
    encounter_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    clinical_info: Mapped[str | None] = mapped_column(Text, nullable=True)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[str] = mapped_column(String(16), index=True, nullable=False, default="Pending")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    ordered_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    patient = relationship("User", foreign_keys=[patient_id])
    doctor = relationship("User", foreign_keys=[doctor_id])
    tests = relationship(
        "LabOrderTest",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="LabOrderTest.id",
    )
    results = relationship("LabResult", back_populates="order", cascade="all, delete-orphan")
    report = relationship("LabReport", back_populates="order", uselist=False, cascade="all, delete-orphan")

    def find_line(self, test_id: int) -> "LabOrderTest | None":
        return next((line for line in self.tests if line.test_id == test_id), None)

    @property
    def all_tests_closed(self) -> bool:
        return all(line.status in CLOSED_TEST_STATUSES for line in self.tests)

    def touch(self) -> None:
        """Mark the order row dirty so a version check guards line changes."""
        self.updated_at = datetime.utcnow()


class LabOrderTest(Base):
    __tablename__ = "lab_order_tests"
    __table_args__ = (UniqueConstraint("order_id", "test_id", name="uq_lab_order_tests_order_test"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("lab_orders.id", ondelete="CASCADE"), index=True, nullable=False)
    test_id: Mapped[int] = mapped_column(ForeignKey("lab_tests.id"), index=True, nullable=False)
    priority: Mapped[str] = mapped_column(String(10), nullable=False, default="Routine")
    instructions: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(String(16), index=True, nullable=False, default="Ordered")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    collected_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    order = relationship("LabOrder", back_populates="tests")
    test = relationship("LabTest")
