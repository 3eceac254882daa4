from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.database import Base

RESULT_FLAGS = ("Normal", "High", "Low", "Critical", "Abnormal")
RESULT_STATUSES = ("Pending", "Completed", "Reviewed", "Amended", "Cancelled")

# Statuses of a result whose value has been entered.
REPORTABLE_RESULT_STATUSES = ("Completed", "Reviewed", "Amended")


class LabResult(Base):
    __tablename__ = "lab_results"
    __table_args__ = (UniqueConstraint("order_id", "test_id", name="uq_lab_results_order_test"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("lab_orders.id", ondelete="CASCADE"), index=True, nullable=False)
    test_id: Mapped[int] = mapped_column(ForeignKey("lab_tests.id"), index=True, nullable=False)
    patient_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True, nullable=False)
    technician_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("users.id"), nullable=True)
    value: Mapped[Any | None] = mapped_column(JSON, nullable=True)
    unit: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_abnormal: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    flag: Mapped[str] = mapped_column(String(10), nullable=False, default="Normal")
    reference_range: Mapped[str | None] = mapped_column(String(255), nullable=True)
    interpretation: Mapped[str | None] = mapped_column(Text, nullable=True)
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    methodology: Mapped[str | None] = mapped_column(String(255), nullable=True)
    instrument: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(16), index=True, nullable=False, default="Pending")
    performed_at: Mapped[datetime | None] = mapped_column(DateTime, index=True, nullable=True)
    verified_by: Mapped[str | None] = mapped_column(String(36), ForeignKey("users.id"), nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    order = relationship("LabOrder", back_populates="results")
    test = relationship("LabTest")
    patient = relationship("User", foreign_keys=[patient_id])
    technician = relationship("User", foreign_keys=[technician_id])
    verifier = relationship("User", foreign_keys=[verified_by])
