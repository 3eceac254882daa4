from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.database import Base

REPORT_STATUSES = ("Draft", "Preliminary", "Final", "Reviewed", "Amended")


class LabReport(Base):
    """Synthesized report of one lab order, refreshed in place as results arrive."""

    __tablename__ = "lab_reports"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    report_number: Mapped[str | None] = mapped_column(String(16), unique=True, index=True, nullable=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("lab_orders.id", ondelete="CASCADE"), unique=True, index=True, nullable=False
    )
    patient_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True, nullable=False)
    doctor_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
    total_tests: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_tests: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    abnormal_results: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    critical_results: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    test_results: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    abnormal_findings: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    clinical_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    final_diagnosis: Mapped[str | None] = mapped_column(Text, nullable=True)
    recommendations: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), index=True, nullable=False, default="Draft")
    created_by: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
    reviewed_by: Mapped[str | None] = mapped_column(String(36), ForeignKey("users.id"), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    reported_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    order = relationship("LabOrder", back_populates="report")
    patient = relationship("User", foreign_keys=[patient_id])
    doctor = relationship("User", foreign_keys=[doctor_id])

    @property
    def summary(self) -> dict[str, int]:
        return {
            "totalTests": self.total_tests,
            "completedTests": self.completed_tests,
            "abnormalResults": self.abnormal_results,
            "criticalResults": self.critical_results,
        }
