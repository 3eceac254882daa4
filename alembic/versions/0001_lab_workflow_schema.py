"""lab workflow schema

Revision ID: 0001_lab_workflow_schema
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "0001_lab_workflow_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("gender", sa.String(length=10), nullable=True),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("department", sa.String(length=100), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"], unique=False)

    op.create_table(
        "user_sessions",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_user_sessions_expires_at", "user_sessions", ["expires_at"], unique=False)
    op.create_index("ix_user_sessions_user_id", "user_sessions", ["user_id"], unique=False)

    op.create_table(
        "lab_tests",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("test_code", sa.String(length=32), nullable=False),
        sa.Column("test_name", sa.String(length=255), nullable=False),
        sa.Column("category", sa.String(length=32), nullable=False),
        sa.Column("department", sa.String(length=100), nullable=False),
        sa.Column("range_min", sa.Float(), nullable=True),
        sa.Column("range_max", sa.Float(), nullable=True),
        sa.Column("range_unit", sa.String(length=50), nullable=True),
        sa.Column("range_text", sa.Text(), nullable=True),
        sa.Column("range_gender", sa.String(length=10), nullable=True),
        sa.Column("price", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column("turnaround_time", sa.Integer(), nullable=False),
        sa.Column("specimen", sa.String(length=16), nullable=False),
        sa.Column("instructions", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_lab_tests_test_code", "lab_tests", ["test_code"], unique=True)
    op.create_index("ix_lab_tests_test_name", "lab_tests", ["test_name"], unique=False)
    op.create_index("ix_lab_tests_category", "lab_tests", ["category"], unique=False)
    op.create_index("ix_lab_tests_is_active", "lab_tests", ["is_active"], unique=False)

    op.create_table(
        "lab_orders",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("order_number", sa.String(length=16), nullable=True),
        sa.Column("patient_id", sa.String(length=36), nullable=False),
        sa.Column("doctor_id", sa.String(length=36), nullable=False),
        sa.Column("encounter_id", sa.String(length=64), nullable=True),
        sa.Column("clinical_info", sa.Text(), nullable=True),
        sa.Column("total_amount", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("ordered_at", sa.DateTime(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["patient_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["doctor_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_lab_orders_order_number", "lab_orders", ["order_number"], unique=True)
    op.create_index("ix_lab_orders_patient_id", "lab_orders", ["patient_id"], unique=False)
    op.create_index("ix_lab_orders_doctor_id", "lab_orders", ["doctor_id"], unique=False)
    op.create_index("ix_lab_orders_status", "lab_orders", ["status"], unique=False)
    op.create_index("ix_lab_orders_ordered_at", "lab_orders", ["ordered_at"], unique=False)

    op.create_table(
        "lab_order_tests",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("order_id", sa.Integer(), nullable=False),
        sa.Column("test_id", sa.Integer(), nullable=False),
        sa.Column("priority", sa.String(length=10), nullable=False),
        sa.Column("instructions", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("collected_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["order_id"], ["lab_orders.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["test_id"], ["lab_tests.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("order_id", "test_id", name="uq_lab_order_tests_order_test"),
    )
    op.create_index("ix_lab_order_tests_order_id", "lab_order_tests", ["order_id"], unique=False)
    op.create_index("ix_lab_order_tests_test_id", "lab_order_tests", ["test_id"], unique=False)
    op.create_index("ix_lab_order_tests_status", "lab_order_tests", ["status"], unique=False)

    op.create_table(
        "lab_results",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("order_id", sa.Integer(), nullable=False),
        sa.Column("test_id", sa.Integer(), nullable=False),
        sa.Column("patient_id", sa.String(length=36), nullable=False),
        sa.Column("technician_id", sa.String(length=36), nullable=True),
        sa.Column("value", sa.JSON(), nullable=True),
        sa.Column("unit", sa.String(length=50), nullable=True),
        sa.Column("is_abnormal", sa.Boolean(), nullable=False),
        sa.Column("flag", sa.String(length=10), nullable=False),
        sa.Column("reference_range", sa.String(length=255), nullable=True),
        sa.Column("interpretation", sa.Text(), nullable=True),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("methodology", sa.String(length=255), nullable=True),
        sa.Column("instrument", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("performed_at", sa.DateTime(), nullable=True),
        sa.Column("verified_by", sa.String(length=36), nullable=True),
        sa.Column("verified_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["order_id"], ["lab_orders.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["test_id"], ["lab_tests.id"]),
        sa.ForeignKeyConstraint(["patient_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["technician_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["verified_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("order_id", "test_id", name="uq_lab_results_order_test"),
    )
    op.create_index("ix_lab_results_order_id", "lab_results", ["order_id"], unique=False)
    op.create_index("ix_lab_results_test_id", "lab_results", ["test_id"], unique=False)
    op.create_index("ix_lab_results_patient_id", "lab_results", ["patient_id"], unique=False)
    op.create_index("ix_lab_results_status", "lab_results", ["status"], unique=False)
    op.create_index("ix_lab_results_performed_at", "lab_results", ["performed_at"], unique=False)

    op.create_table(
        "lab_reports",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("report_number", sa.String(length=16), nullable=True),
        sa.Column("order_id", sa.Integer(), nullable=False),
        sa.Column("patient_id", sa.String(length=36), nullable=False),
        sa.Column("doctor_id", sa.String(length=36), nullable=False),
        sa.Column("total_tests", sa.Integer(), nullable=False),
        sa.Column("completed_tests", sa.Integer(), nullable=False),
        sa.Column("abnormal_results", sa.Integer(), nullable=False),
        sa.Column("critical_results", sa.Integer(), nullable=False),
        sa.Column("test_results", sa.JSON(), nullable=False),
        sa.Column("abnormal_findings", sa.JSON(), nullable=False),
        sa.Column("clinical_summary", sa.Text(), nullable=True),
        sa.Column("final_diagnosis", sa.Text(), nullable=True),
        sa.Column("recommendations", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("created_by", sa.String(length=36), nullable=False),
        sa.Column("reviewed_by", sa.String(length=36), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(), nullable=True),
        sa.Column("reported_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["order_id"], ["lab_orders.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["patient_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["doctor_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
        sa.ForeignKeyConstraint(["reviewed_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_lab_reports_report_number", "lab_reports", ["report_number"], unique=True)
    op.create_index("ix_lab_reports_order_id", "lab_reports", ["order_id"], unique=True)
    op.create_index("ix_lab_reports_patient_id", "lab_reports", ["patient_id"], unique=False)
    op.create_index("ix_lab_reports_status", "lab_reports", ["status"], unique=False)
    op.create_index("ix_lab_reports_reported_at", "lab_reports", ["reported_at"], unique=False)


def downgrade() -> None:
    op.drop_table("lab_reports")
    op.drop_table("lab_results")
    op.drop_table("lab_order_tests")
    op.drop_table("lab_orders")
    op.drop_table("lab_tests")
    op.drop_table("user_sessions")
    op.drop_table("users")
